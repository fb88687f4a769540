"""Invoices and the payment reconciler.

Recording a payment is a single unit of work: the payment row, the client's
credit and due balances, the invoice status and the receipt snapshot are
committed together or not at all. ``amount_applied`` never exceeds what was
outstanding on the invoice; whatever is left over is ``excess_amount`` and
goes to the client's credit balance. Unless overpayment is enabled in the
settings, a payment larger than the outstanding amount is rejected.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fleetledger.core.config import InvoiceSettings, get_settings
from fleetledger.core.dates import parse_datetime, utcnow
from fleetledger.core.errors import NotFoundError, ValidationError
from fleetledger.core.formatting import ZERO, format_money, to_money
from fleetledger.core.logger import get_logger
from fleetledger.core.pagination import Page, normalize_paging
from fleetledger.core.security import AuthenticatedUser
from fleetledger.db.session import unit_of_work
from fleetledger.models import CarrierType, Invoice, Payment, PaymentStatus, Receipt, User
from fleetledger.repositories.invoices import InvoiceRepository

from .access import ensure_owner, owner_filter
from .company_balances import CompanyBalanceService, normalize_company_name
from .receipts import ReceiptService

LOGGER = get_logger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PaymentResult:
    invoice: Invoice
    payment: Payment
    receipt: Receipt

    @property
    def message(self) -> str:
        if self.payment.excess_amount > ZERO:
            return (
                f"Payment recorded. {format_money(self.payment.excess_amount)} added to company "
                f"credit. Receipt #{self.receipt.receipt_number}."
            )
        return f"Payment recorded successfully. Receipt #{self.receipt.receipt_number}."


def invoice_prefix(now: datetime | None = None) -> str:
    moment = now or utcnow()
    return f"INV-{moment:%Y%m%d}-"


def compute_payment_status(
    total_amount: Decimal,
    total_applied: Decimal,
    due_date: datetime | None,
    *,
    now: datetime | None = None,
) -> str:
    if total_applied >= to_money(total_amount):
        return PaymentStatus.PAID.value
    if due_date is not None and (now or utcnow()) > due_date:
        return PaymentStatus.OVERDUE.value
    if total_applied > ZERO:
        return PaymentStatus.PARTIAL.value
    return PaymentStatus.UNPAID.value


class InvoiceService:
    """Create invoices and reconcile the payments recorded against them."""

    def __init__(
        self,
        session: Session,
        repository: InvoiceRepository | None = None,
        *,
        settings: InvoiceSettings | None = None,
        balances: CompanyBalanceService | None = None,
        receipts: ReceiptService | None = None,
    ) -> None:
        self._session = session
        self._repository = repository or InvoiceRepository(session)
        self._settings = settings or get_settings().invoices
        self._balances = balances or CompanyBalanceService(session)
        self._receipts = receipts or ReceiptService(session)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def get_invoice(self, actor: AuthenticatedUser, invoice_id: int) -> Invoice:
        invoice = self._repository.get(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        ensure_owner(actor, invoice.user_id)
        return invoice

    def list_invoices(
        self,
        actor: AuthenticatedUser,
        *,
        page: object = 1,
        limit: object = 10,
        company: str | None = None,
        status: str | None = None,
        search: str | None = None,
        user_id: object = None,
    ) -> Page[Invoice]:
        if status and status not in {s.value for s in PaymentStatus}:
            raise ValidationError("Invalid payment status")
        resolved_page, resolved_limit = normalize_paging(page, limit)
        return self._repository.list_invoices(
            page=resolved_page,
            limit=resolved_limit,
            user_id=owner_filter(actor, user_id),
            company=company or None,
            status=status or None,
            search=search,
        )

    def _total_applied(self, invoice_id: int) -> Decimal:
        self._session.flush()
        total = self._session.scalar(
            select(func.coalesce(func.sum(Payment.amount_applied), 0)).where(
                Payment.invoice_id == invoice_id
            )
        )
        return to_money(total or 0)

    def _refresh_status(self, invoice: Invoice) -> None:
        invoice.payment_status = compute_payment_status(
            invoice.total_amount, self._total_applied(invoice.id), invoice.due_date
        )

    # ------------------------------------------------------------------
    # invoice lifecycle
    # ------------------------------------------------------------------
    def create_invoice(self, actor: AuthenticatedUser, payload: Mapping[str, Any]) -> Invoice:
        sender = str(payload.get("sender_company_name") or "").strip()
        if not sender:
            raise ValidationError("Sender company name is required")
        client = normalize_company_name(payload.get("client_company_name"))

        car_ids = [int(car_id) for car_id in payload.get("car_ids") or []]
        cars = self._repository.cars_by_ids(car_ids)
        if len(cars) != len(set(car_ids)):
            raise NotFoundError("One or more cars were not found")
        for car in cars:
            ensure_owner(actor, car.user_id)

        if payload.get("subtotal") not in (None, ""):
            subtotal = to_money(payload.get("subtotal"), field="subtotal")
        else:
            subtotal = to_money(sum((to_money(car.amount) for car in cars), ZERO))
        vat_percentage = to_money(payload.get("vat_percentage"), field="vat_percentage")
        if subtotal < ZERO or vat_percentage < ZERO:
            raise ValidationError("Amounts cannot be negative")
        vat_amount = to_money(subtotal * vat_percentage / HUNDRED)

        trip_numbers: list[str] = []
        for car in cars:
            carrier = car.carrier
            if (
                carrier is not None
                and carrier.type == CarrierType.TRIP.value
                and carrier.trip_number
                and carrier.trip_number not in trip_numbers
            ):
                trip_numbers.append(carrier.trip_number)

        descriptions = payload.get("descriptions") or []
        if isinstance(descriptions, str):
            descriptions = [descriptions]

        with unit_of_work(self._session, "invoice creation"):
            invoice = Invoice(
                invoice_number=self._repository.next_invoice_number(invoice_prefix()),
                user_id=actor.user_id,
                sender_company_name=sender,
                sender_address=str(payload.get("sender_address") or "").strip() or None,
                client_company_name=client,
                invoice_date=parse_datetime(payload.get("invoice_date"), field="invoice_date")
                or utcnow(),
                start_date=parse_datetime(payload.get("start_date"), field="start_date"),
                end_date=parse_datetime(payload.get("end_date"), field="end_date"),
                due_date=parse_datetime(payload.get("due_date"), field="due_date"),
                subtotal=subtotal,
                vat_percentage=vat_percentage,
                vat_amount=vat_amount,
                total_amount=subtotal + vat_amount,
                descriptions=list(descriptions),
                trip_numbers=trip_numbers,
                cars=cars,
            )
            self._session.add(invoice)
            self._session.flush()
            invoice.payment_status = compute_payment_status(
                invoice.total_amount, ZERO, invoice.due_date
            )
            if invoice.total_amount > ZERO:
                self._balances.apply_due(client, invoice.total_amount, created_by=actor.user_id)

        LOGGER.info(
            "Invoice created",
            extra={
                "invoice": invoice.invoice_number,
                "client": client,
                "total": str(invoice.total_amount),
            },
        )
        return invoice

    def delete_invoice(self, actor: AuthenticatedUser, invoice_id: int) -> None:
        invoice = self.get_invoice(actor, invoice_id)
        number = invoice.invoice_number

        with unit_of_work(self._session, "invoice deletion"):
            applied = self._total_applied(invoice.id)
            remaining = to_money(invoice.total_amount) - applied
            excess = to_money(sum((to_money(p.excess_amount) for p in invoice.payments), ZERO))
            if remaining > ZERO:
                self._balances.apply_due(invoice.client_company_name, -remaining)
            if excess > ZERO:
                self._balances.apply_credit(invoice.client_company_name, -excess)
            self._repository.detach_receipts(invoice_id=invoice.id)
            self._session.delete(invoice)

        LOGGER.info(
            "Invoice deleted",
            extra={"invoice": number, "due_reversed": str(max(remaining, ZERO)), "credit_reversed": str(excess)},
        )

    # ------------------------------------------------------------------
    # payments
    # ------------------------------------------------------------------
    def record_payment(
        self, actor: AuthenticatedUser, invoice_id: int, payload: Mapping[str, Any]
    ) -> PaymentResult:
        """Apply a payment to an invoice, routing any excess to company credit."""

        invoice = self.get_invoice(actor, invoice_id)
        amount = to_money(payload.get("amount"))
        if amount <= ZERO:
            raise ValidationError("Payment amount must be greater than 0")
        payment_date = parse_datetime(payload.get("payment_date"), field="payment_date") or utcnow()
        method = str(payload.get("payment_method") or "").strip() or "Cash"
        account_info = str(payload.get("account_info") or "").strip() or None
        notes = str(payload.get("notes") or "").strip() or None

        with unit_of_work(self._session, "payment recording"):
            self._repository.get_for_update(invoice.id)
            remaining = to_money(invoice.total_amount) - self._total_applied(invoice.id)
            if amount > remaining and not self._settings.allow_overpayment:
                if remaining <= ZERO:
                    raise ValidationError("Invoice is already fully paid")
                raise ValidationError(
                    f"Payment amount exceeds remaining balance of {format_money(remaining)}"
                )

            applied = min(amount, max(remaining, ZERO))
            excess = amount - applied
            if notes is None and excess > ZERO:
                notes = (
                    f"Full payment: {format_money(amount)} | Applied: {format_money(applied)} | "
                    f"Excess (added to credit): {format_money(excess)}"
                )

            payment = Payment(
                amount=amount,
                amount_applied=applied,
                excess_amount=excess,
                payment_date=payment_date,
                payment_method=method,
                account_info=account_info,
                notes=notes,
                recorded_by=actor.user_id,
            )
            invoice.payments.append(payment)
            self._session.flush()

            client = invoice.client_company_name
            if excess > ZERO:
                self._balances.apply_credit(client, excess, created_by=actor.user_id)
            if applied > ZERO:
                self._balances.apply_due(client, -applied, created_by=actor.user_id)
            self._refresh_status(invoice)

            recorder = self._session.get(User, actor.user_id)
            receipt = self._receipts.create_for_payment(
                invoice,
                payment,
                sender_bank_details=recorder.bank_details if recorder is not None else None,
            )

        LOGGER.info(
            "Payment recorded",
            extra={
                "invoice": invoice.invoice_number,
                "amount": str(amount),
                "applied": str(applied),
                "excess": str(excess),
                "receipt": receipt.receipt_number,
                "status": invoice.payment_status,
            },
        )
        return PaymentResult(invoice=invoice, payment=payment, receipt=receipt)

    def delete_payment(self, actor: AuthenticatedUser, invoice_id: int, payment_id: int) -> Invoice:
        invoice = self.get_invoice(actor, invoice_id)
        payment = self._repository.get_payment(invoice.id, payment_id)
        if payment is None:
            raise NotFoundError("Payment not found")

        with unit_of_work(self._session, "payment deletion"):
            client = invoice.client_company_name
            if payment.amount_applied > ZERO:
                self._balances.apply_due(client, payment.amount_applied)
            if payment.excess_amount > ZERO:
                self._balances.apply_credit(client, -payment.excess_amount)
            self._repository.detach_receipts(payment_id=payment.id)
            invoice.payments.remove(payment)
            self._session.flush()
            self._refresh_status(invoice)

        LOGGER.info(
            "Payment deleted",
            extra={"invoice": invoice.invoice_number, "payment_id": payment_id},
        )
        return invoice


__all__ = [
    "InvoiceService",
    "PaymentResult",
    "compute_payment_status",
    "invoice_prefix",
]
