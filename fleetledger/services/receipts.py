"""Payment receipts: immutable snapshots of a payment and its invoice."""
from __future__ import annotations

from sqlalchemy.orm import Session

from fleetledger.core.dates import utcnow
from fleetledger.core.errors import NotFoundError, ValidationError
from fleetledger.core.logger import get_logger
from fleetledger.core.security import AuthenticatedUser
from fleetledger.db.session import unit_of_work
from fleetledger.models import Invoice, Payment, Receipt, ReceiptStatus
from fleetledger.repositories.invoices import ReceiptRepository

from .access import ensure_owner, ensure_super_admin
from .company_balances import normalize_company_name

LOGGER = get_logger(__name__)


def receipt_prefix(now=None) -> str:
    moment = now or utcnow()
    return f"RCP-{moment:%Y%m%d}-"


class ReceiptService:
    def __init__(self, session: Session, repository: ReceiptRepository | None = None) -> None:
        self._session = session
        self._repository = repository or ReceiptRepository(session)

    def create_for_payment(
        self,
        invoice: Invoice,
        payment: Payment,
        *,
        sender_bank_details: str | None = None,
    ) -> Receipt:
        """Snapshot ``payment`` into a new receipt; runs in the caller's unit of work."""

        receipt = Receipt(
            receipt_number=self._repository.next_receipt_number(receipt_prefix()),
            invoice_id=invoice.id,
            payment_id=payment.id,
            invoice_number=invoice.invoice_number,
            user_id=invoice.user_id,
            sender_company_name=invoice.sender_company_name,
            sender_address=invoice.sender_address,
            sender_bank_details=sender_bank_details or "",
            client_company_name=invoice.client_company_name,
            payment_amount=payment.amount,
            amount_applied=payment.amount_applied,
            excess_amount=payment.excess_amount,
            payment_method=payment.payment_method,
            account_info=payment.account_info,
            payment_date=payment.payment_date,
            invoice_date=invoice.invoice_date,
            invoice_amount=invoice.total_amount,
            notes=payment.notes,
            status=ReceiptStatus.GENERATED.value,
        )
        self._session.add(receipt)
        self._session.flush()
        return receipt

    def get(self, actor: AuthenticatedUser, receipt_id: int) -> Receipt:
        receipt = self._repository.get(receipt_id)
        if receipt is None:
            raise NotFoundError("Receipt not found")
        ensure_owner(actor, receipt.user_id)
        return receipt

    def list_by_invoice(self, actor: AuthenticatedUser, invoice_id: int) -> list[Receipt]:
        invoice = self._session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        ensure_owner(actor, invoice.user_id)
        return self._repository.list_by_invoice(invoice.id)

    def list_by_company(self, actor: AuthenticatedUser, company_name: str) -> list[Receipt]:
        return self._repository.list_by_company(
            normalize_company_name(company_name),
            user_id=None if actor.is_super_admin else actor.user_id,
        )

    def update_status(
        self,
        actor: AuthenticatedUser,
        receipt_id: int,
        status: str,
        *,
        sent_to: str | None = None,
    ) -> Receipt:
        wanted = (status or "").strip().lower()
        if wanted not in {s.value for s in ReceiptStatus}:
            raise ValidationError("Invalid receipt status")
        receipt = self.get(actor, receipt_id)
        with unit_of_work(self._session, "receipt status update"):
            receipt.status = wanted
            if wanted == ReceiptStatus.SENT.value:
                receipt.sent_at = utcnow()
                receipt.sent_to = (sent_to or "").strip() or None
        LOGGER.info(
            "Receipt status updated",
            extra={"receipt": receipt.receipt_number, "status": wanted},
        )
        return receipt

    def delete(self, actor: AuthenticatedUser, receipt_id: int) -> None:
        ensure_super_admin(actor)
        receipt = self._repository.get(receipt_id)
        if receipt is None:
            raise NotFoundError("Receipt not found")
        with unit_of_work(self._session, "receipt deletion"):
            self._session.delete(receipt)
        LOGGER.info("Receipt deleted", extra={"receipt": receipt.receipt_number})


__all__ = ["ReceiptService", "receipt_prefix"]
