"""Tests for invoice creation and the payment reconciler."""
from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from fleetledger.core.config import InvoiceSettings
from fleetledger.core.dates import utcnow
from fleetledger.core.errors import AuthorizationError, NotFoundError, ValidationError
from fleetledger.models import CompanyBalance, Payment, Receipt
from fleetledger.services import FleetService, InvoiceService, ReceiptService
from fleetledger.services.invoices import compute_payment_status, invoice_prefix


@pytest.fixture()
def invoices(session) -> InvoiceService:
    return InvoiceService(session, settings=InvoiceSettings(allow_overpayment=False))


@pytest.fixture()
def relaxed(session) -> InvoiceService:
    return InvoiceService(session, settings=InvoiceSettings(allow_overpayment=True))


@pytest.fixture()
def invoice(invoices, actor):
    return invoices.create_invoice(
        actor,
        {
            "sender_company_name": "Fleet Co",
            "sender_address": "1 Depot Road",
            "client_company_name": " acme ",
            "subtotal": "1000",
            "vat_percentage": "0",
        },
    )


def _balance(session, name: str = "ACME") -> CompanyBalance | None:
    session.expire_all()
    return session.scalars(select(CompanyBalance).where(CompanyBalance.company_name == name)).first()


def _count(session, model) -> int:
    return session.scalar(select(func.count()).select_from(model))


def test_create_invoice_numbers_and_totals(invoices, actor, session) -> None:
    invoice = invoices.create_invoice(
        actor,
        {
            "sender_company_name": "Fleet Co",
            "client_company_name": "Acme",
            "subtotal": "1000",
            "vat_percentage": "15",
        },
    )

    assert invoice.invoice_number == f"{invoice_prefix()}001"
    assert invoice.client_company_name == "ACME"
    assert invoice.vat_amount == Decimal("150.00")
    assert invoice.total_amount == Decimal("1150.00")
    assert invoice.payment_status == "unpaid"
    assert _balance(session).due_balance == Decimal("1150.00")


def test_second_invoice_gets_next_sequence(invoices, actor, invoice) -> None:
    second = invoices.create_invoice(
        actor, {"sender_company_name": "Fleet Co", "client_company_name": "Acme", "subtotal": "5"}
    )
    assert second.invoice_number.endswith("-002")


def test_subtotal_defaults_to_car_amounts_and_collects_trip_numbers(invoices, actor, session) -> None:
    fleet = FleetService(session)
    carrier = fleet.create_carrier(actor, {"type": "trip"})
    first = fleet.create_car(
        actor,
        carrier.id,
        {"stock_no": "S1", "name": "Corolla", "chassis": "C1", "amount": "300", "company_name": "acme"},
    )
    second = fleet.create_car(
        actor,
        carrier.id,
        {"stock_no": "S2", "name": "Polo", "chassis": "C2", "amount": "200", "company_name": "acme"},
    )

    invoice = invoices.create_invoice(
        actor,
        {
            "sender_company_name": "Fleet Co",
            "client_company_name": "acme",
            "vat_percentage": "10",
            "car_ids": [first.id, second.id],
        },
    )

    assert invoice.subtotal == Decimal("500.00")
    assert invoice.total_amount == Decimal("550.00")
    assert invoice.trip_numbers == ["TRIP-001"]
    assert {car.id for car in invoice.cars} == {first.id, second.id}


def test_overpayment_is_rejected_without_side_effects(invoices, actor, invoice, session) -> None:
    with pytest.raises(ValidationError, match="exceeds remaining balance of R1,000.00"):
        invoices.record_payment(actor, invoice.id, {"amount": "1200.00"})

    assert _count(session, Payment) == 0
    assert _count(session, Receipt) == 0
    balance = _balance(session)
    assert balance.credit_balance == Decimal("0.00")
    assert balance.due_balance == Decimal("1000.00")


def test_partial_payment_updates_due_and_snapshots_receipt(invoices, actor, invoice, session) -> None:
    result = invoices.record_payment(
        actor,
        invoice.id,
        {"amount": "400", "payment_method": "EFT", "account_info": "FNB 123"},
    )

    assert result.payment.amount_applied == Decimal("400.00")
    assert result.payment.excess_amount == Decimal("0.00")
    assert result.invoice.payment_status == "partial"
    assert _balance(session).due_balance == Decimal("600.00")

    receipt = result.receipt
    assert receipt.payment_amount == Decimal("400.00")
    assert receipt.invoice_number == invoice.invoice_number
    assert receipt.client_company_name == "ACME"
    assert receipt.sender_bank_details == "OWNER BANK 0001"
    assert receipt.status == "generated"
    assert receipt.user_id == invoice.user_id
    assert "Receipt #" in result.message


def test_full_payment_then_any_more_is_rejected(invoices, actor, invoice) -> None:
    result = invoices.record_payment(actor, invoice.id, {"amount": "1000"})
    assert result.invoice.payment_status == "paid"

    with pytest.raises(ValidationError, match="already fully paid"):
        invoices.record_payment(actor, invoice.id, {"amount": "1"})


def test_non_positive_amount_is_rejected(invoices, actor, invoice) -> None:
    with pytest.raises(ValidationError):
        invoices.record_payment(actor, invoice.id, {"amount": "0"})


def test_relaxed_policy_routes_excess_to_credit(relaxed, actor, invoice, session) -> None:
    result = relaxed.record_payment(actor, invoice.id, {"amount": "1200"})

    payment = result.payment
    assert payment.amount == payment.amount_applied + payment.excess_amount
    assert payment.amount_applied == Decimal("1000.00")
    assert payment.excess_amount == Decimal("200.00")
    assert "Excess (added to credit): R200.00" in payment.notes
    assert result.invoice.payment_status == "paid"
    assert "added to company credit" in result.message

    balance = _balance(session)
    assert balance.credit_balance == Decimal("200.00")
    assert balance.due_balance == Decimal("0.00")


def test_applied_never_exceeds_total(relaxed, actor, invoice) -> None:
    relaxed.record_payment(actor, invoice.id, {"amount": "700"})
    result = relaxed.record_payment(actor, invoice.id, {"amount": "700"})

    assert result.payment.amount_applied == Decimal("300.00")
    assert result.payment.excess_amount == Decimal("400.00")
    assert result.invoice.total_paid == Decimal("1000.00")


def test_delete_payment_reverses_balances_and_keeps_receipt(relaxed, actor, invoice, session) -> None:
    result = relaxed.record_payment(actor, invoice.id, {"amount": "1200"})
    receipt_id = result.receipt.id

    updated = relaxed.delete_payment(actor, invoice.id, result.payment.id)

    assert updated.payment_status == "unpaid"
    balance = _balance(session)
    assert balance.credit_balance == Decimal("0.00")
    assert balance.due_balance == Decimal("1000.00")
    receipt = session.get(Receipt, receipt_id)
    assert receipt is not None
    assert receipt.payment_id is None
    assert receipt.payment_amount == Decimal("1200.00")


def test_delete_invoice_reverses_due_and_keeps_receipts(invoices, actor, invoice, session) -> None:
    result = invoices.record_payment(actor, invoice.id, {"amount": "250"})
    receipt_id = result.receipt.id

    invoices.delete_invoice(actor, invoice.id)

    assert _balance(session).due_balance == Decimal("0.00")
    assert _count(session, Payment) == 0
    receipt = session.get(Receipt, receipt_id)
    assert receipt.invoice_id is None
    assert receipt.invoice_number == invoice.invoice_number


def test_other_users_cannot_touch_invoice(invoices, other_actor, invoice) -> None:
    with pytest.raises(AuthorizationError):
        invoices.record_payment(other_actor, invoice.id, {"amount": "10"})


def test_admin_lists_all_and_users_only_their_own(invoices, admin, other_actor, invoice) -> None:
    assert invoices.list_invoices(admin).total == 1
    assert invoices.list_invoices(other_actor).total == 0


def test_missing_invoice(invoices, actor) -> None:
    with pytest.raises(NotFoundError):
        invoices.get_invoice(actor, 404)


def test_past_due_invoice_is_overdue(invoices, actor) -> None:
    due = (utcnow() - timedelta(days=3)).isoformat()
    invoice = invoices.create_invoice(
        actor,
        {
            "sender_company_name": "Fleet Co",
            "client_company_name": "Late Ltd",
            "subtotal": "100",
            "due_date": due,
        },
    )
    assert invoice.payment_status == "overdue"


def test_compute_payment_status() -> None:
    now = datetime(2024, 1, 10)
    total = Decimal("100")
    assert compute_payment_status(total, Decimal("100"), None, now=now) == "paid"
    assert compute_payment_status(total, Decimal("10"), datetime(2024, 1, 1), now=now) == "overdue"
    assert compute_payment_status(total, Decimal("10"), None, now=now) == "partial"
    assert compute_payment_status(total, Decimal("0"), None, now=now) == "unpaid"


def test_receipt_status_transitions(invoices, actor, invoice, session) -> None:
    receipt = invoices.record_payment(actor, invoice.id, {"amount": "10"}).receipt
    receipts = ReceiptService(session)

    sent = receipts.update_status(actor, receipt.id, "Sent", sent_to="billing@acme.test")
    assert sent.status == "sent"
    assert sent.sent_to == "billing@acme.test"
    assert sent.sent_at is not None

    with pytest.raises(ValidationError):
        receipts.update_status(actor, receipt.id, "lost")


def test_receipts_listed_by_company(invoices, actor, other_actor, invoice, session) -> None:
    invoices.record_payment(actor, invoice.id, {"amount": "10"})
    receipts = ReceiptService(session)

    assert len(receipts.list_by_company(actor, "acme")) == 1
    assert receipts.list_by_company(other_actor, "acme") == []


def test_only_admin_deletes_receipts(invoices, actor, admin, invoice, session) -> None:
    receipt = invoices.record_payment(actor, invoice.id, {"amount": "10"}).receipt
    receipts = ReceiptService(session)

    with pytest.raises(AuthorizationError):
        receipts.delete(actor, receipt.id)
    receipts.delete(admin, receipt.id)
    assert session.get(Receipt, receipt.id) is None


def test_second_overpayment_keeps_credit_and_clears_due(relaxed, actor, invoice, session) -> None:
    relaxed.record_payment(actor, invoice.id, {"amount": "700"})
    relaxed.record_payment(actor, invoice.id, {"amount": "700"})

    balance = _balance(session)
    assert balance.credit_balance == Decimal("400.00")
    assert balance.due_balance == Decimal("0.00")
