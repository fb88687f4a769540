"""Tests for the running-balance statement and the ledger write path."""
from __future__ import annotations

from decimal import Decimal
from unittest.mock import create_autospec

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from fleetledger.core.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from fleetledger.core.formatting import to_money
from fleetledger.models import Account, Transaction
from fleetledger.repositories import AccountRepository
from fleetledger.services import LedgerService


@pytest.fixture()
def ledger(session) -> LedgerService:
    return LedgerService(session)


@pytest.fixture()
def account(ledger) -> Account:
    return ledger.create_account(
        title="Main Account",
        slug=" Main ",
        initial_balance="1000",
        currency="ZAR",
        currency_symbol="R",
    )


def _post(ledger: LedgerService, account: Account, kind: str, amount: str, day: str, **extra):
    data = ledger.validate_transaction(
        account_id=account.id,
        type=kind,
        amount=amount,
        details=extra.pop("details", f"{kind} {amount}"),
        transaction_date=day,
        **extra,
    )
    return ledger.create_transaction(data)


def test_create_account_normalises_slug_and_sets_balance(account) -> None:
    assert account.slug == "main"
    assert account.current_balance == Decimal("1000.00")


def test_duplicate_slug_is_a_conflict(ledger, account) -> None:
    with pytest.raises(ConflictError):
        ledger.create_account(
            title="Again", slug="MAIN", initial_balance="0", currency="ZAR", currency_symbol="R"
        )


def test_statement_folds_opening_balance_before_start_date(ledger, account) -> None:
    _post(ledger, account, "credit", "500", "2024-01-02")
    second = _post(ledger, account, "debit", "200", "2024-01-05")

    statement = ledger.get_statement("main", start_date="2024-01-03")

    assert statement.opening_balance == Decimal("1500.00")
    assert [line.transaction.id for line in statement.lines] == [second.id]
    assert statement.lines[0].calculated_balance == Decimal("1300.00")
    assert statement.closing_balance == Decimal("1300.00")


def test_statement_lines_are_newest_first_with_running_balances(ledger, account) -> None:
    _post(ledger, account, "credit", "100", "2024-02-01")
    _post(ledger, account, "debit", "30", "2024-02-02")
    _post(ledger, account, "credit", "5.50", "2024-02-03")

    statement = ledger.get_statement(account.id)

    balances = [line.calculated_balance for line in statement.lines]
    assert balances == [Decimal("1075.50"), Decimal("1070.00"), Decimal("1100.00")]
    assert statement.opening_balance == Decimal("1000.00")


def test_end_date_is_inclusive_to_end_of_day(ledger, account) -> None:
    _post(ledger, account, "credit", "10", "2024-03-01T23:30:00")
    _post(ledger, account, "credit", "20", "2024-03-02T08:00:00")

    statement = ledger.get_statement("main", start_date="2024-03-01", end_date="2024-03-01")

    assert len(statement.lines) == 1
    assert statement.closing_balance == Decimal("1010.00")


def test_search_filters_lines_but_not_balances(ledger, account) -> None:
    _post(ledger, account, "credit", "100", "2024-04-01", details="Fuel refund")
    _post(ledger, account, "debit", "40", "2024-04-02", details="Office rent")

    statement = ledger.get_statement("main", search="refund")

    assert len(statement.lines) == 1
    assert statement.lines[0].calculated_balance == Decimal("1100.00")
    assert statement.closing_balance == Decimal("1060.00")


def test_statement_is_read_only(ledger, account, session) -> None:
    _post(ledger, account, "credit", "50", "2024-05-01")
    first = ledger.get_statement("main")
    second = ledger.get_statement("main")

    assert first.closing_balance == second.closing_balance
    assert session.get(Account, account.id).current_balance == Decimal("1050.00")


def test_start_after_end_is_rejected(ledger, account) -> None:
    with pytest.raises(ValidationError):
        ledger.get_statement("main", start_date="2024-02-01", end_date="2024-01-01")


def test_unknown_account_statement(ledger) -> None:
    with pytest.raises(NotFoundError):
        ledger.get_statement("missing")


def test_balance_matches_transaction_log(ledger, account, session) -> None:
    _post(ledger, account, "credit", "250.25", "2024-06-01")
    _post(ledger, account, "debit", "100.10", "2024-06-02")
    _post(ledger, account, "debit", "0.15", "2024-06-03")

    credits, debits = session.execute(
        select(func.sum(Transaction.credit), func.sum(Transaction.debit)).where(
            Transaction.account_id == account.id
        )
    ).one()
    refreshed = session.get(Account, account.id)
    assert refreshed.current_balance == refreshed.initial_balance + credits - debits
    assert refreshed.current_balance == Decimal("1150.00")


def test_transaction_copies_account_currency_and_slug(ledger, account) -> None:
    txn = _post(ledger, account, "credit", "1", "2024-07-01")
    assert txn.currency == "ZAR"
    assert txn.account_slug == "main"
    assert txn.debit == Decimal("0")


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"account_id": None}, "Account is required"),
        ({"type": "refund"}, "Transaction type must be credit or debit"),
        ({"amount": "0"}, "Amount must be greater than zero"),
        ({"amount": "-5"}, "Amount must be greater than zero"),
        ({"details": "   "}, "Details are required"),
        ({"type": "debit", "debit_type": "transfer"}, "Destination is required for transfers"),
    ],
)
def test_validation_errors(ledger, account, overrides, message) -> None:
    values = {"account_id": account.id, "type": "credit", "amount": "10", "details": "x"}
    values.update(overrides)
    with pytest.raises(ValidationError, match=message):
        ledger.validate_transaction(**values)


def test_destination_only_kept_for_transfer_debits(ledger, account) -> None:
    transfer = ledger.validate_transaction(
        account_id=account.id,
        type="debit",
        amount="10",
        details="Move",
        debit_type="transfer",
        destination="Savings",
    )
    credit = ledger.validate_transaction(
        account_id=account.id, type="credit", amount="10", details="In", destination="Savings"
    )
    assert transfer.destination == "Savings"
    assert credit.destination is None


def test_failed_write_leaves_no_trace(ledger, account, session) -> None:
    data = ledger.validate_transaction(account_id=999, type="credit", amount="10", details="x")
    with pytest.raises(NotFoundError):
        ledger.create_transaction(data)

    assert session.scalar(select(func.count()).select_from(Transaction)) == 0
    assert session.get(Account, account.id).current_balance == Decimal("1000.00")


def test_recalculate_repairs_drift(ledger, account, session) -> None:
    _post(ledger, account, "credit", "75", "2024-08-01")
    account.current_balance = Decimal("1.00")
    session.commit()

    repaired = ledger.recalculate_balance("main")

    assert repaired.current_balance == Decimal("1075.00")


def test_list_transactions_filters_by_type(ledger, account) -> None:
    _post(ledger, account, "credit", "75", "2024-08-01")
    _post(ledger, account, "debit", "5", "2024-08-02")

    page = ledger.list_transactions(account_slug="MAIN", type="debit")

    assert page.total == 1
    assert page.items[0].debit == Decimal("5.00")


def test_statement_math_with_stubbed_repository() -> None:
    repository = create_autospec(AccountRepository, instance=True)
    repository.get_by_slug.return_value = Account(
        id=1,
        title="Ops",
        slug="ops",
        initial_balance=Decimal("100.00"),
        current_balance=Decimal("130.00"),
        currency="ZAR",
        currency_symbol="R",
    )
    repository.sum_before.return_value = Decimal("50.00")
    repository.transactions_in_range.return_value = [
        Transaction(id=1, credit=Decimal("10.00"), debit=Decimal("0"), details="fuel refund"),
        Transaction(id=2, credit=Decimal("0"), debit=Decimal("30.00"), details="tolls"),
    ]
    service = LedgerService(create_autospec(Session, instance=True), repository=repository)

    statement = service.get_statement("OPS", start_date="2024-08-01", end_date="2024-08-31")

    assert statement.opening_balance == Decimal("150.00")
    assert statement.closing_balance == Decimal("130.00")
    assert [line.calculated_balance for line in statement.lines] == [
        Decimal("130.00"),
        Decimal("160.00"),
    ]
    repository.get_by_slug.assert_called_once_with("ops")
    repository.transactions_in_range.assert_called_once()


def test_database_failure_surfaces_as_persistence_error(ledger, account, session, monkeypatch) -> None:
    data = ledger.validate_transaction(account_id=account.id, type="debit", amount="10", details="x")

    def _fail() -> None:
        raise OperationalError("INSERT INTO transactions", {}, Exception("disk full"))

    monkeypatch.setattr(session, "flush", _fail)
    with pytest.raises(PersistenceError):
        ledger.create_transaction(data)
    monkeypatch.undo()

    assert session.scalar(select(func.count()).select_from(Transaction)) == 0
    assert session.get(Account, account.id).current_balance == Decimal("1000.00")


def test_statement_rejects_trailing_garbage_in_dates(ledger, account) -> None:
    with pytest.raises(ValidationError, match="start_date"):
        ledger.get_statement("main", start_date="2024-01-03garbage")
    with pytest.raises(ValidationError, match="end_date"):
        ledger.get_statement("main", end_date="2024-01-03T25:00")


def test_statement_accepts_full_timestamps(ledger, account) -> None:
    _post(ledger, account, "credit", "10", "2024-01-03T09:00:00")

    statement = ledger.get_statement("main", start_date="2024-01-03T00:00:00Z", end_date="2024-01-03")

    assert len(statement.lines) == 1


@pytest.mark.parametrize("amount", ["1e30", "1000000000000", "-1e13"])
def test_amounts_beyond_column_precision_are_rejected(ledger, account, amount) -> None:
    with pytest.raises(ValidationError, match="too large"):
        ledger.validate_transaction(account_id=account.id, type="credit", amount=amount, details="x")


def test_to_money_bounds() -> None:
    assert to_money("999999999999.99") == Decimal("999999999999.99")
    with pytest.raises(ValidationError, match="price is too large"):
        to_money("1e30", field="price")
    with pytest.raises(ValidationError, match="must be a valid number"):
        to_money("NaN")
