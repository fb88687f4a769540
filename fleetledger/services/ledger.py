"""Cash-book ledger: running-balance statements and the atomic write path."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from fleetledger.core.dates import end_of_day, parse_date, parse_datetime, start_of_day, utcnow
from fleetledger.core.errors import ConflictError, NotFoundError, ValidationError
from fleetledger.core.formatting import ZERO, to_money
from fleetledger.core.logger import get_logger, timeit
from fleetledger.core.pagination import Page, normalize_paging
from fleetledger.db.session import unit_of_work
from fleetledger.models import Account, Transaction, TransactionType
from fleetledger.repositories.accounts import AccountRepository

LOGGER = get_logger(__name__)

TRANSFER = "transfer"


@dataclass(frozen=True)
class StatementLine:
    """A transaction annotated with the balance after it was applied."""

    transaction: Transaction
    calculated_balance: Decimal


@dataclass(frozen=True)
class Statement:
    """Opening balance plus in-range transactions, newest first."""

    account: Account
    opening_balance: Decimal
    closing_balance: Decimal
    lines: list[StatementLine]
    start_date: datetime | None = None
    end_date: datetime | None = None


@dataclass(frozen=True)
class NewTransaction:
    """Validated input for :meth:`LedgerService.create_transaction`."""

    account_id: int
    type: str
    amount: Decimal
    details: str
    transaction_date: datetime | None = None
    debit_type: str | None = None
    destination: str | None = None
    rate_of_exchange: Decimal | None = None


def normalize_slug(value: str | None) -> str:
    return (value or "").strip().lower()


class LedgerService:
    """Compute statements and post transactions against accounts."""

    def __init__(self, session: Session, repository: AccountRepository | None = None) -> None:
        self._session = session
        self._repository = repository or AccountRepository(session)

    def _resolve_account(self, account: str | int) -> Account:
        if isinstance(account, int):
            found = self._repository.get(account)
        else:
            found = self._repository.get_by_slug(normalize_slug(account))
        if found is None:
            raise NotFoundError("Account not found")
        return found

    def get_statement(
        self,
        account: str | int,
        *,
        start_date: object = None,
        end_date: object = None,
        search: str | None = None,
    ) -> Statement:
        """Return the opening balance and running balances for a date range.

        Balances are folded oldest first over every in-range transaction;
        ``search`` only narrows which lines are returned.
        """

        start = parse_date(start_date, field="start_date")
        end = parse_date(end_date, field="end_date")
        if start is not None and end is not None and start > end:
            raise ValidationError("start_date must not be after end_date")

        resolved = self._resolve_account(account)
        range_start = start_of_day(start) if start is not None else None
        range_end = end_of_day(end) if end is not None else None

        opening = to_money(resolved.initial_balance)
        if range_start is not None:
            opening += to_money(self._repository.sum_before(resolved.id, range_start))

        with timeit(f"statement for {resolved.slug}", logger=LOGGER, unit="transactions") as timer:
            transactions = self._repository.transactions_in_range(
                resolved.id, start=range_start, end=range_end
            )
            timer.set_total(len(transactions))
            running = opening
            lines: list[StatementLine] = []
            for txn in transactions:
                running += to_money(txn.credit) - to_money(txn.debit)
                lines.append(StatementLine(transaction=txn, calculated_balance=running))

        closing = running
        lines.reverse()

        needle = (search or "").strip().lower()
        if needle:
            lines = [
                line
                for line in lines
                if needle in (line.transaction.details or "").lower()
                or needle in (line.transaction.destination or "").lower()
            ]

        return Statement(
            account=resolved,
            opening_balance=opening,
            closing_balance=closing,
            lines=lines,
            start_date=range_start,
            end_date=range_end,
        )

    def validate_transaction(
        self,
        *,
        account_id: object,
        type: object,
        amount: object,
        details: object,
        transaction_date: object = None,
        debit_type: object = None,
        destination: object = None,
        rate_of_exchange: object = None,
    ) -> NewTransaction:
        """Check raw input before anything is written."""

        if account_id in (None, ""):
            raise ValidationError("Account is required")
        try:
            resolved_account_id = int(account_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Account is required") from exc

        kind = str(type or "").strip().lower()
        if kind not in {t.value for t in TransactionType}:
            raise ValidationError("Transaction type must be credit or debit")

        value = to_money(amount)
        if value <= ZERO:
            raise ValidationError("Amount must be greater than zero")

        text = str(details or "").strip()
        if not text:
            raise ValidationError("Details are required")

        debit_kind = str(debit_type or "").strip().lower() or None
        target = str(destination or "").strip() or None
        if kind == TransactionType.DEBIT.value and debit_kind == TRANSFER and not target:
            raise ValidationError("Destination is required for transfers")
        if kind != TransactionType.DEBIT.value or debit_kind != TRANSFER:
            target = None

        rate: Decimal | None = None
        if rate_of_exchange not in (None, ""):
            try:
                rate = Decimal(str(rate_of_exchange))
            except ArithmeticError as exc:
                raise ValidationError("rate_of_exchange must be a valid number") from exc
            if not rate.is_finite() or rate <= 0:
                raise ValidationError("rate_of_exchange must be greater than zero")
            if rate >= Decimal("1e12"):
                raise ValidationError("rate_of_exchange is too large")

        return NewTransaction(
            account_id=resolved_account_id,
            type=kind,
            amount=value,
            details=text,
            transaction_date=parse_datetime(transaction_date, field="transaction_date"),
            debit_type=debit_kind,
            destination=target,
            rate_of_exchange=rate,
        )

    def create_transaction(self, data: NewTransaction) -> Transaction:
        """Adjust the account balance and insert the transaction in one unit."""

        credit = data.amount if data.type == TransactionType.CREDIT.value else ZERO
        debit = data.amount if data.type == TransactionType.DEBIT.value else ZERO

        with unit_of_work(self._session, "transaction posting"):
            account = self._repository.get_for_update(data.account_id)
            if account is None:
                raise NotFoundError("Account not found")
            account.current_balance = to_money(account.current_balance) + credit - debit
            txn = Transaction(
                account_id=account.id,
                account_slug=account.slug,
                credit=credit,
                debit=debit,
                currency=account.currency,
                details=data.details,
                destination=data.destination,
                rate_of_exchange=data.rate_of_exchange,
                transaction_date=data.transaction_date or utcnow(),
            )
            self._session.add(txn)
            self._session.flush()

        LOGGER.info(
            "Transaction posted",
            extra={
                "account": account.slug,
                "type": data.type,
                "amount": str(data.amount),
                "balance": str(account.current_balance),
            },
        )
        return txn

    def create_account(
        self,
        *,
        title: object,
        slug: object,
        initial_balance: object,
        currency: object,
        currency_symbol: object,
    ) -> Account:
        clean_title = str(title or "").strip()
        clean_slug = normalize_slug(str(slug or ""))
        clean_currency = str(currency or "").strip()
        clean_symbol = str(currency_symbol or "").strip()
        if not clean_title or not clean_slug or not clean_currency or not clean_symbol:
            raise ValidationError("All fields are required")
        if initial_balance in (None, ""):
            raise ValidationError("All fields are required")
        opening = to_money(initial_balance, field="initial_balance")

        with unit_of_work(self._session, "account creation"):
            if self._repository.slug_exists(clean_slug):
                raise ConflictError("An account with this slug already exists")
            account = Account(
                title=clean_title,
                slug=clean_slug,
                initial_balance=opening,
                current_balance=opening,
                currency=clean_currency,
                currency_symbol=clean_symbol,
            )
            self._session.add(account)
            self._session.flush()

        LOGGER.info("Account created", extra={"account": clean_slug, "currency": clean_currency})
        return account

    def list_accounts(
        self,
        *,
        page: object = 1,
        limit: object = 20,
        search: str | None = None,
        currency: str | None = None,
    ) -> Page[Account]:
        resolved_page, resolved_limit = normalize_paging(page, limit)
        return self._repository.list_accounts(
            page=resolved_page, limit=resolved_limit, search=search, currency=currency or None
        )

    def list_transactions(
        self,
        *,
        page: object = 1,
        limit: object = 20,
        account_slug: str | None = None,
        start_date: object = None,
        end_date: object = None,
        type: str | None = None,
        search: str | None = None,
    ) -> Page[Transaction]:
        start = parse_date(start_date, field="start_date")
        end = parse_date(end_date, field="end_date")
        kind = (type or "").strip().lower() or None
        if kind is not None and kind not in {t.value for t in TransactionType}:
            raise ValidationError("Transaction type must be credit or debit")
        resolved_page, resolved_limit = normalize_paging(page, limit)
        return self._repository.list_transactions(
            page=resolved_page,
            limit=resolved_limit,
            account_slug=normalize_slug(account_slug) or None,
            start=start_of_day(start) if start else None,
            end=end_of_day(end) if end else None,
            kind=kind,
            search=search,
        )

    def recalculate_balance(self, account: str | int) -> Account:
        """Rebuild ``current_balance`` from the transaction log."""

        resolved = self._resolve_account(account)
        with unit_of_work(self._session, "balance recalculation"):
            locked = self._repository.get_for_update(resolved.id)
            if locked is None:
                raise NotFoundError("Account not found")
            previous = to_money(locked.current_balance)
            locked.current_balance = to_money(locked.initial_balance) + to_money(
                self._repository.net_total(locked.id)
            )

        if previous != locked.current_balance:
            LOGGER.warning(
                "Account balance drift repaired",
                extra={
                    "account": locked.slug,
                    "previous": str(previous),
                    "current": str(locked.current_balance),
                },
            )
        return locked


__all__ = [
    "LedgerService",
    "NewTransaction",
    "Statement",
    "StatementLine",
    "TRANSFER",
    "normalize_slug",
]
