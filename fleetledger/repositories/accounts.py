"""Data access for ledger accounts and their transactions."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Select, func, or_, select

from fleetledger.core.pagination import Page
from fleetledger.models import Account, Transaction

from .base import BaseRepository

_LEDGER_ORDER = (Transaction.transaction_date, Transaction.created_at, Transaction.id)
_NEWEST_FIRST = (
    Transaction.transaction_date.desc(),
    Transaction.created_at.desc(),
    Transaction.id.desc(),
)


class AccountRepository(BaseRepository):
    """Queries over ``account`` and ``ledger_transaction``."""

    def get(self, account_id: int) -> Account | None:
        return self._session.get(Account, account_id)

    def get_by_slug(self, slug: str) -> Account | None:
        return self._session.scalars(select(Account).where(Account.slug == slug)).first()

    def get_for_update(self, account_id: int) -> Account | None:
        """Load the account row with a write lock held until commit.

        ``populate_existing`` refreshes an already loaded instance so the
        balance read is the locked one.
        """

        statement = (
            select(Account)
            .where(Account.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.scalars(statement).first()

    def slug_exists(self, slug: str) -> bool:
        return self._session.scalar(select(func.count()).where(Account.slug == slug)) > 0

    def list_accounts(
        self,
        *,
        page: int,
        limit: int,
        search: str | None = None,
        currency: str | None = None,
    ) -> Page[Account]:
        statement = select(Account)
        pattern = self._search_pattern(search)
        if pattern:
            statement = statement.where(
                or_(func.lower(Account.title).like(pattern), func.lower(Account.slug).like(pattern))
            )
        if currency:
            statement = statement.where(Account.currency == currency)
        statement = statement.order_by(Account.created_at.desc(), Account.id.desc())
        return self._paginate(statement, page=page, limit=limit)

    def sum_before(self, account_id: int, before: datetime) -> Decimal:
        """Net ``credit - debit`` of every transaction dated before ``before``."""

        total = self._session.scalar(
            select(func.coalesce(func.sum(Transaction.credit - Transaction.debit), 0)).where(
                Transaction.account_id == account_id,
                Transaction.transaction_date < before,
            )
        )
        return Decimal(str(total or 0))

    def transactions_in_range(
        self,
        account_id: int,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Transaction]:
        """Transactions within ``[start, end]`` in ledger order (oldest first)."""

        statement = select(Transaction).where(Transaction.account_id == account_id)
        if start is not None:
            statement = statement.where(Transaction.transaction_date >= start)
        if end is not None:
            statement = statement.where(Transaction.transaction_date <= end)
        return list(self._session.scalars(statement.order_by(*_LEDGER_ORDER)).all())

    def net_total(self, account_id: int) -> Decimal:
        total = self._session.scalar(
            select(func.coalesce(func.sum(Transaction.credit - Transaction.debit), 0)).where(
                Transaction.account_id == account_id
            )
        )
        return Decimal(str(total or 0))

    def list_transactions(
        self,
        *,
        page: int,
        limit: int,
        account_slug: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        kind: str | None = None,
        search: str | None = None,
    ) -> Page[Transaction]:
        statement: Select = select(Transaction)
        if account_slug:
            statement = statement.where(Transaction.account_slug == account_slug)
        if start is not None:
            statement = statement.where(Transaction.transaction_date >= start)
        if end is not None:
            statement = statement.where(Transaction.transaction_date <= end)
        if kind == "credit":
            statement = statement.where(Transaction.credit > 0)
        elif kind == "debit":
            statement = statement.where(Transaction.debit > 0)
        pattern = self._search_pattern(search)
        if pattern:
            statement = statement.where(
                or_(
                    func.lower(Transaction.details).like(pattern),
                    func.lower(func.coalesce(Transaction.destination, "")).like(pattern),
                )
            )
        return self._paginate(statement.order_by(*_NEWEST_FIRST), page=page, limit=limit)


__all__ = ["AccountRepository"]
