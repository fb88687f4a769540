"""ORM models for cash-book accounts and their transactions."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleetledger.core.dates import utcnow

from .base import ID_TYPE, MONEY, Base, TimestampMixin


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class Account(TimestampMixin, Base):
    """A ledger account with a denormalized running balance."""

    __tablename__ = "account"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(160), nullable=False)
    slug: Mapped[str] = mapped_column(String(160), unique=True, nullable=False)
    initial_balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    current_balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    currency_symbol: Mapped[str] = mapped_column(String(8), nullable=False)

    transactions: Mapped[list["Transaction"]] = relationship(back_populates="account")


class Transaction(Base):
    """A single credit or debit against an account. Never updated."""

    __tablename__ = "ledger_transaction"
    __table_args__ = (
        Index("ix_ledger_transaction_account_date", "account_id", "transaction_date", "created_at"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("account.id"), nullable=False)
    account_slug: Mapped[str] = mapped_column(String(160), nullable=False, index=True)
    credit: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    debit: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False)
    destination: Mapped[str | None] = mapped_column(String(255))
    rate_of_exchange: Mapped[Decimal | None] = mapped_column(Numeric(18, 6))
    transaction_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    account: Mapped[Account] = relationship(back_populates="transactions")

    @property
    def net(self) -> Decimal:
        return (self.credit or Decimal("0")) - (self.debit or Decimal("0"))
