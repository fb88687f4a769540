"""Schemas for ledger accounts, transactions and statements."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class AccountCreate(BaseModel):
    title: str
    slug: str
    initial_balance: Decimal
    currency: str
    currency_symbol: str


class AccountPayload(BaseModel):
    """Ledger account with its cached running balance."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    initial_balance: Decimal
    current_balance: Decimal
    currency: str
    currency_symbol: str
    created_at: datetime | None = None

    @field_serializer("initial_balance", "current_balance")
    def serialize_amount(self, value: Decimal) -> str:
        return format(value, "f")


class TransactionCreate(BaseModel):
    """Posting request; ``destination`` is required for transfer debits."""

    account_id: int | None = None
    type: str
    amount: Decimal
    details: str
    transaction_date: str | None = None
    debit_type: str | None = None
    destination: str | None = None
    rate_of_exchange: Decimal | None = None


class TransactionPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    account_id: int
    account_slug: str
    credit: Decimal
    debit: Decimal
    currency: str
    details: str
    destination: str | None = None
    rate_of_exchange: Decimal | None = None
    transaction_date: datetime
    created_at: datetime

    @field_serializer("credit", "debit")
    def serialize_amount(self, value: Decimal) -> str:
        return format(value, "f")

    @field_serializer("rate_of_exchange")
    def serialize_rate(self, value: Decimal | None) -> str | None:
        return None if value is None else format(value, "f")


class StatementFilters(BaseModel):
    start_date: str | None = None
    end_date: str | None = None
    search: str | None = None


class StatementRequest(BaseModel):
    account_slug: str
    filters: StatementFilters = Field(default_factory=StatementFilters)


class StatementLinePayload(TransactionPayload):
    """Transaction plus the account balance immediately after it."""

    calculated_balance: Decimal

    @classmethod
    def from_line(cls, line) -> "StatementLinePayload":
        base = TransactionPayload.model_validate(line.transaction)
        return cls(**dict(base), calculated_balance=line.calculated_balance)

    @field_serializer("calculated_balance")
    def serialize_balance(self, value: Decimal) -> str:
        return format(value, "f")


class StatementPayload(BaseModel):
    account: AccountPayload
    opening_balance: Decimal
    closing_balance: Decimal
    start_date: datetime | None = None
    end_date: datetime | None = None
    transactions: list[StatementLinePayload] = Field(default_factory=list)

    @field_serializer("opening_balance", "closing_balance")
    def serialize_amount(self, value: Decimal) -> str:
        return format(value, "f")


__all__ = [
    "AccountCreate",
    "AccountPayload",
    "StatementFilters",
    "StatementLinePayload",
    "StatementPayload",
    "StatementRequest",
    "TransactionCreate",
    "TransactionPayload",
]
