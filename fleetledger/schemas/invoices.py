"""Schemas for invoices, payments, receipts and company balances."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class InvoiceCreate(BaseModel):
    sender_company_name: str
    sender_address: str | None = None
    client_company_name: str
    invoice_date: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    due_date: str | None = None
    subtotal: Decimal | None = None
    vat_percentage: Decimal = Decimal("0")
    descriptions: list[str] = Field(default_factory=list)
    car_ids: list[int] = Field(default_factory=list)


class PaymentCreate(BaseModel):
    amount: Decimal
    payment_date: str | None = None
    payment_method: str | None = None
    account_info: str | None = None
    notes: str | None = None


class PaymentPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    amount: Decimal
    amount_applied: Decimal
    excess_amount: Decimal
    payment_date: datetime
    payment_method: str
    account_info: str | None = None
    notes: str | None = None
    recorded_by: int | None = None

    @field_serializer("amount", "amount_applied", "excess_amount")
    def serialize_amount(self, value: Decimal) -> str:
        return format(value, "f")


class InvoicePayload(BaseModel):
    """Invoice header with derived payment totals."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    user_id: int
    sender_company_name: str
    sender_address: str | None = None
    client_company_name: str
    invoice_date: datetime
    start_date: datetime | None = None
    end_date: datetime | None = None
    due_date: datetime | None = None
    subtotal: Decimal
    vat_percentage: Decimal
    vat_amount: Decimal
    total_amount: Decimal
    total_paid: Decimal
    remaining_balance: Decimal
    descriptions: list = Field(default_factory=list)
    trip_numbers: list = Field(default_factory=list)
    payment_status: str
    payments: list[PaymentPayload] = Field(default_factory=list)

    @field_serializer(
        "subtotal",
        "vat_percentage",
        "vat_amount",
        "total_amount",
        "total_paid",
        "remaining_balance",
    )
    def serialize_amount(self, value: Decimal) -> str:
        return format(value, "f")


class ReceiptPayload(BaseModel):
    """Frozen copy of a payment; outlives the invoice and payment rows."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    receipt_number: str
    invoice_id: int | None = None
    payment_id: int | None = None
    invoice_number: str
    user_id: int
    sender_company_name: str
    sender_address: str | None = None
    sender_bank_details: str | None = None
    client_company_name: str
    payment_amount: Decimal
    amount_applied: Decimal
    excess_amount: Decimal
    payment_method: str
    account_info: str | None = None
    payment_date: datetime
    invoice_date: datetime
    invoice_amount: Decimal
    notes: str | None = None
    status: str
    sent_at: datetime | None = None
    sent_to: str | None = None

    @field_serializer("payment_amount", "amount_applied", "excess_amount", "invoice_amount")
    def serialize_amount(self, value: Decimal) -> str:
        return format(value, "f")


class ReceiptStatusUpdate(BaseModel):
    status: str
    sent_to: str | None = None


class CompanyBalancePayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_name: str
    credit_balance: Decimal
    due_balance: Decimal
    address: str | None = None

    @field_serializer("credit_balance", "due_balance")
    def serialize_amount(self, value: Decimal) -> str:
        return format(value, "f")


class CreditUpdate(BaseModel):
    credit_balance: Decimal


class BalanceAdjustment(BaseModel):
    delta: Decimal


class CompanyCreate(BaseModel):
    name: str
    address: str | None = None
    user_id: int | None = None


class CompanyUpdate(BaseModel):
    name: str
    address: str | None = None


__all__ = [
    "BalanceAdjustment",
    "CompanyBalancePayload",
    "CompanyCreate",
    "CompanyUpdate",
    "CreditUpdate",
    "InvoiceCreate",
    "InvoicePayload",
    "PaymentCreate",
    "PaymentPayload",
    "ReceiptPayload",
    "ReceiptStatusUpdate",
]
