"""ORM models for invoices, their payments, receipts and company balances."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Numeric, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleetledger.core.dates import utcnow

from .base import ID_TYPE, MONEY, Base, TimestampMixin
from .fleet import Car


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class ReceiptStatus(str, Enum):
    GENERATED = "generated"
    SENT = "sent"
    ARCHIVED = "archived"


invoice_car = Table(
    "invoice_car",
    Base.metadata,
    Column("invoice_id", ID_TYPE, ForeignKey("invoice.id", ondelete="CASCADE"), primary_key=True),
    Column("car_id", ID_TYPE, ForeignKey("car.id", ondelete="CASCADE"), primary_key=True),
)


class Invoice(TimestampMixin, Base):
    __tablename__ = "invoice"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("app_user.id"), nullable=False, index=True)
    sender_company_name: Mapped[str] = mapped_column(String(160), nullable=False)
    sender_address: Mapped[str | None] = mapped_column(Text)
    client_company_name: Mapped[str] = mapped_column(String(160), nullable=False, index=True)
    invoice_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    start_date: Mapped[datetime | None] = mapped_column(DateTime)
    end_date: Mapped[datetime | None] = mapped_column(DateTime)
    due_date: Mapped[datetime | None] = mapped_column(DateTime)
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    vat_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    vat_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    descriptions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    trip_numbers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    payment_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=PaymentStatus.UNPAID.value
    )

    cars: Mapped[list[Car]] = relationship(secondary=invoice_car)
    payments: Mapped[list["Payment"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.id",
    )

    @property
    def total_paid(self) -> Decimal:
        return sum((p.amount_applied for p in self.payments), Decimal("0"))

    @property
    def remaining_balance(self) -> Decimal:
        return Decimal(self.total_amount) - self.total_paid


class Payment(Base):
    """A payment received against an invoice.

    ``amount`` is what the client paid; ``amount_applied`` reduced the invoice
    and ``excess_amount`` went to the client's credit balance.
    """

    __tablename__ = "invoice_payment"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("invoice.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    amount_applied: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    excess_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    payment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="Cash")
    account_info: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)
    recorded_by: Mapped[int | None] = mapped_column(ID_TYPE, ForeignKey("app_user.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    invoice: Mapped[Invoice] = relationship(back_populates="payments")


class Receipt(TimestampMixin, Base):
    """Snapshot of a payment, kept after its invoice or payment is deleted."""

    __tablename__ = "receipt"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    receipt_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    invoice_id: Mapped[int | None] = mapped_column(
        ID_TYPE, ForeignKey("invoice.id", ondelete="SET NULL"), index=True
    )
    payment_id: Mapped[int | None] = mapped_column(
        ID_TYPE, ForeignKey("invoice_payment.id", ondelete="SET NULL")
    )
    invoice_number: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("app_user.id"), nullable=False, index=True)
    sender_company_name: Mapped[str] = mapped_column(String(160), nullable=False)
    sender_address: Mapped[str | None] = mapped_column(Text)
    sender_bank_details: Mapped[str | None] = mapped_column(Text)
    client_company_name: Mapped[str] = mapped_column(String(160), nullable=False, index=True)
    payment_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    amount_applied: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    excess_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="Cash")
    account_info: Mapped[str | None] = mapped_column(String(255))
    payment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    invoice_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    invoice_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ReceiptStatus.GENERATED.value)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime)
    sent_to: Mapped[str | None] = mapped_column(String(255))


class CompanyBalance(TimestampMixin, Base):
    """Per-client credit and due balances keyed by the upper-cased company name."""

    __tablename__ = "company_balance"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    company_name: Mapped[str] = mapped_column(String(160), unique=True, nullable=False)
    credit_balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    due_balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    address: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[int | None] = mapped_column(ID_TYPE, ForeignKey("app_user.id"))
