"""ORM model for expenses booked against a trip, a truck or a driver."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleetledger.core.dates import utcnow

from .base import ID_TYPE, MONEY, QUANTITY, Base, TimestampMixin
from .fleet import Carrier, Driver, Truck


class ExpenseCategory(str, Enum):
    FUEL = "fuel"
    DRIVER_RENT = "driver_rent"
    TAXES = "taxes"
    TOOL_TAXES = "tool_taxes"
    ON_ROAD = "on_road"
    MAINTENANCE = "maintenance"
    TYRE = "tyre"
    OTHERS = "others"


TRUCK_EXPENSE_CATEGORIES: frozenset[str] = frozenset(
    {
        ExpenseCategory.MAINTENANCE.value,
        ExpenseCategory.FUEL.value,
        ExpenseCategory.TYRE.value,
        ExpenseCategory.OTHERS.value,
    }
)


class Expense(TimestampMixin, Base):
    """An expense owned by exactly one of carrier, truck or driver.

    ``synced_from_expense_id`` marks a mirror: a derived copy of a trip
    expense placed on the trip's truck (fuel) or the paid driver
    (driver_rent). Mirrors are only written by the expense service.
    """

    __tablename__ = "expense"
    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN carrier_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN truck_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN driver_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_expense_single_owner",
        ),
        Index("ix_expense_carrier_date", "carrier_id", "date"),
        Index("ix_expense_truck_date", "truck_id", "date"),
        Index("ix_expense_driver_date", "driver_id", "date"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    carrier_id: Mapped[int | None] = mapped_column(ID_TYPE, ForeignKey("carrier.id"))
    truck_id: Mapped[int | None] = mapped_column(ID_TYPE, ForeignKey("truck.id"))
    driver_id: Mapped[int | None] = mapped_column(ID_TYPE, ForeignKey("driver.id"))
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    liters: Mapped[Decimal | None] = mapped_column(QUANTITY)
    price_per_liter: Mapped[Decimal | None] = mapped_column(QUANTITY)
    tyre_number: Mapped[str | None] = mapped_column(String(64))
    tyre_info: Mapped[str | None] = mapped_column(Text)
    meter_reading: Mapped[Decimal | None] = mapped_column(QUANTITY)
    driver_rent_driver_id: Mapped[int | None] = mapped_column(ID_TYPE, ForeignKey("driver.id"))
    synced_from_expense_id: Mapped[int | None] = mapped_column(
        ID_TYPE, ForeignKey("expense.id"), index=True
    )
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    carrier: Mapped[Carrier | None] = relationship(foreign_keys=[carrier_id])
    truck: Mapped[Truck | None] = relationship(foreign_keys=[truck_id])
    driver: Mapped[Driver | None] = relationship(foreign_keys=[driver_id])
    driver_rent_driver: Mapped[Driver | None] = relationship(foreign_keys=[driver_rent_driver_id])
    synced_from: Mapped["Expense | None"] = relationship(
        remote_side="Expense.id", foreign_keys=[synced_from_expense_id]
    )

    @property
    def is_mirror(self) -> bool:
        return self.synced_from_expense_id is not None
