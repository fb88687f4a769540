"""ORM models for trips, the cars they carry, trucks and drivers."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleetledger.core.dates import utcnow

from .base import ID_TYPE, MONEY, QUANTITY, Base, TimestampMixin


class CarrierType(str, Enum):
    TRIP = "trip"
    COMPANY = "company"


truck_driver = Table(
    "truck_driver",
    Base.metadata,
    Column("truck_id", ID_TYPE, ForeignKey("truck.id"), primary_key=True),
    Column("driver_id", ID_TYPE, ForeignKey("driver.id"), primary_key=True),
)


class Driver(TimestampMixin, Base):
    """A driver employed by one owner."""

    __tablename__ = "driver"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(40))
    email: Mapped[str | None] = mapped_column(String(160))
    license_number: Mapped[str | None] = mapped_column(String(64))
    address: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("app_user.id"), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    trucks: Mapped[list["Truck"]] = relationship(secondary=truck_driver, back_populates="drivers")


class Truck(TimestampMixin, Base):
    """A vehicle; fuel expenses of its trips are mirrored onto it."""

    __tablename__ = "truck"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    number: Mapped[str | None] = mapped_column(String(40))
    user_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("app_user.id"), nullable=False, index=True)
    current_meter_reading: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=Decimal("0"))
    maintenance_interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    last_maintenance_km: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=Decimal("0"))
    last_maintenance_date: Mapped[datetime | None] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    drivers: Mapped[list[Driver]] = relationship(secondary=truck_driver, back_populates="trucks")

    @property
    def next_maintenance_km(self) -> Decimal:
        return Decimal(self.last_maintenance_km or 0) + Decimal(self.maintenance_interval or 1000)


class Carrier(TimestampMixin, Base):
    """A trip (or a company-type carrier) with its denormalized expense total."""

    __tablename__ = "carrier"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default=CarrierType.TRIP.value)
    trip_number: Mapped[str | None] = mapped_column(String(40), index=True)
    name: Mapped[str | None] = mapped_column(String(160), index=True)
    user_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("app_user.id"), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    total_expense: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    truck_id: Mapped[int | None] = mapped_column(ID_TYPE, ForeignKey("truck.id"))
    distance: Mapped[Decimal | None] = mapped_column(QUANTITY)
    meter_reading_at_trip: Mapped[Decimal | None] = mapped_column(QUANTITY)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    carrier_name: Mapped[str | None] = mapped_column(String(160))
    driver_name: Mapped[str | None] = mapped_column(String(160))
    details: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    truck: Mapped[Truck | None] = relationship()
    cars: Mapped[list["Car"]] = relationship(back_populates="carrier")

    @property
    def display_name(self) -> str:
        return self.trip_number or self.name or f"#{self.id}"


class Car(TimestampMixin, Base):
    """A vehicle transported on a trip; the line item of an invoice."""

    __tablename__ = "car"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    stock_no: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    chassis: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    company_name: Mapped[str] = mapped_column(String(160), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("app_user.id"), nullable=False, index=True)
    carrier_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("carrier.id"), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    carrier: Mapped[Carrier] = relationship(back_populates="cars")
