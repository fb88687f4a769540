"""Schemas for carriers, cars, trucks, drivers and their expenses."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer


def _decimal(value: Decimal | None) -> str | None:
    return None if value is None else format(value, "f")


class CarrierCreate(BaseModel):
    """Trip or company carrier; trip numbers are generated when omitted."""

    type: str = "trip"
    trip_number: str | None = None
    name: str | None = None
    date: str | None = None
    truck_id: int | None = None
    distance: Decimal | None = None
    carrier_name: str | None = None
    driver_name: str | None = None
    details: str | None = None
    notes: str | None = None
    user_id: int | None = None


class CarrierUpdate(BaseModel):
    trip_number: str | None = None
    name: str | None = None
    date: str | None = None
    truck_id: int | None = None
    distance: Decimal | None = None
    carrier_name: str | None = None
    driver_name: str | None = None
    details: str | None = None
    notes: str | None = None


class TruckSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    number: str | None = None


class CarrierPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    trip_number: str | None = None
    name: str | None = None
    user_id: int
    date: datetime
    total_expense: Decimal
    truck_id: int | None = None
    truck: TruckSummary | None = None
    distance: Decimal | None = None
    meter_reading_at_trip: Decimal | None = None
    is_active: bool
    carrier_name: str | None = None
    driver_name: str | None = None
    details: str | None = None
    notes: str | None = None

    @field_serializer("total_expense", "distance", "meter_reading_at_trip")
    def serialize_amount(self, value: Decimal | None) -> str | None:
        return _decimal(value)


class CarCreate(BaseModel):
    stock_no: str
    name: str
    chassis: str
    amount: Decimal = Decimal("0")
    company_name: str
    date: str | None = None


class CarRow(BaseModel):
    """One row of a bulk upload; incomplete rows are skipped, not rejected."""

    stock_no: str | None = None
    name: str | None = None
    chassis: str | None = None
    amount: Decimal = Decimal("0")
    company_name: str | None = None
    date: str | None = None


class CarBulkCreate(BaseModel):
    cars: list[CarRow]


class CarPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    stock_no: str
    name: str
    chassis: str
    amount: Decimal
    company_name: str
    user_id: int
    carrier_id: int
    date: datetime

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal) -> str:
        return format(value, "f")


class ExpenseCreate(BaseModel):
    """Expense input; ``driver_id`` names the paid driver for driver rent."""

    category: str
    amount: Decimal | None = None
    details: str | None = None
    liters: Decimal | None = None
    price_per_liter: Decimal | None = None
    tyre_number: str | None = None
    tyre_info: str | None = None
    meter_reading: Decimal | None = None
    driver_id: int | None = None
    date: str | None = None


class ExpenseUpdate(BaseModel):
    category: str | None = None
    amount: Decimal | None = None
    details: str | None = None
    liters: Decimal | None = None
    price_per_liter: Decimal | None = None
    tyre_number: str | None = None
    tyre_info: str | None = None
    meter_reading: Decimal | None = None
    driver_id: int | None = None
    date: str | None = None


class ExpensePayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    carrier_id: int | None = None
    truck_id: int | None = None
    driver_id: int | None = None
    category: str
    amount: Decimal
    details: str
    liters: Decimal | None = None
    price_per_liter: Decimal | None = None
    tyre_number: str | None = None
    tyre_info: str | None = None
    meter_reading: Decimal | None = None
    driver_rent_driver_id: int | None = None
    synced_from_expense_id: int | None = None
    is_mirror: bool = False
    date: datetime

    @field_serializer("amount", "liters", "price_per_liter", "meter_reading")
    def serialize_amount(self, value: Decimal | None) -> str | None:
        return _decimal(value)


class DriverCreate(BaseModel):
    name: str
    phone: str | None = None
    email: str | None = None
    license_number: str | None = None
    address: str | None = None
    notes: str | None = None
    user_id: int | None = None


class DriverUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    license_number: str | None = None
    address: str | None = None
    notes: str | None = None
    is_active: bool | None = None


class DriverPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: str | None = None
    email: str | None = None
    license_number: str | None = None
    address: str | None = None
    notes: str | None = None
    user_id: int
    is_active: bool


class TruckCreate(BaseModel):
    name: str
    number: str | None = None
    current_meter_reading: Decimal | None = None
    maintenance_interval: int | None = None
    last_maintenance_km: Decimal | None = None
    last_maintenance_date: str | None = None
    driver_ids: list[int] = Field(default_factory=list)
    user_id: int | None = None


class TruckUpdate(BaseModel):
    name: str | None = None
    number: str | None = None
    current_meter_reading: Decimal | None = None
    maintenance_interval: int | None = None
    last_maintenance_km: Decimal | None = None
    last_maintenance_date: str | None = None
    driver_ids: list[int] | None = None
    is_active: bool | None = None


class TruckPayload(BaseModel):
    """Truck with its assigned drivers and maintenance schedule."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    number: str | None = None
    user_id: int
    current_meter_reading: Decimal
    maintenance_interval: int
    last_maintenance_km: Decimal
    last_maintenance_date: datetime | None = None
    next_maintenance_km: Decimal
    is_active: bool
    drivers: list[DriverPayload] = Field(default_factory=list)

    @field_serializer("current_meter_reading", "last_maintenance_km", "next_maintenance_km")
    def serialize_amount(self, value: Decimal) -> str:
        return format(value, "f")


__all__ = [
    "CarBulkCreate",
    "CarCreate",
    "CarPayload",
    "CarRow",
    "CarrierCreate",
    "CarrierPayload",
    "CarrierUpdate",
    "DriverCreate",
    "DriverPayload",
    "DriverUpdate",
    "ExpenseCreate",
    "ExpensePayload",
    "ExpenseUpdate",
    "TruckCreate",
    "TruckPayload",
    "TruckSummary",
    "TruckUpdate",
]
