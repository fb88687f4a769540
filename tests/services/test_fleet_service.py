"""Tests for carriers, cars, trucks and drivers."""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from fleetledger.core.errors import AuthorizationError, ConflictError, ValidationError
from fleetledger.models import Car, Carrier, Expense, Truck
from fleetledger.services import ExpenseService, FleetService


@pytest.fixture()
def fleet(session) -> FleetService:
    return FleetService(session)


def _count(session, model) -> int:
    return session.scalar(select(func.count()).select_from(model))


def test_trip_numbers_are_generated_per_owner(fleet, actor, other_actor) -> None:
    first = fleet.create_carrier(actor, {"type": "trip"})
    second = fleet.create_carrier(actor, {"type": "trip"})
    foreign = fleet.create_carrier(other_actor, {"type": "trip"})

    assert first.trip_number == "TRIP-001"
    assert second.trip_number == "TRIP-002"
    assert foreign.trip_number == "TRIP-001"


def test_duplicate_trip_number_is_a_conflict(fleet, actor) -> None:
    fleet.create_carrier(actor, {"type": "trip", "trip_number": "trip-9"})
    with pytest.raises(ConflictError, match="TRIP-9"):
        fleet.create_carrier(actor, {"type": "trip", "trip_number": "Trip-9"})


def test_company_carrier_needs_a_name(fleet, actor) -> None:
    with pytest.raises(ValidationError):
        fleet.create_carrier(actor, {"type": "company"})
    carrier = fleet.create_carrier(actor, {"type": "company", "name": "acme haulage"})
    assert carrier.name == "ACME HAULAGE"
    assert carrier.trip_number is None


def test_trip_with_distance_advances_truck_meter(fleet, actor, session) -> None:
    truck = fleet.create_truck(actor, {"name": "t1", "current_meter_reading": "1000"})
    carrier = fleet.create_carrier(actor, {"type": "trip", "truck_id": truck.id, "distance": "250"})

    assert carrier.meter_reading_at_trip == Decimal("1000")
    session.expire_all()
    assert session.get(Truck, truck.id).current_meter_reading == Decimal("1250")


def test_trip_cannot_use_another_users_truck(fleet, actor, other_actor) -> None:
    truck = fleet.create_truck(other_actor, {"name": "theirs"})
    with pytest.raises(ValidationError, match="does not belong"):
        fleet.create_carrier(actor, {"type": "trip", "truck_id": truck.id})


def test_toggle_active(fleet, actor) -> None:
    carrier = fleet.create_carrier(actor, {"type": "trip"})
    assert fleet.toggle_carrier_active(actor, carrier.id).is_active is False
    assert fleet.toggle_carrier_active(actor, carrier.id).is_active is True


def test_list_carriers_is_scoped_to_owner(fleet, actor, other_actor, admin) -> None:
    fleet.create_carrier(actor, {"type": "trip"})
    fleet.create_carrier(other_actor, {"type": "trip"})

    assert fleet.list_carriers(actor).total == 1
    assert fleet.list_carriers(admin).total == 2
    assert fleet.list_carriers(admin, user_id=actor.user_id).total == 1


def test_car_requires_fields_and_uppercases_company(fleet, actor) -> None:
    carrier = fleet.create_carrier(actor, {"type": "trip"})
    with pytest.raises(ValidationError, match="Required fields are missing"):
        fleet.create_car(actor, carrier.id, {"stock_no": "S1"})

    car = fleet.create_car(
        actor,
        carrier.id,
        {"stock_no": "S1", "name": "Hilux", "chassis": "CH1", "amount": "99.999", "company_name": "acme"},
    )
    assert car.company_name == "ACME"
    assert car.amount == Decimal("100.00")


def test_delete_carrier_cascades_cars_expenses_and_mirrors(fleet, actor, admin, session) -> None:
    truck = fleet.create_truck(actor, {"name": "t1"})
    carrier = fleet.create_carrier(actor, {"type": "trip", "truck_id": truck.id})
    fleet.create_car(
        actor,
        carrier.id,
        {"stock_no": "S1", "name": "Hilux", "chassis": "CH1", "amount": "10", "company_name": "acme"},
    )
    ExpenseService(session).create_carrier_expense(actor, carrier.id, {"category": "fuel", "amount": "50"})
    assert _count(session, Expense) == 2

    with pytest.raises(AuthorizationError):
        fleet.delete_carrier(actor, carrier.id)
    fleet.delete_carrier(admin, carrier.id)

    assert _count(session, Carrier) == 0
    assert _count(session, Car) == 0
    assert _count(session, Expense) == 0


def test_truck_names_are_unique_per_owner(fleet, actor, other_actor) -> None:
    truck = fleet.create_truck(actor, {"name": "abc 123"})
    assert truck.name == "ABC 123"
    assert truck.maintenance_interval == 1000
    with pytest.raises(ConflictError):
        fleet.create_truck(actor, {"name": "ABC 123"})
    assert fleet.create_truck(other_actor, {"name": "abc 123"}).user_id == other_actor.user_id


def test_truck_in_use_cannot_be_deleted(fleet, actor, session) -> None:
    truck = fleet.create_truck(actor, {"name": "busy"})
    fleet.create_carrier(actor, {"type": "trip", "truck_id": truck.id})

    with pytest.raises(ConflictError, match="assigned to 1 trip"):
        fleet.delete_truck(actor, truck.id)


def test_deleting_truck_removes_its_expenses(fleet, actor, session) -> None:
    truck = fleet.create_truck(actor, {"name": "idle"})
    ExpenseService(session).create_truck_expense(actor, truck.id, {"category": "others", "amount": "5"})

    fleet.delete_truck(actor, truck.id)

    assert _count(session, Truck) == 0
    assert _count(session, Expense) == 0


def test_truck_driver_assignment(fleet, actor) -> None:
    first = fleet.create_driver(actor, {"name": "Ann", "email": "ANN@Example.com"})
    second = fleet.create_driver(actor, {"name": "Ben"})
    truck = fleet.create_truck(actor, {"name": "t1", "driver_ids": [first.id]})

    updated = fleet.update_truck(actor, truck.id, {"driver_ids": [first.id, second.id]})

    assert first.email == "ann@example.com"
    assert {driver.id for driver in updated.drivers} == {first.id, second.id}


def test_driver_names_are_unique_ignoring_case(fleet, actor) -> None:
    fleet.create_driver(actor, {"name": "Sam"})
    with pytest.raises(ConflictError):
        fleet.create_driver(actor, {"name": "sam"})


def test_assigned_driver_cannot_be_deleted(fleet, actor) -> None:
    driver = fleet.create_driver(actor, {"name": "Sam"})
    fleet.create_truck(actor, {"name": "t1", "driver_ids": [driver.id]})

    with pytest.raises(ConflictError, match="assigned to 1 truck"):
        fleet.delete_driver(actor, driver.id)


def test_driver_paid_by_trip_cannot_be_deleted(fleet, actor, session) -> None:
    driver = fleet.create_driver(actor, {"name": "Sam"})
    carrier = fleet.create_carrier(actor, {"type": "trip"})
    ExpenseService(session).create_carrier_expense(
        actor, carrier.id, {"category": "driver_rent", "amount": "10", "driver_id": driver.id}
    )

    with pytest.raises(ConflictError, match="driver rent"):
        fleet.delete_driver(actor, driver.id)


def test_unused_driver_is_deleted(fleet, actor) -> None:
    driver = fleet.create_driver(actor, {"name": "Sam"})
    fleet.delete_driver(actor, driver.id)
    assert fleet.list_drivers(actor).total == 0


def test_truck_creation_logs_its_fields(fleet, actor, caplog) -> None:
    caplog.set_level(logging.INFO, logger="fleetledger.services.fleet")

    truck = fleet.create_truck(actor, {"name": "logged-truck"})

    record = next(r for r in caplog.records if r.getMessage() == "Truck created")
    assert record.truck_name == "logged-truck"
    assert record.truck_id == truck.id


def test_bulk_cars_skip_incomplete_rows(fleet, actor, session) -> None:
    carrier = fleet.create_carrier(actor, {"type": "trip"})
    rows = [
        {"stock_no": "A1", "name": "Corolla", "chassis": "CH-A1", "amount": "100", "company_name": "acme"},
        {"stock_no": "A2", "name": "", "chassis": "CH-A2", "company_name": "acme"},
        {"stock_no": "A3", "name": "Polo", "chassis": "CH-A3", "amount": "50.5", "company_name": "beta"},
    ]

    cars = fleet.create_cars(actor, carrier.id, rows)

    assert [car.stock_no for car in cars] == ["A1", "A3"]
    assert [car.company_name for car in cars] == ["ACME", "BETA"]
    assert all(car.user_id == actor.user_id for car in cars)
    assert _count(session, Car) == 2


def test_bulk_cars_with_no_valid_rows_is_rejected(fleet, actor, session) -> None:
    carrier = fleet.create_carrier(actor, {"type": "trip"})
    with pytest.raises(ValidationError, match="No valid cars"):
        fleet.create_cars(actor, carrier.id, [{"stock_no": "X"}])
    assert _count(session, Car) == 0


def test_bulk_cars_respect_carrier_ownership(fleet, actor, other_actor) -> None:
    carrier = fleet.create_carrier(actor, {"type": "trip"})
    row = {"stock_no": "A1", "name": "Corolla", "chassis": "CH", "company_name": "acme"}
    with pytest.raises(AuthorizationError):
        fleet.create_cars(other_actor, carrier.id, [row])


def test_sync_cars_date_stamps_trip_date(fleet, actor, session) -> None:
    carrier = fleet.create_carrier(actor, {"type": "trip", "date": "2024-05-06"})
    base = {"name": "Hilux", "chassis": "CH", "company_name": "acme"}
    fleet.create_car(actor, carrier.id, {**base, "stock_no": "S1", "date": "2024-01-01"})
    fleet.create_car(actor, carrier.id, {**base, "stock_no": "S2", "date": "2024-02-01"})

    updated = fleet.sync_cars_date(actor, carrier.id)

    assert updated == 2
    session.expire_all()
    dates = {car.date for car in session.scalars(select(Car)).all()}
    assert dates == {datetime(2024, 5, 6)}


def test_sync_cars_date_with_no_cars(fleet, actor) -> None:
    carrier = fleet.create_carrier(actor, {"type": "trip"})
    assert fleet.sync_cars_date(actor, carrier.id) == 0
