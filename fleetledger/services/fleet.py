"""Carriers (trips), cars, trucks and drivers."""
from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.orm import Session

from fleetledger.core.dates import parse_datetime, utcnow
from fleetledger.core.errors import ConflictError, NotFoundError, ValidationError
from fleetledger.core.formatting import MAX_QUANTITY, to_money
from fleetledger.core.logger import get_logger
from fleetledger.core.pagination import Page, normalize_paging
from fleetledger.core.security import AuthenticatedUser
from fleetledger.db.session import unit_of_work
from fleetledger.models import Car, Carrier, CarrierType, Driver, Truck
from fleetledger.repositories.fleet import FleetRepository

from .access import ensure_owner, ensure_super_admin, owner_filter, resolve_owner
from .expenses import ExpenseService

LOGGER = get_logger(__name__)

TRIP_PREFIX = "TRIP-"


def _text(value: Any) -> str:
    return str(value or "").strip()


def _quantity(value: Any, field: str) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationError(f"{field} must be a valid number") from exc
    if not parsed.is_finite() or parsed < 0:
        raise ValidationError(f"{field} must be a non-negative number")
    if parsed > MAX_QUANTITY:
        raise ValidationError(f"{field} is too large")
    return parsed


class FleetService:
    """CRUD for the fleet entities with per-owner scoping and cascades."""

    def __init__(
        self,
        session: Session,
        repository: FleetRepository | None = None,
        *,
        expenses: ExpenseService | None = None,
    ) -> None:
        self._session = session
        self._repository = repository or FleetRepository(session)
        self._expenses = expenses or ExpenseService(session)

    # ------------------------------------------------------------------
    # carriers
    # ------------------------------------------------------------------
    def next_trip_number(self, user_id: int) -> str:
        return self._repository.next_trip_number(user_id, prefix=TRIP_PREFIX)

    def get_carrier(self, actor: AuthenticatedUser, carrier_id: int) -> Carrier:
        carrier = self._repository.get_carrier(carrier_id)
        if carrier is None:
            raise NotFoundError("Carrier not found")
        ensure_owner(actor, carrier.user_id)
        return carrier

    def list_carriers(
        self,
        actor: AuthenticatedUser,
        *,
        page: object = 1,
        limit: object = 20,
        type: str | None = None,
        search: str | None = None,
        is_active: bool | None = None,
        user_id: object = None,
    ) -> Page[Carrier]:
        if type and type not in {t.value for t in CarrierType}:
            raise ValidationError("Invalid carrier type")
        resolved_page, resolved_limit = normalize_paging(page, limit)
        return self._repository.list_carriers(
            page=resolved_page,
            limit=resolved_limit,
            user_id=owner_filter(actor, user_id),
            type=type or None,
            search=search,
            is_active=is_active,
        )

    def _resolve_truck(self, actor: AuthenticatedUser, truck_id: Any, owner_id: int) -> Truck | None:
        if truck_id in (None, ""):
            return None
        try:
            truck = self._repository.get_truck(int(truck_id))
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid truck ID") from exc
        if truck is None:
            raise NotFoundError("Selected truck not found")
        if not actor.is_super_admin and truck.user_id != owner_id:
            raise ValidationError("Selected truck does not belong to this user")
        return truck

    def create_carrier(self, actor: AuthenticatedUser, payload: Mapping[str, Any]) -> Carrier:
        owner_id = resolve_owner(actor, payload.get("user_id"))
        kind = _text(payload.get("type")).lower() or CarrierType.TRIP.value
        if kind not in {t.value for t in CarrierType}:
            raise ValidationError("Invalid carrier type")

        trip_number: str | None = None
        name: str | None = None
        if kind == CarrierType.TRIP.value:
            trip_number = _text(payload.get("trip_number")).upper() or self.next_trip_number(owner_id)
            if self._repository.carrier_key_taken(owner_id, trip_number=trip_number):
                raise ConflictError(
                    f'Trip number "{trip_number}" already exists for this user. '
                    "Please use a different trip number."
                )
        else:
            name = _text(payload.get("name")).upper()
            if not name:
                raise ValidationError("Company name is required for company-type carriers")
            if self._repository.carrier_key_taken(owner_id, name=name):
                raise ConflictError(
                    f'Company name "{name}" already exists for this user. Please use a different name.'
                )

        truck = self._resolve_truck(actor, payload.get("truck_id"), owner_id)
        distance = _quantity(payload.get("distance"), "distance")

        with unit_of_work(self._session, "carrier creation"):
            carrier = Carrier(
                type=kind,
                trip_number=trip_number,
                name=name,
                user_id=owner_id,
                date=parse_datetime(payload.get("date")) or utcnow(),
                truck_id=truck.id if truck else None,
                distance=distance if distance else None,
                meter_reading_at_trip=truck.current_meter_reading if truck else None,
                carrier_name=_text(payload.get("carrier_name")) or None,
                driver_name=_text(payload.get("driver_name")) or None,
                details=_text(payload.get("details")) or None,
                notes=_text(payload.get("notes")) or None,
                is_active=True,
            )
            self._session.add(carrier)
            if truck is not None and distance:
                self._advance_meter(truck, distance)
            self._session.flush()

        LOGGER.info(
            "Carrier created",
            extra={"carrier_id": carrier.id, "display": carrier.display_name, "owner": owner_id},
        )
        return carrier

    def _advance_meter(self, truck: Truck, distance: Decimal) -> None:
        truck.current_meter_reading = Decimal(truck.current_meter_reading or 0) + distance
        remaining = truck.next_maintenance_km - truck.current_meter_reading
        if remaining <= 0:
            LOGGER.warning(
                "Truck maintenance overdue",
                extra={
                    "truck": truck.name,
                    "meter": str(truck.current_meter_reading),
                    "overdue_km": str(-remaining),
                },
            )

    def update_carrier(
        self, actor: AuthenticatedUser, carrier_id: int, changes: Mapping[str, Any]
    ) -> Carrier:
        carrier = self.get_carrier(actor, carrier_id)
        truck_changed = False

        with unit_of_work(self._session, "carrier update"):
            if "truck_id" in changes:
                truck = self._resolve_truck(actor, changes.get("truck_id"), carrier.user_id)
                new_truck_id = truck.id if truck else None
                if new_truck_id != carrier.truck_id:
                    truck_changed = True
                    carrier.truck_id = new_truck_id
                    carrier.meter_reading_at_trip = truck.current_meter_reading if truck else None

            if carrier.type == CarrierType.TRIP.value and _text(changes.get("trip_number")):
                trip_number = _text(changes.get("trip_number")).upper()
                if trip_number != carrier.trip_number:
                    if self._repository.carrier_key_taken(
                        carrier.user_id, trip_number=trip_number, exclude_id=carrier.id
                    ):
                        raise ConflictError(
                            f'Trip number "{trip_number}" already exists. '
                            "Please use a different trip number."
                        )
                    carrier.trip_number = trip_number

            if carrier.type == CarrierType.COMPANY.value and _text(changes.get("name")):
                name = _text(changes.get("name")).upper()
                if name != carrier.name:
                    if self._repository.carrier_key_taken(
                        carrier.user_id, name=name, exclude_id=carrier.id
                    ):
                        raise ConflictError(f'Company name "{name}" already exists.')
                    carrier.name = name

            if "distance" in changes:
                carrier.distance = _quantity(changes.get("distance"), "distance")
            if changes.get("date"):
                carrier.date = parse_datetime(changes.get("date"))
            for field in ("carrier_name", "driver_name", "details", "notes"):
                if field in changes:
                    setattr(carrier, field, _text(changes.get(field)) or None)

            self._session.flush()
            if truck_changed:
                self._expenses.resync_carrier(carrier)
            self._expenses.recompute_carrier_total(carrier)

        LOGGER.info(
            "Carrier updated",
            extra={"carrier_id": carrier.id, "truck_changed": truck_changed},
        )
        return carrier

    def toggle_carrier_active(self, actor: AuthenticatedUser, carrier_id: int) -> Carrier:
        carrier = self.get_carrier(actor, carrier_id)
        with unit_of_work(self._session, "carrier status toggle"):
            carrier.is_active = not carrier.is_active
        return carrier

    def delete_carrier(self, actor: AuthenticatedUser, carrier_id: int) -> None:
        """Delete a carrier with its cars, its expenses and their mirrors."""

        ensure_super_admin(actor)
        carrier = self._repository.get_carrier(carrier_id)
        if carrier is None:
            raise NotFoundError("Carrier not found")

        with unit_of_work(self._session, "carrier deletion"):
            cars = self._repository.delete_cars(
                [car.id for car in self._repository.cars_for_carrier(carrier.id)]
            )
            expenses = self._expenses.delete_expenses_of_carriers([carrier.id])
            self._session.delete(carrier)

        LOGGER.info(
            "Carrier deleted",
            extra={"carrier_id": carrier_id, "cars": cars, "expenses": expenses},
        )

    # ------------------------------------------------------------------
    # cars
    # ------------------------------------------------------------------
    def list_cars(self, actor: AuthenticatedUser, carrier_id: int) -> list[Car]:
        carrier = self.get_carrier(actor, carrier_id)
        return self._repository.cars_for_carrier(carrier.id)

    @staticmethod
    def _build_car(carrier: Carrier, payload: Mapping[str, Any]) -> Car | None:
        stock_no = _text(payload.get("stock_no"))
        name = _text(payload.get("name"))
        chassis = _text(payload.get("chassis"))
        company_name = _text(payload.get("company_name")).upper()
        if not stock_no or not name or not chassis or not company_name:
            return None
        return Car(
            stock_no=stock_no,
            name=name,
            chassis=chassis,
            amount=to_money(payload.get("amount")),
            company_name=company_name,
            user_id=carrier.user_id,
            carrier_id=carrier.id,
            date=parse_datetime(payload.get("date")) or utcnow(),
        )

    def create_car(
        self, actor: AuthenticatedUser, carrier_id: int, payload: Mapping[str, Any]
    ) -> Car:
        carrier = self.get_carrier(actor, carrier_id)
        car = self._build_car(carrier, payload)
        if car is None:
            raise ValidationError("Required fields are missing")

        with unit_of_work(self._session, "car creation"):
            self._session.add(car)
            self._session.flush()
        return car

    def create_cars(
        self, actor: AuthenticatedUser, carrier_id: int, rows: list[Mapping[str, Any]]
    ) -> list[Car]:
        """Add several cars at once; rows missing a required field are skipped."""

        carrier = self.get_carrier(actor, carrier_id)
        cars = [car for car in (self._build_car(carrier, row) for row in rows) if car is not None]
        if not cars:
            raise ValidationError("No valid cars to add")

        with unit_of_work(self._session, "bulk car creation"):
            self._session.add_all(cars)
            self._session.flush()

        if len(cars) < len(rows):
            LOGGER.warning(
                "Skipped incomplete car rows",
                extra={"carrier_id": carrier.id, "skipped": len(rows) - len(cars)},
            )
        return cars

    def sync_cars_date(self, actor: AuthenticatedUser, carrier_id: int) -> int:
        """Stamp every car of the trip with the trip's date; returns how many were stamped."""

        carrier = self.get_carrier(actor, carrier_id)
        cars = self._repository.cars_for_carrier(carrier.id)
        with unit_of_work(self._session, "car date sync"):
            for car in cars:
                car.date = carrier.date
        return len(cars)

    def delete_car(self, actor: AuthenticatedUser, car_id: int) -> None:
        car = self._repository.get_car(car_id)
        if car is None:
            raise NotFoundError("Car not found")
        ensure_owner(actor, car.user_id)
        with unit_of_work(self._session, "car deletion"):
            self._repository.delete_cars([car.id])

    # ------------------------------------------------------------------
    # trucks
    # ------------------------------------------------------------------
    def get_truck(self, actor: AuthenticatedUser, truck_id: int) -> Truck:
        truck = self._repository.get_truck(truck_id)
        if truck is None:
            raise NotFoundError("Truck not found")
        ensure_owner(actor, truck.user_id)
        return truck

    def list_trucks(
        self,
        actor: AuthenticatedUser,
        *,
        page: object = 1,
        limit: object = 20,
        search: str | None = None,
        user_id: object = None,
    ) -> Page[Truck]:
        resolved_page, resolved_limit = normalize_paging(page, limit)
        return self._repository.list_trucks(
            page=resolved_page,
            limit=resolved_limit,
            user_id=owner_filter(actor, user_id),
            search=search,
        )

    def _resolve_drivers(
        self, actor: AuthenticatedUser, driver_ids: Any, owner_id: int
    ) -> list[Driver]:
        try:
            ids = sorted({int(value) for value in driver_ids or []})
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid driver ID") from exc
        drivers = self._repository.drivers_by_ids(ids)
        if len(drivers) != len(ids):
            raise NotFoundError("Driver not found")
        for driver in drivers:
            if not actor.is_super_admin and driver.user_id != owner_id:
                raise ValidationError("Selected driver does not belong to this user")
        return drivers

    def create_truck(self, actor: AuthenticatedUser, payload: Mapping[str, Any]) -> Truck:
        owner_id = resolve_owner(actor, payload.get("user_id"))
        name = _text(payload.get("name")).upper()
        if not name:
            raise ValidationError("Truck name is required")
        if self._repository.truck_name_taken(owner_id, name):
            raise ConflictError(f'Truck "{name}" already exists for this user')
        interval = _quantity(payload.get("maintenance_interval"), "maintenance_interval")
        drivers = self._resolve_drivers(actor, payload.get("driver_ids"), owner_id)

        with unit_of_work(self._session, "truck creation"):
            meter = _quantity(payload.get("current_meter_reading"), "current_meter_reading")
            truck = Truck(
                name=name,
                number=_text(payload.get("number")) or None,
                user_id=owner_id,
                current_meter_reading=meter or Decimal("0"),
                maintenance_interval=int(interval) if interval else 1000,
                last_maintenance_km=_quantity(payload.get("last_maintenance_km"), "last_maintenance_km")
                or Decimal("0"),
                last_maintenance_date=parse_datetime(payload.get("last_maintenance_date")),
                is_active=True,
                drivers=drivers,
            )
            self._session.add(truck)
            self._session.flush()

        LOGGER.info("Truck created", extra={"truck_id": truck.id, "truck_name": name, "owner": owner_id})
        return truck

    def update_truck(
        self, actor: AuthenticatedUser, truck_id: int, changes: Mapping[str, Any]
    ) -> Truck:
        truck = self.get_truck(actor, truck_id)
        with unit_of_work(self._session, "truck update"):
            if _text(changes.get("name")):
                name = _text(changes.get("name")).upper()
                if name != truck.name and self._repository.truck_name_taken(
                    truck.user_id, name, exclude_id=truck.id
                ):
                    raise ConflictError(f'Truck "{name}" already exists for this user')
                truck.name = name
            if "number" in changes:
                truck.number = _text(changes.get("number")) or None
            for field in ("current_meter_reading", "last_maintenance_km"):
                if field in changes and changes.get(field) not in (None, ""):
                    setattr(truck, field, _quantity(changes.get(field), field))
            if changes.get("maintenance_interval") not in (None, ""):
                interval = _quantity(changes.get("maintenance_interval"), "maintenance_interval")
                truck.maintenance_interval = int(interval) if interval else 1000
            if "last_maintenance_date" in changes:
                truck.last_maintenance_date = parse_datetime(changes.get("last_maintenance_date"))
            if "is_active" in changes and changes.get("is_active") is not None:
                truck.is_active = bool(changes.get("is_active"))
            if "driver_ids" in changes:
                truck.drivers = self._resolve_drivers(actor, changes.get("driver_ids"), truck.user_id)
        return truck

    def delete_truck(self, actor: AuthenticatedUser, truck_id: int) -> None:
        truck = self.get_truck(actor, truck_id)
        trips = self._repository.count_carriers_with_truck(truck.id)
        if trips:
            raise ConflictError(
                f"Cannot delete truck. This truck is assigned to {trips} trip(s). "
                "Please remove the truck from trips first."
            )
        with unit_of_work(self._session, "truck deletion"):
            expenses = self._expenses.delete_expenses_of_truck(truck.id)
            truck.drivers = []
            self._session.flush()
            self._session.delete(truck)
        LOGGER.info("Truck deleted", extra={"truck_id": truck_id, "expenses": expenses})

    # ------------------------------------------------------------------
    # drivers
    # ------------------------------------------------------------------
    def get_driver(self, actor: AuthenticatedUser, driver_id: int) -> Driver:
        driver = self._repository.get_driver(driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        ensure_owner(actor, driver.user_id)
        return driver

    def list_drivers(
        self,
        actor: AuthenticatedUser,
        *,
        page: object = 1,
        limit: object = 20,
        search: str | None = None,
        user_id: object = None,
    ) -> Page[Driver]:
        resolved_page, resolved_limit = normalize_paging(page, limit)
        return self._repository.list_drivers(
            page=resolved_page,
            limit=resolved_limit,
            user_id=owner_filter(actor, user_id),
            search=search,
        )

    def create_driver(self, actor: AuthenticatedUser, payload: Mapping[str, Any]) -> Driver:
        owner_id = resolve_owner(actor, payload.get("user_id"))
        name = _text(payload.get("name"))
        if not name:
            raise ValidationError("Driver name is required")
        if self._repository.driver_name_taken(owner_id, name):
            raise ConflictError(f'Driver "{name}" already exists for this user')

        with unit_of_work(self._session, "driver creation"):
            driver = Driver(
                name=name,
                phone=_text(payload.get("phone")) or None,
                email=_text(payload.get("email")).lower() or None,
                license_number=_text(payload.get("license_number")) or None,
                address=_text(payload.get("address")) or None,
                notes=_text(payload.get("notes")) or None,
                user_id=owner_id,
                is_active=True,
            )
            self._session.add(driver)
            self._session.flush()

        LOGGER.info("Driver created", extra={"driver_id": driver.id, "owner": owner_id})
        return driver

    def update_driver(
        self, actor: AuthenticatedUser, driver_id: int, changes: Mapping[str, Any]
    ) -> Driver:
        driver = self.get_driver(actor, driver_id)
        with unit_of_work(self._session, "driver update"):
            if _text(changes.get("name")):
                name = _text(changes.get("name"))
                if name.lower() != driver.name.lower() and self._repository.driver_name_taken(
                    driver.user_id, name, exclude_id=driver.id
                ):
                    raise ConflictError(f'Driver "{name}" already exists for this user')
                driver.name = name
            for field in ("phone", "license_number", "address", "notes"):
                if field in changes:
                    setattr(driver, field, _text(changes.get(field)) or None)
            if "email" in changes:
                driver.email = _text(changes.get("email")).lower() or None
            if "is_active" in changes and changes.get("is_active") is not None:
                driver.is_active = bool(changes.get("is_active"))
        return driver

    def delete_driver(self, actor: AuthenticatedUser, driver_id: int) -> None:
        driver = self.get_driver(actor, driver_id)
        trucks = self._repository.count_trucks_with_driver(driver.id)
        if trucks:
            raise ConflictError(
                f"Cannot delete driver. This driver is assigned to {trucks} truck(s). "
                "Please remove the driver from trucks first."
            )
        rents = self._expenses.count_driver_rent_references(driver.id)
        if rents:
            raise ConflictError(
                f"Cannot delete driver. {rents} trip expense(s) pay driver rent to this driver."
            )
        with unit_of_work(self._session, "driver deletion"):
            expenses = self._expenses.delete_expenses_of_driver(driver.id)
            self._session.delete(driver)
        LOGGER.info("Driver deleted", extra={"driver_id": driver_id, "expenses": expenses})


__all__ = ["FleetService", "TRIP_PREFIX"]
