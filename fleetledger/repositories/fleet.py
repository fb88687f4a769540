"""Data access for carriers, cars, trucks and drivers."""
from __future__ import annotations

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import selectinload

from fleetledger.core.pagination import Page
from fleetledger.models import Car, Carrier, CarrierType, Driver, Truck, invoice_car, truck_driver

from .base import BaseRepository


class FleetRepository(BaseRepository):
    """Queries over the fleet tables, always scoped by owner where relevant."""

    # carriers ---------------------------------------------------------
    def get_carrier(self, carrier_id: int) -> Carrier | None:
        return self._session.get(Carrier, carrier_id)

    def trip_numbers_for(self, user_id: int) -> list[str | None]:
        statement = select(Carrier.trip_number).where(
            Carrier.user_id == user_id,
            Carrier.type == CarrierType.TRIP.value,
            Carrier.trip_number.is_not(None),
        )
        return list(self._session.scalars(statement).all())

    def next_trip_number(self, user_id: int, *, prefix: str = "TRIP-") -> str:
        return f"{prefix}{self._next_sequence(self.trip_numbers_for(user_id))}"

    def carrier_key_taken(
        self,
        user_id: int,
        *,
        trip_number: str | None = None,
        name: str | None = None,
        exclude_id: int | None = None,
    ) -> bool:
        statement = select(func.count()).select_from(Carrier).where(Carrier.user_id == user_id)
        if trip_number is not None:
            statement = statement.where(
                Carrier.type == CarrierType.TRIP.value,
                func.upper(Carrier.trip_number) == trip_number.upper(),
            )
        elif name is not None:
            statement = statement.where(
                Carrier.type == CarrierType.COMPANY.value, Carrier.name == name
            )
        else:
            return False
        if exclude_id is not None:
            statement = statement.where(Carrier.id != exclude_id)
        return (self._session.scalar(statement) or 0) > 0

    def list_carriers(
        self,
        *,
        page: int,
        limit: int,
        user_id: int | None = None,
        type: str | None = None,
        search: str | None = None,
        is_active: bool | None = None,
    ) -> Page[Carrier]:
        statement = select(Carrier).options(selectinload(Carrier.truck))
        if user_id is not None:
            statement = statement.where(Carrier.user_id == user_id)
        if type:
            statement = statement.where(Carrier.type == type)
        if is_active is not None:
            statement = statement.where(Carrier.is_active.is_(is_active))
        pattern = self._search_pattern(search)
        if pattern:
            statement = statement.where(
                or_(
                    func.lower(func.coalesce(Carrier.trip_number, "")).like(pattern),
                    func.lower(func.coalesce(Carrier.name, "")).like(pattern),
                    func.lower(func.coalesce(Carrier.carrier_name, "")).like(pattern),
                    func.lower(func.coalesce(Carrier.driver_name, "")).like(pattern),
                )
            )
        statement = statement.order_by(Carrier.date.desc(), Carrier.id.desc())
        return self._paginate(statement, page=page, limit=limit)

    def count_carriers_with_truck(self, truck_id: int) -> int:
        return int(
            self._session.scalar(
                select(func.count()).select_from(Carrier).where(Carrier.truck_id == truck_id)
            )
            or 0
        )

    # cars -------------------------------------------------------------
    def get_car(self, car_id: int) -> Car | None:
        return self._session.get(Car, car_id)

    def cars_for_carrier(self, carrier_id: int) -> list[Car]:
        statement = select(Car).where(Car.carrier_id == carrier_id).order_by(Car.date.desc(), Car.id.desc())
        return list(self._session.scalars(statement).all())

    def delete_cars(self, car_ids: list[int]) -> int:
        if not car_ids:
            return 0
        self._session.execute(delete(invoice_car).where(invoice_car.c.car_id.in_(car_ids)))
        result = self._session.execute(
            delete(Car).where(Car.id.in_(car_ids)).execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

    # trucks -----------------------------------------------------------
    def get_truck(self, truck_id: int) -> Truck | None:
        statement = select(Truck).where(Truck.id == truck_id).options(selectinload(Truck.drivers))
        return self._session.scalars(statement).first()

    def truck_name_taken(self, user_id: int, name: str, *, exclude_id: int | None = None) -> bool:
        statement = (
            select(func.count())
            .select_from(Truck)
            .where(Truck.user_id == user_id, Truck.name == name)
        )
        if exclude_id is not None:
            statement = statement.where(Truck.id != exclude_id)
        return (self._session.scalar(statement) or 0) > 0

    def list_trucks(
        self,
        *,
        page: int,
        limit: int,
        user_id: int | None = None,
        search: str | None = None,
    ) -> Page[Truck]:
        statement = select(Truck).options(selectinload(Truck.drivers))
        if user_id is not None:
            statement = statement.where(Truck.user_id == user_id)
        pattern = self._search_pattern(search)
        if pattern:
            statement = statement.where(
                or_(
                    func.lower(Truck.name).like(pattern),
                    func.lower(func.coalesce(Truck.number, "")).like(pattern),
                )
            )
        return self._paginate(statement.order_by(Truck.name, Truck.id), page=page, limit=limit)

    # drivers ----------------------------------------------------------
    def get_driver(self, driver_id: int) -> Driver | None:
        return self._session.get(Driver, driver_id)

    def drivers_by_ids(self, driver_ids: list[int]) -> list[Driver]:
        if not driver_ids:
            return []
        return list(self._session.scalars(select(Driver).where(Driver.id.in_(driver_ids))).all())

    def driver_name_taken(self, user_id: int, name: str, *, exclude_id: int | None = None) -> bool:
        statement = (
            select(func.count())
            .select_from(Driver)
            .where(Driver.user_id == user_id, func.lower(Driver.name) == name.lower())
        )
        if exclude_id is not None:
            statement = statement.where(Driver.id != exclude_id)
        return (self._session.scalar(statement) or 0) > 0

    def count_trucks_with_driver(self, driver_id: int) -> int:
        return int(
            self._session.scalar(
                select(func.count())
                .select_from(truck_driver)
                .where(truck_driver.c.driver_id == driver_id)
            )
            or 0
        )

    def list_drivers(
        self,
        *,
        page: int,
        limit: int,
        user_id: int | None = None,
        search: str | None = None,
    ) -> Page[Driver]:
        statement = select(Driver)
        if user_id is not None:
            statement = statement.where(Driver.user_id == user_id)
        pattern = self._search_pattern(search)
        if pattern:
            statement = statement.where(
                or_(
                    func.lower(Driver.name).like(pattern),
                    func.lower(func.coalesce(Driver.phone, "")).like(pattern),
                    func.lower(func.coalesce(Driver.license_number, "")).like(pattern),
                )
            )
        return self._paginate(statement.order_by(Driver.name, Driver.id), page=page, limit=limit)


__all__ = ["FleetRepository"]
