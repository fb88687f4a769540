"""Business logic for the landing dashboard."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fleetledger.core.dates import utcnow
from fleetledger.core.formatting import ZERO, to_money
from fleetledger.core.security import AuthenticatedUser
from fleetledger.models import Account, Car, Carrier


@dataclass(frozen=True)
class TripStats:
    """Aggregate counts shown at the top of the dashboard."""

    total_trips: int
    active_trips: int
    inactive_trips: int
    total_cars: int
    total_amount: Decimal


@dataclass(frozen=True)
class RecentCarrier:
    id: int
    trip_number: str | None
    name: str | None
    type: str
    car_count: int
    total_amount: Decimal


@dataclass(frozen=True)
class DashboardData:
    """Container for all data required by the dashboard view."""

    generated_at: datetime
    stats: TripStats
    recent_carriers: list[RecentCarrier]
    total_accounts: int = 0


class DashboardService:
    """Trip and car totals scoped to the caller; admins see every tenant."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_dashboard_data(
        self, actor: AuthenticatedUser, *, recent_carriers: int = 5
    ) -> DashboardData:
        owner_id = None if actor.is_super_admin else actor.user_id
        return DashboardData(
            generated_at=utcnow(),
            stats=self._fetch_stats(owner_id),
            recent_carriers=self._fetch_recent_carriers(owner_id, limit=recent_carriers),
            total_accounts=self._count(select(func.count()).select_from(Account))
            if actor.is_super_admin
            else 0,
        )

    def _fetch_stats(self, owner_id: int | None) -> TripStats:
        trips = select(func.count()).select_from(Carrier)
        if owner_id is not None:
            trips = trips.where(Carrier.user_id == owner_id)

        cars = select(func.count(Car.id), func.coalesce(func.sum(Car.amount), 0))
        if owner_id is not None:
            cars = cars.where(Car.user_id == owner_id)
        car_count, car_amount = self._session.execute(cars).one()

        return TripStats(
            total_trips=self._count(trips),
            active_trips=self._count(trips.where(Carrier.is_active.is_(True))),
            inactive_trips=self._count(trips.where(Carrier.is_active.is_(False))),
            total_cars=int(car_count or 0),
            total_amount=to_money(car_amount),
        )

    def _fetch_recent_carriers(self, owner_id: int | None, *, limit: int) -> list[RecentCarrier]:
        """Most recent trips with their car count and car total."""

        statement = select(
            Carrier.id,
            Carrier.trip_number,
            Carrier.name,
            Carrier.type,
            func.count(Car.id),
            func.coalesce(func.sum(Car.amount), 0),
        ).outerjoin(Car, Car.carrier_id == Carrier.id)
        if owner_id is not None:
            statement = statement.where(Carrier.user_id == owner_id)
        statement = (
            statement.group_by(
                Carrier.id,
                Carrier.trip_number,
                Carrier.name,
                Carrier.type,
                Carrier.date,
                Carrier.created_at,
            )
            .order_by(Carrier.date.desc(), Carrier.created_at.desc(), Carrier.id.desc())
            .limit(limit)
        )

        carriers: list[RecentCarrier] = []
        for row in self._session.execute(statement):
            carriers.append(
                RecentCarrier(
                    id=int(row[0]),
                    trip_number=row[1],
                    name=row[2],
                    type=str(row[3]),
                    car_count=int(row[4] or 0),
                    total_amount=to_money(row[5]) if row[5] is not None else ZERO,
                )
            )
        return carriers

    def _count(self, statement) -> int:
        return int(self._session.scalar(statement) or 0)


__all__ = ["DashboardData", "DashboardService", "RecentCarrier", "TripStats"]
