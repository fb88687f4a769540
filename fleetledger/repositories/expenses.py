"""Data access for expenses and their mirrors."""
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.orm import aliased, selectinload

from fleetledger.core.pagination import Page
from fleetledger.models import Carrier, Expense, ExpenseCategory, Truck

from .base import BaseRepository

_NEWEST_FIRST = (Expense.date.desc(), Expense.created_at.desc(), Expense.id.desc())


class ExpenseRepository(BaseRepository):
    """Queries over the ``expense`` table."""

    def get(self, expense_id: int) -> Expense | None:
        return self._session.get(Expense, expense_id)

    def mirrors_of(self, origin_id: int) -> list[Expense]:
        statement = select(Expense).where(Expense.synced_from_expense_id == origin_id)
        return list(self._session.scalars(statement.order_by(Expense.id)).all())

    def direct_total(self, carrier_id: int) -> Decimal:
        """Sum of the carrier's own (non-mirrored) expense amounts."""

        total = self._session.scalar(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(
                Expense.carrier_id == carrier_id,
                Expense.synced_from_expense_id.is_(None),
            )
        )
        return Decimal(str(total or 0))

    def list_for_carrier(self, carrier_id: int) -> list[Expense]:
        statement = (
            select(Expense)
            .where(Expense.carrier_id == carrier_id)
            .options(selectinload(Expense.driver_rent_driver))
            .order_by(*_NEWEST_FIRST)
        )
        return list(self._session.scalars(statement).all())

    def ids_owned_by(
        self,
        *,
        carrier_ids: Iterable[int] = (),
        truck_id: int | None = None,
        driver_id: int | None = None,
    ) -> list[int]:
        carrier_ids = list(carrier_ids)
        statement = select(Expense.id)
        if carrier_ids:
            statement = statement.where(Expense.carrier_id.in_(carrier_ids))
        elif truck_id is not None:
            statement = statement.where(Expense.truck_id == truck_id)
        elif driver_id is not None:
            statement = statement.where(Expense.driver_id == driver_id)
        else:
            return []
        return list(self._session.scalars(statement).all())

    def delete_with_mirrors(self, expense_ids: Iterable[int]) -> int:
        """Delete ``expense_ids`` and every expense mirrored from them."""

        ids = list(expense_ids)
        if not ids:
            return 0
        mirrors = self._session.execute(
            delete(Expense)
            .where(Expense.synced_from_expense_id.in_(ids))
            .execution_options(synchronize_session="fetch")
        )
        origins = self._session.execute(
            delete(Expense).where(Expense.id.in_(ids)).execution_options(synchronize_session="fetch")
        )
        return int(mirrors.rowcount or 0) + int(origins.rowcount or 0)

    def count_driver_rent_references(self, driver_id: int) -> int:
        """Trip expenses whose driver rent is paid to ``driver_id``."""

        return int(
            self._session.scalar(
                select(func.count())
                .select_from(Expense)
                .where(
                    Expense.driver_rent_driver_id == driver_id,
                    Expense.synced_from_expense_id.is_(None),
                )
            )
            or 0
        )

    def list_for_truck(
        self,
        truck_id: int,
        *,
        page: int,
        limit: int,
        category: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> tuple[Page[Expense], dict[str, tuple[Decimal, Decimal]]]:
        """One page of truck expenses plus ``{category: (amount, liters)}`` totals."""

        conditions = [Expense.truck_id == truck_id]
        if category:
            conditions.append(Expense.category == category)
        if start is not None:
            conditions.append(Expense.date >= start)
        if end is not None:
            conditions.append(Expense.date <= end)

        statement = (
            select(Expense)
            .where(*conditions)
            .options(selectinload(Expense.synced_from).selectinload(Expense.carrier))
            .order_by(*_NEWEST_FIRST)
        )
        page_result = self._paginate(statement, page=page, limit=limit)

        summary_rows = self._session.execute(
            select(
                Expense.category,
                func.coalesce(func.sum(Expense.amount), 0),
                func.coalesce(func.sum(Expense.liters), 0),
            )
            .where(*conditions)
            .group_by(Expense.category)
        ).all()
        summary = {
            row[0]: (Decimal(str(row[1] or 0)), Decimal(str(row[2] or 0))) for row in summary_rows
        }
        return page_result, summary

    def list_driver_rent_payments(
        self, driver_id: int, *, page: int, limit: int
    ) -> tuple[Page[tuple[Expense, Carrier | None]], Decimal]:
        """Mirrored driver-rent expenses of a driver with the trip they came from."""

        origin = aliased(Expense)
        conditions = (
            Expense.driver_id == driver_id,
            Expense.category == ExpenseCategory.DRIVER_RENT.value,
            Expense.synced_from_expense_id.is_not(None),
        )
        statement = (
            select(Expense, Carrier)
            .where(*conditions)
            .outerjoin(origin, origin.id == Expense.synced_from_expense_id)
            .outerjoin(Carrier, Carrier.id == origin.carrier_id)
            .order_by(*_NEWEST_FIRST)
        )
        total_rows = self._session.scalar(
            select(func.count()).select_from(Expense).where(*conditions)
        )
        rows = self._session.execute(statement.limit(limit).offset((page - 1) * limit)).all()
        total_amount = self._session.scalar(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(*conditions)
        )
        items = [(row[0], row[1]) for row in rows]
        return (
            Page(items=items, total=int(total_rows or 0), page=page, limit=limit),
            Decimal(str(total_amount or 0)),
        )

    def trucks_owned_by(self, user_id: int) -> list[Truck]:
        return list(
            self._session.scalars(
                select(Truck).where(Truck.user_id == user_id).order_by(Truck.name, Truck.id)
            ).all()
        )

    def fuel_for_trucks(
        self,
        truck_ids: Iterable[int],
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Expense]:
        """Fuel expenses booked on the given trucks, newest first."""

        ids = list(truck_ids)
        if not ids:
            return []
        conditions = [Expense.truck_id.in_(ids), Expense.category == ExpenseCategory.FUEL.value]
        if start is not None:
            conditions.append(Expense.date >= start)
        if end is not None:
            conditions.append(Expense.date <= end)
        return list(
            self._session.scalars(select(Expense).where(*conditions).order_by(*_NEWEST_FIRST)).all()
        )


__all__ = ["ExpenseRepository"]
