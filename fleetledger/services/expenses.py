"""Trip, truck and driver expenses, and the mirrors kept between them.

A trip (carrier) expense can have derived copies on other entities: a fuel
expense is mirrored onto the trip's truck and a driver-rent expense onto
the driver it was paid to. Every mutation of a trip expense ends with
:meth:`ExpenseService.reconcile_mirrors`, which compares the mirrors that
should exist with the ones that do and creates, updates or deletes rows
until they agree. The trip's ``total_expense`` is then rebuilt from its
direct expenses in the same database transaction.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.orm import Session

from fleetledger.core.dates import end_of_day, parse_date, parse_datetime, start_of_day, utcnow
from fleetledger.core.errors import NotFoundError, ValidationError
from fleetledger.core.formatting import MAX_QUANTITY, ZERO, to_money
from fleetledger.core.logger import get_logger
from fleetledger.core.pagination import Page, normalize_paging
from fleetledger.core.security import AuthenticatedUser
from fleetledger.db.session import unit_of_work
from fleetledger.models import (
    TRUCK_EXPENSE_CATEGORIES,
    Carrier,
    Driver,
    Expense,
    ExpenseCategory,
    Truck,
)
from fleetledger.repositories.expenses import ExpenseRepository

from .access import ensure_owner, owner_filter

LOGGER = get_logger(__name__)

ALL_CATEGORIES: frozenset[str] = frozenset(c.value for c in ExpenseCategory)
METER_CATEGORIES: frozenset[str] = frozenset(
    {ExpenseCategory.MAINTENANCE.value, ExpenseCategory.TYRE.value}
)

TRUCK_TARGET = "truck"
DRIVER_TARGET = "driver"

_EDITABLE_FIELDS = (
    "category",
    "amount",
    "details",
    "liters",
    "price_per_liter",
    "tyre_number",
    "tyre_info",
    "meter_reading",
    "driver_id",
    "date",
)


@dataclass(frozen=True)
class TruckExpenseListing:
    """One page of a truck's expenses with per-category totals."""

    page: Page[Expense]
    by_category: dict[str, Decimal]
    total_expense: Decimal
    total_fuel_liters: Decimal


@dataclass(frozen=True)
class DriverRentPayment:
    expense: Expense
    trip: Carrier | None


@dataclass(frozen=True)
class DriverRentListing:
    driver: Driver
    page: Page[DriverRentPayment]
    total_amount: Decimal = field(default=ZERO)


@dataclass(frozen=True)
class TruckDieselSummary:
    truck: Truck
    expenses: list[Expense]
    total_liters: Decimal
    total_amount: Decimal

    @property
    def expense_count(self) -> int:
        return len(self.expenses)

    @property
    def avg_price_per_liter(self) -> Decimal | None:
        if self.total_liters <= 0:
            return None
        return to_money(self.total_amount / self.total_liters)


@dataclass(frozen=True)
class DieselReport:
    """Fuel spend per truck for a date range plus the trucks the caller may pick from."""

    by_truck: list[TruckDieselSummary]
    trucks: list[Truck]
    total_liters: Decimal = field(default=Decimal("0"))
    total_amount: Decimal = field(default=ZERO)
    expense_count: int = 0



def _optional_decimal(value: Any, field_name: str) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationError(f"{field_name} must be a valid number") from exc
    if not parsed.is_finite() or parsed < 0:
        raise ValidationError(f"{field_name} must be a non-negative number")
    if parsed > MAX_QUANTITY:
        raise ValidationError(f"{field_name} is too large")
    return parsed


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text_value = str(value).strip()
    return text_value or None


def _mirror_target(expense: Expense) -> tuple[str, int] | None:
    if expense.truck_id is not None:
        return (TRUCK_TARGET, expense.truck_id)
    if expense.driver_id is not None:
        return (DRIVER_TARGET, expense.driver_id)
    return None


class ExpenseService:
    """Create, change and remove expenses while keeping mirrors and totals in step."""

    def __init__(self, session: Session, repository: ExpenseRepository | None = None) -> None:
        self._session = session
        self._repository = repository or ExpenseRepository(session)

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------
    def _load_carrier(self, actor: AuthenticatedUser, carrier_id: int) -> Carrier:
        carrier = self._session.get(Carrier, carrier_id)
        if carrier is None:
            raise NotFoundError("Carrier not found")
        ensure_owner(actor, carrier.user_id)
        return carrier

    def _load_truck(self, actor: AuthenticatedUser, truck_id: int) -> Truck:
        truck = self._session.get(Truck, truck_id)
        if truck is None:
            raise NotFoundError("Truck not found")
        ensure_owner(actor, truck.user_id)
        return truck

    def _load_driver(self, actor: AuthenticatedUser, driver_id: Any) -> Driver:
        try:
            resolved_id = int(driver_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid driver ID") from exc
        driver = self._session.get(Driver, resolved_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        ensure_owner(actor, driver.user_id)
        return driver

    def _load_expense(self, expense_id: int) -> Expense:
        expense = self._repository.get(expense_id)
        if expense is None:
            raise NotFoundError("Expense not found")
        return expense

    # ------------------------------------------------------------------
    # field normalisation
    # ------------------------------------------------------------------
    def _normalize(
        self,
        actor: AuthenticatedUser,
        state: Mapping[str, Any],
        *,
        allowed: frozenset[str],
    ) -> dict[str, Any]:
        """Validate a full set of expense fields and derive the stored values."""

        category = str(state.get("category") or "").strip().lower()
        if not category:
            raise ValidationError("Category is required")
        if category not in allowed:
            raise ValidationError("Invalid category")

        amount = _optional_decimal(state.get("amount"), "amount")
        liters = _optional_decimal(state.get("liters"), "liters")
        price_per_liter = _optional_decimal(state.get("price_per_liter"), "price_per_liter")

        if category == ExpenseCategory.FUEL.value:
            if liters and price_per_liter:
                amount = liters * price_per_liter
            elif not amount:
                raise ValidationError(
                    "For fuel expenses, either provide amount or both liters and price_per_liter"
                )
        else:
            liters = None
            price_per_liter = None
            if not amount:
                raise ValidationError("Amount is required")

        driver_rent_driver_id: int | None = None
        if category == ExpenseCategory.DRIVER_RENT.value:
            if state.get("driver_id") in (None, ""):
                raise ValidationError("Driver is required for driver rent expenses")
            driver_rent_driver_id = self._load_driver(actor, state["driver_id"]).id

        meter_reading = None
        if category in METER_CATEGORIES:
            meter_reading = _optional_decimal(state.get("meter_reading"), "meter_reading")

        is_tyre = category == ExpenseCategory.TYRE.value
        return {
            "category": category,
            "amount": to_money(amount),
            "details": str(state.get("details") or "").strip(),
            "liters": liters,
            "price_per_liter": price_per_liter,
            "tyre_number": _optional_text(state.get("tyre_number")) if is_tyre else None,
            "tyre_info": _optional_text(state.get("tyre_info")) if is_tyre else None,
            "meter_reading": meter_reading,
            "driver_rent_driver_id": driver_rent_driver_id,
            "date": parse_datetime(state.get("date")) or utcnow(),
        }

    @staticmethod
    def _current_state(expense: Expense) -> dict[str, Any]:
        return {
            "category": expense.category,
            "amount": expense.amount,
            "details": expense.details,
            "liters": expense.liters,
            "price_per_liter": expense.price_per_liter,
            "tyre_number": expense.tyre_number,
            "tyre_info": expense.tyre_info,
            "meter_reading": expense.meter_reading,
            "driver_id": expense.driver_rent_driver_id,
            "date": expense.date,
        }

    @staticmethod
    def _merge(current: dict[str, Any], changes: Mapping[str, Any]) -> dict[str, Any]:
        merged = dict(current)
        for key in _EDITABLE_FIELDS:
            if key in changes:
                merged[key] = changes[key]
        return merged

    # ------------------------------------------------------------------
    # mirror reconciliation
    # ------------------------------------------------------------------
    @staticmethod
    def desired_mirror_targets(origin: Expense, carrier: Carrier) -> set[tuple[str, int]]:
        """The (entity kind, entity id) pairs that should hold a copy of ``origin``."""

        if origin.category == ExpenseCategory.FUEL.value and carrier.truck_id is not None:
            return {(TRUCK_TARGET, carrier.truck_id)}
        if (
            origin.category == ExpenseCategory.DRIVER_RENT.value
            and origin.driver_rent_driver_id is not None
        ):
            return {(DRIVER_TARGET, origin.driver_rent_driver_id)}
        return set()

    @staticmethod
    def _copy_into_mirror(origin: Expense, mirror: Expense) -> None:
        mirror.category = origin.category
        mirror.amount = origin.amount
        mirror.details = (origin.details or "").strip()
        mirror.date = origin.date
        if origin.category == ExpenseCategory.FUEL.value:
            mirror.liters = origin.liters
            mirror.price_per_liter = origin.price_per_liter
        else:
            mirror.liters = None
            mirror.price_per_liter = None

    def reconcile_mirrors(self, origin: Expense, carrier: Carrier) -> None:
        """Bring the mirrors of ``origin`` in line with its desired target set.

        Runs inside the caller's unit of work; ``origin`` must be flushed.
        """

        desired = self.desired_mirror_targets(origin, carrier)
        kept: set[tuple[str, int]] = set()
        created = updated = removed = 0

        for mirror in self._repository.mirrors_of(origin.id):
            target = _mirror_target(mirror)
            if target in desired and target not in kept:
                kept.add(target)
                self._copy_into_mirror(origin, mirror)
                updated += 1
            else:
                self._session.delete(mirror)
                removed += 1

        for kind, entity_id in sorted(desired - kept):
            mirror = Expense(synced_from_expense_id=origin.id)
            if kind == TRUCK_TARGET:
                mirror.truck_id = entity_id
            else:
                mirror.driver_id = entity_id
            self._copy_into_mirror(origin, mirror)
            self._session.add(mirror)
            created += 1

        self._session.flush()
        if created or removed:
            LOGGER.debug(
                "Expense mirrors reconciled",
                extra={
                    "expense_id": origin.id,
                    "mirrors_created": created,
                    "mirrors_updated": updated,
                    "mirrors_removed": removed,
                },
            )

    def resync_carrier(self, carrier: Carrier) -> None:
        """Reconcile every direct expense of ``carrier`` (e.g. after its truck changed)."""

        for expense in self._repository.list_for_carrier(carrier.id):
            if expense.synced_from_expense_id is None:
                self.reconcile_mirrors(expense, carrier)

    def recompute_carrier_total(self, carrier: Carrier) -> Decimal:
        """Full rescan of the carrier's direct expenses into ``total_expense``."""

        self._session.flush()
        carrier.total_expense = to_money(self._repository.direct_total(carrier.id))
        return carrier.total_expense

    # ------------------------------------------------------------------
    # trip (carrier) expenses
    # ------------------------------------------------------------------
    def list_carrier_expenses(self, actor: AuthenticatedUser, carrier_id: int) -> list[Expense]:
        carrier = self._load_carrier(actor, carrier_id)
        return self._repository.list_for_carrier(carrier.id)

    def create_carrier_expense(
        self, actor: AuthenticatedUser, carrier_id: int, payload: Mapping[str, Any]
    ) -> Expense:
        carrier = self._load_carrier(actor, carrier_id)
        values = self._normalize(actor, payload, allowed=ALL_CATEGORIES)

        with unit_of_work(self._session, "carrier expense creation"):
            expense = Expense(carrier_id=carrier.id, **values)
            self._session.add(expense)
            self._session.flush()
            self.reconcile_mirrors(expense, carrier)
            self.recompute_carrier_total(carrier)

        LOGGER.info(
            "Carrier expense created",
            extra={
                "carrier_id": carrier.id,
                "expense_id": expense.id,
                "category": expense.category,
                "amount": str(expense.amount),
            },
        )
        return expense

    def _load_carrier_expense(self, carrier: Carrier, expense_id: int) -> Expense:
        expense = self._load_expense(expense_id)
        if expense.carrier_id != carrier.id:
            raise ValidationError("Expense does not belong to this carrier")
        return expense

    def update_carrier_expense(
        self,
        actor: AuthenticatedUser,
        carrier_id: int,
        expense_id: int,
        changes: Mapping[str, Any],
    ) -> Expense:
        carrier = self._load_carrier(actor, carrier_id)
        expense = self._load_carrier_expense(carrier, expense_id)
        values = self._normalize(
            actor,
            self._merge(self._current_state(expense), changes),
            allowed=ALL_CATEGORIES,
        )

        with unit_of_work(self._session, "carrier expense update"):
            for key, value in values.items():
                setattr(expense, key, value)
            self._session.flush()
            self.reconcile_mirrors(expense, carrier)
            self.recompute_carrier_total(carrier)

        LOGGER.info(
            "Carrier expense updated",
            extra={"carrier_id": carrier.id, "expense_id": expense.id, "category": expense.category},
        )
        return expense

    def delete_carrier_expense(
        self, actor: AuthenticatedUser, carrier_id: int, expense_id: int
    ) -> None:
        carrier = self._load_carrier(actor, carrier_id)
        expense = self._load_carrier_expense(carrier, expense_id)

        with unit_of_work(self._session, "carrier expense deletion"):
            removed = self._repository.delete_with_mirrors([expense.id])
            self.recompute_carrier_total(carrier)

        LOGGER.info(
            "Carrier expense deleted",
            extra={"carrier_id": carrier.id, "expense_id": expense_id, "rows": removed},
        )

    # ------------------------------------------------------------------
    # truck expenses
    # ------------------------------------------------------------------
    def list_truck_expenses(
        self,
        actor: AuthenticatedUser,
        truck_id: int,
        *,
        page: object = 1,
        limit: object = 25,
        category: str | None = None,
        start_date: object = None,
        end_date: object = None,
    ) -> TruckExpenseListing:
        truck = self._load_truck(actor, truck_id)
        start = parse_date(start_date, field="start_date")
        end = parse_date(end_date, field="end_date")
        resolved_page, resolved_limit = normalize_paging(page, limit)
        wanted = category if category in TRUCK_EXPENSE_CATEGORIES else None

        page_result, summary = self._repository.list_for_truck(
            truck.id,
            page=resolved_page,
            limit=resolved_limit,
            category=wanted,
            start=start_of_day(start) if start else None,
            end=end_of_day(end) if end else None,
        )
        by_category = {name: ZERO for name in sorted(TRUCK_EXPENSE_CATEGORIES)}
        total = ZERO
        liters = Decimal("0")
        for name, (amount, category_liters) in summary.items():
            by_category[name] = to_money(amount)
            total += to_money(amount)
            if name == ExpenseCategory.FUEL.value:
                liters = category_liters
        return TruckExpenseListing(
            page=page_result,
            by_category=by_category,
            total_expense=total,
            total_fuel_liters=liters,
        )

    def _apply_maintenance(self, truck: Truck, expense: Expense) -> None:
        if expense.category != ExpenseCategory.MAINTENANCE.value:
            return
        km = expense.meter_reading if expense.meter_reading is not None else truck.current_meter_reading
        truck.last_maintenance_km = km or Decimal("0")
        truck.last_maintenance_date = expense.date
        truck.current_meter_reading = km or Decimal("0")

    def create_truck_expense(
        self, actor: AuthenticatedUser, truck_id: int, payload: Mapping[str, Any]
    ) -> Expense:
        truck = self._load_truck(actor, truck_id)
        values = self._normalize(actor, payload, allowed=TRUCK_EXPENSE_CATEGORIES)

        with unit_of_work(self._session, "truck expense creation"):
            expense = Expense(truck_id=truck.id, **values)
            self._session.add(expense)
            self._apply_maintenance(truck, expense)
            self._session.flush()

        LOGGER.info(
            "Truck expense created",
            extra={"truck_id": truck.id, "expense_id": expense.id, "category": expense.category},
        )
        return expense

    def _load_truck_expense(self, truck: Truck, expense_id: int) -> Expense:
        expense = self._load_expense(expense_id)
        if expense.truck_id != truck.id:
            raise ValidationError("Expense does not belong to this truck")
        if expense.synced_from_expense_id is not None:
            raise ValidationError("This expense is synced from a trip; change it on the trip instead")
        return expense

    def update_truck_expense(
        self,
        actor: AuthenticatedUser,
        truck_id: int,
        expense_id: int,
        changes: Mapping[str, Any],
    ) -> Expense:
        truck = self._load_truck(actor, truck_id)
        expense = self._load_truck_expense(truck, expense_id)
        values = self._normalize(
            actor,
            self._merge(self._current_state(expense), changes),
            allowed=TRUCK_EXPENSE_CATEGORIES,
        )

        with unit_of_work(self._session, "truck expense update"):
            for key, value in values.items():
                setattr(expense, key, value)
            self._apply_maintenance(truck, expense)
            self._session.flush()

        return expense

    def delete_truck_expense(self, actor: AuthenticatedUser, truck_id: int, expense_id: int) -> None:
        truck = self._load_truck(actor, truck_id)
        expense = self._load_truck_expense(truck, expense_id)
        with unit_of_work(self._session, "truck expense deletion"):
            self._repository.delete_with_mirrors([expense.id])
        LOGGER.info("Truck expense deleted", extra={"truck_id": truck.id, "expense_id": expense_id})

    # ------------------------------------------------------------------
    # driver rent
    # ------------------------------------------------------------------
    def list_driver_rent_payments(
        self,
        actor: AuthenticatedUser,
        driver_id: int,
        *,
        page: object = 1,
        limit: object = 20,
    ) -> DriverRentListing:
        driver = self._load_driver(actor, driver_id)
        resolved_page, resolved_limit = normalize_paging(page, limit)
        page_result, total_amount = self._repository.list_driver_rent_payments(
            driver.id, page=resolved_page, limit=resolved_limit
        )
        payments = [DriverRentPayment(expense=expense, trip=trip) for expense, trip in page_result.items]
        return DriverRentListing(
            driver=driver,
            page=Page(
                items=payments,
                total=page_result.total,
                page=page_result.page,
                limit=page_result.limit,
            ),
            total_amount=to_money(total_amount),
        )

    # ------------------------------------------------------------------
    # diesel report
    # ------------------------------------------------------------------
    def diesel_report(
        self,
        actor: AuthenticatedUser,
        *,
        start_date: object = None,
        end_date: object = None,
        truck_ids: list[int] | None = None,
        user_id: object = None,
    ) -> DieselReport:
        """Group fuel expenses by truck; only the owner's trucks are considered."""

        owner_id = owner_filter(actor, user_id)
        if owner_id is None:
            owner_id = actor.user_id
        start = parse_date(start_date, field="start_date")
        end = parse_date(end_date, field="end_date")

        trucks = self._repository.trucks_owned_by(owner_id)
        allowed = {truck.id: truck for truck in trucks}
        wanted = [truck_id for truck_id in truck_ids or [] if truck_id in allowed]
        target_ids = wanted if truck_ids else list(allowed)

        grouped: dict[int, list[Expense]] = {}
        for expense in self._repository.fuel_for_trucks(
            target_ids,
            start=start_of_day(start) if start else None,
            end=end_of_day(end) if end else None,
        ):
            grouped.setdefault(expense.truck_id, []).append(expense)

        by_truck = [
            TruckDieselSummary(
                truck=allowed[truck_id],
                expenses=rows,
                total_liters=sum((row.liters or Decimal("0") for row in rows), Decimal("0")),
                total_amount=to_money(sum((row.amount for row in rows), ZERO)),
            )
            for truck_id, rows in grouped.items()
        ]
        by_truck.sort(key=lambda summary: (summary.truck.name, summary.truck.id))
        return DieselReport(
            by_truck=by_truck,
            trucks=trucks,
            total_liters=sum((summary.total_liters for summary in by_truck), Decimal("0")),
            total_amount=to_money(sum((summary.total_amount for summary in by_truck), ZERO)),
            expense_count=sum(summary.expense_count for summary in by_truck),
        )


    # ------------------------------------------------------------------
    # cascades used by fleet deletions; the caller owns the unit of work
    # ------------------------------------------------------------------
    def delete_expenses_of_carriers(self, carrier_ids: list[int]) -> int:
        return self._repository.delete_with_mirrors(
            self._repository.ids_owned_by(carrier_ids=carrier_ids)
        )

    def delete_expenses_of_truck(self, truck_id: int) -> int:
        return self._repository.delete_with_mirrors(self._repository.ids_owned_by(truck_id=truck_id))

    def delete_expenses_of_driver(self, driver_id: int) -> int:
        return self._repository.delete_with_mirrors(
            self._repository.ids_owned_by(driver_id=driver_id)
        )

    def count_driver_rent_references(self, driver_id: int) -> int:
        return self._repository.count_driver_rent_references(driver_id)


__all__ = [
    "ALL_CATEGORIES",
    "DieselReport",
    "DriverRentListing",
    "DriverRentPayment",
    "ExpenseService",
    "TruckDieselSummary",
    "TruckExpenseListing",
]
