"""Trucks and their maintenance, fuel and tyre expenses."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fleetledger.core.security import AuthenticatedUser, get_authenticated_user, get_optional_user
from fleetledger.schemas import (
    ExpenseCreate,
    ExpensePayload,
    ExpenseUpdate,
    TruckCreate,
    TruckPayload,
    TruckUpdate,
)
from fleetledger.services import ExpenseService, FleetService

from .dependencies import dump, empty_page, get_expense_service, get_fleet_service, page_response

router = APIRouter(prefix="/api/trucks", tags=["trucks"])


@router.get("")
def list_trucks(
    page: int = Query(1),
    limit: int = Query(20),
    search: str | None = Query(None),
    user_id: int | None = Query(None),
    user: AuthenticatedUser | None = Depends(get_optional_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    if user is None:
        return empty_page("trucks", page, limit)
    result = fleet.list_trucks(user, page=page, limit=limit, search=search, user_id=user_id)
    return page_response("trucks", result, lambda truck: dump(TruckPayload, truck))


@router.post("", status_code=201)
def create_truck(
    body: TruckCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    truck = fleet.create_truck(user, body.model_dump())
    return {"success": True, "truck": dump(TruckPayload, truck)}


@router.get("/{truck_id}")
def get_truck(
    truck_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    return {"success": True, "truck": dump(TruckPayload, fleet.get_truck(user, truck_id))}


@router.patch("/{truck_id}")
def update_truck(
    truck_id: int,
    body: TruckUpdate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    truck = fleet.update_truck(user, truck_id, body.model_dump(exclude_unset=True))
    return {"success": True, "truck": dump(TruckPayload, truck)}


@router.delete("/{truck_id}")
def delete_truck(
    truck_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    fleet.delete_truck(user, truck_id)
    return {"success": True, "message": "Truck deleted successfully"}


@router.get("/{truck_id}/expenses")
def list_truck_expenses(
    truck_id: int,
    page: int = Query(1),
    limit: int = Query(25),
    category: str | None = Query(None),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    user: AuthenticatedUser | None = Depends(get_optional_user),
    expenses: ExpenseService = Depends(get_expense_service),
) -> dict:
    if user is None:
        return empty_page("expenses", page, limit)
    listing = expenses.list_truck_expenses(
        user,
        truck_id,
        page=page,
        limit=limit,
        category=category,
        start_date=start_date,
        end_date=end_date,
    )
    return page_response(
        "expenses",
        listing.page,
        lambda expense: dump(ExpensePayload, expense),
        summary={
            "by_category": {name: format(value, "f") for name, value in listing.by_category.items()},
            "total_expense": format(listing.total_expense, "f"),
            "total_fuel_liters": format(listing.total_fuel_liters, "f"),
        },
    )


@router.post("/{truck_id}/expenses", status_code=201)
def create_truck_expense(
    truck_id: int,
    body: ExpenseCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    expenses: ExpenseService = Depends(get_expense_service),
) -> dict:
    expense = expenses.create_truck_expense(user, truck_id, body.model_dump())
    return {"success": True, "expense": dump(ExpensePayload, expense)}


@router.put("/{truck_id}/expenses/{expense_id}")
def update_truck_expense(
    truck_id: int,
    expense_id: int,
    body: ExpenseUpdate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    expenses: ExpenseService = Depends(get_expense_service),
) -> dict:
    expense = expenses.update_truck_expense(
        user, truck_id, expense_id, body.model_dump(exclude_unset=True)
    )
    return {"success": True, "expense": dump(ExpensePayload, expense)}


@router.delete("/{truck_id}/expenses/{expense_id}")
def delete_truck_expense(
    truck_id: int,
    expense_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    expenses: ExpenseService = Depends(get_expense_service),
) -> dict:
    expenses.delete_truck_expense(user, truck_id, expense_id)
    return {"success": True, "message": "Expense deleted successfully"}


__all__ = ["router"]
