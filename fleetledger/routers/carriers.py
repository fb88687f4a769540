"""Carriers (trips and company carriers), their cars and their expenses."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fleetledger.core.security import AuthenticatedUser, get_authenticated_user, get_optional_user
from fleetledger.schemas import (
    CarBulkCreate,
    CarCreate,
    CarPayload,
    CarrierCreate,
    CarrierPayload,
    CarrierUpdate,
    ExpenseCreate,
    ExpensePayload,
    ExpenseUpdate,
)
from fleetledger.services import ExpenseService, FleetService

from .dependencies import (
    dump,
    dump_all,
    empty_page,
    get_expense_service,
    get_fleet_service,
    page_response,
)

router = APIRouter(tags=["carriers"])


def _carrier(carrier) -> dict:
    return dump(CarrierPayload, carrier)


@router.get("/api/carriers")
def list_carriers(
    page: int = Query(1),
    limit: int = Query(20),
    type: str | None = Query(None),
    search: str | None = Query(None),
    is_active: bool | None = Query(None),
    user_id: int | None = Query(None),
    user: AuthenticatedUser | None = Depends(get_optional_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    if user is None:
        return empty_page("carriers", page, limit)
    result = fleet.list_carriers(
        user,
        page=page,
        limit=limit,
        type=type,
        search=search,
        is_active=is_active,
        user_id=user_id,
    )
    return page_response("carriers", result, _carrier)


@router.post("/api/carriers", status_code=201)
def create_carrier(
    body: CarrierCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    carrier = fleet.create_carrier(user, body.model_dump())
    return {"success": True, "carrier": _carrier(carrier)}


@router.get("/api/carriers/{carrier_id}")
def get_carrier(
    carrier_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    return {"success": True, "carrier": _carrier(fleet.get_carrier(user, carrier_id))}


@router.patch("/api/carriers/{carrier_id}")
def update_carrier(
    carrier_id: int,
    body: CarrierUpdate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    carrier = fleet.update_carrier(user, carrier_id, body.model_dump(exclude_unset=True))
    return {"success": True, "carrier": _carrier(carrier)}


@router.delete("/api/carriers/{carrier_id}")
def delete_carrier(
    carrier_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    fleet.delete_carrier(user, carrier_id)
    return {"success": True, "message": "Carrier deleted successfully"}


@router.post("/api/carriers/{carrier_id}/toggle-active")
def toggle_carrier_active(
    carrier_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    carrier = fleet.toggle_carrier_active(user, carrier_id)
    return {"success": True, "carrier": _carrier(carrier)}


# cars ------------------------------------------------------------------


@router.get("/api/carriers/{carrier_id}/cars")
def list_cars(
    carrier_id: int,
    user: AuthenticatedUser | None = Depends(get_optional_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    if user is None:
        return {"success": True, "cars": []}
    return {"success": True, "cars": dump_all(CarPayload, fleet.list_cars(user, carrier_id))}


@router.post("/api/carriers/{carrier_id}/cars", status_code=201)
def create_car(
    carrier_id: int,
    body: CarCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    car = fleet.create_car(user, carrier_id, body.model_dump())
    return {"success": True, "car": dump(CarPayload, car)}


@router.post("/api/carriers/{carrier_id}/cars/bulk", status_code=201)
def create_cars(
    carrier_id: int,
    body: CarBulkCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    cars = fleet.create_cars(user, carrier_id, [row.model_dump() for row in body.cars])
    return {
        "success": True,
        "message": f"{len(cars)} car(s) added successfully",
        "cars": dump_all(CarPayload, cars),
    }


@router.post("/api/carriers/{carrier_id}/sync-cars-date")
def sync_cars_date(
    carrier_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    updated = fleet.sync_cars_date(user, carrier_id)
    carrier = fleet.get_carrier(user, carrier_id)
    return {
        "success": True,
        "message": f"Updated {updated} cars with trip date",
        "cars_updated": updated,
        "trip_date": carrier.date.isoformat(),
    }



@router.delete("/api/cars/{car_id}")
def delete_car(
    car_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    fleet.delete_car(user, car_id)
    return {"success": True, "message": "Car deleted successfully"}


# expenses --------------------------------------------------------------


@router.get("/api/carriers/{carrier_id}/expenses")
def list_carrier_expenses(
    carrier_id: int,
    user: AuthenticatedUser | None = Depends(get_optional_user),
    expenses: ExpenseService = Depends(get_expense_service),
) -> dict:
    if user is None:
        return {"success": True, "expenses": []}
    return {
        "success": True,
        "expenses": dump_all(ExpensePayload, expenses.list_carrier_expenses(user, carrier_id)),
    }


@router.post("/api/carriers/{carrier_id}/expenses", status_code=201)
def create_carrier_expense(
    carrier_id: int,
    body: ExpenseCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    expenses: ExpenseService = Depends(get_expense_service),
) -> dict:
    expense = expenses.create_carrier_expense(user, carrier_id, body.model_dump())
    return {"success": True, "expense": dump(ExpensePayload, expense)}


@router.put("/api/carriers/{carrier_id}/expenses/{expense_id}")
def update_carrier_expense(
    carrier_id: int,
    expense_id: int,
    body: ExpenseUpdate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    expenses: ExpenseService = Depends(get_expense_service),
) -> dict:
    expense = expenses.update_carrier_expense(
        user, carrier_id, expense_id, body.model_dump(exclude_unset=True)
    )
    return {"success": True, "expense": dump(ExpensePayload, expense)}


@router.delete("/api/carriers/{carrier_id}/expenses/{expense_id}")
def delete_carrier_expense(
    carrier_id: int,
    expense_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    expenses: ExpenseService = Depends(get_expense_service),
) -> dict:
    expenses.delete_carrier_expense(user, carrier_id, expense_id)
    return {"success": True, "message": "Expense deleted successfully"}


__all__ = ["router"]
