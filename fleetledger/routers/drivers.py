"""Drivers and the driver-rent payments made to them."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fleetledger.core.security import AuthenticatedUser, get_authenticated_user, get_optional_user
from fleetledger.schemas import DriverCreate, DriverPayload, DriverUpdate, ExpensePayload
from fleetledger.services import ExpenseService, FleetService

from .dependencies import dump, empty_page, get_expense_service, get_fleet_service, page_response

router = APIRouter(prefix="/api/drivers", tags=["drivers"])


@router.get("")
def list_drivers(
    page: int = Query(1),
    limit: int = Query(20),
    search: str | None = Query(None),
    user_id: int | None = Query(None),
    user: AuthenticatedUser | None = Depends(get_optional_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    if user is None:
        return empty_page("drivers", page, limit)
    result = fleet.list_drivers(user, page=page, limit=limit, search=search, user_id=user_id)
    return page_response("drivers", result, lambda driver: dump(DriverPayload, driver))


@router.post("", status_code=201)
def create_driver(
    body: DriverCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    driver = fleet.create_driver(user, body.model_dump())
    return {"success": True, "driver": dump(DriverPayload, driver)}


@router.get("/{driver_id}")
def get_driver(
    driver_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    return {"success": True, "driver": dump(DriverPayload, fleet.get_driver(user, driver_id))}


@router.patch("/{driver_id}")
def update_driver(
    driver_id: int,
    body: DriverUpdate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    driver = fleet.update_driver(user, driver_id, body.model_dump(exclude_unset=True))
    return {"success": True, "driver": dump(DriverPayload, driver)}


@router.delete("/{driver_id}")
def delete_driver(
    driver_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    fleet: FleetService = Depends(get_fleet_service),
) -> dict:
    fleet.delete_driver(user, driver_id)
    return {"success": True, "message": "Driver deleted successfully"}


@router.get("/{driver_id}/rent-payments")
def list_rent_payments(
    driver_id: int,
    page: int = Query(1),
    limit: int = Query(20),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    expenses: ExpenseService = Depends(get_expense_service),
) -> dict:
    listing = expenses.list_driver_rent_payments(user, driver_id, page=page, limit=limit)

    def _payment(item) -> dict:
        trip = item.trip
        return {
            **dump(ExpensePayload, item.expense),
            "trip_number": trip.trip_number if trip is not None else None,
            "trip_id": trip.id if trip is not None else None,
        }

    return page_response(
        "payments",
        listing.page,
        _payment,
        driver=dump(DriverPayload, listing.driver),
        total_amount=format(listing.total_amount, "f"),
    )


__all__ = ["router"]
