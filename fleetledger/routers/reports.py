"""Read-only summaries: the landing dashboard and the diesel report."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fleetledger.core.security import AuthenticatedUser, get_optional_user
from fleetledger.schemas import ExpensePayload, TruckSummary
from fleetledger.services import DashboardService, ExpenseService

from .dependencies import dump, dump_all, get_dashboard_service, get_expense_service

router = APIRouter(prefix="/api", tags=["reports"])

_EMPTY_STATS = {
    "total_trips": 0,
    "active_trips": 0,
    "inactive_trips": 0,
    "total_cars": 0,
    "total_amount": "0.00",
}


@router.get("/dashboard")
def get_dashboard(
    user: AuthenticatedUser | None = Depends(get_optional_user),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> dict:
    if user is None:
        return {"success": True, "stats": dict(_EMPTY_STATS), "carriers": [], "total_accounts": 0}
    data = dashboard.get_dashboard_data(user)
    stats = data.stats
    return {
        "success": True,
        "generated_at": data.generated_at.isoformat(),
        "stats": {
            "total_trips": stats.total_trips,
            "active_trips": stats.active_trips,
            "inactive_trips": stats.inactive_trips,
            "total_cars": stats.total_cars,
            "total_amount": format(stats.total_amount, "f"),
        },
        "carriers": [
            {
                "id": carrier.id,
                "trip_number": carrier.trip_number,
                "name": carrier.name,
                "type": carrier.type,
                "car_count": carrier.car_count,
                "total_amount": format(carrier.total_amount, "f"),
            }
            for carrier in data.recent_carriers
        ],
        "total_accounts": data.total_accounts,
    }


@router.get("/diesel-expenses")
def get_diesel_expenses(
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    truck_ids: list[int] | None = Query(None),
    user_id: int | None = Query(None),
    user: AuthenticatedUser | None = Depends(get_optional_user),
    expenses: ExpenseService = Depends(get_expense_service),
) -> dict:
    empty_overall = {"total_liters": "0", "total_amount": "0.00", "expense_count": 0}
    if user is None:
        return {"success": True, "by_truck": [], "overall": empty_overall, "trucks": []}
    report = expenses.diesel_report(
        user,
        start_date=start_date,
        end_date=end_date,
        truck_ids=truck_ids,
        user_id=user_id,
    )
    return {
        "success": True,
        "by_truck": [
            {
                "truck": dump(TruckSummary, summary.truck),
                "expenses": dump_all(ExpensePayload, summary.expenses),
                "total_liters": format(summary.total_liters, "f"),
                "total_amount": format(summary.total_amount, "f"),
                "expense_count": summary.expense_count,
                "avg_price_per_liter": (
                    None
                    if summary.avg_price_per_liter is None
                    else format(summary.avg_price_per_liter, "f")
                ),
            }
            for summary in report.by_truck
        ],
        "overall": {
            "total_liters": format(report.total_liters, "f"),
            "total_amount": format(report.total_amount, "f"),
            "expense_count": report.expense_count,
        },
        "trucks": dump_all(TruckSummary, report.trucks),
    }


__all__ = ["router"]
