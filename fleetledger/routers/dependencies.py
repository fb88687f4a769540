"""Shared FastAPI dependency definitions and response helpers."""
from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from fastapi import Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fleetledger.core.pagination import Page, normalize_paging
from fleetledger.db.session import get_db_session
from fleetledger.services import (
    CompanyBalanceService,
    DashboardService,
    ExpenseService,
    FleetService,
    InvoiceService,
    LedgerService,
    ReceiptService,
    UserService,
)


def get_ledger_service(session: Session = Depends(get_db_session)) -> LedgerService:
    return LedgerService(session)


def get_invoice_service(session: Session = Depends(get_db_session)) -> InvoiceService:
    return InvoiceService(session)


def get_receipt_service(session: Session = Depends(get_db_session)) -> ReceiptService:
    return ReceiptService(session)


def get_balance_service(session: Session = Depends(get_db_session)) -> CompanyBalanceService:
    return CompanyBalanceService(session)


def get_dashboard_service(session: Session = Depends(get_db_session)) -> DashboardService:
    return DashboardService(session)


def get_expense_service(session: Session = Depends(get_db_session)) -> ExpenseService:
    return ExpenseService(session)


def get_fleet_service(session: Session = Depends(get_db_session)) -> FleetService:
    return FleetService(session)


def get_user_service(session: Session = Depends(get_db_session)) -> UserService:
    return UserService(session)


def dump(schema: type[BaseModel], obj: Any) -> dict[str, Any]:
    """Serialize an ORM object through ``schema`` into JSON-ready data."""

    return schema.model_validate(obj).model_dump(mode="json")


def dump_all(schema: type[BaseModel], items: Iterable[Any]) -> list[dict[str, Any]]:
    return [dump(schema, item) for item in items]


def page_response(
    key: str,
    page: Page[Any],
    serialize: Callable[[Any], dict[str, Any]],
    **extra: Any,
) -> dict[str, Any]:
    return {
        "success": True,
        key: [serialize(item) for item in page.items],
        "pagination": page.as_dict(),
        **extra,
    }


def empty_page(key: str, page: object = 1, limit: object = 20) -> dict[str, Any]:
    """Response for list reads made without a session."""

    resolved_page, resolved_limit = normalize_paging(page, limit)
    return page_response(
        key, Page(items=[], total=0, page=resolved_page, limit=resolved_limit), dict
    )


__all__ = [
    "dump",
    "dump_all",
    "empty_page",
    "get_balance_service",
    "get_dashboard_service",
    "get_expense_service",
    "get_fleet_service",
    "get_invoice_service",
    "get_ledger_service",
    "get_receipt_service",
    "get_user_service",
    "page_response",
]
