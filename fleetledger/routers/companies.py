"""Client company registry plus per-client credit and due balances."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fleetledger.core.security import AuthenticatedUser, get_authenticated_user, get_optional_user
from fleetledger.schemas import (
    BalanceAdjustment,
    CompanyBalancePayload,
    CompanyCreate,
    CompanyUpdate,
    CreditUpdate,
)
from fleetledger.services import CompanyBalanceService

from .dependencies import dump, dump_all, get_balance_service

router = APIRouter(prefix="/api/companies", tags=["companies"])


def _company(company) -> dict:
    return dump(CompanyBalancePayload, company)


@router.post("", status_code=201)
def create_company(
    body: CompanyCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    balances: CompanyBalanceService = Depends(get_balance_service),
) -> dict:
    company = balances.create_company(user, body.model_dump())
    return {"success": True, "company": _company(company)}


@router.patch("/{company_id}")
def update_company(
    company_id: int,
    body: CompanyUpdate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    balances: CompanyBalanceService = Depends(get_balance_service),
) -> dict:
    company = balances.rename_company(user, company_id, body.model_dump(exclude_unset=True))
    return {"success": True, "company": _company(company)}


@router.delete("/{company_id}")
def delete_company(
    company_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    balances: CompanyBalanceService = Depends(get_balance_service),
) -> dict:
    balances.delete_company(user, company_id)
    return {"success": True, "message": "Company deleted successfully"}


@router.get("/balances")
def list_balances(
    search: str | None = Query(None),
    user: AuthenticatedUser | None = Depends(get_optional_user),
    balances: CompanyBalanceService = Depends(get_balance_service),
) -> dict:
    if user is None:
        return {"success": True, "balances": []}
    return {
        "success": True,
        "balances": dump_all(CompanyBalancePayload, balances.list_balances(search=search)),
    }


@router.get("/{company_name}/balance")
def get_balance(
    company_name: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    balances: CompanyBalanceService = Depends(get_balance_service),
) -> dict:
    return {"success": True, "balance": _company(balances.get_balance(company_name))}


@router.put("/{company_name}/credit")
def set_credit(
    company_name: str,
    body: CreditUpdate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    balances: CompanyBalanceService = Depends(get_balance_service),
) -> dict:
    balance = balances.set_credit(user, company_name, body.credit_balance)
    return {"success": True, "balance": _company(balance)}


@router.post("/{company_name}/credit/adjust")
def adjust_credit(
    company_name: str,
    body: BalanceAdjustment,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    balances: CompanyBalanceService = Depends(get_balance_service),
) -> dict:
    balance = balances.adjust_credit(user, company_name, body.delta)
    return {"success": True, "balance": _company(balance)}


@router.post("/{company_name}/due/adjust")
def adjust_due(
    company_name: str,
    body: BalanceAdjustment,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    balances: CompanyBalanceService = Depends(get_balance_service),
) -> dict:
    balance = balances.adjust_due(user, company_name, body.delta)
    return {"success": True, "balance": _company(balance)}


__all__ = ["router"]
