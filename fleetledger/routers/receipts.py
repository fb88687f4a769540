"""Receipt lookup, printing and status tracking."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from fleetledger.core.security import AuthenticatedUser, get_authenticated_user, get_optional_user
from fleetledger.core.templates import templates
from fleetledger.schemas import ReceiptPayload, ReceiptStatusUpdate
from fleetledger.services import ReceiptService

from .dependencies import dump, dump_all, get_receipt_service

router = APIRouter(tags=["receipts"])


@router.get("/api/invoices/{invoice_id}/receipts")
def list_invoice_receipts(
    invoice_id: int,
    user: AuthenticatedUser | None = Depends(get_optional_user),
    receipts: ReceiptService = Depends(get_receipt_service),
) -> dict:
    if user is None:
        return {"success": True, "receipts": []}
    return {
        "success": True,
        "receipts": dump_all(ReceiptPayload, receipts.list_by_invoice(user, invoice_id)),
    }


@router.get("/api/companies/{company_name}/receipts")
def list_company_receipts(
    company_name: str,
    user: AuthenticatedUser | None = Depends(get_optional_user),
    receipts: ReceiptService = Depends(get_receipt_service),
) -> dict:
    if user is None:
        return {"success": True, "receipts": []}
    return {
        "success": True,
        "receipts": dump_all(ReceiptPayload, receipts.list_by_company(user, company_name)),
    }


@router.get("/api/receipts/{receipt_id}")
def get_receipt(
    receipt_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    receipts: ReceiptService = Depends(get_receipt_service),
) -> dict:
    return {"success": True, "receipt": dump(ReceiptPayload, receipts.get(user, receipt_id))}


@router.patch("/api/receipts/{receipt_id}/status")
def update_receipt_status(
    receipt_id: int,
    body: ReceiptStatusUpdate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    receipts: ReceiptService = Depends(get_receipt_service),
) -> dict:
    receipt = receipts.update_status(user, receipt_id, body.status, sent_to=body.sent_to)
    return {"success": True, "receipt": dump(ReceiptPayload, receipt)}


@router.delete("/api/receipts/{receipt_id}")
def delete_receipt(
    receipt_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    receipts: ReceiptService = Depends(get_receipt_service),
) -> dict:
    receipts.delete(user, receipt_id)
    return {"success": True, "message": "Receipt deleted successfully"}


@router.get("/receipts/{receipt_id}/print", response_class=HTMLResponse, include_in_schema=False)
def print_receipt(
    request: Request,
    receipt_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    receipts: ReceiptService = Depends(get_receipt_service),
) -> HTMLResponse:
    receipt = receipts.get(user, receipt_id)
    return templates.TemplateResponse(request, "receipt.html", {"receipt": receipt})


__all__ = ["router"]
