"""Invoices and the payments recorded against them."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fleetledger.core.security import AuthenticatedUser, get_authenticated_user, get_optional_user
from fleetledger.schemas import (
    InvoiceCreate,
    InvoicePayload,
    PaymentCreate,
    PaymentPayload,
    ReceiptPayload,
)
from fleetledger.services import InvoiceService

from .dependencies import dump, empty_page, get_invoice_service, page_response

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


@router.get("")
def list_invoices(
    page: int = Query(1),
    limit: int = Query(10),
    company: str | None = Query(None),
    status: str | None = Query(None),
    search: str | None = Query(None),
    user_id: int | None = Query(None),
    user: AuthenticatedUser | None = Depends(get_optional_user),
    invoices: InvoiceService = Depends(get_invoice_service),
) -> dict:
    if user is None:
        return empty_page("invoices", page, limit)
    result = invoices.list_invoices(
        user,
        page=page,
        limit=limit,
        company=company,
        status=status,
        search=search,
        user_id=user_id,
    )
    return page_response("invoices", result, lambda invoice: dump(InvoicePayload, invoice))


@router.post("", status_code=201)
def create_invoice(
    body: InvoiceCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    invoices: InvoiceService = Depends(get_invoice_service),
) -> dict:
    invoice = invoices.create_invoice(user, body.model_dump())
    return {"success": True, "invoice": dump(InvoicePayload, invoice)}


@router.get("/{invoice_id}")
def get_invoice(
    invoice_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    invoices: InvoiceService = Depends(get_invoice_service),
) -> dict:
    return {"success": True, "invoice": dump(InvoicePayload, invoices.get_invoice(user, invoice_id))}


@router.delete("/{invoice_id}")
def delete_invoice(
    invoice_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    invoices: InvoiceService = Depends(get_invoice_service),
) -> dict:
    invoices.delete_invoice(user, invoice_id)
    return {"success": True, "message": "Invoice deleted successfully"}


@router.post("/{invoice_id}/payments", status_code=201)
def record_payment(
    invoice_id: int,
    body: PaymentCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    invoices: InvoiceService = Depends(get_invoice_service),
) -> dict:
    result = invoices.record_payment(user, invoice_id, body.model_dump())
    return {
        "success": True,
        "message": result.message,
        "invoice": dump(InvoicePayload, result.invoice),
        "payment": dump(PaymentPayload, result.payment),
        "receipt": dump(ReceiptPayload, result.receipt),
    }


@router.delete("/{invoice_id}/payments/{payment_id}")
def delete_payment(
    invoice_id: int,
    payment_id: int,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    invoices: InvoiceService = Depends(get_invoice_service),
) -> dict:
    invoice = invoices.delete_payment(user, invoice_id, payment_id)
    return {"success": True, "invoice": dump(InvoicePayload, invoice)}


__all__ = ["router"]
