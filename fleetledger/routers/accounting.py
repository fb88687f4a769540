"""Ledger accounts, transactions and account statements."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import HTMLResponse

from fleetledger.core.logger import get_logger
from fleetledger.core.security import (
    AuthenticatedUser,
    get_authenticated_user,
    get_optional_user,
    require_super_admin,
)
from fleetledger.core.templates import templates
from fleetledger.schemas import (
    AccountCreate,
    AccountPayload,
    StatementLinePayload,
    StatementPayload,
    StatementRequest,
    TransactionCreate,
    TransactionPayload,
)
from fleetledger.services import LedgerService, Statement

from .dependencies import dump, empty_page, get_ledger_service, page_response

LOGGER = get_logger(__name__)
router = APIRouter(tags=["accounting"])


def _statement_payload(statement: Statement) -> dict:
    payload = StatementPayload(
        account=AccountPayload.model_validate(statement.account),
        opening_balance=statement.opening_balance,
        closing_balance=statement.closing_balance,
        start_date=statement.start_date,
        end_date=statement.end_date,
        transactions=[StatementLinePayload.from_line(line) for line in statement.lines],
    )
    return payload.model_dump(mode="json")


@router.get("/api/accounts")
def list_accounts(
    response: Response,
    page: int = Query(1),
    limit: int = Query(20),
    search: str | None = Query(None),
    currency: str | None = Query(None),
    user: AuthenticatedUser | None = Depends(get_optional_user),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    response.headers["Cache-Control"] = "private, max-age=10"
    if user is None:
        return empty_page("accounts", page, limit)
    result = ledger.list_accounts(page=page, limit=limit, search=search, currency=currency)
    return page_response("accounts", result, lambda account: dump(AccountPayload, account))


@router.post("/api/accounts", status_code=201)
def create_account(
    body: AccountCreate,
    user: AuthenticatedUser = Depends(require_super_admin),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    account = ledger.create_account(**body.model_dump())
    return {"success": True, "account": dump(AccountPayload, account)}


@router.post("/api/accounts/{slug}/recalculate")
def recalculate_account(
    slug: str,
    user: AuthenticatedUser = Depends(require_super_admin),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    account = ledger.recalculate_balance(slug)
    return {"success": True, "account": dump(AccountPayload, account)}


@router.get("/api/transactions")
def list_transactions(
    page: int = Query(1),
    limit: int = Query(20),
    account: str | None = Query(None),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    type: str | None = Query(None),
    search: str | None = Query(None),
    user: AuthenticatedUser | None = Depends(get_optional_user),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    if user is None:
        return empty_page("transactions", page, limit)
    result = ledger.list_transactions(
        page=page,
        limit=limit,
        account_slug=account,
        start_date=start_date,
        end_date=end_date,
        type=type,
        search=search,
    )
    return page_response("transactions", result, lambda txn: dump(TransactionPayload, txn))


@router.post("/api/transactions", status_code=201)
def create_transaction(
    body: TransactionCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    data = ledger.validate_transaction(**body.model_dump())
    txn = ledger.create_transaction(data)
    LOGGER.debug("Transaction created via API", extra={"by": user.username, "id": txn.id})
    return {"success": True, "transaction": dump(TransactionPayload, txn)}


@router.post("/api/print-statement")
def print_statement(
    body: StatementRequest,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    statement = ledger.get_statement(
        body.account_slug,
        start_date=body.filters.start_date,
        end_date=body.filters.end_date,
        search=body.filters.search,
    )
    return {"success": True, **_statement_payload(statement)}


@router.get("/accounting/{slug}/statement", response_class=HTMLResponse, include_in_schema=False)
def statement_page(
    request: Request,
    slug: str,
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    search: str | None = Query(None),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    ledger: LedgerService = Depends(get_ledger_service),
) -> HTMLResponse:
    """Render a printable statement for ``slug``."""

    statement = ledger.get_statement(
        slug, start_date=start_date, end_date=end_date, search=search
    )
    return templates.TemplateResponse(
        request, "statement.html", {"statement": statement, "user": user}
    )


__all__ = ["router"]
