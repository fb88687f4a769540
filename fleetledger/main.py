"""FastAPI application instance and error translation."""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fleetledger import __version__
from fleetledger.core import get_logger
from fleetledger.core.errors import FleetLedgerError
from fleetledger.core.security import get_security_provider
from fleetledger.middleware.auth import AuthMiddleware
from fleetledger.routers import (
    accounting_router,
    auth_router,
    carriers_router,
    companies_router,
    drivers_router,
    invoices_router,
    receipts_router,
    reports_router,
    trucks_router,
    users_router,
)

LOGGER = get_logger(__name__)


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(FleetLedgerError)
    async def handle_domain_error(request: Request, exc: FleetLedgerError) -> JSONResponse:
        if exc.status_code >= 500:
            LOGGER.error(
                "Request failed",
                extra={"path": request.url.path, "error": exc.message},
            )
        else:
            LOGGER.info(
                "Request rejected",
                extra={"path": request.url.path, "status": exc.status_code, "error": exc.message},
            )
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, _validation_message(exc))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(title="Fleet Ledger", version=__version__)
    app.add_middleware(AuthMiddleware, security_provider=get_security_provider())
    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(accounting_router)
    app.include_router(invoices_router)
    app.include_router(receipts_router)
    app.include_router(companies_router)
    app.include_router(carriers_router)
    app.include_router(trucks_router)
    app.include_router(drivers_router)
    app.include_router(users_router)
    app.include_router(reports_router)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict:
        return {"success": True, "status": "ok"}

    LOGGER.info("FastAPI application initialised")
    return app


app = create_app()
