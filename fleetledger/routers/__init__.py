"""FastAPI routers for the fleet ledger application."""

from .accounting import router as accounting_router
from .auth import router as auth_router
from .carriers import router as carriers_router
from .companies import router as companies_router
from .drivers import router as drivers_router
from .invoices import router as invoices_router
from .receipts import router as receipts_router
from .reports import router as reports_router
from .trucks import router as trucks_router
from .users import router as users_router

__all__ = [
    "accounting_router",
    "auth_router",
    "carriers_router",
    "companies_router",
    "drivers_router",
    "invoices_router",
    "receipts_router",
    "reports_router",
    "trucks_router",
    "users_router",
]
