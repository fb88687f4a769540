"""Repositories wrapping the SQLAlchemy queries used by the services."""

from .accounts import AccountRepository
from .base import BaseRepository
from .expenses import ExpenseRepository
from .fleet import FleetRepository
from .invoices import CompanyBalanceRepository, InvoiceRepository, ReceiptRepository

__all__ = [
    "AccountRepository",
    "BaseRepository",
    "CompanyBalanceRepository",
    "ExpenseRepository",
    "FleetRepository",
    "InvoiceRepository",
    "ReceiptRepository",
]
