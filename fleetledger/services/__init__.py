"""Service layer: business rules over the repositories."""

from .company_balances import CompanyBalanceService
from .dashboard import DashboardData, DashboardService
from .expenses import ExpenseService
from .fleet import FleetService
from .invoices import InvoiceService, PaymentResult
from .ledger import LedgerService, NewTransaction, Statement, StatementLine
from .receipts import ReceiptService
from .users import UserService

__all__ = [
    "CompanyBalanceService",
    "DashboardData",
    "DashboardService",
    "ExpenseService",
    "FleetService",
    "InvoiceService",
    "LedgerService",
    "NewTransaction",
    "PaymentResult",
    "ReceiptService",
    "Statement",
    "StatementLine",
    "UserService",
]
