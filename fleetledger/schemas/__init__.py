"""Pydantic request and response schemas for the JSON API."""

from .accounting import (
    AccountCreate,
    AccountPayload,
    StatementFilters,
    StatementLinePayload,
    StatementPayload,
    StatementRequest,
    TransactionCreate,
    TransactionPayload,
)
from .fleet import (
    CarBulkCreate,
    CarCreate,
    CarPayload,
    CarrierCreate,
    CarrierPayload,
    CarrierUpdate,
    DriverCreate,
    DriverPayload,
    DriverUpdate,
    ExpenseCreate,
    ExpensePayload,
    ExpenseUpdate,
    TruckCreate,
    TruckPayload,
    TruckSummary,
    TruckUpdate,
)
from .invoices import (
    BalanceAdjustment,
    CompanyBalancePayload,
    CompanyCreate,
    CompanyUpdate,
    CreditUpdate,
    InvoiceCreate,
    InvoicePayload,
    PaymentCreate,
    PaymentPayload,
    ReceiptPayload,
    ReceiptStatusUpdate,
)
from .users import LoginRequest, PrincipalPayload, ProfileUpdate, UserCreate, UserPayload

__all__ = [
    "AccountCreate",
    "AccountPayload",
    "BalanceAdjustment",
    "CarBulkCreate",
    "CarCreate",
    "CarPayload",
    "CarrierCreate",
    "CarrierPayload",
    "CarrierUpdate",
    "CompanyBalancePayload",
    "CompanyCreate",
    "CompanyUpdate",
    "CreditUpdate",
    "DriverCreate",
    "DriverPayload",
    "DriverUpdate",
    "ExpenseCreate",
    "ExpensePayload",
    "ExpenseUpdate",
    "InvoiceCreate",
    "InvoicePayload",
    "LoginRequest",
    "PaymentCreate",
    "PaymentPayload",
    "PrincipalPayload",
    "ProfileUpdate",
    "ReceiptPayload",
    "ReceiptStatusUpdate",
    "StatementFilters",
    "StatementLinePayload",
    "StatementPayload",
    "StatementRequest",
    "TransactionCreate",
    "TransactionPayload",
    "TruckCreate",
    "TruckPayload",
    "TruckSummary",
    "TruckUpdate",
    "UserCreate",
    "UserPayload",
]
