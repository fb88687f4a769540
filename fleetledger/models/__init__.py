"""ORM models; importing this package registers every table on ``Base.metadata``."""

from .accounting import Account, Transaction, TransactionType
from .base import Base, TimestampMixin
from .expenses import TRUCK_EXPENSE_CATEGORIES, Expense, ExpenseCategory
from .fleet import Car, Carrier, CarrierType, Driver, Truck, truck_driver
from .invoices import CompanyBalance, Invoice, Payment, PaymentStatus, Receipt, ReceiptStatus, invoice_car
from .users import User, UserRole

__all__ = [
    "Account",
    "Base",
    "Car",
    "Carrier",
    "CarrierType",
    "CompanyBalance",
    "Driver",
    "Expense",
    "ExpenseCategory",
    "Invoice",
    "Payment",
    "PaymentStatus",
    "Receipt",
    "ReceiptStatus",
    "TRUCK_EXPENSE_CATEGORIES",
    "TimestampMixin",
    "Transaction",
    "TransactionType",
    "Truck",
    "User",
    "UserRole",
    "invoice_car",
    "truck_driver",
]
