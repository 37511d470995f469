"""Database models"""

from invoicechain.db.models.user import User, UserRole
from invoicechain.db.models.invoice import Invoice, InvoiceStatus, RiskCategory
from invoicechain.db.models.financing import Financing, FinancingStatus
from invoicechain.db.models.payment import Payment, PaymentType, BUYER_SETTLEMENT_TYPES

__all__ = [
    "User",
    "UserRole",
    "Invoice",
    "InvoiceStatus",
    "RiskCategory",
    "Financing",
    "FinancingStatus",
    "Payment",
    "PaymentType",
    "BUYER_SETTLEMENT_TYPES",
]
