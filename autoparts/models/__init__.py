"""Importing this package registers every table with ``Base.metadata``."""

from .audit import AuditEntry, AuditEntryType
from .invoice import Invoice, InvoiceLineItem, InvoiceStatus
from .part import Part
from .payment import Payment, PaymentMethod

__all__ = [
    "AuditEntry",
    "AuditEntryType",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "Part",
    "Payment",
    "PaymentMethod",
]
