"""Pydantic schemas for invoices and their line items.

Required business fields are optional here on purpose: the ledger rejects them
with a 400 ``validation_error`` rather than letting the request parser answer 422.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.invoice import InvoiceStatus


class InvoiceLineIn(BaseModel):
    part_id: Optional[int] = None
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = None


class InvoiceCreate(BaseModel):
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    items: list[InvoiceLineIn] = Field(default_factory=list)
    tax_rate: Optional[Decimal] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "customer_name": "Ravi Kumar",
                "customer_phone": "+91 98450 00000",
                "items": [{"part_id": 12, "quantity": 3, "unit_price": "100.00"}],
                "tax_rate": "18",
                "payment_method": "cash",
            }
        }
    }


class InvoiceLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    part_id: int
    part_name: Optional[str] = None
    part_number: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: Optional[str]
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    status: InvoiceStatus
    paid_amount: Decimal
    balance_due: Decimal
    created_by: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None
    items: list[InvoiceLineOut] = Field(default_factory=list)


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
