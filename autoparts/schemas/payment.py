from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PaymentCreate(BaseModel):
    invoice_id: Optional[int] = None
    invoice_number: Optional[str] = None
    payer_name: Optional[str] = None
    amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: Optional[int] = None
    invoice_number: Optional[str] = None
    payer_name: str
    amount: Decimal
    payment_method: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    status: str
    recorded_by: Optional[str] = None
    created_at: str


class PaymentStatisticsRow(BaseModel):
    payment_date: str
    payment_method: str
    total_payments: int
    total_amount: Decimal
