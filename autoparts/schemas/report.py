"""Response shapes for the dashboard, report and customer endpoints."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class DashboardOverview(BaseModel):
    total_parts: int
    low_stock_items: int
    inventory_value: Decimal
    total_invoices: int
    total_paid: Decimal
    total_pending: Decimal
    total_outstanding: Decimal
    total_payments: int
    payments_received: Decimal


class SalesSummaryRow(BaseModel):
    date: str
    invoice_count: int
    total_revenue: Decimal
    average_invoice: Decimal
    paid_invoices: int


class InventorySummaryRow(BaseModel):
    category: str
    total_parts: int
    total_quantity: int
    total_value: Decimal
    low_stock_items: int


class PaymentSummaryRow(BaseModel):
    payment_method: str
    total_payments: int
    total_amount: Decimal
    average_amount: Decimal


class CustomerOut(BaseModel):
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None


class CustomerHistoryRow(BaseModel):
    invoice_id: int
    invoice_number: Optional[str]
    status: str
    grand_total: Decimal
    paid_amount: Decimal
    created_at: str
    item_count: int
    total_items: int


class CustomerStatistics(BaseModel):
    customer_name: str
    total_invoices: int
    total_spent: Decimal
    average_invoice: Decimal
    last_purchase: Optional[str] = None
