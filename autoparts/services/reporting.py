"""Dashboard and report aggregates over parts, invoices and payments."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from ..core.money import quantize_currency, to_decimal
from ..models.invoice import Invoice, InvoiceStatus
from ..models.part import Part
from ..models.payment import Payment

# Timestamps are stored as ISO-8601 text; the first ten characters are the day.
invoice_day = func.substr(Invoice.created_at, 1, 10)
payment_day = func.substr(Payment.created_at, 1, 10)


def _money(value: Any) -> Decimal:
    return quantize_currency(to_decimal(value))


def dashboard_overview(db: Session) -> Dict[str, Any]:
    """Headline numbers for the billing dashboard."""

    low_stock = case((Part.quantity <= Part.min_stock_level, 1), else_=0)
    parts_row = db.execute(
        select(
            func.count(Part.id),
            func.coalesce(func.sum(low_stock), 0),
            func.coalesce(func.sum(Part.quantity * Part.cost), 0),
        ).where(Part.active.is_(True))
    ).one()
    invoice_row = db.execute(
        select(
            func.count(Invoice.id),
            func.coalesce(func.sum(case((Invoice.status == InvoiceStatus.PAID.value, Invoice.grand_total), else_=0)), 0),
            func.coalesce(func.sum(case((Invoice.status == InvoiceStatus.PENDING.value, Invoice.grand_total), else_=0)), 0),
            func.coalesce(
                func.sum(
                    case(
                        (Invoice.status != InvoiceStatus.PAID.value, Invoice.grand_total - Invoice.paid_amount),
                        else_=0,
                    )
                ),
                0,
            ),
        )
    ).one()
    payments_row = db.execute(select(func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))).one()

    return {
        "total_parts": int(parts_row[0] or 0),
        "low_stock_items": int(parts_row[1] or 0),
        "inventory_value": _money(parts_row[2]),
        "total_invoices": int(invoice_row[0] or 0),
        "total_paid": _money(invoice_row[1]),
        "total_pending": _money(invoice_row[2]),
        "total_outstanding": _money(invoice_row[3]),
        "total_payments": int(payments_row[0] or 0),
        "payments_received": _money(payments_row[1]),
    }


def sales_summary(db: Session, start: str | None = None, end: str | None = None) -> List[Dict[str, Any]]:
    """Per-day invoice count and revenue, newest day first.

    ``start``/``end`` are inclusive ISO dates (``YYYY-MM-DD``); both are needed
    for the range to apply.
    """

    stmt = select(
        invoice_day.label("date"),
        func.count(Invoice.id).label("invoice_count"),
        func.coalesce(func.sum(Invoice.grand_total), 0).label("total_revenue"),
        func.coalesce(func.avg(Invoice.grand_total), 0).label("average_invoice"),
        func.sum(case((Invoice.status == InvoiceStatus.PAID.value, 1), else_=0)).label("paid_invoices"),
    )
    if start and end:
        stmt = stmt.where(invoice_day >= start[:10], invoice_day <= end[:10])
    stmt = stmt.group_by(invoice_day).order_by(invoice_day.desc())
    return [
        {
            "date": row.date,
            "invoice_count": int(row.invoice_count or 0),
            "total_revenue": _money(row.total_revenue),
            "average_invoice": _money(row.average_invoice),
            "paid_invoices": int(row.paid_invoices or 0),
        }
        for row in db.execute(stmt).all()
    ]


def inventory_summary(db: Session) -> List[Dict[str, Any]]:
    """Stock count and value per category, most valuable first."""

    value = func.coalesce(func.sum(Part.quantity * Part.cost), 0)
    stmt = (
        select(
            Part.category,
            func.count(Part.id).label("total_parts"),
            func.coalesce(func.sum(Part.quantity), 0).label("total_quantity"),
            value.label("total_value"),
            func.sum(case((Part.quantity <= Part.min_stock_level, 1), else_=0)).label("low_stock_items"),
        )
        .where(Part.active.is_(True))
        .group_by(Part.category)
        .order_by(value.desc())
    )
    return [
        {
            "category": row.category or "Uncategorized",
            "total_parts": int(row.total_parts or 0),
            "total_quantity": int(row.total_quantity or 0),
            "total_value": _money(row.total_value),
            "low_stock_items": int(row.low_stock_items or 0),
        }
        for row in db.execute(stmt).all()
    ]


def payment_summary(db: Session) -> List[Dict[str, Any]]:
    total = func.coalesce(func.sum(Payment.amount), 0)
    stmt = (
        select(
            Payment.payment_method,
            func.count(Payment.id).label("total_payments"),
            total.label("total_amount"),
            func.coalesce(func.avg(Payment.amount), 0).label("average_amount"),
        )
        .group_by(Payment.payment_method)
        .order_by(total.desc())
    )
    return [
        {
            "payment_method": row.payment_method,
            "total_payments": int(row.total_payments or 0),
            "total_amount": _money(row.total_amount),
            "average_amount": _money(row.average_amount),
        }
        for row in db.execute(stmt).all()
    ]


def payment_statistics(db: Session) -> List[Dict[str, Any]]:
    """Payment count and total per method and day, newest day first."""

    stmt = (
        select(
            payment_day.label("payment_date"),
            Payment.payment_method,
            func.count(Payment.id).label("total_payments"),
            func.coalesce(func.sum(Payment.amount), 0).label("total_amount"),
        )
        .group_by(Payment.payment_method, payment_day)
        .order_by(payment_day.desc(), Payment.payment_method)
    )
    return [
        {
            "payment_date": row.payment_date,
            "payment_method": row.payment_method,
            "total_payments": int(row.total_payments or 0),
            "total_amount": _money(row.total_amount),
        }
        for row in db.execute(stmt).all()
    ]
