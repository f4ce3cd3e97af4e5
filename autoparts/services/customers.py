from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..core.money import quantize_currency, to_decimal
from ..models.invoice import Invoice, InvoiceLineItem

# Customers are not a table of their own: they are whoever appears on invoices.


def list_customers(db: Session) -> List[Dict[str, Any]]:
    stmt = (
        select(Invoice.customer_name, Invoice.customer_email, Invoice.customer_phone)
        .distinct()
        .order_by(Invoice.customer_name, Invoice.customer_email, Invoice.customer_phone)
    )
    return [
        {"customer_name": row.customer_name, "customer_email": row.customer_email, "customer_phone": row.customer_phone}
        for row in db.execute(stmt).all()
    ]


def customer_history(db: Session, customer_name: str) -> List[Dict[str, Any]]:
    """Invoices for one customer with how many lines and units each carried."""

    stmt = (
        select(
            Invoice,
            func.count(InvoiceLineItem.id).label("item_count"),
            func.coalesce(func.sum(InvoiceLineItem.quantity), 0).label("total_items"),
        )
        .outerjoin(InvoiceLineItem, InvoiceLineItem.invoice_id == Invoice.id)
        .where(Invoice.customer_name == customer_name)
        .group_by(Invoice.id)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
    )
    history = []
    for invoice, item_count, total_items in db.execute(stmt).all():
        history.append(
            {
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "status": invoice.status,
                "grand_total": invoice.grand_total,
                "paid_amount": invoice.paid_amount,
                "created_at": invoice.created_at,
                "item_count": int(item_count or 0),
                "total_items": int(total_items or 0),
            }
        )
    return history


def customer_statistics(db: Session, customer_name: str) -> Dict[str, Any]:
    row = db.execute(
        select(
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.grand_total), 0),
            func.coalesce(func.avg(Invoice.grand_total), 0),
            func.max(Invoice.created_at),
        ).where(Invoice.customer_name == customer_name)
    ).one()
    if not row[0]:
        raise NotFound(f"Customer {customer_name} not found")
    return {
        "customer_name": customer_name,
        "total_invoices": int(row[0]),
        "total_spent": quantize_currency(to_decimal(row[1])),
        "average_invoice": quantize_currency(to_decimal(row[2])),
        "last_purchase": row[3],
    }
