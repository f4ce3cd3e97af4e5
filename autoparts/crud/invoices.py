"""Invoice ledger: creation, lookup, manual status changes and deletion.

Creating an invoice writes the header, its line items, the stock decrements
and one audit entry per line as a single transaction. Deleting one puts the
stock back in the same all-or-nothing way.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import utc_now_iso
from ..core.config import settings
from ..core.errors import LedgerError, NotFound, TransactionFailure, ValidationError
from ..core.money import HUNDRED, quantize_currency, to_decimal
from ..models.audit import AuditEntryType
from ..models.invoice import Invoice, InvoiceLineItem, InvoiceStatus
from ..services.changes import ChangeFeed, change, publish
from .audit import append_entry
from .parts import release_stock, reserve_for_sale

logger = logging.getLogger(__name__)


def derive_status(paid_amount: Decimal, grand_total: Decimal) -> InvoiceStatus:
    """``paid`` once the total is covered, ``partial`` for any smaller payment."""

    paid = Decimal(paid_amount or 0)
    if paid >= Decimal(grand_total or 0):
        return InvoiceStatus.PAID
    if paid > 0:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.PENDING


def format_invoice_number(invoice_id: int, prefix: str | None = None) -> str:
    return f"{prefix or settings.INVOICE_PREFIX}-{invoice_id:06d}"


def get_invoice(db: Session, invoice_id: int) -> Invoice | None:
    return db.get(Invoice, invoice_id)


def require_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFound(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(
    db: Session,
    status: InvoiceStatus | str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Invoice]:
    stmt = select(Invoice)
    if status:
        stmt = stmt.where(Invoice.status == _coerce_status(status).value)
    stmt = stmt.order_by(desc(Invoice.created_at), desc(Invoice.id)).limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


def _coerce_status(value: InvoiceStatus | str) -> InvoiceStatus:
    try:
        return InvoiceStatus(value)
    except ValueError as exc:
        allowed = ", ".join(s.value for s in InvoiceStatus)
        raise ValidationError(f"status must be one of: {allowed}") from exc


def _clean_lines(items: Any) -> list[dict[str, Any]]:
    if not items:
        raise ValidationError("Invoice needs at least one line item")
    lines: list[dict[str, Any]] = []
    for raw in items:
        part_id = raw.get("part_id")
        quantity = raw.get("quantity")
        if part_id is None:
            raise ValidationError("part_id is required on every line item")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError("quantity must be a positive whole number")
        unit_price = None
        if raw.get("unit_price") is not None:
            unit_price = to_decimal(raw["unit_price"], default=None)
            if unit_price is None or not unit_price.is_finite() or unit_price < 0:
                raise ValidationError("unit_price must be a non-negative amount")
        lines.append({"part_id": int(part_id), "quantity": quantity, "unit_price": unit_price})
    return lines


def _clean_tax_rate(value: Any) -> Decimal:
    if value is None:
        return Decimal(settings.DEFAULT_TAX_RATE)
    rate = to_decimal(value, default=None)
    if rate is None or not rate.is_finite() or rate < 0 or rate > HUNDRED:
        raise ValidationError("tax_rate must be between 0 and 100")
    return rate


def create_invoice(
    db: Session,
    payload: Mapping[str, Any],
    *,
    actor: str | None = None,
    feed: ChangeFeed | None = None,
) -> Invoice:
    """Reserve stock and persist an invoice with its items in one transaction.

    ``payload`` carries ``customer_name`` (required), optional contact fields,
    ``items`` as ``{"part_id", "quantity", "unit_price"?}`` mappings, ``tax_rate``
    (percent), ``payment_method`` and ``notes``. A missing ``unit_price`` is
    snapshotted from the part's current cost.

    Raises ``ValidationError`` or ``InsufficientStock`` before anything is
    persisted, and ``TransactionFailure`` if the database rejects the commit.
    """

    customer_name = (payload.get("customer_name") or "").strip()
    if not customer_name:
        raise ValidationError("customer_name is required")
    lines = _clean_lines(payload.get("items"))
    tax_rate = _clean_tax_rate(payload.get("tax_rate"))

    try:
        movements = reserve_for_sale(db, [(line["part_id"], line["quantity"]) for line in lines])
        part_ids = [movement.part.id for movement in movements]

        items: list[InvoiceLineItem] = []
        subtotal = Decimal("0.00")
        for line, movement in zip(lines, movements):
            part = movement.part
            unit_price = quantize_currency(line["unit_price"] if line["unit_price"] is not None else Decimal(part.cost or 0))
            line_total = quantize_currency(unit_price * line["quantity"])
            subtotal += line_total
            items.append(
                InvoiceLineItem(
                    part_id=part.id,
                    part_name=part.part_name,
                    part_number=part.part_number,
                    quantity=line["quantity"],
                    unit_price=unit_price,
                    line_total=line_total,
                )
            )
        tax_amount = quantize_currency(subtotal * tax_rate / HUNDRED)

        now = utc_now_iso()
        invoice = Invoice(
            customer_name=customer_name,
            customer_email=(payload.get("customer_email") or "").strip() or None,
            customer_phone=(payload.get("customer_phone") or "").strip() or None,
            subtotal=subtotal,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            grand_total=subtotal + tax_amount,
            payment_method=payload.get("payment_method"),
            notes=payload.get("notes"),
            status=InvoiceStatus.PENDING.value,
            paid_amount=Decimal("0.00"),
            created_by=actor,
            created_at=now,
            updated_at=now,
            items=items,
        )
        db.add(invoice)
        db.flush()
        # The id comes from the database sequence, so numbers never collide.
        invoice.invoice_number = format_invoice_number(invoice.id)

        audit_ids: list[int | None] = []
        for item, movement in zip(items, movements):
            entry = append_entry(
                db,
                entry_type=AuditEntryType.SELL,
                subject_type="part",
                subject_id=movement.part.id,
                subject_label=movement.part.part_name,
                quantity_before=movement.quantity_before,
                quantity_after=movement.quantity_after,
                delta=movement.delta,
                amount=item.line_total,
                note=f"invoice {invoice.invoice_number}",
                actor=actor,
            )
            audit_ids.append(entry.id if entry is not None else None)
        db.commit()
    except LedgerError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("invoice.create_failed", extra={"extra_data": {"customer": customer_name}})
        raise TransactionFailure("Failed to create invoice; no changes were saved") from exc

    db.refresh(invoice)
    logger.info(
        "invoice.created",
        extra={
            "extra_data": {
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "lines": len(items),
                "grand_total": str(invoice.grand_total),
            }
        },
    )
    publish(
        feed,
        ("inventory", change("sold", *part_ids)),
        ("invoices", change("created", invoice.id)),
        ("transactions", change("appended", *audit_ids)),
    )
    return invoice


def update_invoice_status(
    db: Session,
    invoice: Invoice,
    status: InvoiceStatus | str,
    *,
    feed: ChangeFeed | None = None,
) -> Invoice:
    """Overwrite the status by hand. Payments and stock are left alone."""

    invoice.status = _coerce_status(status).value
    invoice.updated_at = utc_now_iso()
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise TransactionFailure("Failed to update invoice") from exc
    db.refresh(invoice)
    logger.info("invoice.status_overridden", extra={"extra_data": {"invoice_id": invoice.id, "status": invoice.status}})
    publish(feed, ("invoices", change("status_changed", invoice.id)))
    return invoice


def delete_invoice(
    db: Session,
    invoice_id: int,
    *,
    actor: str | None = None,
    feed: ChangeFeed | None = None,
) -> None:
    """Remove an invoice and its items, returning every sold unit to stock."""

    invoice = require_invoice(db, invoice_id)
    number = invoice.invoice_number
    try:
        movements = release_stock(db, [(item.part_id, item.quantity) for item in invoice.items])
        part_ids = [movement.part.id for movement in movements]
        audit_ids: list[int | None] = []
        for movement in movements:
            entry = append_entry(
                db,
                entry_type=AuditEntryType.BUY,
                subject_type="part",
                subject_id=movement.part.id,
                subject_label=movement.part.part_name,
                quantity_before=movement.quantity_before,
                quantity_after=movement.quantity_after,
                delta=movement.delta,
                note=f"invoice {number} deleted",
                actor=actor,
            )
            audit_ids.append(entry.id if entry is not None else None)
        db.delete(invoice)
        db.commit()
    except LedgerError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("invoice.delete_failed", extra={"extra_data": {"invoice_id": invoice_id}})
        raise TransactionFailure("Failed to delete invoice; no changes were saved") from exc

    logger.info("invoice.deleted", extra={"extra_data": {"invoice_id": invoice_id, "invoice_number": number}})
    publish(
        feed,
        ("inventory", change("restocked", *part_ids)),
        ("invoices", change("deleted", invoice_id)),
        ("transactions", change("appended", *audit_ids)),
    )
