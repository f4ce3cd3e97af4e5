"""Payment ledger.

An invoice's ``paid_amount`` is always the sum of the payments that point at
it, recomputed from the payment table each time one is recorded or removed.
A payment whose invoice no longer exists is still kept.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import utc_now_iso
from ..core.errors import LedgerError, NotFound, TransactionFailure, ValidationError
from ..core.money import quantize_currency, to_decimal
from ..models.audit import AuditEntryType
from ..models.invoice import Invoice
from ..models.payment import Payment, PaymentMethod
from ..services.changes import Change, ChangeFeed, change, publish
from .audit import append_entry
from .invoices import derive_status

logger = logging.getLogger(__name__)


def get_payment(db: Session, payment_id: int) -> Payment | None:
    return db.get(Payment, payment_id)


def require_payment(db: Session, payment_id: int) -> Payment:
    payment = db.get(Payment, payment_id)
    if payment is None:
        raise NotFound(f"Payment {payment_id} not found")
    return payment


def list_payments(db: Session, limit: int = 100, offset: int = 0) -> list[Payment]:
    stmt = select(Payment).order_by(desc(Payment.created_at), desc(Payment.id)).limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


def list_payments_for_invoice(db: Session, invoice_id: int) -> list[Payment]:
    stmt = (
        select(Payment)
        .where(Payment.invoice_id == invoice_id)
        .order_by(desc(Payment.created_at), desc(Payment.id))
    )
    return db.execute(stmt).scalars().all()


def recompute_invoice_payments(db: Session, invoice: Invoice) -> Invoice:
    """Set ``paid_amount`` from the payment table and derive the status. No commit."""

    db.flush()
    total = db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.invoice_id == invoice.id)
    ).scalar()
    invoice.paid_amount = quantize_currency(to_decimal(total))
    invoice.status = derive_status(invoice.paid_amount, invoice.grand_total).value
    invoice.updated_at = utc_now_iso()
    return invoice


def _clean_method(value: Any) -> str:
    if value in (None, ""):
        return PaymentMethod.CASH.value
    try:
        return PaymentMethod(str(value).strip().lower()).value
    except ValueError as exc:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(f"payment_method must be one of: {allowed}") from exc


def _audit_payment(db: Session, payment: Payment, *, amount: Decimal, note: str, actor: str | None) -> int | None:
    entry = append_entry(
        db,
        entry_type=AuditEntryType.PAYMENT,
        subject_type="invoice" if payment.invoice_id is not None else "payment",
        subject_id=payment.invoice_id if payment.invoice_id is not None else payment.id,
        subject_label=payment.invoice_number or payment.payer_name,
        amount=amount,
        note=note,
        actor=actor,
    )
    return entry.id if entry is not None else None


def record_payment(
    db: Session,
    payload: Mapping[str, Any],
    *,
    actor: str | None = None,
    feed: ChangeFeed | None = None,
) -> Payment:
    """Store a confirmed payment and bring its invoice's totals up to date.

    ``payload`` keys: ``invoice_id`` (optional), ``invoice_number``,
    ``payer_name``, ``amount``, ``payment_method``, ``reference``, ``notes``.
    """

    payer_name = (payload.get("payer_name") or "").strip()
    if not payer_name:
        raise ValidationError("payer_name is required")
    amount = to_decimal(payload.get("amount"), default=None)
    if amount is None or not amount.is_finite():
        raise ValidationError("amount must be a positive number")
    # Stored to the cent, so a sub-cent amount would land as 0.00.
    amount = quantize_currency(amount)
    if amount <= 0:
        raise ValidationError("amount must be a positive number")
    method = _clean_method(payload.get("payment_method"))
    invoice_id = payload.get("invoice_id")

    try:
        invoice = db.get(Invoice, invoice_id) if invoice_id is not None else None
        payment = Payment(
            invoice_id=invoice_id,
            invoice_number=payload.get("invoice_number") or (invoice.invoice_number if invoice else None),
            payer_name=payer_name,
            amount=amount,
            payment_method=method,
            reference=(payload.get("reference") or "").strip() or None,
            notes=payload.get("notes"),
            status="confirmed",
            recorded_by=actor,
            created_at=utc_now_iso(),
        )
        db.add(payment)
        db.flush()
        audit_id = _audit_payment(db, payment, amount=payment.amount, note=method, actor=actor)
        if invoice_id is not None and invoice is None:
            logger.warning(
                "payment.invoice_missing",
                extra={"extra_data": {"payment_id": payment.id, "invoice_id": invoice_id}},
            )
        if invoice is not None:
            recompute_invoice_payments(db, invoice)
        db.commit()
    except LedgerError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("payment.record_failed", extra={"extra_data": {"invoice_id": invoice_id}})
        raise TransactionFailure("Failed to record payment; no changes were saved") from exc

    db.refresh(payment)
    events: list[tuple[str, Change]] = [
        ("payments", change("recorded", payment.id)),
        ("transactions", change("appended", audit_id)),
    ]
    if invoice is not None:
        db.refresh(invoice)
        events.append(("invoices", change("recomputed", invoice.id)))
        logger.info(
            "payment.applied",
            extra={
                "extra_data": {
                    "payment_id": payment.id,
                    "invoice_id": invoice.id,
                    "paid_amount": str(invoice.paid_amount),
                    "status": invoice.status,
                }
            },
        )
    publish(feed, *events)
    return payment


def delete_payment(
    db: Session,
    payment: Payment,
    *,
    actor: str | None = None,
    feed: ChangeFeed | None = None,
) -> None:
    """Remove a payment and recompute the invoice it was applied to, if still present.

    The removal is logged as a ``payment`` audit entry with a negative amount.
    """

    invoice = db.get(Invoice, payment.invoice_id) if payment.invoice_id is not None else None
    payment_id = payment.id
    try:
        db.delete(payment)
        db.flush()
        audit_id = _audit_payment(
            db,
            payment,
            amount=-payment.amount,
            note=f"{payment.payment_method} removed",
            actor=actor,
        )
        if invoice is not None:
            recompute_invoice_payments(db, invoice)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise TransactionFailure("Failed to delete payment") from exc
    logger.info("payment.deleted", extra={"extra_data": {"payment_id": payment_id}})
    events: list[tuple[str, Change]] = [
        ("payments", change("deleted", payment_id)),
        ("transactions", change("appended", audit_id)),
    ]
    if invoice is not None:
        events.append(("invoices", change("recomputed", invoice.id)))
    publish(feed, *events)
