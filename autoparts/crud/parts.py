"""Inventory store: part records and every change to quantity-on-hand.

Stock never goes negative. Decrements are issued as a single conditional
``UPDATE ... WHERE quantity >= n`` and a zero row count is reported as
``InsufficientStock``, so two requests racing for the last unit cannot both win.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, NamedTuple

from sqlalchemy import case, desc, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import utc_now_iso
from ..core.errors import InsufficientStock, NotFound, TransactionFailure, ValidationError
from ..core.money import HUNDRED, quantize_currency, to_decimal
from ..models.audit import AuditEntryType
from ..models.invoice import InvoiceLineItem
from ..models.part import Part
from ..services.changes import ChangeFeed, change, publish
from .audit import append_entry

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("part_name", "part_number", "brand", "category", "supplier", "features")
INT_FIELDS = ("quantity", "min_stock_level")


class StockMovement(NamedTuple):
    part: Part
    quantity_before: int
    quantity_after: int
    delta: int


# ---------- reads ----------


def list_parts(db: Session, limit: int = 100, offset: int = 0, include_retired: bool = False) -> list[Part]:
    stmt = select(Part)
    if not include_retired:
        stmt = stmt.where(Part.active.is_(True))
    stmt = stmt.order_by(desc(Part.created_at), desc(Part.id)).limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


def get_part(db: Session, part_id: int) -> Part | None:
    return db.get(Part, part_id)


def require_part(db: Session, part_id: int) -> Part:
    part = db.get(Part, part_id)
    if part is None:
        raise NotFound(f"Part {part_id} not found")
    return part


def search_parts(db: Session, query: str, limit: int = 100) -> list[Part]:
    """Case-insensitive match on name, part number or brand."""

    term = (query or "").strip()
    if not term:
        return []
    pattern = f"%{term}%"
    stmt = (
        select(Part)
        .where(
            Part.active.is_(True),
            or_(Part.part_name.ilike(pattern), Part.part_number.ilike(pattern), Part.brand.ilike(pattern)),
        )
        .order_by(desc(Part.created_at), desc(Part.id))
        .limit(limit)
    )
    return db.execute(stmt).scalars().all()


def list_low_stock(db: Session) -> list[Part]:
    stmt = (
        select(Part)
        .where(Part.active.is_(True), Part.quantity <= Part.min_stock_level)
        .order_by(Part.quantity, Part.id)
    )
    return db.execute(stmt).scalars().all()


# ---------- create / update / delete ----------


def _clean_payload(payload: Mapping[str, Any], *, partial: bool) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for key in TEXT_FIELDS:
        if key not in payload:
            continue
        value = payload[key]
        if isinstance(value, str):
            value = value.strip() or None
        data[key] = value

    for key in ("part_name", "part_number"):
        if (not partial or key in data) and not data.get(key):
            raise ValidationError(f"{key} is required")

    if "cost" in payload and payload["cost"] is not None:
        cost = to_decimal(payload["cost"], default=None)
        if cost is None or not cost.is_finite() or cost < 0:
            raise ValidationError("cost must be a non-negative amount")
        data["cost"] = quantize_currency(cost)
    if "discount" in payload and payload["discount"] is not None:
        discount = to_decimal(payload["discount"], default=None)
        if discount is None or not discount.is_finite() or discount < 0 or discount > HUNDRED:
            raise ValidationError("discount must be between 0 and 100")
        data["discount"] = discount
    for key in INT_FIELDS:
        if key not in payload or payload[key] is None:
            continue
        try:
            value = int(payload[key])
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{key} must be a whole number") from exc
        if value < 0:
            raise ValidationError(f"{key} cannot be negative")
        data[key] = value
    return data


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError("part_number already exists") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("parts.commit_failed", extra={"extra_data": {"action": action}})
        raise TransactionFailure(f"Failed to {action} part") from exc


def _part_number_taken(db: Session, part_number: str, exclude_id: int | None = None) -> bool:
    stmt = select(Part.id).where(Part.part_number == part_number)
    if exclude_id is not None:
        stmt = stmt.where(Part.id != exclude_id)
    return db.execute(stmt).first() is not None


def create_part(db: Session, payload: Mapping[str, Any], *, actor: str | None = None, feed: ChangeFeed | None = None) -> Part:
    data = _clean_payload(payload, partial=False)
    if _part_number_taken(db, data["part_number"]):
        raise ValidationError("part_number already exists")
    now = utc_now_iso()
    part = Part(**data, active=True, created_by=actor, created_at=now, updated_at=now)
    db.add(part)
    db.flush()
    entry = None
    if part.quantity:
        entry = append_entry(
            db,
            entry_type=AuditEntryType.BUY,
            subject_type="part",
            subject_id=part.id,
            subject_label=part.part_name,
            quantity_before=0,
            quantity_after=part.quantity,
            delta=part.quantity,
            note="initial stock",
            actor=actor,
        )
    audit_id = entry.id if entry is not None else None
    _commit(db, "create")
    db.refresh(part)
    publish(feed, ("inventory", change("created", part.id)), ("transactions", change("appended", audit_id)))
    return part


def update_part(
    db: Session,
    part: Part,
    payload: Mapping[str, Any],
    *,
    actor: str | None = None,
    feed: ChangeFeed | None = None,
) -> Part:
    """Apply only the fields present in ``payload``; absent keys keep their value."""

    data = _clean_payload(payload, partial=True)
    if not data:
        return part
    if "part_number" in data and _part_number_taken(db, data["part_number"], exclude_id=part.id):
        raise ValidationError("part_number already exists")

    before = part.quantity
    for key, value in data.items():
        setattr(part, key, value)
    part.updated_at = utc_now_iso()
    db.flush()
    entry = None
    if part.quantity != before:
        delta = part.quantity - before
        entry = append_entry(
            db,
            entry_type=AuditEntryType.BUY if delta > 0 else AuditEntryType.SELL,
            subject_type="part",
            subject_id=part.id,
            subject_label=part.part_name,
            quantity_before=before,
            quantity_after=part.quantity,
            delta=delta,
            note="manual correction",
            actor=actor,
        )
    audit_id = entry.id if entry is not None else None
    _commit(db, "update")
    db.refresh(part)
    publish(feed, ("inventory", change("updated", part.id)), ("transactions", change("appended", audit_id)))
    return part


def delete_part(db: Session, part: Part, *, feed: ChangeFeed | None = None) -> str:
    """Delete an unused part, or retire one that historical invoices still reference.

    Returns ``"deleted"`` or ``"retired"``.
    """

    part_id = part.id
    references = db.execute(
        select(func.count(InvoiceLineItem.id)).where(InvoiceLineItem.part_id == part.id)
    ).scalar()
    if references:
        part.active = False
        part.updated_at = utc_now_iso()
        outcome = "retired"
    else:
        db.delete(part)
        outcome = "deleted"
    _commit(db, "delete")
    logger.info("parts.removed", extra={"extra_data": {"part_id": part_id, "outcome": outcome}})
    publish(feed, ("inventory", change(outcome, part_id)))
    return outcome


# ---------- quantity changes ----------


def adjust_quantity(
    db: Session,
    part_id: int,
    delta: int,
    *,
    reason: AuditEntryType | str | None = None,
    note: str | None = None,
    actor: str | None = None,
    clamp: bool = False,
    feed: ChangeFeed | None = None,
) -> Part:
    """Receive (positive ``delta``) or remove stock for one part and commit.

    A decrement larger than the stock on hand raises ``InsufficientStock``.
    With ``clamp=True`` the quantity is floored at zero instead.
    """

    if not delta:
        raise ValidationError("delta must be non-zero")
    part = require_part(db, part_id)

    if delta > 0:
        stmt = update(Part).where(Part.id == part_id).values(quantity=Part.quantity + delta)
    elif clamp:
        new_quantity = case((Part.quantity + delta < 0, 0), else_=Part.quantity + delta)
        stmt = update(Part).where(Part.id == part_id).values(quantity=new_quantity)
    else:
        stmt = update(Part).where(Part.id == part_id, Part.quantity >= -delta).values(quantity=Part.quantity + delta)

    before = part.quantity
    result = db.execute(stmt.values(updated_at=utc_now_iso()).execution_options(synchronize_session=False))
    db.refresh(part)
    if result.rowcount != 1:
        available = part.quantity
        db.rollback()
        raise InsufficientStock(part.part_name, -delta, available, part_id=part_id)

    entry_type = reason or (AuditEntryType.BUY if delta > 0 else AuditEntryType.SELL)
    entry = append_entry(
        db,
        entry_type=entry_type,
        subject_type="part",
        subject_id=part.id,
        subject_label=part.part_name,
        quantity_before=before,
        quantity_after=part.quantity,
        delta=part.quantity - before,
        note=note,
        actor=actor,
    )
    audit_id = entry.id if entry is not None else None
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("parts.adjust_failed", extra={"extra_data": {"part_id": part_id, "delta": delta}})
        raise TransactionFailure("Failed to adjust stock") from exc
    db.refresh(part)
    publish(feed, ("inventory", change("adjusted", part.id)), ("transactions", change("appended", audit_id)))
    return part


def _requested_quantities(lines: Iterable[tuple[int, int]]) -> list[tuple[int, int]]:
    cleaned: list[tuple[int, int]] = []
    for part_id, quantity in lines:
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError("quantity must be a positive whole number")
        cleaned.append((int(part_id), quantity))
    return cleaned


def reserve_for_sale(db: Session, lines: Iterable[tuple[int, int]]) -> list[StockMovement]:
    """Check every ``(part_id, quantity)`` line, then decrement all of them.

    Nothing is written until every line has passed the stock check, with lines
    for the same part counted together. The session is left uncommitted: the
    caller owns the transaction and must roll back if this raises.
    """

    requested = _requested_quantities(lines)
    totals: dict[int, int] = {}
    for part_id, quantity in requested:
        totals[part_id] = totals.get(part_id, 0) + quantity

    parts: dict[int, Part] = {}
    for part_id, quantity in totals.items():
        part = require_part(db, part_id)
        if not part.active:
            raise ValidationError(f"{part.part_name} is retired and cannot be sold")
        if part.quantity < quantity:
            raise InsufficientStock(part.part_name, quantity, part.quantity, part_id=part.id)
        parts[part_id] = part

    now = utc_now_iso()
    movements: list[StockMovement] = []
    for part_id, quantity in requested:
        part = parts[part_id]
        result = db.execute(
            update(Part)
            .where(Part.id == part_id, Part.quantity >= quantity)
            .values(quantity=Part.quantity - quantity, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.refresh(part)
        if result.rowcount != 1:
            # Another transaction took the stock after our check.
            raise InsufficientStock(part.part_name, quantity, part.quantity, part_id=part.id)
        movements.append(StockMovement(part, part.quantity + quantity, part.quantity, -quantity))
    return movements


def release_stock(db: Session, lines: Iterable[tuple[int, int]]) -> list[StockMovement]:
    """Put sold units back on the shelf. Leaves the session uncommitted."""

    now = utc_now_iso()
    movements: list[StockMovement] = []
    for part_id, quantity in _requested_quantities(lines):
        part = db.get(Part, part_id)
        if part is None:
            logger.warning("parts.release_missing_part", extra={"extra_data": {"part_id": part_id, "quantity": quantity}})
            continue
        db.execute(
            update(Part)
            .where(Part.id == part_id)
            .values(quantity=Part.quantity + quantity, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.refresh(part)
        movements.append(StockMovement(part, part.quantity - quantity, part.quantity, quantity))
    return movements
