"""Bounded, append-only audit log of stock movements and payments."""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import delete, desc, func, select
from sqlalchemy.orm import Session

from ..core.clock import utc_now_iso
from ..core.config import settings
from ..models.audit import AuditEntry, AuditEntryType

logger = logging.getLogger(__name__)


def append_entry(
    db: Session,
    *,
    entry_type: AuditEntryType | str,
    subject_type: str,
    subject_id: int | None = None,
    subject_label: str | None = None,
    quantity_before: int | None = None,
    quantity_after: int | None = None,
    delta: int | None = None,
    amount: Decimal | None = None,
    note: str | None = None,
    actor: str | None = None,
    limit: int | None = None,
) -> AuditEntry | None:
    """Add an entry inside a SAVEPOINT and trim the log to its size limit.

    The entry joins the caller's transaction and is committed with it. A failure
    here only rolls back the savepoint: it is logged and ``None`` is returned so
    the stock or payment operation that triggered it carries on.
    """

    try:
        entry = AuditEntry(
            entry_type=AuditEntryType(entry_type).value,
            subject_type=subject_type,
            subject_id=subject_id,
            subject_label=subject_label,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            delta=delta,
            amount=amount,
            note=note,
            actor=actor,
            created_at=utc_now_iso(),
        )
        with db.begin_nested():
            db.add(entry)
            db.flush()
            _trim(db, limit or settings.AUDIT_LOG_LIMIT)
    except Exception:
        logger.exception(
            "audit.append_failed",
            extra={"extra_data": {"entry_type": str(entry_type), "subject_type": subject_type, "subject_id": subject_id}},
        )
        return None
    return entry


def _trim(db: Session, limit: int) -> None:
    # FIFO by id: find the oldest id that still fits and drop everything older.
    cutoff = db.execute(
        select(AuditEntry.id).order_by(desc(AuditEntry.id)).offset(limit - 1).limit(1)
    ).scalar()
    if cutoff is not None:
        db.execute(delete(AuditEntry).where(AuditEntry.id < cutoff).execution_options(synchronize_session=False))


def list_entries(
    db: Session,
    limit: int = 100,
    offset: int = 0,
    entry_type: AuditEntryType | str | None = None,
) -> list[AuditEntry]:
    """Newest entries first, optionally restricted to one entry type."""

    stmt = select(AuditEntry)
    if entry_type:
        stmt = stmt.where(AuditEntry.entry_type == AuditEntryType(entry_type).value)
    stmt = stmt.order_by(desc(AuditEntry.id)).limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


def count_entries(db: Session) -> int:
    return int(db.execute(select(func.count(AuditEntry.id))).scalar() or 0)
