"""Client mirror snapshots.

A mirror holds four independently keyed JSON blobs: ``inventory``,
``invoices``, ``payments`` and ``transactions``. It has no durability of its
own; ``build_snapshot`` re-derives every collection from the database, which
stays the single source of truth.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models.audit import AuditEntry
from ..models.invoice import Invoice
from ..models.part import Part
from ..models.payment import Payment
from ..schemas.sync import MirrorSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_KEYS = ("inventory", "invoices", "payments", "transactions")


def build_snapshot(db: Session) -> MirrorSnapshot:
    parts = db.execute(select(Part).order_by(Part.id)).scalars().all()
    invoices = db.execute(select(Invoice).order_by(Invoice.id)).scalars().all()
    payments = db.execute(select(Payment).order_by(Payment.id)).scalars().all()
    # Oldest first, like an append-only log read from the start.
    recent = (
        db.execute(select(AuditEntry).order_by(desc(AuditEntry.id)).limit(settings.AUDIT_LOG_LIMIT)).scalars().all()
    )
    return MirrorSnapshot.model_validate(
        {
            "inventory": parts,
            "invoices": invoices,
            "payments": payments,
            "transactions": list(reversed(recent)),
        },
        from_attributes=True,
    )


def _blob_path(directory: Path, key: str) -> Path:
    return directory / f"{key}.json"


def write_snapshot(snapshot: MirrorSnapshot, directory: Path | None = None) -> Dict[str, int]:
    """Write one JSON file per key and return how many records each holds."""

    target = directory or settings.mirror_dir
    target.mkdir(parents=True, exist_ok=True)
    payload = snapshot.model_dump(mode="json")
    counts: Dict[str, int] = {}
    for key in SNAPSHOT_KEYS:
        records = payload.get(key) or []
        _blob_path(target, key).write_text(json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8")
        counts[key] = len(records)
    logger.info("snapshot.written", extra={"extra_data": {"directory": str(target), **counts}})
    return counts


def load_snapshot(directory: Path | None = None) -> Dict[str, list[Any]]:
    """Read the blobs back. A missing or corrupt blob loads as an empty list."""

    source = directory or settings.mirror_dir
    loaded: Dict[str, list[Any]] = {}
    for key in SNAPSHOT_KEYS:
        path = _blob_path(source, key)
        if not path.exists():
            loaded[key] = []
            continue
        try:
            records = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("snapshot.unreadable", extra={"extra_data": {"path": str(path)}})
            records = []
        loaded[key] = records if isinstance(records, list) else []
    return loaded
