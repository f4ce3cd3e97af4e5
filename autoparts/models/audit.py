from __future__ import annotations

import enum

from sqlalchemy import Column, Integer, Numeric, Text

from ..db.session import Base


class AuditEntryType(str, enum.Enum):
    BUY = "buy"
    SELL = "sell"
    PAYMENT = "payment"


class AuditEntry(Base):
    """Append-only record of a stock movement or a payment.

    Stock rows carry ``quantity_before``/``quantity_after``/``delta``; payment
    rows carry ``amount``. Only the newest ``AUDIT_LOG_LIMIT`` rows are kept.
    """

    __tablename__ = "audit_entries"

    id = Column(Integer, primary_key=True, index=True)
    entry_type = Column(Text, nullable=False, index=True)
    subject_type = Column(Text, nullable=False)
    subject_id = Column(Integer, nullable=True, index=True)
    subject_label = Column(Text, nullable=True)
    quantity_before = Column(Integer, nullable=True)
    quantity_after = Column(Integer, nullable=True)
    delta = Column(Integer, nullable=True)
    amount = Column(Numeric(12, 2), nullable=True)
    note = Column(Text, nullable=True)
    actor = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)


__all__ = ["AuditEntry", "AuditEntryType"]
