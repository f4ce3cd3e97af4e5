from __future__ import annotations

import enum

from sqlalchemy import Column, Integer, Numeric, Text

from ..db.session import Base


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    CHECK = "check"
    BANK_TRANSFER = "bank_transfer"


class Payment(Base):
    """Money received, optionally against an invoice.

    ``invoice_id`` is deliberately not a foreign key: a payment outlives the
    invoice it was taken for and may never have had one at all.
    """

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, nullable=True, index=True)
    invoice_number = Column(Text, nullable=True)
    payer_name = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(Text, nullable=False, default=PaymentMethod.CASH.value)
    reference = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="confirmed")
    recorded_by = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)


__all__ = ["Payment", "PaymentMethod"]
