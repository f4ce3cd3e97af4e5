"""SQLAlchemy model for inventory parts (one row per SKU)."""

from __future__ import annotations

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from ..db.session import Base


class Part(Base):
    """A spare part on the shelf.

    ``quantity`` is quantity-on-hand and may never drop below zero; the check
    constraint backs up the conditional decrement in ``crud.parts``. Parts that
    appear on historical invoices are retired (``active = False``) instead of
    deleted so line items keep resolving.
    """

    __tablename__ = "parts"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_parts_quantity_non_negative"),
        CheckConstraint("min_stock_level >= 0", name="ck_parts_min_stock_non_negative"),
        CheckConstraint("discount >= 0 AND discount <= 100", name="ck_parts_discount_range"),
        CheckConstraint("cost >= 0", name="ck_parts_cost_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    part_name = Column(Text, nullable=False)
    part_number = Column(Text, nullable=False, unique=True, index=True)
    brand = Column(Text, nullable=True)
    cost = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(5, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=0)
    category = Column(Text, nullable=True, index=True)
    supplier = Column(Text, nullable=True)
    features = Column(Text, nullable=True)
    min_stock_level = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=True)

    line_items = relationship("InvoiceLineItem", back_populates="part")

    @property
    def is_low_stock(self) -> bool:
        return (self.quantity or 0) <= (self.min_stock_level or 0)


__all__ = ["Part"]
