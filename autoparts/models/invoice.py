"""Invoice header and line-item models."""

from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from ..db.session import Base


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class Invoice(Base):
    """A billable document. Owns its line items; deleting it deletes them."""

    __tablename__ = "invoices"
    # AUTOINCREMENT keeps SQLite from reusing the id of a deleted last row, so
    # invoice numbers derived from the id stay unique forever.
    __table_args__ = (
        CheckConstraint("paid_amount >= 0", name="ck_invoices_paid_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(Text, nullable=True, unique=True, index=True)
    customer_name = Column(Text, nullable=False, index=True)
    customer_email = Column(Text, nullable=True)
    customer_phone = Column(Text, nullable=True)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    grand_total = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default=InvoiceStatus.PENDING.value, index=True)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    created_by = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=True)

    items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.id",
        lazy="selectin",
    )

    @property
    def balance_due(self) -> Decimal:
        remaining = Decimal(self.grand_total or 0) - Decimal(self.paid_amount or 0)
        return remaining if remaining > 0 else Decimal("0.00")


class InvoiceLineItem(Base):
    """One (part, quantity, price) entry. The price is a snapshot taken at sale time."""

    __tablename__ = "invoice_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_positive"),)

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    part_id = Column(Integer, ForeignKey("parts.id"), nullable=False, index=True)
    part_name = Column(Text, nullable=True)
    part_number = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="items")
    part = relationship("Part", back_populates="line_items")


__all__ = ["Invoice", "InvoiceLineItem", "InvoiceStatus"]
