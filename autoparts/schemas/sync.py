from __future__ import annotations

from pydantic import BaseModel, Field

from .audit import AuditEntryOut
from .invoice import InvoiceOut
from .part import PartOut
from .payment import PaymentOut


class MirrorSnapshot(BaseModel):
    """The four independently keyed collections a client mirror keeps."""

    inventory: list[PartOut] = Field(default_factory=list)
    invoices: list[InvoiceOut] = Field(default_factory=list)
    payments: list[PaymentOut] = Field(default_factory=list)
    transactions: list[AuditEntryOut] = Field(default_factory=list)


class SnapshotWritten(BaseModel):
    directory: str
    counts: dict[str, int]
