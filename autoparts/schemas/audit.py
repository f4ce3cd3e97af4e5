from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuditEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entry_type: str
    subject_type: str
    subject_id: Optional[int] = None
    subject_label: Optional[str] = None
    quantity_before: Optional[int] = None
    quantity_after: Optional[int] = None
    delta: Optional[int] = None
    amount: Optional[Decimal] = None
    note: Optional[str] = None
    actor: Optional[str] = None
    created_at: str
