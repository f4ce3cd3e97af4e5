"""Pydantic schemas for inventory parts."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PartBase(BaseModel):
    part_name: str
    part_number: str
    brand: Optional[str] = None
    cost: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    quantity: int = Field(default=0, ge=0)
    category: Optional[str] = None
    supplier: Optional[str] = None
    features: Optional[str] = None
    min_stock_level: int = Field(default=0, ge=0)


class PartCreate(PartBase):
    pass


class PartUpdate(BaseModel):
    part_name: Optional[str] = None
    part_number: Optional[str] = None
    brand: Optional[str] = None
    cost: Optional[Decimal] = Field(default=None, ge=0)
    discount: Optional[Decimal] = Field(default=None, ge=0, le=100)
    quantity: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None
    supplier: Optional[str] = None
    features: Optional[str] = None
    min_stock_level: Optional[int] = Field(default=None, ge=0)


class PartOut(PartBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    active: bool
    is_low_stock: bool = False
    created_by: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None


class StockAdjustment(BaseModel):
    """Receive stock (positive ``delta``) or write it off (negative)."""

    delta: int
    reason: Optional[Literal["buy", "sell"]] = None
    note: Optional[str] = None
    clamp: bool = False

    @field_validator("delta")
    @classmethod
    def non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("delta must be non-zero")
        return value


class PartRemoval(BaseModel):
    status: Literal["deleted", "retired"]
    part_id: int
