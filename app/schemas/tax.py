# app/schemas/tax.py
import uuid

from sqlmodel import SQLModel, Field


class TaxableLine(SQLModel):
    food_item_id: uuid.UUID
    category_id: uuid.UUID | None = None
    subtotal: float


class TaxBreakdownEntry(SQLModel):
    name: str
    rate: float
    amount: float


class TaxResult(SQLModel):
    tax_amount: float
    breakdown: list[TaxBreakdownEntry] = Field(default_factory=list)
