# app/models/tax.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Tax(SQLModel, table=True):
    """
    Tax rule.

    applies_to:
      - order    : rate on the discounted order amount
      - category : rate on items whose category is listed in tax_applications
      - item     : rate on items listed in tax_applications
    """

    __tablename__ = "taxes"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tenant_id: uuid.UUID = Field(index=True)

    name: str = Field(max_length=255)
    rate: float = Field(ge=0, description="Percentage, e.g. 10 for 10%")

    applies_to: str = Field(default="order", max_length=50)
    applies_to_delivery: bool = Field(default=False)
    applies_to_service_charge: bool = Field(default=False)

    is_active: bool = Field(default=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    deleted_at: datetime | None = Field(default=None)


class TaxApplication(SQLModel, table=True):
    """
    Category or food item a category/item-scoped tax applies to.
    Exactly one of category_id / food_item_id is set.
    """

    __tablename__ = "tax_applications"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tax_id: uuid.UUID = Field(foreign_key="taxes.id", index=True)
    category_id: uuid.UUID | None = Field(default=None)
    food_item_id: uuid.UUID | None = Field(default=None)
