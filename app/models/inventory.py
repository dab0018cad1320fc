# app/models/inventory.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Ingredient(SQLModel, table=True):
    """
    Stock-keeping raw material (flour, cheese, ...).
    """

    __tablename__ = "ingredients"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tenant_id: uuid.UUID = Field(index=True)

    name: str = Field(max_length=255)
    unit_of_measurement: str = Field(default="piece", max_length=50)

    current_stock: float = Field(default=0.0, ge=0)
    minimum_threshold: float = Field(default=0.0, ge=0)

    is_active: bool = Field(default=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime | None = Field(default=None)
    deleted_at: datetime | None = Field(default=None)


class Recipe(SQLModel, table=True):
    """
    Quantity of one ingredient consumed by one portion of a food item.
    """

    __tablename__ = "recipes"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    food_item_id: uuid.UUID = Field(foreign_key="food_items.id", index=True)
    ingredient_id: uuid.UUID = Field(foreign_key="ingredients.id", index=True)

    quantity: float = Field(gt=0, description="Per portion")
    unit: str = Field(default="piece", max_length=50)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class StockTransaction(SQLModel, table=True):
    """
    Ledger row for every stock movement.

    Order deductions are `usage` rows with a negative quantity and the
    order id as reference_id.
    """

    __tablename__ = "stock_transactions"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tenant_id: uuid.UUID = Field(index=True)
    ingredient_id: uuid.UUID = Field(foreign_key="ingredients.id", index=True)

    # purchase | usage | adjustment | transfer_in | transfer_out | waste
    transaction_type: str = Field(max_length=50)
    quantity: float

    reason: str | None = Field(default=None)
    reference_id: str | None = Field(default=None, index=True)

    created_by: uuid.UUID | None = Field(default=None)

    transaction_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
