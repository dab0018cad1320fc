# app/models/menu.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class FoodItem(SQLModel, table=True):
    """
    Menu entry.

    The order pipeline only reads price, category and stock fields; menu
    CRUD is owned elsewhere.
    """

    __tablename__ = "food_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tenant_id: uuid.UUID = Field(index=True)
    category_id: uuid.UUID | None = Field(default=None, index=True)

    name: str = Field(max_length=255)
    name_ar: str | None = Field(default=None, max_length=255)
    image_url: str | None = Field(default=None)

    base_price: float = Field(ge=0, description="Price before variation/add-ons")

    # unlimited | limited | daily_limited
    stock_type: str = Field(default="unlimited")
    stock_quantity: int = Field(default=0)

    is_active: bool = Field(default=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    deleted_at: datetime | None = Field(default=None)


class FoodItemVariation(SQLModel, table=True):
    """
    Size/option of a food item, e.g. Size: Large (+2.00).
    """

    __tablename__ = "food_item_variations"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    food_item_id: uuid.UUID = Field(foreign_key="food_items.id", index=True)

    variation_group: str = Field(max_length=255)
    variation_name: str = Field(max_length=255)

    price_adjustment: float = Field(
        default=0.0,
        description="Added to base price; can be negative",
    )


class AddOn(SQLModel, table=True):
    """
    Optional extra (cheese, sauce, ...) priced per unit.
    """

    __tablename__ = "add_ons"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tenant_id: uuid.UUID = Field(index=True)

    name: str = Field(max_length=255)
    price: float = Field(default=0.0, ge=0)

    is_active: bool = Field(default=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    deleted_at: datetime | None = Field(default=None)


class FoodItemDiscount(SQLModel, table=True):
    """
    Promotional discount on a single food item.

    Active when is_active and now is inside [start_date, end_date]; a
    missing bound leaves that side open.
    """

    __tablename__ = "food_item_discounts"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    food_item_id: uuid.UUID = Field(foreign_key="food_items.id", index=True)

    # percentage | fixed
    discount_type: str = Field(max_length=50)
    discount_value: float = Field(ge=0)

    start_date: datetime | None = Field(default=None)
    end_date: datetime | None = Field(default=None)

    reason: str | None = Field(default=None, max_length=255)
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
