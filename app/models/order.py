# app/models/order.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    One customer transaction at a branch.

    Money columns are 2-decimal currency units and always satisfy:

        total_amount = max(0, subtotal - discount_amount
                              + tax_amount + delivery_charge)

    total_amount is recomputed whenever the others change, never edited.
    Deleted orders keep their row with deleted_at set.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tenant_id: uuid.UUID = Field(index=True)

    branch_id: uuid.UUID = Field(
        foreign_key="branches.id",
        index=True,
    )

    counter_id: uuid.UUID | None = Field(default=None)

    # No foreign key: any table identifier is accepted
    table_id: uuid.UUID | None = Field(default=None, index=True)

    customer_id: uuid.UUID | None = Field(default=None, index=True)

    cashier_id: uuid.UUID | None = Field(
        default=None,
        description="Staff user who created the order",
    )

    order_number: str = Field(
        max_length=50,
        index=True,
        description="{branch_code}-{YYYYMMDD}-{seq4}",
    )

    token_number: str | None = Field(default=None, max_length=50)

    # dine_in | takeaway | delivery
    order_type: str = Field(max_length=50)

    # pending | preparing | ready | served | completed | cancelled
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    # unpaid | paid
    payment_status: str = Field(default="unpaid", index=True)

    # pay_first | pay_after
    payment_timing: str = Field(default="pay_first")

    subtotal: float = Field(default=0.0, ge=0)
    discount_amount: float = Field(
        default=0.0,
        ge=0,
        description="Item discounts + manual discount + coupon discount",
    )
    tax_amount: float = Field(default=0.0, ge=0)
    delivery_charge: float = Field(default=0.0, ge=0)
    total_amount: float = Field(default=0.0, ge=0)

    coupon_code: str | None = Field(default=None, max_length=50)
    coupon_discount: float | None = Field(default=None)

    special_instructions: str | None = Field(default=None)

    placed_at: datetime | None = Field(default=None)
    paid_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
    cancelled_at: datetime | None = Field(default=None)
    cancellation_reason: str | None = Field(default=None)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime | None = Field(default=None)
    deleted_at: datetime | None = Field(default=None, index=True)


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order.

    subtotal = unit_price * quantity - discount_amount + tax_amount
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    food_item_id: uuid.UUID = Field(
        foreign_key="food_items.id",
        index=True,
    )

    # No foreign key: unknown variations are tolerated
    variation_id: uuid.UUID | None = Field(default=None)

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    unit_price: float = Field(
        description="Base price + variation adjustment + add-on total",
    )

    discount_amount: float = Field(default=0.0, ge=0)
    tax_amount: float = Field(default=0.0, ge=0)
    subtotal: float = Field(default=0.0)

    special_instructions: str | None = Field(default=None)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class OrderItemAddOn(SQLModel, table=True):
    """
    Add-on attached to an order line. unit_price is the price at order time.
    """

    __tablename__ = "order_item_add_ons"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_item_id: uuid.UUID = Field(
        foreign_key="order_items.id",
        index=True,
    )

    add_on_id: uuid.UUID = Field(foreign_key="add_ons.id")

    quantity: int = Field(default=1, gt=0)
    unit_price: float = Field(ge=0)


class Payment(SQLModel, table=True):
    """
    Payment record for an order.

    A `pending` row may be created at checkout (pay_first); marking the
    order paid turns it into a single `completed` row.
    """

    __tablename__ = "payments"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    # cash | card
    payment_method: str = Field(max_length=50)
    amount: float = Field(ge=0)

    # pending | completed | failed | refunded
    status: str = Field(default="pending")

    paid_at: datetime | None = Field(default=None)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
