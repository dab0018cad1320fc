# app/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

OrderType = Literal["dine_in", "takeaway", "delivery"]
OrderStatus = Literal["pending", "preparing", "ready", "served", "completed", "cancelled"]
PaymentStatus = Literal["unpaid", "paid"]
PaymentTiming = Literal["pay_first", "pay_after"]
PaymentMethod = Literal["cash", "card"]


def _strip_or_none(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    return v or None


class OrderItemAddOnCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    add_on_id: uuid.UUID
    quantity: int = Field(default=1, ge=1)


class OrderItemCreate(SQLModel):
    """
    One cart line as sent by the POS.

    Prices are never accepted from the client; they are resolved from the
    menu at pricing time.
    """

    model_config = ConfigDict(extra="forbid")

    food_item_id: uuid.UUID
    variation_id: uuid.UUID | None = None
    quantity: int = Field(ge=1)
    special_instructions: str | None = None
    add_ons: list[OrderItemAddOnCreate] = Field(default_factory=list)

    @field_validator("special_instructions")
    @classmethod
    def normalize_instructions(cls, v: str | None) -> str | None:
        return _strip_or_none(v)


class OrderCreate(SQLModel):
    """
    Payload for creating an order at a POS terminal.

    User provides:
      - order_type and cart items
      - optional branch / counter / table / customer
      - optional manual discount and coupon code
      - optional payment method (pay_first creates a pending payment)
      - address fields for walk-in delivery customers

    Backend derives:
      - tenant_id and cashier_id from token
      - status = 'pending', payment_status = 'unpaid'
      - order_number / token_number
      - every money column (see PricingCalculator)
    """

    model_config = ConfigDict(extra="forbid")

    branch_id: uuid.UUID | None = None
    counter_id: uuid.UUID | None = None
    table_id: uuid.UUID | None = None
    customer_id: uuid.UUID | None = None

    order_type: OrderType
    token_number: str | None = None

    # Emptiness is checked after branch resolution so the error is a 400
    items: list[OrderItemCreate] = Field(default_factory=list)

    extra_discount_amount: float = Field(default=0.0, ge=0)
    coupon_code: str | None = None
    special_instructions: str | None = None

    payment_method: PaymentMethod | None = None
    payment_timing: PaymentTiming = "pay_first"

    customer_address_id: uuid.UUID | None = None
    customer_address: str | None = None
    customer_address_ar: str | None = None
    customer_city: str | None = None
    customer_state: str | None = None
    customer_country: str | None = None

    @field_validator(
        "token_number",
        "coupon_code",
        "special_instructions",
        "customer_address",
        "customer_address_ar",
        "customer_city",
        "customer_state",
        "customer_country",
    )
    @classmethod
    def normalize_text(cls, v: str | None) -> str | None:
        return _strip_or_none(v)


class OrderUpdate(SQLModel):
    """
    Partial update of an unpaid order.

    Only fields present in the payload are applied. When `items` is given
    the whole item set is replaced; otherwise totals are recomputed from
    the stored items.
    """

    model_config = ConfigDict(extra="forbid")

    table_id: uuid.UUID | None = None
    customer_id: uuid.UUID | None = None
    order_type: OrderType | None = None

    items: list[OrderItemCreate] | None = None

    extra_discount_amount: float | None = Field(default=None, ge=0)
    coupon_code: str | None = None
    special_instructions: str | None = None

    customer_address_id: uuid.UUID | None = None
    customer_address: str | None = None
    customer_address_ar: str | None = None
    customer_city: str | None = None
    customer_state: str | None = None
    customer_country: str | None = None

    @field_validator(
        "coupon_code",
        "special_instructions",
        "customer_address",
        "customer_address_ar",
        "customer_city",
        "customer_state",
        "customer_country",
    )
    @classmethod
    def normalize_text(cls, v: str | None) -> str | None:
        return _strip_or_none(v)

    @field_validator("items")
    @classmethod
    def items_not_empty(cls, v: list[OrderItemCreate] | None):
        if v is not None and not v:
            raise ValueError("items cannot be an empty list")
        return v


class OrderStatusUpdate(SQLModel):
    """
    Payload to move an order through the kitchen lifecycle.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
    cancellation_reason: str | None = None

    @field_validator("cancellation_reason")
    @classmethod
    def normalize_reason(cls, v: str | None) -> str | None:
        return _strip_or_none(v)


class PaymentStatusUpdate(SQLModel):
    """
    Payload to mark an order paid/unpaid.

    amount_paid defaults to the order total, payment_method to cash.
    """

    model_config = ConfigDict(extra="forbid")

    payment_status: PaymentStatus
    amount_paid: float | None = Field(default=None, ge=0)
    payment_method: PaymentMethod | None = None


# -------- Read models --------


class BranchSummary(SQLModel):
    id: uuid.UUID
    name: str
    code: str


class CounterSummary(SQLModel):
    id: uuid.UUID
    name: str
    code: str


class TableSummary(SQLModel):
    id: uuid.UUID
    table_number: str
    status: str


class CustomerSummary(SQLModel):
    id: uuid.UUID
    name: str
    phone: str


class CashierSummary(SQLModel):
    id: uuid.UUID
    name: str
    email: str


class OrderItemAddOnRead(SQLModel):
    id: uuid.UUID
    add_on_id: uuid.UUID
    name: str | None = None
    quantity: int
    unit_price: float


class OrderItemRead(SQLModel):
    """
    Representation of a single order line with its add-ons.
    """

    id: uuid.UUID
    food_item_id: uuid.UUID
    food_item_name: str | None = None
    variation_id: uuid.UUID | None = None
    variation_name: str | None = None
    quantity: int
    unit_price: float
    discount_amount: float
    tax_amount: float
    subtotal: float
    special_instructions: str | None = None
    add_ons: list[OrderItemAddOnRead] = Field(default_factory=list)


class PaymentRead(SQLModel):
    id: uuid.UUID
    payment_method: str
    amount: float
    status: str
    paid_at: datetime | None = None


class TimelineEntry(SQLModel):
    event: str
    timestamp: datetime | None = None
    reason: str | None = None


class OrderRead(SQLModel):
    """
    Order header as shown in list views (no items).
    """

    id: uuid.UUID
    tenant_id: uuid.UUID
    branch_id: uuid.UUID
    counter_id: uuid.UUID | None = None
    table_id: uuid.UUID | None = None
    customer_id: uuid.UUID | None = None
    cashier_id: uuid.UUID | None = None

    order_number: str
    token_number: str | None = None
    order_type: OrderType
    status: OrderStatus
    payment_status: PaymentStatus
    payment_timing: PaymentTiming

    subtotal: float
    discount_amount: float
    tax_amount: float
    delivery_charge: float
    total_amount: float
    coupon_code: str | None = None
    coupon_discount: float | None = None

    special_instructions: str | None = None

    placed_at: datetime | None = None
    paid_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    item_count: int = 0
    branch: BranchSummary | None = None
    table: TableSummary | None = None
    customer: CustomerSummary | None = None


class OrderDetailRead(OrderRead):
    """
    Full order view: header, related entities, items, payments, timeline.
    """

    counter: CounterSummary | None = None
    cashier: CashierSummary | None = None
    items: list[OrderItemRead] = Field(default_factory=list)
    payments: list[PaymentRead] = Field(default_factory=list)
    timeline: list[TimelineEntry] = Field(default_factory=list)
