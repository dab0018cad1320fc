# app/schemas/pricing.py
import uuid

from sqlmodel import SQLModel, Field


class PricedAddOn(SQLModel):
    add_on_id: uuid.UUID
    quantity: int
    unit_price: float


class PricedLine(SQLModel):
    """
    One cart line after price resolution.

    unit_price already includes the variation adjustment and add-on total.
    """

    food_item_id: uuid.UUID
    category_id: uuid.UUID | None = None
    variation_id: uuid.UUID | None = None
    quantity: int
    unit_price: float
    item_subtotal: float
    discount_amount: float = 0.0
    special_instructions: str | None = None
    add_ons: list[PricedAddOn] = Field(default_factory=list)


class PricingBreakdown(SQLModel):
    """
    Fully itemized order total. Not persisted; copied onto the Order row.
    """

    subtotal: float
    item_discounts: float
    extra_discount: float
    coupon_discount: float
    coupon_id: uuid.UUID | None = None
    tax_amount: float
    delivery_charge: float
    total_amount: float
    lines: list[PricedLine] = Field(default_factory=list)

    @property
    def discount_amount(self) -> float:
        return round(self.item_discounts + self.extra_discount + self.coupon_discount, 2)
