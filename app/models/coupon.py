# app/models/coupon.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Coupon(SQLModel, table=True):
    """
    Code-redeemable discount rule.

    Codes are unique per tenant (case-insensitive).
    """

    __tablename__ = "coupons"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tenant_id: uuid.UUID = Field(index=True)

    code: str = Field(max_length=50, index=True)

    # fixed | percentage
    discount_type: str = Field(max_length=20)
    discount_value: float = Field(gt=0)

    min_order_amount: float = Field(default=0.0, ge=0)
    max_discount_amount: float | None = Field(default=None)

    usage_limit: int | None = Field(default=None)
    used_count: int = Field(default=0, ge=0)

    is_active: bool = Field(default=True)

    valid_from: datetime | None = Field(default=None)
    valid_until: datetime | None = Field(default=None)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    deleted_at: datetime | None = Field(default=None)


class CouponUsage(SQLModel, table=True):
    """
    One redemption of a coupon by a known customer.
    """

    __tablename__ = "coupon_usages"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    coupon_id: uuid.UUID = Field(foreign_key="coupons.id", index=True)
    customer_id: uuid.UUID | None = Field(default=None, index=True)
    order_id: uuid.UUID | None = Field(default=None)
    tenant_id: uuid.UUID = Field(index=True)

    used_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
