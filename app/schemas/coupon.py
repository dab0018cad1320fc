# app/schemas/coupon.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

DiscountType = Literal["fixed", "percentage"]


class CouponCreate(SQLModel):
    """
    Payload for creating a coupon (manager only).

    Codes are stored upper-cased; uniqueness is per tenant.
    """

    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=1, max_length=50)
    discount_type: DiscountType
    discount_value: float = Field(gt=0)
    min_order_amount: float = Field(default=0.0, ge=0)
    max_discount_amount: float | None = Field(default=None, gt=0)
    usage_limit: int | None = Field(default=None, ge=1)
    valid_from: datetime | None = None
    valid_until: datetime | None = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("code cannot be empty")
        return v


class CouponRead(SQLModel):
    id: uuid.UUID
    code: str
    discount_type: DiscountType
    discount_value: float
    min_order_amount: float
    max_discount_amount: float | None
    usage_limit: int | None
    used_count: int
    is_active: bool
    valid_from: datetime | None
    valid_until: datetime | None
    created_at: datetime


class CouponValidateRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    code: str
    subtotal: float = Field(ge=0)
    customer_id: uuid.UUID | None = None

    @field_validator("code")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("code cannot be empty")
        return v


class CouponValidation(SQLModel):
    """
    Result of a successful coupon check.
    """

    coupon_id: uuid.UUID
    code: str
    discount: float
