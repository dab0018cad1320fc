# app/services/coupon_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.time_utils import as_utc, utcnow
from app.models.coupon import Coupon, CouponUsage
from app.repositories.coupon_repo import CouponRepository
from app.schemas.coupon import CouponCreate, CouponValidation

logger = logging.getLogger(__name__)


def _reject(code: str, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
    raise HTTPException(
        status_code=status_code,
        detail={"message": message, "code": code},
    )


class CouponService:
    """
    Business logic for coupons.

    Responsibilities:
      - Validate a code against an amount and return the discount
      - Record a redemption after an order is persisted
      - Create coupons (unique code per tenant)
    """

    def __init__(self, coupon_repo: CouponRepository):
        self.coupon_repo = coupon_repo

    def validate_coupon(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        code: str,
        subtotal: float,
        customer_id: uuid.UUID | None = None,
    ) -> CouponValidation:
        """
        Check a coupon code against `subtotal`, the amount it will discount.

        Rules, first failure wins:
          1. code exists, is active and not deleted        (404 not_found)
          2. valid_from has passed                         (not_yet_valid)
          3. valid_until has not passed                    (expired)
          4. subtotal >= min_order_amount                  (below_minimum)
          5. fixed coupons: subtotal >= discount_value     (amount_too_low)
          6. used_count < usage_limit                      (limit_reached)
          7. customer has not redeemed it before           (already_used)

        Raises:
            HTTPException with detail {"message", "code"}.
        """
        coupon = self.coupon_repo.get_by_code(session, tenant_id, code)
        if coupon is None:
            _reject("not_found", "Invalid or expired coupon code", status.HTTP_404_NOT_FOUND)

        now = utcnow()
        if coupon.valid_from and as_utc(coupon.valid_from) > now:
            _reject("not_yet_valid", "Coupon is not yet valid")
        if coupon.valid_until and as_utc(coupon.valid_until) < now:
            _reject("expired", "Coupon has expired")

        if coupon.min_order_amount and subtotal < coupon.min_order_amount:
            _reject(
                "below_minimum",
                f"Minimum order amount of {coupon.min_order_amount} required for this coupon",
            )

        if coupon.discount_type == "fixed" and subtotal < coupon.discount_value:
            _reject(
                "amount_too_low",
                f"Order total ({subtotal}) is less than coupon value "
                f"({coupon.discount_value}). Cannot apply coupon.",
            )

        if coupon.usage_limit and coupon.used_count >= coupon.usage_limit:
            _reject("limit_reached", "Coupon usage limit has been reached")

        if customer_id and self.coupon_repo.has_customer_usage(session, coupon.id, customer_id):
            _reject("already_used", "This coupon has already been used by this customer")

        if coupon.discount_type == "percentage":
            discount = subtotal * coupon.discount_value / 100
            if coupon.max_discount_amount and discount > coupon.max_discount_amount:
                discount = coupon.max_discount_amount
        else:
            discount = coupon.discount_value

        return CouponValidation(
            coupon_id=coupon.id,
            code=coupon.code,
            discount=round(discount, 2),
        )

    def record_usage(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        coupon_id: uuid.UUID,
        order_id: uuid.UUID,
        customer_id: uuid.UUID | None = None,
    ) -> None:
        """
        Count one redemption. A usage row is only written for known customers.

        Flushes only; the caller owns the commit.
        """
        coupon = self.coupon_repo.get_by_id(session, coupon_id)
        if coupon is not None:
            coupon.used_count = (coupon.used_count or 0) + 1
            self.coupon_repo.save(session, coupon)

        if customer_id:
            self.coupon_repo.create_usage(
                session,
                CouponUsage(
                    coupon_id=coupon_id,
                    customer_id=customer_id,
                    order_id=order_id,
                    tenant_id=tenant_id,
                ),
            )

    def create_coupon(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        payload: CouponCreate,
    ) -> Coupon:
        if self.coupon_repo.get_by_code(session, tenant_id, payload.code, active_only=False):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    "message": f"Coupon code '{payload.code}' already exists",
                    "code": "duplicate_code",
                },
            )

        if payload.valid_from and payload.valid_until and payload.valid_until < payload.valid_from:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="valid_until must be after valid_from",
            )

        coupon = Coupon(tenant_id=tenant_id, **payload.model_dump())
        try:
            coupon = self.coupon_repo.save(session, coupon)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Failed to create coupon %s", payload.code)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to create coupon: {e}",
            )
        session.refresh(coupon)
        logger.info("Coupon %s created for tenant %s", coupon.code, tenant_id)
        return coupon
