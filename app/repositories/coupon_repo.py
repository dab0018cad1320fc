# app/repositories/coupon_repo.py
import uuid

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.coupon import Coupon, CouponUsage


class CouponRepository:
    """
    Data access for coupons and coupon_usages. Codes match case-insensitively.
    """

    def get_by_code(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        code: str,
        active_only: bool = True,
    ) -> Coupon | None:
        stmt = select(Coupon).where(
            Coupon.tenant_id == tenant_id,
            func.upper(Coupon.code) == code.strip().upper(),
            Coupon.deleted_at.is_(None),
        )
        if active_only:
            stmt = stmt.where(Coupon.is_active.is_(True))
        return session.exec(stmt).first()

    def get_by_id(self, session: Session, coupon_id: uuid.UUID) -> Coupon | None:
        return session.get(Coupon, coupon_id)

    def save(self, session: Session, coupon: Coupon) -> Coupon:
        session.add(coupon)
        session.flush()
        session.refresh(coupon)
        return coupon

    def has_customer_usage(
        self,
        session: Session,
        coupon_id: uuid.UUID,
        customer_id: uuid.UUID,
    ) -> bool:
        stmt = select(CouponUsage.id).where(
            CouponUsage.coupon_id == coupon_id,
            CouponUsage.customer_id == customer_id,
        )
        return session.exec(stmt).first() is not None

    def create_usage(self, session: Session, usage: CouponUsage) -> CouponUsage:
        session.add(usage)
        session.flush()
        return usage
