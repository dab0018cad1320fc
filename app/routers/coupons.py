# app/routers/coupons.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_auth, require_manager
from app.database import get_session
from app.models.user import User
from app.repositories.coupon_repo import CouponRepository
from app.schemas.coupon import CouponCreate, CouponRead, CouponValidateRequest, CouponValidation
from app.services.coupon_service import CouponService

router = APIRouter(prefix="/coupons", tags=["Coupons"])

service = CouponService(CouponRepository())


@router.post(
    "",
    response_model=CouponRead,
    status_code=201,
)
def create_coupon(
    payload: CouponCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_manager),
):
    """
    Create a coupon (manager only). 409 if the code already exists.
    """
    return service.create_coupon(session, current_user.tenant_id, payload)


@router.post(
    "/validate",
    response_model=CouponValidation,
)
def validate_coupon(
    payload: CouponValidateRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Preview the discount a code gives on `subtotal`. Nothing is recorded.
    """
    return service.validate_coupon(
        session,
        current_user.tenant_id,
        payload.code,
        payload.subtotal,
        payload.customer_id,
    )
