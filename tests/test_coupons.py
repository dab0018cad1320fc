import uuid
from datetime import timedelta

import pytest
from fastapi import HTTPException
from sqlmodel import select

from app.core.time_utils import utcnow
from app.models.coupon import Coupon, CouponUsage
from app.repositories.coupon_repo import CouponRepository
from app.services.coupon_service import CouponService
from tests.factories import fresh, make_coupon, make_customer


@pytest.fixture
def coupons():
    return CouponService(CouponRepository())


def _rejection(coupons, session, tenant_id, code, amount, customer_id=None):
    with pytest.raises(HTTPException) as exc:
        coupons.validate_coupon(session, tenant_id, code, amount, customer_id)
    return exc.value


def test_fixed_coupon_matches_case_insensitively(session, coupons, tenant_id):
    coupon = make_coupon(session, tenant_id, code="SAVE10", value=10.0)

    result = coupons.validate_coupon(session, tenant_id, "  save10 ", 80.0)

    assert result.coupon_id == coupon.id
    assert result.discount == 10.0


def test_percentage_coupon_capped(session, coupons, tenant_id):
    make_coupon(
        session,
        tenant_id,
        code="BIG",
        discount_type="percentage",
        value=30.0,
        max_discount_amount=20.0,
    )

    assert coupons.validate_coupon(session, tenant_id, "BIG", 50.0).discount == 15.0
    assert coupons.validate_coupon(session, tenant_id, "BIG", 200.0).discount == 20.0


@pytest.mark.parametrize(
    "fields,amount,code,status_code",
    [
        ({"is_active": False}, 50.0, "not_found", 404),
        ({"valid_from": utcnow() + timedelta(days=1)}, 50.0, "not_yet_valid", 400),
        ({"valid_until": utcnow() - timedelta(days=1)}, 50.0, "expired", 400),
        ({"min_order_amount": 100.0}, 50.0, "below_minimum", 400),
        ({"value": 60.0}, 50.0, "amount_too_low", 400),
        ({"usage_limit": 2, "used_count": 2}, 50.0, "limit_reached", 400),
    ],
)
def test_rejections(session, coupons, tenant_id, fields, amount, code, status_code):
    make_coupon(session, tenant_id, **{"code": "PROMO", "value": 10.0, **fields})

    error = _rejection(coupons, session, tenant_id, "PROMO", amount)

    assert error.status_code == status_code
    assert error.detail["code"] == code


def test_expiry_checked_before_minimum(session, coupons, tenant_id):
    make_coupon(
        session,
        tenant_id,
        code="OLD",
        valid_until=utcnow() - timedelta(days=1),
        min_order_amount=500.0,
    )

    assert _rejection(coupons, session, tenant_id, "OLD", 10.0).detail["code"] == "expired"


def test_other_tenants_coupon_is_invisible(session, coupons, tenant_id):
    make_coupon(session, uuid.uuid4(), code="THEIRS")

    assert _rejection(coupons, session, tenant_id, "THEIRS", 50.0).status_code == 404


def test_record_usage_and_single_use_per_customer(session, coupons, tenant_id):
    coupon = make_coupon(session, tenant_id, code="ONCE")
    customer = make_customer(session, tenant_id)

    coupons.record_usage(session, tenant_id, coupon.id, uuid.uuid4(), customer.id)
    session.commit()

    assert fresh(session, Coupon, coupon.id).used_count == 1
    error = _rejection(coupons, session, tenant_id, "ONCE", 50.0, customer.id)
    assert error.detail["code"] == "already_used"
    # Walk-in customers are not tracked
    assert coupons.validate_coupon(session, tenant_id, "ONCE", 50.0).discount == 10.0


def test_walk_in_usage_counts_without_usage_row(session, coupons, tenant_id):
    coupon = make_coupon(session, tenant_id, code="WALKIN")

    coupons.record_usage(session, tenant_id, coupon.id, uuid.uuid4())
    session.commit()

    assert fresh(session, Coupon, coupon.id).used_count == 1
    assert session.exec(select(CouponUsage)).all() == []


def test_create_and_validate_via_api(client, session, tenant_id):
    resp = client.post(
        "/api/v1/coupons",
        json={"code": " welcome ", "discount_type": "percentage", "discount_value": 10},
    )
    assert resp.status_code == 201
    assert resp.json()["code"] == "WELCOME"
    assert resp.json()["used_count"] == 0

    duplicate = client.post(
        "/api/v1/coupons",
        json={"code": "Welcome", "discount_type": "fixed", "discount_value": 5},
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "duplicate_code"

    preview = client.post("/api/v1/coupons/validate", json={"code": "welcome", "subtotal": 80})
    assert preview.status_code == 200
    assert preview.json()["discount"] == 8.0


def test_cashier_cannot_create_coupon(client, acting, cashier):
    acting["user_id"] = cashier.id

    resp = client.post(
        "/api/v1/coupons",
        json={"code": "NOPE", "discount_type": "fixed", "discount_value": 5},
    )

    assert resp.status_code == 403


def test_existing_coupon_rows_are_visible_to_create(session, client, tenant_id):
    make_coupon(session, tenant_id, code="LEGACY", is_active=False)

    resp = client.post(
        "/api/v1/coupons",
        json={"code": "legacy", "discount_type": "fixed", "discount_value": 5},
    )

    assert resp.status_code == 409
