import json
import re
import uuid
from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from sqlmodel import select

from app.models.coupon import Coupon, CouponUsage
from app.models.delivery import Delivery
from app.models.inventory import Ingredient, StockTransaction
from app.models.order import Order, OrderItem, OrderItemAddOn, Payment
from app.models.restaurant import Branch, DiningTable
from app.routers import orders as orders_router
from tests.factories import (
    fresh,
    make_add_on,
    make_branch,
    make_counter,
    make_coupon,
    make_customer,
    make_food_item,
    make_ingredient,
    make_order,
    make_recipe,
    make_table,
)

ORDERS = "/api/v1/orders"


@pytest.fixture
def branch(session, tenant_id):
    return make_branch(session, tenant_id, code="DT")


@pytest.fixture
def burger(session, tenant_id):
    return make_food_item(session, tenant_id, name="Burger", price=100.0)


def _line(item, quantity=1, **extra):
    return {"food_item_id": str(item.id), "quantity": quantity, **extra}


def _create(client, items, **fields):
    return client.post(ORDERS, json={"order_type": "dine_in", "items": items, **fields})


def _total_matches(order: dict) -> bool:
    expected = max(
        0.0,
        round(
            order["subtotal"]
            - order["discount_amount"]
            + order["tax_amount"]
            + order["delivery_charge"],
            2,
        ),
    )
    return order["total_amount"] == expected


# -------- Creation --------


def test_create_order_with_manual_discount_and_coupon(client, session, tenant_id, branch, burger):
    coupon = make_coupon(session, tenant_id, code="SAVE10", value=10.0)
    counter = make_counter(session, branch)

    resp = _create(
        client,
        [_line(burger)],
        branch_id=str(branch.id),
        extra_discount_amount=20,
        coupon_code="SAVE10",
    )

    assert resp.status_code == 201, resp.text
    order = resp.json()
    assert order["status"] == "pending"
    assert order["payment_status"] == "unpaid"
    assert order["subtotal"] == 100.0
    assert order["discount_amount"] == 30.0
    assert order["tax_amount"] == 0.0
    assert order["delivery_charge"] == 0.0
    assert order["total_amount"] == 70.0
    assert order["coupon_code"] == "SAVE10"
    assert order["counter"]["id"] == str(counter.id)
    assert order["branch"]["code"] == "DT"
    assert order["items"][0]["food_item_name"] == "Burger"
    assert [e["event"] for e in order["timeline"]] == ["Order Placed"]
    assert _total_matches(order)

    assert fresh(session, Coupon, coupon.id).used_count == 1


def test_order_and_token_numbers_are_daily_sequences(client, branch, burger):
    first = _create(client, [_line(burger)], branch_id=str(branch.id)).json()
    second = _create(client, [_line(burger)], branch_id=str(branch.id)).json()
    custom = _create(
        client, [_line(burger)], branch_id=str(branch.id), token_number="A7"
    ).json()

    assert re.fullmatch(r"DT-\d{8}-0001", first["order_number"])
    assert second["order_number"].endswith("-0002")
    assert custom["order_number"].endswith("-0003")
    assert (first["token_number"], second["token_number"]) == ("001", "002")
    assert custom["token_number"] == "A7"


def test_items_are_priced_on_the_server(client, session, tenant_id, branch, burger):
    cheese = make_add_on(session, tenant_id, price=2.5)

    resp = _create(
        client,
        [_line(burger, 2, add_ons=[{"add_on_id": str(cheese.id), "quantity": 2}])],
    )

    order = resp.json()
    item = order["items"][0]
    assert item["unit_price"] == 105.0
    assert order["subtotal"] == 210.0
    assert item["add_ons"][0]["name"] == "Cheese"
    assert item["add_ons"][0]["unit_price"] == 2.5


def test_client_prices_are_rejected(client, branch, burger):
    items = [_line(burger)]
    items[0]["unit_price"] = 0.01

    assert _create(client, items).status_code == 422


def test_empty_cart_rejected(client, session, branch):
    resp = _create(client, [])

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Order must contain at least one item"
    assert session.exec(select(Order)).all() == []


def test_insufficient_stock_writes_nothing(client, session, tenant_id, branch):
    bread = make_food_item(session, tenant_id, name="Bread", price=4.0)
    make_recipe(session, bread, make_ingredient(session, tenant_id, name="Flour", stock=2.0), 5.0)

    resp = _create(client, [_line(bread)])

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert "Flour (Available: 2, Required: 5)" in detail["message"]
    assert detail["message"].startswith("Cannot create order: Insufficient inventory.")
    assert detail["insufficient_items"] == [
        {"ingredient_name": "Flour", "available": 2.0, "required": 5.0}
    ]
    assert session.exec(select(Order)).all() == []
    assert session.exec(select(OrderItem)).all() == []


def test_lines_sharing_an_ingredient_are_checked_together(client, session, tenant_id, branch):
    flour = make_ingredient(session, tenant_id, name="Flour", stock=5.0)
    bread = make_food_item(session, tenant_id, name="Bread", price=4.0)
    pizza = make_food_item(session, tenant_id, name="Pizza", price=9.0)
    make_recipe(session, bread, flour, 3.0)
    make_recipe(session, pizza, flour, 3.0)
    make_coupon(session, tenant_id, code="SAVE1", value=1.0)

    resp = _create(client, [_line(bread), _line(pizza)], coupon_code="SAVE1")

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["message"].startswith("Cannot create order: Insufficient inventory.")
    assert detail["insufficient_items"] == [
        {"ingredient_name": "Flour", "available": 5.0, "required": 6.0}
    ]
    assert session.exec(select(Order)).all() == []
    assert session.exec(select(OrderItem)).all() == []
    assert session.exec(select(CouponUsage)).all() == []
    assert fresh(session, Ingredient, flour.id).current_stock == 5.0


@pytest.mark.parametrize(
    "coupon_code, status_code, code",
    [
        ("BIG50", 400, "amount_too_low"),
        ("NOSUCH", 404, "not_found"),
    ],
)
def test_rejected_coupon_aborts_creation(
    client, session, tenant_id, branch, coupon_code, status_code, code
):
    make_coupon(session, tenant_id, code="BIG50", value=50.0)
    salad = make_food_item(session, tenant_id, name="Salad", price=10.0)

    resp = _create(client, [_line(salad)], coupon_code=coupon_code)

    assert resp.status_code == status_code
    assert resp.json()["detail"]["code"] == code
    assert session.exec(select(Order)).all() == []
    assert session.exec(select(OrderItem)).all() == []


def test_stock_is_deducted_after_commit(client, session, tenant_id, branch):
    bread = make_food_item(session, tenant_id, name="Bread", price=4.0)
    flour = make_ingredient(session, tenant_id, name="Flour", stock=10.0)
    make_recipe(session, bread, flour, 1.5)

    order = _create(client, [_line(bread, 2)]).json()

    assert fresh(session, Ingredient, flour.id).current_stock == 7.0
    ledger = session.exec(
        select(StockTransaction).where(StockTransaction.reference_id == order["id"])
    ).all()
    assert [tx.quantity for tx in ledger] == [-3.0]


def test_failed_deduction_cancels_committed_order(
    client, session, tenant_id, branch, burger, monkeypatch
):
    def fail(*args, **kwargs):
        raise HTTPException(
            status_code=400,
            detail="Insufficient stock for ingredient Flour. Available: 1, Required: 2",
        )

    monkeypatch.setattr(orders_router.inventory_service, "deduct_stock_for_order", fail)

    resp = _create(client, [_line(burger)])

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["code"] == "stock_deduction_failed"
    assert detail["message"].endswith("Order has been cancelled.")

    session.expire_all()
    stored = session.get(Order, uuid.UUID(detail["order_id"]))
    assert stored.deleted_at is not None
    assert stored.status == "cancelled"
    assert client.get(f"{ORDERS}/{detail['order_id']}").status_code == 404
    assert client.get(ORDERS).json() == []


def test_unknown_branch_falls_back_to_oldest_active(client, session, tenant_id, burger):
    main = make_branch(session, tenant_id, code="HQ")
    make_branch(session, tenant_id, code="OLD", is_active=False)

    order = _create(client, [_line(burger)], branch_id=str(uuid.uuid4())).json()

    assert order["branch_id"] == str(main.id)


def test_default_branch_created_for_new_tenant(client, session, tenant_id, burger):
    order = _create(client, [_line(burger)]).json()

    assert order["order_number"].startswith("MAIN-")
    branches = session.exec(select(Branch).where(Branch.tenant_id == tenant_id)).all()
    assert [(b.name, b.code) for b in branches] == [("Main Branch", "MAIN")]


def test_dine_in_table_is_occupied(client, session, tenant_id, branch, burger):
    table = make_table(session, tenant_id, branch)

    _create(client, [_line(burger)], table_id=str(table.id))

    assert fresh(session, DiningTable, table.id).status == "occupied"


def test_unknown_table_does_not_fail_order(client, branch, burger):
    resp = _create(client, [_line(burger)], table_id=str(uuid.uuid4()))

    assert resp.status_code == 201


def test_pay_first_creates_pending_payment(client, session, branch, burger):
    order = _create(client, [_line(burger)], payment_method="card").json()

    assert [(p["payment_method"], p["status"], p["amount"]) for p in order["payments"]] == [
        ("card", "pending", 100.0)
    ]

    later = _create(
        client, [_line(burger)], payment_method="card", payment_timing="pay_after"
    ).json()
    assert later["payments"] == []


@pytest.mark.parametrize("price,charge", [(40.0, 5.0), (60.0, 0.0)])
def test_delivery_order_charge_and_record(client, session, tenant_id, branch, price, charge):
    wrap = make_food_item(session, tenant_id, name="Wrap", price=price)

    resp = client.post(
        ORDERS,
        json={
            "order_type": "delivery",
            "items": [_line(wrap)],
            "customer_address": "12 King Road",
            "customer_city": "Riyadh",
        },
    )

    order = resp.json()
    assert order["delivery_charge"] == charge
    assert order["total_amount"] == price + charge
    delivery = session.exec(
        select(Delivery).where(Delivery.order_id == uuid.UUID(order["id"]))
    ).one()
    assert delivery.status == "pending"
    assert delivery.delivery_charge == charge
    assert json.loads(delivery.notes)["address_en"] == "12 King Road"


# -------- Reading --------


def test_list_orders_filters(client, session, tenant_id, branch):
    make_order(session, tenant_id, branch, status="pending")
    make_order(session, tenant_id, branch, status="preparing", order_type="takeaway")
    make_order(session, tenant_id, branch, status="completed")
    make_order(session, uuid.uuid4(), branch, status="pending")

    all_orders = client.get(ORDERS).json()
    kitchen = client.get(ORDERS, params={"status": "pending,preparing"}).json()
    takeaway = client.get(ORDERS, params={"order_type": "takeaway"}).json()

    assert len(all_orders) == 3
    assert {o["status"] for o in kitchen} == {"pending", "preparing"}
    assert [o["status"] for o in takeaway] == ["preparing"]
    assert all(o["branch"]["code"] == "DT" for o in all_orders)


def test_list_orders_date_range(client, session, tenant_id, branch):
    for created in (
        datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc),
        datetime(2026, 3, 3, 8, 0, tzinfo=timezone.utc),
    ):
        make_order(session, tenant_id, branch, created_at=created)

    resp = client.get(ORDERS, params={"start_date": "2026-03-01", "end_date": "2026-03-01"})

    assert len(resp.json()) == 1


def test_get_order_of_other_tenant_is_404(client, session, branch):
    foreign = make_order(session, uuid.uuid4(), branch)

    assert client.get(f"{ORDERS}/{foreign.id}").status_code == 404


# -------- Update --------


def test_update_replaces_items_and_resets_status(client, session, tenant_id, branch, burger):
    fries = make_food_item(session, tenant_id, name="Fries", price=5.0)
    order = _create(client, [_line(burger)]).json()
    client.put(f"{ORDERS}/{order['id']}/status", json={"status": "preparing"})

    resp = client.put(f"{ORDERS}/{order['id']}", json={"items": [_line(fries, 3)]})

    assert resp.status_code == 200, resp.text
    updated = resp.json()
    assert updated["status"] == "pending"
    assert updated["subtotal"] == 15.0
    assert updated["total_amount"] == 15.0
    assert [i["food_item_name"] for i in updated["items"]] == ["Fries"]
    assert len(session.exec(select(OrderItem)).all()) == 1


def test_update_without_items_reprices_stored_cart(client, session, tenant_id, branch, burger):
    cheese = make_add_on(session, tenant_id, price=1.0)
    order = _create(
        client,
        [_line(burger, add_ons=[{"add_on_id": str(cheese.id)}])],
        extra_discount_amount=11,
    ).json()
    assert order["total_amount"] == 90.0

    updated = client.put(
        f"{ORDERS}/{order['id']}", json={"special_instructions": "No onions"}
    ).json()

    assert updated["special_instructions"] == "No onions"
    assert updated["subtotal"] == 101.0
    assert updated["discount_amount"] == 11.0
    assert updated["total_amount"] == 90.0
    assert len(updated["items"][0]["add_ons"]) == 1
    assert len(session.exec(select(OrderItemAddOn)).all()) == 1


def test_update_keeps_redeemed_coupon_amount(client, session, tenant_id, branch, burger):
    coupon = make_coupon(session, tenant_id, code="ONCE", value=10.0, usage_limit=1)
    order = _create(client, [_line(burger)], coupon_code="ONCE").json()

    # The coupon is now at its usage limit; the order keeps its discount
    updated = client.put(f"{ORDERS}/{order['id']}", json={"items": [_line(burger, 2)]})

    assert updated.status_code == 200, updated.text
    assert updated.json()["discount_amount"] == 10.0
    assert updated.json()["total_amount"] == 190.0
    assert fresh(session, Coupon, coupon.id).used_count == 1


def test_update_with_new_coupon_records_usage(client, session, tenant_id, branch, burger):
    customer = make_customer(session, tenant_id)
    coupon = make_coupon(session, tenant_id, code="NEW5", value=5.0)
    order = _create(client, [_line(burger)], customer_id=str(customer.id)).json()

    updated = client.put(f"{ORDERS}/{order['id']}", json={"coupon_code": "new5"}).json()

    assert updated["total_amount"] == 95.0
    assert fresh(session, Coupon, coupon.id).used_count == 1
    usages = session.exec(select(CouponUsage)).all()
    assert [(u.customer_id, str(u.order_id)) for u in usages] == [(customer.id, order["id"])]


def test_paid_order_cannot_be_modified(client, session, tenant_id, branch, burger):
    paid = make_order(session, tenant_id, branch, payment_status="paid")

    resp = client.put(f"{ORDERS}/{paid.id}", json={"items": [_line(burger)]})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Cannot modify order that has been paid"


def test_update_with_empty_items_is_invalid(client, session, tenant_id, branch):
    order = make_order(session, tenant_id, branch)

    assert client.put(f"{ORDERS}/{order.id}", json={"items": []}).status_code == 422


def test_update_checks_stock_for_new_items(client, session, tenant_id, branch, burger):
    bread = make_food_item(session, tenant_id, name="Bread", price=4.0)
    make_recipe(session, bread, make_ingredient(session, tenant_id, name="Flour", stock=1.0), 2.0)
    order = _create(client, [_line(burger)]).json()

    resp = client.put(f"{ORDERS}/{order['id']}", json={"items": [_line(bread)]})

    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == (
        "Cannot update order: Insufficient inventory. Flour (Available: 1, Required: 2)"
    )


# -------- Delete --------


def test_delete_pending_order(client, session, tenant_id, branch):
    table = make_table(session, tenant_id, branch)
    order = make_order(session, tenant_id, branch, table_id=table.id)
    table.status = "occupied"
    session.add(table)
    session.commit()

    resp = client.delete(f"{ORDERS}/{order.id}", params={"reason": "Duplicate"})

    assert resp.status_code == 200
    assert resp.json() == {"message": "Order deleted successfully"}
    stored = fresh(session, Order, order.id)
    assert stored.deleted_at is not None
    assert stored.cancellation_reason == "Duplicate"
    assert fresh(session, DiningTable, table.id).status == "available"
    assert client.get(f"{ORDERS}/{order.id}").status_code == 404


def test_delete_rejected_once_kitchen_started(client, session, tenant_id, branch):
    order = make_order(session, tenant_id, branch, status="preparing")

    resp = client.delete(f"{ORDERS}/{order.id}")

    assert resp.status_code == 400
    assert resp.json()["detail"]["current_status"] == "preparing"


def test_delete_requires_manager(client, session, tenant_id, branch, acting, cashier):
    order = make_order(session, tenant_id, branch)
    acting["user_id"] = cashier.id

    assert client.delete(f"{ORDERS}/{order.id}").status_code == 403


def test_payment_rows_survive_delete(client, session, tenant_id, branch, burger):
    order = _create(client, [_line(burger)], payment_method="cash").json()

    client.delete(f"{ORDERS}/{order['id']}")

    assert len(session.exec(select(Payment)).all()) == 1
