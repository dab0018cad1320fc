import uuid

import pytest
from fastapi import HTTPException
from sqlmodel import select

from app.models.inventory import Ingredient, StockTransaction
from app.repositories.inventory_repo import InventoryRepository
from app.schemas.inventory import InsufficientIngredient, StockRequirement
from app.services.inventory_service import InventoryService, describe_shortage
from tests.factories import fresh, make_food_item, make_ingredient, make_recipe


@pytest.fixture
def inventory():
    return InventoryService(InventoryRepository())


def test_describe_shortage_formats_quantities():
    text = describe_shortage(
        [
            InsufficientIngredient(ingredient_name="Flour", available=2.0, required=5.0),
            InsufficientIngredient(ingredient_name="Milk", available=0.5, required=1.25),
        ]
    )
    assert text == "Flour (Available: 2, Required: 5), Milk (Available: 0.5, Required: 1.25)"


def test_item_without_recipe_always_passes(session, inventory, tenant_id):
    water = make_food_item(session, tenant_id, name="Water", price=1.0)

    check = inventory.validate_stock_for_order(
        session, tenant_id, [StockRequirement(food_item_id=water.id, quantity=50)]
    )

    assert check.is_valid
    assert check.insufficient_items == []


def test_validate_reports_each_short_ingredient(session, inventory, tenant_id):
    bread = make_food_item(session, tenant_id, name="Bread", price=3.0)
    flour = make_ingredient(session, tenant_id, name="Flour", stock=2.0)
    yeast = make_ingredient(session, tenant_id, name="Yeast", stock=10.0)
    make_recipe(session, bread, flour, quantity=2.5)
    make_recipe(session, bread, yeast, quantity=1.0)

    check = inventory.validate_stock_for_order(
        session, tenant_id, [StockRequirement(food_item_id=bread.id, quantity=2)]
    )

    assert not check.is_valid
    assert [i.ingredient_name for i in check.insufficient_items] == ["Flour"]
    assert check.insufficient_items[0].available == 2.0
    assert check.insufficient_items[0].required == 5.0


def test_shared_ingredient_is_summed_across_lines(session, inventory, tenant_id):
    flour = make_ingredient(session, tenant_id, name="Flour", stock=5.0)
    bread = make_food_item(session, tenant_id, name="Bread", price=3.0)
    pizza = make_food_item(session, tenant_id, name="Pizza", price=9.0)
    make_recipe(session, bread, flour, quantity=3.0)
    make_recipe(session, pizza, flour, quantity=3.0)

    check = inventory.validate_stock_for_order(
        session,
        tenant_id,
        [
            StockRequirement(food_item_id=bread.id, quantity=1),
            StockRequirement(food_item_id=pizza.id, quantity=1),
        ],
    )

    assert not check.is_valid
    assert len(check.insufficient_items) == 1
    assert check.insufficient_items[0].ingredient_name == "Flour"
    assert check.insufficient_items[0].available == 5.0
    assert check.insufficient_items[0].required == 6.0


def test_inactive_and_foreign_ingredients_are_not_tracked(session, inventory, tenant_id):
    cake = make_food_item(session, tenant_id, name="Cake", price=8.0)
    make_recipe(session, cake, make_ingredient(session, tenant_id, stock=0.0, is_active=False))
    make_recipe(session, cake, make_ingredient(session, uuid.uuid4(), stock=0.0))

    check = inventory.validate_stock_for_order(
        session, tenant_id, [StockRequirement(food_item_id=cake.id, quantity=1)]
    )

    assert check.is_valid


def test_deduct_writes_usage_transactions(session, inventory, tenant_id):
    bread = make_food_item(session, tenant_id, name="Bread", price=3.0)
    flour = make_ingredient(session, tenant_id, name="Flour", stock=10.0)
    make_recipe(session, bread, flour, quantity=1.5)
    order_id = uuid.uuid4()
    actor_id = uuid.uuid4()

    inventory.deduct_stock_for_order(
        session,
        tenant_id,
        actor_id,
        order_id,
        [StockRequirement(food_item_id=bread.id, quantity=4)],
    )
    session.commit()

    assert fresh(session, Ingredient, flour.id).current_stock == 4.0
    transactions = session.exec(
        select(StockTransaction).where(StockTransaction.reference_id == str(order_id))
    ).all()
    assert len(transactions) == 1
    tx = transactions[0]
    assert tx.transaction_type == "usage"
    assert tx.quantity == -6.0
    assert tx.created_by == actor_id
    assert tx.reason == f"Order {order_id} - Auto deduction"


def test_deduct_rejects_when_stock_ran_out(session, inventory, tenant_id):
    bread = make_food_item(session, tenant_id, name="Bread", price=3.0)
    flour = make_ingredient(session, tenant_id, name="Flour", stock=1.0)
    make_recipe(session, bread, flour, quantity=2.0)

    with pytest.raises(HTTPException) as exc:
        inventory.deduct_stock_for_order(
            session,
            tenant_id,
            None,
            uuid.uuid4(),
            [StockRequirement(food_item_id=bread.id, quantity=1)],
        )

    assert exc.value.status_code == 400
    assert exc.value.detail == (
        "Insufficient stock for ingredient Flour. Available: 1, Required: 2"
    )
    session.rollback()
    assert fresh(session, Ingredient, flour.id).current_stock == 1.0
