# app/services/inventory_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.time_utils import utcnow
from app.models.inventory import Ingredient, StockTransaction
from app.repositories.inventory_repo import InventoryRepository
from app.schemas.inventory import InsufficientIngredient, StockCheck, StockRequirement

logger = logging.getLogger(__name__)


def _fmt(qty: float) -> str:
    # 2.0 -> "2", 2.5 -> "2.5"
    return f"{qty:g}"


def describe_shortage(insufficient_items: list[InsufficientIngredient]) -> str:
    return ", ".join(
        f"{i.ingredient_name} (Available: {_fmt(i.available)}, Required: {_fmt(i.required)})"
        for i in insufficient_items
    )


class InventoryService:
    """
    Recipe-driven stock gate for orders.

    validate_stock_for_order is read-only and runs before any order row is
    written. deduct_stock_for_order runs after the order and its items are
    flushed/committed and writes one `usage` ledger row per ingredient line.

    Food items without a recipe are not stock-tracked.
    """

    def __init__(self, inventory_repo: InventoryRepository):
        self.inventory_repo = inventory_repo

    def validate_stock_for_order(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        requirements: list[StockRequirement],
    ) -> StockCheck:
        """
        Lines sharing an ingredient are summed before the comparison, so
        two lines needing 3 Flour each fail against 5 in stock.
        """
        needed: dict[uuid.UUID, tuple[Ingredient, float]] = {}

        for req in requirements:
            lines = self.inventory_repo.list_recipe_lines(session, tenant_id, req.food_item_id)
            for recipe, ingredient in lines:
                _, total = needed.get(ingredient.id, (ingredient, 0.0))
                needed[ingredient.id] = (ingredient, total + recipe.quantity * req.quantity)

        insufficient = [
            InsufficientIngredient(
                ingredient_name=ingredient.name or "Unknown",
                available=ingredient.current_stock or 0.0,
                required=required,
            )
            for ingredient, required in needed.values()
            if (ingredient.current_stock or 0.0) < required
        ]

        return StockCheck(is_valid=not insufficient, insufficient_items=insufficient)

    def deduct_stock_for_order(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        actor_id: uuid.UUID | None,
        order_id: uuid.UUID,
        requirements: list[StockRequirement],
    ) -> None:
        """
        Deduct recipe quantities and log usage transactions against `order_id`.

        Availability is re-checked per ingredient; stock changed since
        validation raises 400 and nothing further is deducted. Flushes
        only; the caller commits or rolls back.
        """
        for req in requirements:
            lines = self.inventory_repo.list_recipe_lines(session, tenant_id, req.food_item_id)
            for recipe, ingredient in lines:
                required = recipe.quantity * req.quantity
                available = ingredient.current_stock or 0.0

                if available < required:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=(
                            f"Insufficient stock for ingredient {ingredient.name or 'Unknown'}. "
                            f"Available: {_fmt(available)}, Required: {_fmt(required)}"
                        ),
                    )

                ingredient.current_stock = max(0.0, available - required)
                ingredient.updated_at = utcnow()
                self.inventory_repo.update_ingredient(session, ingredient)

                self.inventory_repo.add_transaction(
                    session,
                    StockTransaction(
                        tenant_id=tenant_id,
                        ingredient_id=ingredient.id,
                        transaction_type="usage",
                        quantity=-required,
                        reason=f"Order {order_id} - Auto deduction",
                        reference_id=str(order_id),
                        created_by=actor_id,
                    ),
                )

        logger.info("Stock deducted for order %s", order_id)
