# app/repositories/inventory_repo.py
import uuid

from sqlmodel import Session, select

from app.models.inventory import Ingredient, Recipe, StockTransaction


class InventoryRepository:
    """
    Ingredient / recipe / stock ledger access.

    NOTE:
      - No commits here; deductions are part of the order unit of work.
    """

    def list_recipe_lines(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        food_item_id: uuid.UUID,
    ) -> list[tuple[Recipe, Ingredient]]:
        """
        Recipe rows of a food item joined with their tenant-owned, live ingredient.
        """
        stmt = (
            select(Recipe, Ingredient)
            .join(Ingredient, Ingredient.id == Recipe.ingredient_id)
            .where(
                Recipe.food_item_id == food_item_id,
                Ingredient.tenant_id == tenant_id,
                Ingredient.is_active.is_(True),
                Ingredient.deleted_at.is_(None),
            )
            .order_by(Recipe.created_at)
        )
        return session.exec(stmt).all()

    def update_ingredient(self, session: Session, ingredient: Ingredient) -> Ingredient:
        session.add(ingredient)
        session.flush()
        return ingredient

    def add_transaction(
        self,
        session: Session,
        transaction: StockTransaction,
    ) -> StockTransaction:
        session.add(transaction)
        session.flush()
        return transaction
