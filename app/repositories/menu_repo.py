# app/repositories/menu_repo.py
import uuid
from datetime import datetime

from sqlalchemy import or_
from sqlmodel import Session, select

from app.models.menu import AddOn, FoodItem, FoodItemDiscount, FoodItemVariation


class MenuRepository:
    """
    Read-only catalog lookups used by pricing and order hydration.
    """

    def get_food_item(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        food_item_id: uuid.UUID,
    ) -> FoodItem | None:
        stmt = select(FoodItem).where(
            FoodItem.id == food_item_id,
            FoodItem.tenant_id == tenant_id,
            FoodItem.deleted_at.is_(None),
        )
        return session.exec(stmt).first()

    def get_food_items(
        self,
        session: Session,
        food_item_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, FoodItem]:
        if not food_item_ids:
            return {}
        stmt = select(FoodItem).where(FoodItem.id.in_(food_item_ids))
        return {fi.id: fi for fi in session.exec(stmt).all()}

    def get_variation(
        self,
        session: Session,
        food_item_id: uuid.UUID,
        variation_id: uuid.UUID,
    ) -> FoodItemVariation | None:
        stmt = select(FoodItemVariation).where(
            FoodItemVariation.id == variation_id,
            FoodItemVariation.food_item_id == food_item_id,
        )
        return session.exec(stmt).first()

    def get_variations(
        self,
        session: Session,
        variation_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, FoodItemVariation]:
        if not variation_ids:
            return {}
        stmt = select(FoodItemVariation).where(FoodItemVariation.id.in_(variation_ids))
        return {v.id: v for v in session.exec(stmt).all()}

    def get_add_ons(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        add_on_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, AddOn]:
        if not add_on_ids:
            return {}
        stmt = select(AddOn).where(
            AddOn.id.in_(add_on_ids),
            AddOn.tenant_id == tenant_id,
            AddOn.deleted_at.is_(None),
        )
        return {a.id: a for a in session.exec(stmt).all()}

    def list_active_discounts(
        self,
        session: Session,
        food_item_id: uuid.UUID,
        now: datetime,
    ) -> list[FoodItemDiscount]:
        """
        Discounts active at `now`, oldest first. Missing bounds are open.
        """
        stmt = (
            select(FoodItemDiscount)
            .where(
                FoodItemDiscount.food_item_id == food_item_id,
                FoodItemDiscount.is_active.is_(True),
                or_(FoodItemDiscount.start_date.is_(None), FoodItemDiscount.start_date <= now),
                or_(FoodItemDiscount.end_date.is_(None), FoodItemDiscount.end_date >= now),
            )
            .order_by(FoodItemDiscount.created_at)
        )
        return session.exec(stmt).all()
