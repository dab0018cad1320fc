# app/schemas/inventory.py
import uuid

from sqlmodel import SQLModel, Field


class StockRequirement(SQLModel):
    """
    Portions of one food item an order consumes.
    """

    food_item_id: uuid.UUID
    quantity: int


class InsufficientIngredient(SQLModel):
    ingredient_name: str
    available: float
    required: float


class StockCheck(SQLModel):
    is_valid: bool
    insufficient_items: list[InsufficientIngredient] = Field(default_factory=list)
