# app/models/delivery.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Delivery(SQLModel, table=True):
    """
    Delivery record of a delivery order (at most one per order).

    status: pending | assigned | out_for_delivery | delivered | cancelled

    Walk-in customers have no saved address; their address is kept in
    `notes` as a small JSON document.
    """

    __tablename__ = "deliveries"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        unique=True,
        index=True,
    )

    delivery_person_id: uuid.UUID | None = Field(default=None, index=True)
    customer_address_id: uuid.UUID | None = Field(default=None)

    status: str = Field(default="pending", index=True)

    estimated_delivery_time: datetime | None = Field(default=None)
    actual_delivery_time: datetime | None = Field(default=None)

    delivery_charge: float = Field(default=0.0, ge=0)
    notes: str | None = Field(default=None)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime | None = Field(default=None)
