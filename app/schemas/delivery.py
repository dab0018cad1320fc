# app/schemas/delivery.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict
from sqlmodel import SQLModel

DeliveryStatus = Literal["pending", "assigned", "out_for_delivery", "delivered", "cancelled"]


class DeliveryAssign(SQLModel):
    """
    Manager payload to hand a delivery order to a rider.
    """

    model_config = ConfigDict(extra="forbid")

    order_id: uuid.UUID
    delivery_person_id: uuid.UUID
    estimated_delivery_time: datetime | None = None
    notes: str | None = None


class DeliveryStatusUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    status: DeliveryStatus


class DeliveryRead(SQLModel):
    id: uuid.UUID
    order_id: uuid.UUID
    delivery_person_id: uuid.UUID | None
    customer_address_id: uuid.UUID | None
    status: DeliveryStatus
    estimated_delivery_time: datetime | None
    actual_delivery_time: datetime | None
    delivery_charge: float
    notes: str | None
    created_at: datetime
    updated_at: datetime | None
