# app/repositories/delivery_repo.py
import uuid

from sqlmodel import Session, select

from app.models.delivery import Delivery
from app.models.order import Order


class DeliveryRepository:
    """
    Data access for deliveries. Tenant scoping goes through the owning order.
    """

    def get_by_id(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        delivery_id: uuid.UUID,
    ) -> Delivery | None:
        stmt = (
            select(Delivery)
            .join(Order, Order.id == Delivery.order_id)
            .where(
                Delivery.id == delivery_id,
                Order.tenant_id == tenant_id,
            )
        )
        return session.exec(stmt).first()

    def get_by_order(self, session: Session, order_id: uuid.UUID) -> Delivery | None:
        stmt = select(Delivery).where(Delivery.order_id == order_id)
        return session.exec(stmt).first()

    def save(self, session: Session, delivery: Delivery) -> Delivery:
        session.add(delivery)
        session.flush()
        session.refresh(delivery)
        return delivery
