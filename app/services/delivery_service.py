# app/services/delivery_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.time_utils import utcnow
from app.models.delivery import Delivery
from app.repositories.delivery_repo import DeliveryRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.restaurant_repo import RestaurantRepository
from app.schemas.delivery import DeliveryAssign, DeliveryStatusUpdate
from app.services.order_lifecycle_service import OrderLifecycleService

logger = logging.getLogger(__name__)

DELIVERY_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("assigned", "cancelled"),
    "assigned": ("out_for_delivery", "cancelled"),
    "out_for_delivery": ("delivered", "cancelled"),
    "delivered": (),
    # Restore path; clears the previous assignment
    "cancelled": ("pending",),
}

ASSIGNABLE_STATUSES = {"pending", "assigned"}


class DeliveryService:
    """
    Delivery records of delivery orders.

    create_delivery_for_order is called by order creation and never raises;
    the other operations back the /deliveries endpoints.
    """

    def __init__(
        self,
        delivery_repo: DeliveryRepository,
        order_repo: OrderRepository,
        restaurant_repo: RestaurantRepository,
        lifecycle: OrderLifecycleService,
    ):
        self.delivery_repo = delivery_repo
        self.order_repo = order_repo
        self.restaurant_repo = restaurant_repo
        self.lifecycle = lifecycle

    def create_delivery_for_order(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
        customer_address_id: uuid.UUID | None = None,
        delivery_charge: float = 0.0,
        notes: str | None = None,
    ) -> uuid.UUID | None:
        """
        Create the pending delivery record of an order, once.

        Returns the existing id when the order already has one, and None
        when the order is unknown or the write fails.
        """
        try:
            order = self.order_repo.get_by_id(session, tenant_id, order_id)
            if order is None:
                logger.warning("Delivery not created: order %s not found", order_id)
                return None

            existing = self.delivery_repo.get_by_order(session, order_id)
            if existing:
                return existing.id

            delivery = self.delivery_repo.save(
                session,
                Delivery(
                    order_id=order_id,
                    customer_address_id=customer_address_id,
                    delivery_charge=delivery_charge,
                    notes=notes,
                    status="pending",
                ),
            )
            session.commit()
            logger.info("Delivery %s created for order %s", delivery.id, order_id)
            return delivery.id
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Failed to create delivery for order %s", order_id)
            return None

    def sync_with_order(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
        customer_address_id: uuid.UUID | None,
        delivery_charge: float,
        notes: str | None,
    ) -> None:
        """
        Refresh charge/address of an order's delivery, creating it if missing.
        Flushes only.
        """
        delivery = self.delivery_repo.get_by_order(session, order_id)
        if delivery is None:
            delivery = Delivery(order_id=order_id, status="pending")

        delivery.delivery_charge = delivery_charge
        if customer_address_id:
            delivery.customer_address_id = customer_address_id
        if notes:
            delivery.notes = notes
        delivery.updated_at = utcnow()
        self.delivery_repo.save(session, delivery)

    def get_delivery(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        delivery_id: uuid.UUID,
    ) -> Delivery:
        delivery = self.delivery_repo.get_by_id(session, tenant_id, delivery_id)
        if not delivery:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Delivery not found",
            )
        return delivery

    def assign_delivery(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        payload: DeliveryAssign,
    ) -> Delivery:
        """
        Hand a delivery order to an active rider of the tenant.

        Raises:
            404 order not found
            400 not a delivery order / invalid rider
            409 delivery already out or delivered (or cancelled)
        """
        order = self.order_repo.get_by_id(session, tenant_id, payload.order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        if order.order_type != "delivery":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Order is not a delivery order",
            )

        person = self.restaurant_repo.get_user(session, tenant_id, payload.delivery_person_id)
        if person is None or not person.is_active or person.role != "delivery":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid or inactive delivery personnel",
            )

        delivery = self.delivery_repo.get_by_order(session, order.id)
        if delivery is not None and delivery.status not in ASSIGNABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    "message": f"Delivery is already {delivery.status} and cannot be reassigned",
                    "current_status": delivery.status,
                },
            )

        if delivery is None:
            delivery = Delivery(order_id=order.id, delivery_charge=order.delivery_charge)

        delivery.delivery_person_id = person.id
        delivery.status = "assigned"
        if payload.estimated_delivery_time:
            delivery.estimated_delivery_time = payload.estimated_delivery_time
        if payload.notes:
            delivery.notes = payload.notes
        delivery.updated_at = utcnow()

        try:
            delivery = self.delivery_repo.save(session, delivery)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Failed to assign delivery for order %s", order.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to assign delivery: {e}",
            )

        session.refresh(delivery)
        logger.info("Order %s assigned to rider %s", order.id, person.id)
        return delivery

    def update_delivery_status(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        delivery_id: uuid.UUID,
        payload: DeliveryStatusUpdate,
    ) -> Delivery:
        """
        Delivery state machine:

          pending          -> assigned, cancelled
          assigned         -> out_for_delivery, cancelled
          out_for_delivery -> delivered, cancelled
          delivered        -> (terminal)
          cancelled        -> pending (clears rider and ETA)

        Entering delivered completes the owning order.
        """
        delivery = self.get_delivery(session, tenant_id, delivery_id)

        current = delivery.status
        new = payload.status
        allowed = DELIVERY_TRANSITIONS.get(current, ())
        if new not in allowed:
            allowed_text = ", ".join(allowed) if allowed else "none"
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "message": (
                        f"Cannot transition delivery from {current} to {new}. "
                        f"Allowed transitions: {allowed_text}"
                    ),
                    "current_status": current,
                    "requested_status": new,
                    "allowed": list(allowed),
                },
            )

        if new == "assigned" and delivery.delivery_person_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Assign a delivery person before marking the delivery assigned",
            )

        now = utcnow()
        delivery.status = new
        delivery.updated_at = now
        if new == "delivered" and delivery.actual_delivery_time is None:
            delivery.actual_delivery_time = now
        if new == "pending" and current == "cancelled":
            delivery.delivery_person_id = None
            delivery.estimated_delivery_time = None

        order_id = delivery.order_id
        try:
            self.delivery_repo.save(session, delivery)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Failed to update delivery %s", delivery_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to update delivery status: {e}",
            )
        logger.info("Delivery %s status %s -> %s", delivery_id, current, new)

        if new == "delivered":
            self.lifecycle.complete_from_delivery(session, tenant_id, order_id)

        session.refresh(delivery)
        return delivery
