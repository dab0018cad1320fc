# app/services/order_lifecycle_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.events import OrderEvent, OrderEventBroadcaster, OrderEventType
from app.core.session_utils import non_fatal
from app.core.time_utils import utcnow
from app.models.order import Order, Payment
from app.repositories.order_repo import OrderRepository
from app.repositories.restaurant_repo import RestaurantRepository
from app.schemas.order import OrderDetailRead, OrderStatusUpdate, PaymentStatusUpdate
from app.services.order_reader import OrderReader

logger = logging.getLogger(__name__)

# Kitchen lifecycle. Anything not listed is rejected.
ORDER_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("preparing", "cancelled"),
    "preparing": ("ready", "cancelled"),
    "ready": ("served", "cancelled"),
    "served": ("completed", "cancelled"),
    "completed": (),
    "cancelled": (),
}

TERMINAL_STATUSES = {"completed", "cancelled"}
DELETABLE_STATUSES = {"pending", "cancelled"}


class OrderLifecycleService:
    """
    Status and payment transitions of existing orders.

    Responsibilities:
      - Enforce ORDER_TRANSITIONS
      - Stamp completed_at / cancelled_at / paid_at
      - Refresh customer statistics on completion
      - Release the dining table on completion / cancellation / deletion
      - Soft-delete pending or cancelled orders
      - Publish order events after each committed change
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        restaurant_repo: RestaurantRepository,
        reader: OrderReader,
        events: OrderEventBroadcaster,
    ):
        self.order_repo = order_repo
        self.restaurant_repo = restaurant_repo
        self.reader = reader
        self.events = events

    # -------- Status --------

    def update_status(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> OrderDetailRead:
        """
        Move an order to `payload.status`.

          pending   -> preparing, cancelled
          preparing -> ready, cancelled
          ready     -> served, cancelled
          served    -> completed, cancelled
          completed -> (terminal)
          cancelled -> (terminal)

        Invalid transitions (including "no change") raise 400 listing the
        allowed next states.
        """
        order = self._get_order(session, tenant_id, order_id)

        current = order.status
        new = payload.status
        allowed = ORDER_TRANSITIONS.get(current, ())

        if new not in allowed:
            allowed_text = ", ".join(allowed) if allowed else "none"
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "message": (
                        f"Cannot transition from {current} to {new}. "
                        f"Allowed transitions: {allowed_text}"
                    ),
                    "current_status": current,
                    "requested_status": new,
                    "allowed": list(allowed),
                },
            )

        now = utcnow()
        order.status = new
        order.updated_at = now
        if new == "completed":
            order.completed_at = now
        elif new == "cancelled":
            order.cancelled_at = now
            order.cancellation_reason = payload.cancellation_reason

        self._commit(session, order, "update order status")
        logger.info("Order %s status %s -> %s", order_id, current, new)

        self._after_status_change(session, tenant_id, order)
        return self._publish(session, tenant_id, order_id, "ORDER_STATUS_CHANGED")

    def complete_from_delivery(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> None:
        """
        Complete an order whose delivery was handed over.

        Bypasses the kitchen transition table; orders that already reached
        a terminal status are left untouched.
        """
        order = self.order_repo.get_by_id(session, tenant_id, order_id)
        if order is None or order.status in TERMINAL_STATUSES:
            return

        now = utcnow()
        previous = order.status
        order.status = "completed"
        order.completed_at = now
        order.updated_at = now
        self._commit(session, order, "complete delivered order")
        logger.info("Order %s completed on delivery (was %s)", order_id, previous)

        self._after_status_change(session, tenant_id, order)
        self._publish(session, tenant_id, order_id, "ORDER_STATUS_CHANGED")

    # -------- Payment --------

    def update_payment_status(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
        payload: PaymentStatusUpdate,
    ) -> OrderDetailRead:
        """
        Set payment_status. Independent of the kitchen lifecycle.

        Marking paid stamps paid_at once and leaves exactly one completed
        Payment for the order (amount defaults to the order total, method
        to cash). A pending payment from checkout is reused.
        """
        order = self._get_order(session, tenant_id, order_id)

        now = utcnow()
        order.payment_status = payload.payment_status
        order.updated_at = now

        if payload.payment_status == "paid":
            if order.paid_at is None:
                order.paid_at = now

            payments = self.order_repo.list_payments(session, order.id)
            payment = next(
                (p for p in payments if p.status in ("completed", "pending")),
                None,
            )
            if payment is None:
                payment = Payment(order_id=order.id, payment_method="cash", amount=0.0)

            payment.amount = (
                payload.amount_paid if payload.amount_paid is not None else order.total_amount
            )
            payment.payment_method = payload.payment_method or payment.payment_method or "cash"
            payment.status = "completed"
            if payment.paid_at is None:
                payment.paid_at = order.paid_at
            self.order_repo.save_payment(session, payment)

        self._commit(session, order, "update payment status")
        logger.info("Order %s payment status -> %s", order_id, payload.payment_status)

        return self._publish(session, tenant_id, order_id, "ORDER_UPDATED")

    # -------- Deletion --------

    def delete_order(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
        reason: str | None = None,
    ) -> dict:
        """
        Soft-delete a pending or cancelled order.

        The row stays with deleted_at set and status forced to cancelled.
        """
        order = self._get_order(session, tenant_id, order_id)

        if order.status not in DELETABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "message": (
                        f"Cannot delete order with status {order.status}. "
                        "Only pending or cancelled orders can be deleted."
                    ),
                    "current_status": order.status,
                },
            )

        now = utcnow()
        order.deleted_at = now
        order.status = "cancelled"
        order.cancelled_at = now
        order.cancellation_reason = reason or "Order deleted"
        order.updated_at = now

        self._commit(session, order, "delete order")
        logger.info("Order %s deleted", order_id)

        if order.table_id:
            self.release_table(session, tenant_id, order.table_id)

        self.events.emit(
            OrderEvent(type="ORDER_DELETED", tenant_id=tenant_id, order_id=order_id)
        )
        return {"message": "Order deleted successfully"}

    # -------- Side effects --------

    def release_table(self, session: Session, tenant_id: uuid.UUID, table_id: uuid.UUID) -> None:
        with non_fatal(session, "release table %s", table_id):
            table = self.restaurant_repo.get_table(session, tenant_id, table_id)
            if table is None:
                logger.warning("Table %s not found; nothing to release", table_id)
                return
            table.status = "available"
            table.updated_at = utcnow()
            self.restaurant_repo.update_table(session, table)

    def refresh_customer_stats(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        customer_id: uuid.UUID,
    ) -> None:
        """
        Recompute totals over every completed order of the customer.
        """
        with non_fatal(session, "refresh statistics of customer %s", customer_id):
            customer = self.restaurant_repo.get_customer(session, tenant_id, customer_id)
            if customer is None:
                return
            count, spent, last = self.order_repo.completed_stats_for_customer(
                session, tenant_id, customer_id
            )
            customer.total_orders = count
            customer.total_spent = round(spent, 2)
            customer.last_order_date = last
            customer.updated_at = utcnow()
            self.restaurant_repo.update_customer(session, customer)

    def _after_status_change(self, session: Session, tenant_id: uuid.UUID, order: Order) -> None:
        if order.status == "completed" and order.customer_id:
            self.refresh_customer_stats(session, tenant_id, order.customer_id)
        if order.status in TERMINAL_STATUSES and order.table_id:
            self.release_table(session, tenant_id, order.table_id)

    # -------- Helpers --------

    def _get_order(self, session: Session, tenant_id: uuid.UUID, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_by_id(session, tenant_id, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    def _commit(self, session: Session, order: Order, action: str) -> None:
        try:
            self.order_repo.update_order(session, order)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Failed to %s for order %s", action, order.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to {action}: {e}",
            )

    def _publish(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
        event_type: OrderEventType,
    ) -> OrderDetailRead:
        detail = self.reader.get_order(session, tenant_id, order_id)
        self.events.emit(
            OrderEvent(
                type=event_type,
                tenant_id=tenant_id,
                order_id=order_id,
                order=detail.model_dump(mode="json"),
            )
        )
        return detail
