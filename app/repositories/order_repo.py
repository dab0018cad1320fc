# app/repositories/order_repo.py
import uuid
from datetime import datetime

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.order import Order, OrderItem, OrderItemAddOn, Payment


class OrderRepository:
    """
    Data access layer for orders, order_items, order_item_add_ons and payments.

    NOTE:
      - No commits here; order creation is a multi-step unit of work.
        The service is responsible for calling session.commit().
      - Every order lookup is tenant-scoped and skips soft-deleted rows.
    """

    # ---- Orders ----

    def get_by_id(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> Order | None:
        stmt = select(Order).where(
            Order.id == order_id,
            Order.tenant_id == tenant_id,
            Order.deleted_at.is_(None),
        )
        return session.exec(stmt).first()

    def list_orders(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        statuses: list[str] | None = None,
        branch_id: uuid.UUID | None = None,
        order_type: str | None = None,
        payment_status: str | None = None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = select(Order).where(
            Order.tenant_id == tenant_id,
            Order.deleted_at.is_(None),
        )
        if statuses:
            stmt = stmt.where(Order.status.in_(statuses))
        if branch_id:
            stmt = stmt.where(Order.branch_id == branch_id)
        if order_type:
            stmt = stmt.where(Order.order_type == order_type)
        if payment_status:
            stmt = stmt.where(Order.payment_status == payment_status)
        if created_from:
            stmt = stmt.where(Order.created_at >= created_from)
        if created_before:
            stmt = stmt.where(Order.created_at < created_before)

        stmt = stmt.order_by(Order.created_at.desc()).offset(offset).limit(limit)
        return session.exec(stmt).all()

    def count_orders_since(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        branch_id: uuid.UUID,
        since: datetime,
        with_token_only: bool = False,
    ) -> int:
        """
        Count non-deleted orders of a branch created at or after `since`.
        """
        stmt = select(func.count()).select_from(Order).where(
            Order.tenant_id == tenant_id,
            Order.branch_id == branch_id,
            Order.deleted_at.is_(None),
            Order.created_at >= since,
        )
        if with_token_only:
            stmt = stmt.where(Order.token_number.is_not(None))
        return session.exec(stmt).one()

    def completed_stats_for_customer(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        customer_id: uuid.UUID,
    ) -> tuple[int, float, datetime | None]:
        """
        (count, total spent, latest completion) over a customer's completed orders.
        """
        stmt = select(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_amount), 0.0),
            func.max(Order.completed_at),
        ).where(
            Order.tenant_id == tenant_id,
            Order.customer_id == customer_id,
            Order.status == "completed",
            Order.deleted_at.is_(None),
        )
        count, total, last = session.exec(stmt).one()
        return int(count or 0), float(total or 0.0), last

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.created_at)
        )
        return session.exec(stmt).all()

    def item_counts(
        self,
        session: Session,
        order_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, int]:
        if not order_ids:
            return {}
        stmt = (
            select(OrderItem.order_id, func.count(OrderItem.id))
            .where(OrderItem.order_id.in_(order_ids))
            .group_by(OrderItem.order_id)
        )
        return {order_id: count for order_id, count in session.exec(stmt).all()}

    def create_item(self, session: Session, item: OrderItem) -> OrderItem:
        session.add(item)
        session.flush()
        session.refresh(item)
        return item

    def create_add_ons(
        self,
        session: Session,
        add_ons: list[OrderItemAddOn],
    ) -> list[OrderItemAddOn]:
        session.add_all(add_ons)
        session.flush()
        return add_ons

    def list_add_ons_for_items(
        self,
        session: Session,
        item_ids: list[uuid.UUID],
    ) -> list[OrderItemAddOn]:
        if not item_ids:
            return []
        stmt = select(OrderItemAddOn).where(OrderItemAddOn.order_item_id.in_(item_ids))
        return session.exec(stmt).all()

    def delete_items_for_order(self, session: Session, order_id: uuid.UUID) -> None:
        """
        Remove every item (and its add-ons) of an order.
        """
        items = self.list_items_for_order(session, order_id)
        for add_on in self.list_add_ons_for_items(session, [it.id for it in items]):
            session.delete(add_on)
        session.flush()
        for item in items:
            session.delete(item)
        session.flush()

    # ---- Payments ----

    def list_payments(self, session: Session, order_id: uuid.UUID) -> list[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.order_id == order_id)
            .order_by(Payment.created_at)
        )
        return session.exec(stmt).all()

    def save_payment(self, session: Session, payment: Payment) -> Payment:
        session.add(payment)
        session.flush()
        session.refresh(payment)
        return payment
