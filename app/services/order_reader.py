# app/services/order_reader.py
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from fastapi import HTTPException, status
from sqlmodel import Session

from app.models.order import Order
from app.repositories.menu_repo import MenuRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.restaurant_repo import RestaurantRepository
from app.schemas.order import (
    BranchSummary,
    CashierSummary,
    CounterSummary,
    CustomerSummary,
    OrderDetailRead,
    OrderItemAddOnRead,
    OrderItemRead,
    OrderRead,
    PaymentRead,
    TableSummary,
    TimelineEntry,
)

KITCHEN_STATUSES = {"preparing", "ready", "served", "completed"}
READY_STATUSES = {"ready", "served", "completed"}
SERVED_STATUSES = {"served", "completed"}


def build_timeline(order: Order | dict[str, Any]) -> list[TimelineEntry]:
    """
    Human-readable history derived from the order's status and timestamps.
    """
    o = order if isinstance(order, dict) else order.model_dump()
    current = o["status"]
    timeline: list[TimelineEntry] = []

    if o.get("placed_at"):
        timeline.append(TimelineEntry(event="Order Placed", timestamp=o["placed_at"]))
    if o.get("paid_at"):
        timeline.append(TimelineEntry(event="Payment Received", timestamp=o["paid_at"]))
    if current in KITCHEN_STATUSES:
        timeline.append(
            TimelineEntry(
                event="Sent to Kitchen",
                timestamp=o.get("placed_at") or o.get("created_at"),
            )
        )
    if current in READY_STATUSES:
        timeline.append(TimelineEntry(event="Order Ready", timestamp=o.get("updated_at")))
    if current in SERVED_STATUSES:
        timeline.append(TimelineEntry(event="Order Served", timestamp=o.get("updated_at")))
    if current == "completed" and o.get("completed_at"):
        timeline.append(TimelineEntry(event="Order Completed", timestamp=o["completed_at"]))
    if current == "cancelled" and o.get("cancelled_at"):
        timeline.append(
            TimelineEntry(
                event="Order Cancelled",
                timestamp=o["cancelled_at"],
                reason=o.get("cancellation_reason"),
            )
        )
    return timeline


class OrderReader:
    """
    Assembles API views of orders.

    Read-only: never commits, never emits events.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        restaurant_repo: RestaurantRepository,
        menu_repo: MenuRepository,
    ):
        self.order_repo = order_repo
        self.restaurant_repo = restaurant_repo
        self.menu_repo = menu_repo

    def get_order(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> OrderDetailRead:
        """
        Full order view. 404 for unknown, foreign or deleted orders.
        """
        order = self.order_repo.get_by_id(session, tenant_id, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )

        items = self.order_repo.list_items_for_order(session, order.id)
        add_ons = self.order_repo.list_add_ons_for_items(session, [it.id for it in items])
        food_items = self.menu_repo.get_food_items(session, list({it.food_item_id for it in items}))
        variations = self.menu_repo.get_variations(
            session, list({it.variation_id for it in items if it.variation_id})
        )
        add_on_catalog = self.menu_repo.get_add_ons(
            session, tenant_id, list({a.add_on_id for a in add_ons})
        )

        item_reads: list[OrderItemRead] = []
        for it in items:
            variation = variations.get(it.variation_id) if it.variation_id else None
            food_item = food_items.get(it.food_item_id)
            item_reads.append(
                OrderItemRead(
                    **it.model_dump(),
                    food_item_name=food_item.name if food_item else None,
                    variation_name=variation.variation_name if variation else None,
                    add_ons=[
                        OrderItemAddOnRead(
                            **a.model_dump(),
                            name=add_on_catalog[a.add_on_id].name
                            if a.add_on_id in add_on_catalog
                            else None,
                        )
                        for a in add_ons
                        if a.order_item_id == it.id
                    ],
                )
            )

        counter = self.restaurant_repo.get_counter(session, order.counter_id) if order.counter_id else None
        cashier = (
            self.restaurant_repo.get_user(session, tenant_id, order.cashier_id)
            if order.cashier_id
            else None
        )
        payments = self.order_repo.list_payments(session, order.id)

        return OrderDetailRead(
            **self._header(session, tenant_id, order, item_count=len(items)),
            counter=CounterSummary(**counter.model_dump()) if counter else None,
            cashier=CashierSummary(**cashier.model_dump()) if cashier else None,
            items=item_reads,
            payments=[PaymentRead(**p.model_dump()) for p in payments],
            timeline=build_timeline(order),
        )

    def list_orders(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        statuses: list[str] | None = None,
        branch_id: uuid.UUID | None = None,
        order_type: str | None = None,
        payment_status: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[OrderRead]:
        """
        Newest first. Dates are inclusive calendar days (UTC).
        """
        created_from = (
            datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None
        )
        created_before = (
            datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
            if end_date
            else None
        )

        orders = self.order_repo.list_orders(
            session,
            tenant_id,
            statuses=statuses,
            branch_id=branch_id,
            order_type=order_type,
            payment_status=payment_status,
            created_from=created_from,
            created_before=created_before,
            offset=offset,
            limit=limit,
        )
        counts = self.order_repo.item_counts(session, [o.id for o in orders])

        return [
            OrderRead(**self._header(session, tenant_id, o, item_count=counts.get(o.id, 0)))
            for o in orders
        ]

    def fallback_view(self, order_data: dict[str, Any]) -> OrderDetailRead:
        """
        Minimal view built from data already in memory, used when re-reading
        a just-written order fails.
        """
        return OrderDetailRead(
            **order_data,
            timeline=[
                TimelineEntry(
                    event="Order Placed",
                    timestamp=order_data.get("placed_at") or order_data.get("created_at"),
                )
            ],
        )

    def _header(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        order: Order,
        item_count: int,
    ) -> dict[str, Any]:
        branch = self.restaurant_repo.get_branch(session, tenant_id, order.branch_id)
        table = (
            self.restaurant_repo.get_table(session, tenant_id, order.table_id)
            if order.table_id
            else None
        )
        customer = (
            self.restaurant_repo.get_customer(session, tenant_id, order.customer_id)
            if order.customer_id
            else None
        )
        return {
            **order.model_dump(),
            "item_count": item_count,
            "branch": BranchSummary(**branch.model_dump()) if branch else None,
            "table": TableSummary(**table.model_dump()) if table else None,
            "customer": CustomerSummary(**customer.model_dump()) if customer else None,
        }
