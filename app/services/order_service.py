# app/services/order_service.py
import json
import logging
import uuid

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.events import OrderEvent, OrderEventBroadcaster, OrderEventType
from app.core.session_utils import non_fatal
from app.core.time_utils import local_day_start, utcnow
from app.models.order import Order, OrderItem, OrderItemAddOn, Payment
from app.models.restaurant import Branch
from app.repositories.order_repo import OrderRepository
from app.repositories.restaurant_repo import RestaurantRepository
from app.schemas.inventory import StockRequirement
from app.schemas.order import (
    OrderCreate,
    OrderDetailRead,
    OrderItemAddOnCreate,
    OrderItemCreate,
    OrderUpdate,
)
from app.schemas.pricing import PricingBreakdown
from app.services.coupon_service import CouponService
from app.services.delivery_service import DeliveryService
from app.services.inventory_service import InventoryService, describe_shortage
from app.services.order_reader import OrderReader
from app.services.pricing_service import apportion_tax, round_money, PricingCalculator

logger = logging.getLogger(__name__)

# Created on the fly when a tenant has no branch yet, so a POS terminal
# can take orders before setup is finished.
DEFAULT_BRANCH_NAME = "Main Branch"
DEFAULT_BRANCH_CODE = "MAIN"


class OrderService:
    """
    Business logic for creating and modifying orders.

    Responsibilities:
      - Resolve branch / counter defaults
      - Validate stock before anything is written
      - Price the cart (PricingCalculator)
      - Number the order and its kitchen token
      - Persist order + items + add-ons, then deduct stock
      - Compensate (soft-delete) when deduction fails after commit
      - Best-effort side steps: coupon usage, table, payment, delivery
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        restaurant_repo: RestaurantRepository,
        pricing: PricingCalculator,
        inventory_service: InventoryService,
        coupon_service: CouponService,
        delivery_service: DeliveryService,
        reader: OrderReader,
        events: OrderEventBroadcaster,
    ):
        self.order_repo = order_repo
        self.restaurant_repo = restaurant_repo
        self.pricing = pricing
        self.inventory_service = inventory_service
        self.coupon_service = coupon_service
        self.delivery_service = delivery_service
        self.reader = reader
        self.events = events

    # -------- Create --------

    def create_order(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        actor_id: uuid.UUID | None,
        payload: OrderCreate,
    ) -> OrderDetailRead:
        """
        Create an order from a POS cart.

        Steps (each may abort):
          1. Resolve branch (fallback: oldest active, then a new default).
          2. Reject an empty cart.
          3. Validate ingredient stock; nothing is written on failure.
          4. Price the cart; coupon and food item errors propagate.
          5. Number the order / token from today's counts.
          6. Default the counter.
          7-8. Insert order, items, add-ons and commit.
          9. Record coupon usage (non-fatal).
          10. Deduct stock; on failure soft-delete the order and raise 400.
          11. Occupy the dine-in table (non-fatal).
          12. Pending payment for pay_first orders (non-fatal).
          13. Delivery record for delivery orders (non-fatal).
          14. Return the re-read order, or the in-memory data if that fails.
        """
        branch = self._resolve_branch(session, tenant_id, payload.branch_id)

        if not payload.items:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Order must contain at least one item",
            )

        requirements = self._requirements(payload.items)
        self._ensure_stock(session, tenant_id, requirements, "Cannot create order")

        breakdown = self.pricing.compute_totals(
            session,
            tenant_id,
            payload.items,
            extra_discount=payload.extra_discount_amount,
            coupon_code=payload.coupon_code,
            order_type=payload.order_type,
            customer_id=payload.customer_id,
        )

        order_number, token_number = self._next_numbers(
            session, tenant_id, branch, payload.token_number
        )

        counter_id = payload.counter_id
        if counter_id is None:
            counter = self.restaurant_repo.get_default_counter(session, branch.id)
            counter_id = counter.id if counter else None

        now = utcnow()
        try:
            order = self.order_repo.create_order(
                session,
                Order(
                    tenant_id=tenant_id,
                    branch_id=branch.id,
                    counter_id=counter_id,
                    table_id=payload.table_id,
                    customer_id=payload.customer_id,
                    cashier_id=actor_id,
                    order_number=order_number,
                    token_number=token_number,
                    order_type=payload.order_type,
                    status="pending",
                    payment_status="unpaid",
                    payment_timing=payload.payment_timing,
                    subtotal=breakdown.subtotal,
                    discount_amount=breakdown.discount_amount,
                    tax_amount=breakdown.tax_amount,
                    delivery_charge=breakdown.delivery_charge,
                    total_amount=breakdown.total_amount,
                    coupon_code=payload.coupon_code if breakdown.coupon_id else None,
                    coupon_discount=breakdown.coupon_discount if breakdown.coupon_id else None,
                    special_instructions=payload.special_instructions,
                    placed_at=now,
                    created_at=now,
                    updated_at=now,
                ),
            )
            order_id = order.id
            order_data = order.model_dump()
            self._persist_items(session, order_id, breakdown)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Failed to persist order for tenant %s", tenant_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to create order: {e}",
            )

        logger.info("Order %s (%s) created at branch %s", order_number, order_id, branch.code)

        if breakdown.coupon_id:
            with non_fatal(session, "record coupon usage for order %s", order_id):
                self.coupon_service.record_usage(
                    session, tenant_id, breakdown.coupon_id, order_id, payload.customer_id
                )

        self._deduct_or_compensate(session, tenant_id, actor_id, order_id, requirements)

        if payload.order_type == "dine_in" and payload.table_id:
            self._occupy_table(session, tenant_id, payload.table_id)

        if payload.payment_method and payload.payment_timing == "pay_first":
            with non_fatal(session, "create pending payment for order %s", order_id):
                self.order_repo.save_payment(
                    session,
                    Payment(
                        order_id=order_id,
                        payment_method=payload.payment_method,
                        amount=breakdown.total_amount,
                        status="pending",
                    ),
                )

        if payload.order_type == "delivery":
            self.delivery_service.create_delivery_for_order(
                session,
                tenant_id,
                order_id,
                customer_address_id=payload.customer_address_id,
                delivery_charge=breakdown.delivery_charge,
                notes=None if payload.customer_address_id else self._address_note(payload),
            )

        detail = self._hydrate(session, tenant_id, order_id, order_data)
        self._emit("ORDER_CREATED", tenant_id, order_id, detail)
        return detail

    # -------- Update --------

    def update_order(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        actor_id: uuid.UUID | None,
        order_id: uuid.UUID,
        payload: OrderUpdate,
    ) -> OrderDetailRead:
        """
        Modify an unpaid order.

          - new items: re-validate stock, replace every item row
          - no items: re-price the stored cart (add-ons included)
          - status goes back to pending
          - stock is re-deducted for newly supplied items only (non-fatal)

        Fields missing from the payload keep their stored value.
        """
        order = self.order_repo.get_by_id(session, tenant_id, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        if order.payment_status == "paid":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot modify order that has been paid",
            )

        fields = payload.model_fields_set
        stored_items = self.order_repo.list_items_for_order(session, order.id)

        new_requirements: list[StockRequirement] = []
        if payload.items is not None:
            cart = payload.items
            new_requirements = self._requirements(cart)
            self._ensure_stock(session, tenant_id, new_requirements, "Cannot update order")
        else:
            cart = self._stored_cart(session, stored_items)

        if not cart:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Order must contain at least one item",
            )

        order_type = order.order_type
        if "order_type" in fields and payload.order_type:
            order_type = payload.order_type
        customer_id = payload.customer_id if "customer_id" in fields else order.customer_id
        table_id = payload.table_id if "table_id" in fields else order.table_id

        if "extra_discount_amount" in fields and payload.extra_discount_amount is not None:
            extra_discount = payload.extra_discount_amount
        else:
            extra_discount = self._stored_extra_discount(order, stored_items)

        coupon_code = payload.coupon_code if "coupon_code" in fields else order.coupon_code
        coupon_changed = bool(coupon_code) and (
            (coupon_code or "").upper() != (order.coupon_code or "").upper()
        )
        # An already redeemed coupon keeps its granted amount
        locked_coupon = None
        if coupon_code and not coupon_changed:
            locked_coupon = order.coupon_discount or 0.0

        breakdown = self.pricing.compute_totals(
            session,
            tenant_id,
            cart,
            extra_discount=extra_discount,
            coupon_code=coupon_code,
            order_type=order_type,
            customer_id=customer_id,
            locked_coupon_discount=locked_coupon,
        )

        now = utcnow()
        try:
            self.order_repo.delete_items_for_order(session, order.id)
            self._persist_items(session, order.id, breakdown)

            order.order_type = order_type
            order.customer_id = customer_id
            order.table_id = table_id
            if "special_instructions" in fields:
                order.special_instructions = payload.special_instructions
            order.coupon_code = coupon_code if coupon_code else None
            order.coupon_discount = breakdown.coupon_discount if coupon_code else None
            order.subtotal = breakdown.subtotal
            order.discount_amount = breakdown.discount_amount
            order.tax_amount = breakdown.tax_amount
            order.delivery_charge = breakdown.delivery_charge
            order.total_amount = breakdown.total_amount
            order.status = "pending"
            order.updated_at = now

            self.order_repo.update_order(session, order)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Failed to update order %s", order_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to update order: {e}",
            )

        logger.info("Order %s updated", order_id)

        if coupon_changed and breakdown.coupon_id:
            with non_fatal(session, "record coupon usage for order %s", order_id):
                self.coupon_service.record_usage(
                    session, tenant_id, breakdown.coupon_id, order_id, customer_id
                )

        if order_type == "delivery":
            address_fields = {
                "customer_address", "customer_address_ar", "customer_city",
                "customer_state", "customer_country",
            }
            notes = self._address_note(payload) if fields & address_fields else None
            with non_fatal(session, "sync delivery for order %s", order_id):
                self.delivery_service.sync_with_order(
                    session,
                    tenant_id,
                    order_id,
                    payload.customer_address_id,
                    breakdown.delivery_charge,
                    notes,
                )

        if new_requirements:
            # Stock of the replaced items is not restored
            with non_fatal(session, "deduct stock for updated order %s", order_id):
                self.inventory_service.deduct_stock_for_order(
                    session, tenant_id, actor_id, order_id, new_requirements
                )

        detail = self.reader.get_order(session, tenant_id, order_id)
        self._emit("ORDER_UPDATED", tenant_id, order_id, detail)
        return detail

    # -------- Steps --------

    def _resolve_branch(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        branch_id: uuid.UUID | None,
    ) -> Branch:
        if branch_id:
            branch = self.restaurant_repo.get_branch(session, tenant_id, branch_id)
            if branch and branch.is_active:
                return branch
            logger.info(
                "Branch %s not usable for tenant %s; falling back to default branch",
                branch_id,
                tenant_id,
            )

        branch = self.restaurant_repo.get_oldest_active_branch(session, tenant_id)
        if branch:
            return branch

        try:
            branch = self.restaurant_repo.create_branch(
                session,
                Branch(
                    tenant_id=tenant_id,
                    name=DEFAULT_BRANCH_NAME,
                    code=DEFAULT_BRANCH_CODE,
                ),
            )
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Failed to create default branch for tenant %s", tenant_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to create order: {e}",
            )
        session.refresh(branch)
        logger.info("Created default branch %s for tenant %s", branch.id, tenant_id)
        return branch

    def _requirements(self, items: list[OrderItemCreate]) -> list[StockRequirement]:
        return [
            StockRequirement(food_item_id=item.food_item_id, quantity=item.quantity)
            for item in items
        ]

    def _ensure_stock(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        requirements: list[StockRequirement],
        prefix: str,
    ) -> None:
        check = self.inventory_service.validate_stock_for_order(session, tenant_id, requirements)
        if check.is_valid:
            return
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": (
                    f"{prefix}: Insufficient inventory. "
                    f"{describe_shortage(check.insufficient_items)}"
                ),
                "insufficient_items": [i.model_dump() for i in check.insufficient_items],
            },
        )

    def _next_numbers(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        branch: Branch,
        requested_token: str | None,
    ) -> tuple[str, str]:
        """
        Daily counters from live counts; concurrent orders may collide.
        """
        now = utcnow()
        since = local_day_start(now)

        seq = self.order_repo.count_orders_since(session, tenant_id, branch.id, since) + 1
        order_number = f"{branch.code}-{now.astimezone():%Y%m%d}-{seq:04d}"

        if requested_token:
            return order_number, requested_token

        tokens = self.order_repo.count_orders_since(
            session, tenant_id, branch.id, since, with_token_only=True
        )
        return order_number, f"{tokens + 1:03d}"

    def _persist_items(
        self,
        session: Session,
        order_id: uuid.UUID,
        breakdown: PricingBreakdown,
    ) -> None:
        for line in breakdown.lines:
            item_tax = apportion_tax(line.item_subtotal, breakdown.subtotal, breakdown.tax_amount)
            item = self.order_repo.create_item(
                session,
                OrderItem(
                    order_id=order_id,
                    food_item_id=line.food_item_id,
                    variation_id=line.variation_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    discount_amount=line.discount_amount,
                    tax_amount=item_tax,
                    subtotal=round_money(line.item_subtotal - line.discount_amount + item_tax),
                    special_instructions=line.special_instructions,
                ),
            )
            if line.add_ons:
                self.order_repo.create_add_ons(
                    session,
                    [
                        OrderItemAddOn(
                            order_item_id=item.id,
                            add_on_id=a.add_on_id,
                            quantity=a.quantity,
                            unit_price=a.unit_price,
                        )
                        for a in line.add_ons
                    ],
                )

    def _deduct_or_compensate(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        actor_id: uuid.UUID | None,
        order_id: uuid.UUID,
        requirements: list[StockRequirement],
    ) -> None:
        """
        Deduct stock for a committed order. On failure the order is
        soft-deleted and a 400 is raised.
        """
        try:
            self.inventory_service.deduct_stock_for_order(
                session, tenant_id, actor_id, order_id, requirements
            )
            session.commit()
            return
        except (HTTPException, SQLAlchemyError) as e:
            session.rollback()
            reason = e.detail if isinstance(e, HTTPException) else str(e)

        logger.info("Stock deduction failed for order %s; cancelling it", order_id)
        try:
            order = self.order_repo.get_by_id(session, tenant_id, order_id)
            if order is not None:
                now = utcnow()
                order.deleted_at = now
                order.status = "cancelled"
                order.cancelled_at = now
                order.cancellation_reason = "Stock deduction failed"
                order.updated_at = now
                self.order_repo.update_order(session, order)
                session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Failed to cancel order %s after stock deduction failure", order_id)

        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "stock_deduction_failed",
                "message": f"Stock deduction failed: {reason}. Order has been cancelled.",
                "order_id": str(order_id),
            },
        )

    def _occupy_table(self, session: Session, tenant_id: uuid.UUID, table_id: uuid.UUID) -> None:
        with non_fatal(session, "mark table %s occupied", table_id):
            table = self.restaurant_repo.get_table(session, tenant_id, table_id)
            if table is None:
                logger.warning("Table %s not found; order kept without table status", table_id)
                return
            table.status = "occupied"
            table.updated_at = utcnow()
            self.restaurant_repo.update_table(session, table)

    def _stored_cart(self, session: Session, items: list[OrderItem]) -> list[OrderItemCreate]:
        add_ons = self.order_repo.list_add_ons_for_items(session, [it.id for it in items])
        return [
            OrderItemCreate(
                food_item_id=it.food_item_id,
                variation_id=it.variation_id,
                quantity=it.quantity,
                special_instructions=it.special_instructions,
                add_ons=[
                    OrderItemAddOnCreate(add_on_id=a.add_on_id, quantity=a.quantity)
                    for a in add_ons
                    if a.order_item_id == it.id
                ],
            )
            for it in items
        ]

    def _stored_extra_discount(self, order: Order, items: list[OrderItem]) -> float:
        # Manual discount is not stored separately
        item_discounts = sum(it.discount_amount for it in items)
        return round_money(
            max(0.0, order.discount_amount - item_discounts - (order.coupon_discount or 0.0))
        )

    def _address_note(self, payload: OrderCreate | OrderUpdate) -> str | None:
        """
        Walk-in delivery address as a small JSON note.
        """
        address = {
            "address_en": payload.customer_address,
            "address_ar": payload.customer_address_ar,
            "city": payload.customer_city,
            "state": payload.customer_state,
            "country": payload.customer_country,
        }
        if not any(address.values()):
            return None
        return json.dumps(address, ensure_ascii=False)

    def _hydrate(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
        order_data: dict,
    ) -> OrderDetailRead:
        try:
            return self.reader.get_order(session, tenant_id, order_id)
        except Exception:
            session.rollback()
            logger.warning(
                "Could not re-read order %s; returning in-memory data", order_id, exc_info=True
            )
            return self.reader.fallback_view(order_data)

    def _emit(
        self,
        event_type: OrderEventType,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
        detail: OrderDetailRead,
    ) -> None:
        self.events.emit(
            OrderEvent(
                type=event_type,
                tenant_id=tenant_id,
                order_id=order_id,
                order=detail.model_dump(mode="json"),
            )
        )
