# app/routers/orders.py
import asyncio
import logging
import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlmodel import Session

from app.core.auth import require_auth, require_manager
from app.core.config import get_settings
from app.core.events import OrderEvent, order_events
from app.database import get_session
from app.models.user import User
from app.repositories.coupon_repo import CouponRepository
from app.repositories.delivery_repo import DeliveryRepository
from app.repositories.inventory_repo import InventoryRepository
from app.repositories.menu_repo import MenuRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.restaurant_repo import RestaurantRepository
from app.repositories.settings_repo import SettingsRepository
from app.repositories.tax_repo import TaxRepository
from app.schemas.order import (
    OrderCreate,
    OrderDetailRead,
    OrderRead,
    OrderStatusUpdate,
    OrderType,
    OrderUpdate,
    PaymentStatus,
    PaymentStatusUpdate,
)
from app.services.coupon_service import CouponService
from app.services.delivery_service import DeliveryService
from app.services.inventory_service import InventoryService
from app.services.order_lifecycle_service import OrderLifecycleService
from app.services.order_reader import OrderReader
from app.services.order_service import OrderService
from app.services.pricing_service import PricingCalculator
from app.services.settings_service import SettingsService
from app.services.tax_service import TaxService

router = APIRouter(prefix="/orders", tags=["Orders"])

settings = get_settings()
logger = logging.getLogger(__name__)

order_repo = OrderRepository()
restaurant_repo = RestaurantRepository()
menu_repo = MenuRepository()

coupon_service = CouponService(CouponRepository())
inventory_service = InventoryService(InventoryRepository())
pricing = PricingCalculator(
    menu_repo,
    coupon_service,
    TaxService(TaxRepository()),
    SettingsService(SettingsRepository()),
)
reader = OrderReader(order_repo, restaurant_repo, menu_repo)
lifecycle = OrderLifecycleService(order_repo, restaurant_repo, reader, order_events)
delivery_service = DeliveryService(DeliveryRepository(), order_repo, restaurant_repo, lifecycle)
service = OrderService(
    order_repo,
    restaurant_repo,
    pricing,
    inventory_service,
    coupon_service,
    delivery_service,
    reader,
    order_events,
)


@router.get(
    "",
    response_model=list[OrderRead],
)
def list_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    status_filter: str | None = Query(
        default=None,
        alias="status",
        description="Comma separated, e.g. pending,preparing",
    ),
    branch_id: uuid.UUID | None = None,
    order_type: OrderType | None = None,
    payment_status: PaymentStatus | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    """
    List the tenant's orders, newest first.
    """
    statuses = [s.strip() for s in status_filter.split(",") if s.strip()] if status_filter else None
    return reader.list_orders(
        session,
        current_user.tenant_id,
        statuses=statuses,
        branch_id=branch_id,
        order_type=order_type,
        payment_status=payment_status,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )


@router.post(
    "",
    response_model=OrderDetailRead,
    status_code=201,
)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Create an order from a POS cart.

    Totals are always computed server-side; stock is validated before
    anything is written and deducted after the order is saved.
    """
    return service.create_order(session, current_user.tenant_id, current_user.id, payload)


@router.get("/kitchen/stream")
async def kitchen_stream(
    request: Request,
    current_user: User = Depends(require_auth),
):
    """
    Server-sent events with every order change of the tenant.

    Accepts the token as ?token=... for EventSource clients.
    """
    tenant_id = current_user.tenant_id
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[OrderEvent] = asyncio.Queue()

    def on_event(event: OrderEvent) -> None:
        # Emitted from worker threads
        loop.call_soon_threadsafe(queue.put_nowait, event)

    unsubscribe = order_events.subscribe(tenant_id, on_event)
    logger.info("Kitchen stream connected for tenant %s", tenant_id)

    async def event_stream():
        try:
            yield ": connected\n\n"
            while not await request.is_disconnected():
                try:
                    event = await asyncio.wait_for(
                        queue.get(), timeout=settings.SSE_HEARTBEAT_SECONDS
                    )
                except asyncio.TimeoutError:
                    yield ": heartbeat\n\n"
                    continue
                yield f"data: {event.model_dump_json()}\n\n"
        finally:
            unsubscribe()
            logger.info("Kitchen stream disconnected for tenant %s", tenant_id)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get(
    "/{order_id}",
    response_model=OrderDetailRead,
)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Full order: items with add-ons, payments and timeline.
    """
    return reader.get_order(session, current_user.tenant_id, order_id)


@router.put(
    "/{order_id}",
    response_model=OrderDetailRead,
)
def update_order(
    order_id: uuid.UUID,
    payload: OrderUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Modify an unpaid order. Supplied items replace the current ones.
    """
    return service.update_order(
        session, current_user.tenant_id, current_user.id, order_id, payload
    )


@router.put(
    "/{order_id}/status",
    response_model=OrderDetailRead,
)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Move the order through the kitchen lifecycle.

      pending   -> preparing, cancelled

      preparing -> ready, cancelled

      ready     -> served, cancelled

      served    -> completed, cancelled

    """
    return lifecycle.update_status(session, current_user.tenant_id, order_id, payload)


@router.put(
    "/{order_id}/payment",
    response_model=OrderDetailRead,
)
def update_payment_status(
    order_id: uuid.UUID,
    payload: PaymentStatusUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    return lifecycle.update_payment_status(
        session, current_user.tenant_id, order_id, payload
    )


@router.delete("/{order_id}")
def delete_order(
    order_id: uuid.UUID,
    reason: str | None = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_manager),
):
    """
    Soft-delete a pending or cancelled order (manager only).
    """
    return lifecycle.delete_order(session, current_user.tenant_id, order_id, reason)
