# app/routers/deliveries.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_auth, require_manager
from app.core.events import order_events
from app.database import get_session
from app.models.user import User
from app.repositories.delivery_repo import DeliveryRepository
from app.repositories.menu_repo import MenuRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.restaurant_repo import RestaurantRepository
from app.schemas.delivery import DeliveryAssign, DeliveryRead, DeliveryStatusUpdate
from app.services.delivery_service import DeliveryService
from app.services.order_lifecycle_service import OrderLifecycleService
from app.services.order_reader import OrderReader

router = APIRouter(prefix="/deliveries", tags=["Deliveries"])

order_repo = OrderRepository()
restaurant_repo = RestaurantRepository()
reader = OrderReader(order_repo, restaurant_repo, MenuRepository())
lifecycle = OrderLifecycleService(order_repo, restaurant_repo, reader, order_events)
service = DeliveryService(DeliveryRepository(), order_repo, restaurant_repo, lifecycle)


@router.post(
    "/assign",
    response_model=DeliveryRead,
)
def assign_delivery(
    payload: DeliveryAssign,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_manager),
):
    """
    Assign a delivery order to a rider (manager only).
    """
    return service.assign_delivery(session, current_user.tenant_id, payload)


@router.put(
    "/{delivery_id}/status",
    response_model=DeliveryRead,
)
def update_delivery_status(
    delivery_id: uuid.UUID,
    payload: DeliveryStatusUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    pending -> assigned -> out_for_delivery -> delivered

    cancelled from any open state; cancelled -> pending restores it.
    Delivered completes the order.
    """
    return service.update_delivery_status(
        session, current_user.tenant_id, delivery_id, payload
    )


@router.get(
    "/{delivery_id}",
    response_model=DeliveryRead,
)
def get_delivery(
    delivery_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    return service.get_delivery(session, current_user.tenant_id, delivery_id)
