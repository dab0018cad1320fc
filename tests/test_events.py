import uuid

import pytest

from app.core.events import OrderEvent, OrderEventBroadcaster, order_events
from tests.factories import make_branch, make_food_item, make_order


def _event(tenant_id, event_type="ORDER_UPDATED"):
    return OrderEvent(type=event_type, tenant_id=tenant_id, order_id=uuid.uuid4())


def test_events_are_tenant_scoped():
    broadcaster = OrderEventBroadcaster()
    tenant_a, tenant_b = uuid.uuid4(), uuid.uuid4()
    seen_a, seen_b = [], []
    broadcaster.subscribe(tenant_a, seen_a.append)
    broadcaster.subscribe(tenant_b, seen_b.append)

    broadcaster.emit(_event(tenant_a))

    assert len(seen_a) == 1
    assert seen_b == []


def test_unsubscribe_stops_delivery():
    broadcaster = OrderEventBroadcaster()
    tenant_id = uuid.uuid4()
    seen = []
    unsubscribe = broadcaster.subscribe(tenant_id, seen.append)

    unsubscribe()
    broadcaster.emit(_event(tenant_id))

    assert seen == []
    assert broadcaster.subscriber_count(tenant_id) == 0


def test_failing_subscriber_does_not_block_others():
    broadcaster = OrderEventBroadcaster()
    tenant_id = uuid.uuid4()
    seen = []

    def broken(event):
        raise RuntimeError("display offline")

    broadcaster.subscribe(tenant_id, broken)
    broadcaster.subscribe(tenant_id, seen.append)

    broadcaster.emit(_event(tenant_id))

    assert len(seen) == 1


@pytest.fixture
def tenant_stream(tenant_id):
    received = []
    unsubscribe = order_events.subscribe(tenant_id, received.append)
    yield received
    unsubscribe()


def test_api_operations_publish_events(client, session, tenant_id, tenant_stream):
    make_branch(session, tenant_id)
    burger = make_food_item(session, tenant_id, price=12.0)

    order = client.post(
        "/api/v1/orders",
        json={
            "order_type": "takeaway",
            "items": [{"food_item_id": str(burger.id), "quantity": 1}],
        },
    ).json()
    client.put(f"/api/v1/orders/{order['id']}/status", json={"status": "cancelled"})
    client.delete(f"/api/v1/orders/{order['id']}")

    assert [e.type for e in tenant_stream] == [
        "ORDER_CREATED",
        "ORDER_STATUS_CHANGED",
        "ORDER_DELETED",
    ]
    assert tenant_stream[0].order["order_number"] == order["order_number"]
    assert tenant_stream[-1].order is None


def test_rejected_operation_publishes_nothing(client, session, tenant_id, tenant_stream):
    branch = make_branch(session, tenant_id)
    order = make_order(session, tenant_id, branch, status="completed")

    resp = client.put(f"/api/v1/orders/{order.id}/status", json={"status": "pending"})

    assert resp.status_code == 400
    assert tenant_stream == []
