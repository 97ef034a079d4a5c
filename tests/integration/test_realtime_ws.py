"""WebSocket delivery of the new-order feed, end to end through the app."""

import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from libs.auth.models import AuthUser
from services.orders_service.app.main import app
from services.orders_service.realtime import OrderInsertEvent, order_channel, relay_registry
from services.orders_service.routers.realtime import RealtimeSeller, get_realtime_seller
from starlette.websockets import WebSocketDisconnect

WS_PATH = "/orders/realtime/ws"


def _event(store_id: str) -> OrderInsertEvent:
    return OrderInsertEvent(
        store_id=store_id,
        order_id=str(uuid.uuid4()),
        order_number="ORD-20260101-ABCDEFGH",
        buyer_name="Joana",
        total_amount=Decimal("1500.00"),
    )


@pytest.fixture
def store_id():
    return str(uuid.uuid4())


@pytest.fixture
def ws_client(store_id):
    seller = RealtimeSeller(
        user=AuthUser(user_id=str(uuid.uuid4()), email="seller@example.com"),
        store_id=store_id,
    )
    app.dependency_overrides[get_realtime_seller] = lambda: seller
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.mark.integration
def test_connection_without_token_is_refused():
    with TestClient(app) as client:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(WS_PATH) as websocket:
                websocket.receive_json()
    assert exc_info.value.code == 1008


@pytest.mark.integration
def test_new_order_reaches_connected_seller(ws_client, store_id):
    with ws_client.websocket_connect(WS_PATH) as websocket:
        assert websocket.receive_json() == {"type": "subscription_status", "status": "SUBSCRIBED"}
        assert websocket.receive_json() == {"type": "request_notification_permission"}

        websocket.send_json({"type": "notification_permission", "permission": "granted"})
        assert websocket.receive_json() == {"type": "notification_permission_ack", "granted": True}

        event = _event(store_id)
        delivered = ws_client.portal.call(order_channel.publish, event)
        assert delivered == 1

        inserted = websocket.receive_json()
        assert inserted["type"] == "order_inserted"
        assert inserted["order_id"] == event.order_id
        notification = websocket.receive_json()
        assert notification["type"] == "desktop_notification"
        assert notification["body"] == "Order from Joana for MZN 1500.00."


@pytest.mark.integration
def test_denied_permission_gets_refresh_only(ws_client, store_id):
    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.receive_json()
        websocket.receive_json()
        websocket.send_json({"type": "notification_permission", "permission": "denied"})
        assert websocket.receive_json()["granted"] is False

        ws_client.portal.call(order_channel.publish, _event(store_id))
        assert websocket.receive_json()["type"] == "order_inserted"

        # Nothing else queued: the next frame is the sign-out close
        websocket.send_json({"type": "sign_out"})
        with pytest.raises(WebSocketDisconnect):
            websocket.receive_json()


@pytest.mark.integration
def test_other_store_orders_are_not_delivered(ws_client, store_id):
    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.receive_json()
        websocket.receive_json()

        delivered = ws_client.portal.call(order_channel.publish, _event(str(uuid.uuid4())))

        assert delivered == 0


@pytest.mark.integration
def test_sign_out_tears_down_subscription(ws_client, store_id):
    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.receive_json()
        websocket.receive_json()
        assert order_channel.subscriber_count(store_id) == 1

        websocket.send_json({"type": "sign_out"})
        with pytest.raises(WebSocketDisconnect):
            websocket.receive_json()

    assert order_channel.subscriber_count(store_id) == 0
    assert len(relay_registry) == 0


@pytest.mark.integration
def test_malformed_client_frames_keep_the_feed_open(ws_client, store_id):
    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.receive_json()
        websocket.receive_json()

        websocket.send_json(["not", "an", "object"])
        websocket.send_json("granted")
        websocket.send_text("{not json")
        websocket.send_json({"type": "notification_permission", "permission": "granted"})
        assert websocket.receive_json() == {"type": "notification_permission_ack", "granted": True}

        ws_client.portal.call(order_channel.publish, _event(store_id))
        assert websocket.receive_json()["type"] == "order_inserted"
        assert websocket.receive_json()["type"] == "desktop_notification"
