"""
Integration test: Verify the /ws relay protocol.

This test verifies:
1. new_message reaches only connections joined to the message's flight
2. service_updated is scoped the same way and carries the stored record
3. A second join_flight with a different flight is rejected
4. Malformed frames are dropped and the connection stays usable
5. feed_status is broadcast to every connection
"""

import json
import time

import pytest
from fastapi.testclient import TestClient

from backend.events import FeedDisconnected
from backend.main import create_app
from backend.storage import MemStorage


def wait_for(predicate, timeout: float = 2.0) -> bool:
    """Poll until predicate() is truthy or the timeout expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return bool(predicate())


def scopes(app):
    return sorted(scope or "" for scope in app.state.relay.active_connections.values())


def join(ws, flight_id: str):
    ws.send_json({"type": "join_flight", "flightId": flight_id})


def send_message(ws, flight_id: str, message: str, sender: str = "Captain Smith"):
    ws.send_json({
        "type": "send_message",
        "flightId": flight_id,
        "sender": sender,
        "senderRole": "pilot",
        "message": message,
    })


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def test_new_message_is_scoped_to_flight(app, client):
    with client.websocket_connect("/ws") as a, \
            client.websocket_connect("/ws") as b, \
            client.websocket_connect("/ws") as c:
        join(a, "F1")
        join(b, "F1")
        join(c, "F2")
        assert wait_for(lambda: scopes(app) == ["F1", "F1", "F2"])

        send_message(a, "F1", "Ready for pushback")

        for ws in (a, b):
            message = ws.receive_json()
            assert message["type"] == "new_message"
            assert message["data"]["flightId"] == "F1"
            assert message["data"]["message"] == "Ready for pushback"
            assert message["data"]["senderRole"] == "pilot"
            assert "id" in message["data"]
            assert "timestamp" in message["data"]

        # c's first message is its own flight's, so F1 traffic never reached it
        send_message(c, "F2", "Fuel truck en route", sender="Fuel")
        message = c.receive_json()
        assert message["data"]["flightId"] == "F2"
        assert message["data"]["message"] == "Fuel truck en route"

    history = client.get("/api/flights/F1/communications").json()
    assert [m["message"] for m in history] == ["Ready for pushback"]


def test_unjoined_connection_receives_no_flight_traffic(app, client):
    with client.websocket_connect("/ws") as joined, client.websocket_connect("/ws") as idle:
        join(joined, "F1")
        assert wait_for(lambda: scopes(app) == ["", "F1"])

        # Sending does not require joining
        send_message(idle, "F1", "Catering loaded")
        assert joined.receive_json()["data"]["message"] == "Catering loaded"

        join(idle, "F3")
        assert wait_for(lambda: scopes(app) == ["F1", "F3"])
        send_message(idle, "F3", "Marker")
        assert idle.receive_json()["data"]["message"] == "Marker"


def test_service_update_is_scoped_and_persisted(app, client):
    created = client.post(
        "/api/flights/F1/services",
        json={"serviceType": "fuel", "requestedBy": "Captain Smith"},
    )
    assert created.status_code == 201
    service_id = created.json()["id"]

    with client.websocket_connect("/ws") as crew, client.websocket_connect("/ws") as other:
        join(crew, "F1")
        join(other, "F2")
        assert wait_for(lambda: scopes(app) == ["F1", "F2"])

        crew.send_json({
            "type": "service_update",
            "flightId": "F1",
            "serviceId": service_id,
            "status": "completed",
        })
        message = crew.receive_json()
        assert message["type"] == "service_updated"
        assert message["data"]["id"] == service_id
        assert message["data"]["status"] == "completed"
        assert message["data"]["completedAt"] is not None

        send_message(other, "F2", "Marker")
        assert other.receive_json()["type"] == "new_message"

    services = client.get("/api/flights/F1/services").json()
    assert services[0]["status"] == "completed"


def test_unknown_service_is_not_broadcast(app, client):
    with client.websocket_connect("/ws") as ws:
        join(ws, "F1")
        assert wait_for(lambda: scopes(app) == ["F1"])

        ws.send_json({
            "type": "service_update",
            "flightId": "F1",
            "serviceId": "does-not-exist",
            "status": "in_progress",
        })
        send_message(ws, "F1", "Marker")

        # Frames are handled in order: the next frame out is the chat message
        assert ws.receive_json()["type"] == "new_message"


def test_rejoin_different_flight_is_rejected(app, client):
    with client.websocket_connect("/ws") as ws, client.websocket_connect("/ws") as sender:
        join(ws, "F1")
        assert wait_for(lambda: scopes(app) == ["", "F1"])

        join(ws, "F2")
        join(ws, "F1")
        send_message(sender, "F2", "Not for you")
        send_message(sender, "F1", "For you")

        message = ws.receive_json()
        assert message["data"]["flightId"] == "F1"
        assert message["data"]["message"] == "For you"
        assert scopes(app) == ["", "F1"]


def test_malformed_frames_keep_connection_open(app, client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("{not json")
        ws.send_json({"type": "fly_away"})
        ws.send_json({"type": "join_flight"})
        ws.send_json({"type": "send_message", "flightId": "F1"})

        join(ws, "F1")
        send_message(ws, "F1", "Still here")
        message = ws.receive_json()
        assert message["data"]["message"] == "Still here"


def test_binary_frames_keep_connection_open(app, client):
    with client.websocket_connect("/ws") as ws:
        join(ws, "F1")
        assert wait_for(lambda: scopes(app) == ["F1"])

        ws.send_bytes(b"\x00\x01garbage")
        ws.send_bytes(b"\xff\xfe\xfd")
        assert len(app.state.relay.active_connections) == 1

        # A UTF-8 JSON frame sent as binary is handled like text
        ws.send_bytes(json.dumps({
            "type": "send_message",
            "flightId": "F1",
            "sender": "Captain Smith",
            "senderRole": "pilot",
            "message": "Sent as bytes",
        }).encode("utf-8"))
        send_message(ws, "F1", "Still here")

        assert ws.receive_json()["data"]["message"] == "Sent as bytes"
        assert ws.receive_json()["data"]["message"] == "Still here"
        assert scopes(app) == ["F1"]


def test_feed_status_broadcast_to_all(app, client):
    with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b:
        join(a, "F1")
        assert wait_for(lambda: scopes(app) == ["", "F1"])

        # Listeners run on the feed thread; simulate it from the test thread
        app.state.feed_client._emit(FeedDisconnected(reconnect_in_ms=2000))

        for ws in (a, b):
            message = ws.receive_json()
            assert message == {
                "type": "feed_status",
                "data": {"connected": False, "available": True, "reconnectInMs": 2000},
            }


def test_disconnect_removes_connection(app, client):
    with client.websocket_connect("/ws") as ws:
        join(ws, "F1")
        assert wait_for(lambda: len(app.state.relay.active_connections) == 1)

    assert wait_for(lambda: len(app.state.relay.active_connections) == 0)


class FlakyStorage(MemStorage):
    """Fails to store any message whose text is "fail"."""

    async def create_communication(self, communication):
        if communication.message == "fail":
            raise RuntimeError("storage unavailable")
        return await super().create_communication(communication)


def test_failed_message_write_is_not_broadcast(feed_client):
    app = create_app(storage=FlakyStorage(seed=False), feed_client=feed_client, start_feed=False)

    with TestClient(app) as test_client:
        with test_client.websocket_connect("/ws") as ws:
            join(ws, "F1")
            send_message(ws, "F1", "fail")
            send_message(ws, "F1", "After the failure")

            # The failed write produced nothing; the next frame out is the later message
            assert ws.receive_json()["data"]["message"] == "After the failure"

        history = test_client.get("/api/flights/F1/communications").json()
        assert [m["message"] for m in history] == ["After the failure"]
