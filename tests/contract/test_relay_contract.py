"""
Contract tests for the browser WebSocket relay.

Validates inbound frames and the shape of outbound messages.
These tests run independently (no server required).
"""

import json
from pathlib import Path

from backend.events import FeedConnected, FeedDisconnected, FeedUnavailable, AircraftData
from backend.models import (
    Communication,
    NewMessageMessage,
    ServiceRequest,
    ServiceUpdatedMessage,
    to_wire,
)
from backend.websocket import feed_status_message
from contracts.validation import (
    JoinFlightFrame,
    SendMessageFrame,
    ServiceUpdateFrame,
    validate_inbound_frame,
)


def load_example(filename: str) -> dict:
    """Load example JSON file."""
    example_path = Path(__file__).parent.parent.parent / "contracts" / "examples" / filename
    with open(example_path) as f:
        return json.load(f)


class TestInboundFrames:
    """Frames browsers send to /ws."""

    def test_join_flight_example_validates(self):
        is_valid, frame, error = validate_inbound_frame(load_example("ws_join_flight.json"))

        assert is_valid, f"Example should validate: {error}"
        assert isinstance(frame, JoinFlightFrame)
        assert frame.flight_id == "flight-1"

    def test_send_message_example_validates(self):
        is_valid, frame, error = validate_inbound_frame(load_example("ws_send_message.json"))

        assert is_valid, f"Example should validate: {error}"
        assert isinstance(frame, SendMessageFrame)
        assert frame.sender_role == "pilot"
        assert frame.message == "Ready for pushback"

    def test_service_update_example_validates(self):
        is_valid, frame, error = validate_inbound_frame(load_example("ws_service_update.json"))

        assert is_valid, f"Example should validate: {error}"
        assert isinstance(frame, ServiceUpdateFrame)
        assert frame.service_id == "service-1"
        assert frame.status == "in_progress"

    def test_unknown_type_fails(self):
        is_valid, _, _ = validate_inbound_frame({"type": "leave_flight", "flightId": "flight-1"})
        assert not is_valid

    def test_missing_type_fails(self):
        is_valid, _, _ = validate_inbound_frame({"flightId": "flight-1"})
        assert not is_valid

    def test_send_message_missing_text_fails(self):
        example = load_example("ws_send_message.json")
        del example["message"]

        is_valid, _, _ = validate_inbound_frame(example)
        assert not is_valid, "Should fail without message"

    def test_service_update_invalid_status_fails(self):
        example = load_example("ws_service_update.json")
        example["status"] = "INVALID"

        is_valid, _, _ = validate_inbound_frame(example)
        assert not is_valid, "Should fail with invalid status"

    def test_join_flight_empty_id_fails(self):
        is_valid, _, _ = validate_inbound_frame({"type": "join_flight", "flightId": ""})
        assert not is_valid


class TestOutboundMessages:
    """Messages the relay sends to browsers."""

    def test_new_message_uses_camel_case(self):
        communication = Communication(
            flight_id="flight-1", sender="Captain Smith", sender_role="pilot", message="Hello"
        )
        wire = to_wire(NewMessageMessage(data=communication))

        assert wire["type"] == "new_message"
        assert wire["data"]["flightId"] == "flight-1"
        assert wire["data"]["senderRole"] == "pilot"
        assert wire["data"]["readBy"] == []
        assert isinstance(wire["data"]["timestamp"], str)

    def test_service_updated_carries_full_record(self):
        service = ServiceRequest(
            flight_id="flight-1", service_type="fuel", requested_by="Captain Smith", status="completed"
        )
        wire = to_wire(ServiceUpdatedMessage(data=service))

        assert wire["type"] == "service_updated"
        assert wire["data"]["id"] == service.id
        assert wire["data"]["serviceType"] == "fuel"
        assert wire["data"]["status"] == "completed"

    def test_feed_status_connected(self):
        message = feed_status_message(FeedConnected())
        assert message == {
            "type": "feed_status",
            "data": {"connected": True, "available": True, "reconnectInMs": None},
        }

    def test_feed_status_reconnecting(self):
        message = feed_status_message(FeedDisconnected(reconnect_in_ms=4000))
        assert message["data"] == {"connected": False, "available": True, "reconnectInMs": 4000}

    def test_feed_status_unavailable(self):
        message = feed_status_message(FeedUnavailable(attempts=5))
        assert message["data"]["available"] is False
        assert message["data"]["connected"] is False

    def test_data_events_have_no_status(self):
        assert feed_status_message(AircraftData(aircraft={})) is None
