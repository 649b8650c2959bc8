"""
WebSocket relay for flight-scoped chat and service updates.
"""

import json
import logging
from typing import Dict, List, Optional

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from backend.events import FeedConnected, FeedDisconnected, FeedEvent, FeedUnavailable
from backend.metrics import (
    RELAY_WRITE_FAILURES,
    WEBSOCKET_CONNECTIONS,
    WEBSOCKET_FRAMES_REJECTED,
    WEBSOCKET_MESSAGES_SENT,
)
from backend.models import (
    FeedStatus,
    FeedStatusMessage,
    InsertCommunication,
    NewMessageMessage,
    ServiceUpdatedMessage,
    to_wire,
)
from backend.storage import Storage
from contracts.validation import (
    JoinFlightFrame,
    SendMessageFrame,
    ServiceUpdateFrame,
    validate_inbound_frame,
)

logger = logging.getLogger(__name__)


def feed_status_message(event: FeedEvent) -> Optional[dict]:
    """feed_status frame for a feed lifecycle event, or None for data events."""
    if isinstance(event, FeedConnected):
        status = FeedStatus(connected=True, available=True)
    elif isinstance(event, FeedDisconnected):
        status = FeedStatus(
            connected=False,
            available=event.reconnect_in_ms is not None,
            reconnect_in_ms=event.reconnect_in_ms,
        )
    elif isinstance(event, FeedUnavailable):
        status = FeedStatus(connected=False, available=False)
    else:
        return None
    return to_wire(FeedStatusMessage(data=status))


class ConnectionManager:
    """
    Manages browser WebSocket connections and their flight scope.

    Each connection is bound to at most one flight by its first join_flight;
    chat and service updates fan out only to connections bound to the same
    flight. Frames from one connection are handled in order.
    """

    def __init__(self, storage: Storage):
        self.storage = storage
        # connection -> flight id (None until joined)
        self.active_connections: Dict[WebSocket, Optional[str]] = {}

    async def connect(self, websocket: WebSocket):
        """Accept new WebSocket connection."""
        await websocket.accept()
        self.active_connections[websocket] = None
        WEBSOCKET_CONNECTIONS.set(len(self.active_connections))
        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket):
        """Remove WebSocket connection."""
        self.active_connections.pop(websocket, None)
        WEBSOCKET_CONNECTIONS.set(len(self.active_connections))
        logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    def scope_of(self, websocket: WebSocket) -> Optional[str]:
        return self.active_connections.get(websocket)

    def join_flight(self, websocket: WebSocket, flight_id: str) -> bool:
        """
        Bind a connection to a flight.

        Re-joining the same flight is a no-op. A connection already bound to
        a different flight keeps its scope and the join is rejected.

        Returns:
            True if the connection is now bound to flight_id.
        """
        if websocket not in self.active_connections:
            return False

        current = self.active_connections[websocket]
        if current is None:
            self.active_connections[websocket] = flight_id
            logger.debug(f"Connection joined flight {flight_id}")
            return True
        if current == flight_id:
            return True

        WEBSOCKET_FRAMES_REJECTED.labels(reason="scope_change").inc()
        logger.warning(f"Rejected join_flight {flight_id}: connection already bound to {current}")
        return False

    def connections_for(self, flight_id: str) -> List[WebSocket]:
        return [ws for ws, scope in self.active_connections.items() if scope == flight_id]

    async def _send_all(self, connections: List[WebSocket], message: dict):
        disconnected = []

        for connection in connections:
            # Skip connections closed while this broadcast was in flight
            if connection not in self.active_connections:
                continue
            if connection.application_state != WebSocketState.CONNECTED:
                continue
            try:
                await connection.send_json(message)
                WEBSOCKET_MESSAGES_SENT.labels(type=message["type"]).inc()
            except Exception as e:
                logger.warning(f"Failed to send {message['type']} to connection: {e}")
                disconnected.append(connection)

        # Clean up disconnected clients
        for connection in disconnected:
            self.disconnect(connection)

    async def broadcast_to_flight(self, flight_id: str, message: dict):
        """Send a message to every connection bound to flight_id."""
        await self._send_all(self.connections_for(flight_id), message)

    async def broadcast(self, message: dict):
        """Send a message to every open connection, joined or not."""
        if not self.active_connections:
            return
        await self._send_all(list(self.active_connections), message)

    async def broadcast_feed_event(self, event: FeedEvent):
        message = feed_status_message(event)
        if message is not None:
            await self.broadcast(message)

    # ------------------------------------------------------------------
    # Inbound frames
    # ------------------------------------------------------------------

    async def handle_frame(self, websocket: WebSocket, raw: str):
        """Dispatch one inbound frame. Malformed frames are logged and dropped."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"WebSocket message error: invalid JSON ({e})")
            WEBSOCKET_FRAMES_REJECTED.labels(reason="invalid_json").inc()
            return

        is_valid, frame, error = validate_inbound_frame(data)
        if not is_valid:
            logger.warning(f"WebSocket message error: {error}")
            WEBSOCKET_FRAMES_REJECTED.labels(reason="schema_validation_failed").inc()
            return

        if isinstance(frame, JoinFlightFrame):
            self.join_flight(websocket, frame.flight_id)
        elif isinstance(frame, SendMessageFrame):
            await self._relay_message(frame)
        elif isinstance(frame, ServiceUpdateFrame):
            await self._relay_service_update(frame)

    async def _relay_message(self, frame: SendMessageFrame):
        try:
            communication = await self.storage.create_communication(
                InsertCommunication(
                    flight_id=frame.flight_id,
                    sender=frame.sender,
                    sender_role=frame.sender_role,
                    message=frame.message,
                )
            )
        except Exception as e:
            logger.error(f"Failed to store message for flight {frame.flight_id}: {e}", exc_info=True)
            RELAY_WRITE_FAILURES.labels(type="new_message").inc()
            return

        await self.broadcast_to_flight(
            frame.flight_id, to_wire(NewMessageMessage(data=communication))
        )

    async def _relay_service_update(self, frame: ServiceUpdateFrame):
        try:
            service = await self.storage.update_service_request(
                frame.service_id, {"status": frame.status}
            )
        except Exception as e:
            logger.error(f"Failed to update service {frame.service_id}: {e}", exc_info=True)
            RELAY_WRITE_FAILURES.labels(type="service_updated").inc()
            return

        if service is None:
            logger.warning(f"Service request not found: {frame.service_id}")
            RELAY_WRITE_FAILURES.labels(type="service_updated").inc()
            return

        await self.broadcast_to_flight(
            frame.flight_id, to_wire(ServiceUpdatedMessage(data=service))
        )

    def _decode_binary(self, data: Optional[bytes]) -> Optional[str]:
        """UTF-8 text of a binary frame, or None if it is not text."""
        try:
            return data.decode("utf-8")
        except (AttributeError, UnicodeDecodeError) as e:
            logger.warning(f"WebSocket message error: unreadable binary frame ({e})")
            WEBSOCKET_FRAMES_REJECTED.labels(reason="invalid_frame").inc()
            return None

    async def handle_client(self, websocket: WebSocket):
        """Handle a WebSocket client connection."""
        await self.connect(websocket)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))

                raw = message.get("text")
                if raw is None:
                    raw = self._decode_binary(message.get("bytes"))
                    if raw is None:
                        continue
                await self.handle_frame(websocket, raw)

        except WebSocketDisconnect:
            logger.info("Client disconnected")
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
        finally:
            self.disconnect(websocket)
