"""
ATC24 live feed client with FeedCache and bounded reconnect.
"""

import os
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import websocket

from backend.events import (
    AircraftData,
    AtisUpdated,
    ControllersUpdated,
    EventAircraftData,
    EventFlightPlanFiled,
    FeedConnected,
    FeedDisconnected,
    FeedError,
    FeedEvent,
    FeedUnavailable,
    FlightPlanFiled,
)
from backend.metrics import (
    FEED_CONNECTED,
    FEED_EXHAUSTED,
    FEED_MESSAGES_PROCESSED,
    FEED_MESSAGES_REJECTED,
    FEED_RECONNECT_ATTEMPTS,
)
from contracts import constants
from contracts.validation import (
    validate_aircraft_snapshot,
    validate_atis,
    validate_controllers,
    validate_feed_envelope,
    validate_flight_plan,
)

logger = logging.getLogger(__name__)

ATC24_WS_URL = os.getenv("ATC24_WS_URL", constants.ATC24_WS_URL)
FEED_MAX_RECONNECT_ATTEMPTS = int(os.getenv("FEED_MAX_RECONNECT_ATTEMPTS", str(constants.MAX_RECONNECT_ATTEMPTS)))
FEED_BACKOFF_BASE_MS = int(os.getenv("FEED_BACKOFF_BASE_MS", str(constants.RECONNECT_BASE_DELAY_MS)))
FEED_BACKOFF_MAX_MS = int(os.getenv("FEED_BACKOFF_MAX_MS", str(constants.RECONNECT_MAX_DELAY_MS)))

FeedListener = Callable[[FeedEvent], None]


def reconnect_delay_ms(
    attempt: int,
    base_ms: int = FEED_BACKOFF_BASE_MS,
    max_ms: int = FEED_BACKOFF_MAX_MS,
) -> int:
    """Backoff before reconnect number `attempt` (0-based): min(base * 2^attempt, max)."""
    return min(base_ms * (2 ** attempt), max_ms)


def decode_feed_message(raw) -> Optional[FeedEvent]:
    """
    Turn one upstream frame into a feed event.

    Returns:
        The event, or None if the frame was dropped (bad JSON, bad shape,
        unknown type). Drops are logged and counted, never raised.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            logger.error(f"Failed to decode feed frame: {e}")
            FEED_MESSAGES_REJECTED.labels(reason="invalid_json").inc()
            return None

    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error(f"Error parsing ATC24 message: {e}")
        FEED_MESSAGES_REJECTED.labels(reason="invalid_json").inc()
        return None

    is_valid, envelope, error = validate_feed_envelope(data)
    if not is_valid:
        logger.warning(f"Invalid feed envelope: {error}")
        FEED_MESSAGES_REJECTED.labels(reason="invalid_envelope").inc()
        return None

    message_type = envelope.t
    if message_type not in _DECODERS:
        logger.info(f"Unknown ATC24 message type: {message_type}")
        FEED_MESSAGES_REJECTED.labels(reason="unknown_type").inc()
        return None

    validator, build = _DECODERS[message_type]
    is_valid, payload, error = validator(envelope.d)
    if not is_valid:
        logger.warning(f"Invalid {message_type} payload: {error}")
        FEED_MESSAGES_REJECTED.labels(reason="schema_validation_failed").inc()
        return None

    FEED_MESSAGES_PROCESSED.labels(type=message_type).inc()
    return build(payload)


_DECODERS = {
    constants.FEED_TYPE_AIRCRAFT_DATA: (validate_aircraft_snapshot, lambda p: AircraftData(aircraft=p.root)),
    constants.FEED_TYPE_EVENT_AIRCRAFT_DATA: (validate_aircraft_snapshot, lambda p: EventAircraftData(aircraft=p.root)),
    constants.FEED_TYPE_FLIGHT_PLAN: (validate_flight_plan, lambda p: FlightPlanFiled(plan=p)),
    constants.FEED_TYPE_EVENT_FLIGHT_PLAN: (validate_flight_plan, lambda p: EventFlightPlanFiled(plan=p)),
    constants.FEED_TYPE_CONTROLLERS: (validate_controllers, lambda p: ControllersUpdated(controllers=p.root)),
    constants.FEED_TYPE_ATIS: (validate_atis, lambda p: AtisUpdated(atis=p)),
}


class FeedCache:
    """
    In-memory cache of the latest value of each feed event type.

    Backs the REST polling endpoints, which read whatever arrived last.
    Register `handle_event` as a FeedClient listener.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._aircraft: Dict = {}
        self._event_aircraft: Dict = {}
        self._controllers: List = []
        self._flight_plans: Dict = {}
        self._event_flight_plans: Dict = {}
        self._atis: Dict = {}
        self._last_update: Optional[datetime] = None

    def handle_event(self, event: FeedEvent) -> None:
        """Store data events; lifecycle events are ignored."""
        with self._lock:
            if isinstance(event, AircraftData):
                self._aircraft = dict(event.aircraft)
            elif isinstance(event, EventAircraftData):
                self._event_aircraft = dict(event.aircraft)
            elif isinstance(event, ControllersUpdated):
                self._controllers = list(event.controllers)
            elif isinstance(event, FlightPlanFiled):
                self._flight_plans[event.plan.callsign] = event.plan
            elif isinstance(event, EventFlightPlanFiled):
                self._event_flight_plans[event.plan.callsign] = event.plan
            elif isinstance(event, AtisUpdated):
                self._atis[event.atis.airport] = event.atis
            else:
                return
            self._last_update = datetime.now(timezone.utc)

    def aircraft(self) -> Dict[str, dict]:
        """Latest ACFT_DATA snapshot, keyed by callsign."""
        with self._lock:
            return {
                callsign: state.model_dump(by_alias=True, exclude_unset=True)
                for callsign, state in self._aircraft.items()
            }

    def event_aircraft(self) -> Dict[str, dict]:
        with self._lock:
            return {
                callsign: state.model_dump(by_alias=True, exclude_unset=True)
                for callsign, state in self._event_aircraft.items()
            }

    def controllers(self) -> List[dict]:
        with self._lock:
            return [controller.model_dump() for controller in self._controllers]

    def flight_plans(self, event: bool = False) -> Dict[str, dict]:
        with self._lock:
            plans = self._event_flight_plans if event else self._flight_plans
            return {
                callsign: plan.model_dump(by_alias=True, exclude_unset=True)
                for callsign, plan in plans.items()
            }

    def atis(self) -> Dict[str, dict]:
        with self._lock:
            return {airport: atis.model_dump() for airport, atis in self._atis.items()}

    def last_update(self) -> Optional[datetime]:
        with self._lock:
            return self._last_update


class FeedClient:
    """
    Reconnecting client for the ATC24 WebSocket feed.

    Holds at most one upstream socket. When it closes, a single timer
    schedules the next attempt after min(1000 * 2^attempt, 30000) ms; after
    `max_reconnect_attempts` consecutive failures the client gives up and
    emits FeedUnavailable. The socket runs on a daemon thread, so the socket
    handle and attempt counter are only touched under `_lock`.

    Listeners are called synchronously on the socket thread.
    """

    def __init__(
        self,
        url: str = ATC24_WS_URL,
        max_reconnect_attempts: int = FEED_MAX_RECONNECT_ATTEMPTS,
        ws_factory: Optional[Callable] = None,
        timer_factory: Optional[Callable] = None,
    ):
        self.url = url
        self.max_reconnect_attempts = max_reconnect_attempts
        self._ws_factory = ws_factory or websocket.WebSocketApp
        self._timer_factory = timer_factory or threading.Timer

        self._lock = threading.RLock()
        self._ws = None
        self._open = False
        self._thread: Optional[threading.Thread] = None
        self._reconnect_timer = None
        self._reconnect_attempts = 0
        self._running = False
        self._exhausted = False
        self._listeners: List[FeedListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: FeedListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: FeedListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _emit(self, event: FeedEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Feed listener failed on {type(event).__name__}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Connect unless already connected, connecting or waiting to reconnect."""
        with self._lock:
            if self._ws is not None or self._reconnect_timer is not None:
                logger.debug("Feed client already running")
                return
            self._running = True
            self._exhausted = False
            self._reconnect_attempts = 0
            error = self._connect()
        logger.info(f"Feed client started: {self.url}")
        if error is not None:
            self._emit(FeedError(cause=error))
            self._after_disconnect()

    def stop(self) -> None:
        """Cancel any pending reconnect and close the socket. start() resumes."""
        with self._lock:
            self._running = False
            if self._reconnect_timer is not None:
                self._reconnect_timer.cancel()
                self._reconnect_timer = None
            ws = self._ws
            thread = self._thread
            self._ws = None
            self._thread = None
            self._open = False
        FEED_CONNECTED.set(0)

        if ws is not None:
            try:
                ws.close()
            except Exception as e:
                logger.warning(f"Error closing feed socket: {e}")
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)
        logger.info("Feed client stopped")

    def is_connected(self) -> bool:
        with self._lock:
            return self._ws is not None and self._open

    def is_exhausted(self) -> bool:
        """True once the reconnect budget ran out."""
        with self._lock:
            return self._exhausted

    @property
    def reconnect_attempts(self) -> int:
        with self._lock:
            return self._reconnect_attempts

    def _connect(self) -> Optional[Exception]:
        # Caller holds _lock and has checked that no socket exists.
        try:
            ws = self._ws_factory(
                self.url,
                on_open=self._on_open,
                on_message=self._on_message,
                on_error=self._on_error,
                on_close=self._on_close,
            )
        except Exception as e:
            logger.error(f"Failed to connect to ATC24: {e}")
            return e

        self._ws = ws
        self._open = False
        self._thread = threading.Thread(
            target=self._run_socket, args=(ws,), name="atc24-feed", daemon=True
        )
        self._thread.start()
        return None

    def _run_socket(self, ws) -> None:
        try:
            ws.run_forever()
        except Exception as e:
            logger.error(f"Feed socket loop crashed: {e}")
            self._on_error(ws, e)
        finally:
            # on_close is not guaranteed for every failure path; closing twice is a no-op.
            self._handle_closed(ws)

    # ------------------------------------------------------------------
    # Socket callbacks
    # ------------------------------------------------------------------

    def _on_open(self, ws) -> None:
        with self._lock:
            if ws is not self._ws:
                return
            self._open = True
            self._reconnect_attempts = 0
        FEED_CONNECTED.set(1)
        logger.info("Connected to ATC24 WebSocket")
        self._emit(FeedConnected())

    def _on_message(self, ws, message) -> None:
        with self._lock:
            if ws is not self._ws:
                return
        event = decode_feed_message(message)
        if event is not None:
            self._emit(event)

    def _on_error(self, ws, error) -> None:
        with self._lock:
            if ws is not self._ws:
                return
        logger.error(f"ATC24 WebSocket error: {error}")
        self._emit(FeedError(cause=error))

    def _on_close(self, ws, close_status_code=None, close_msg=None) -> None:
        with self._lock:
            if ws is not self._ws:
                return
        logger.info(f"ATC24 WebSocket disconnected (code={close_status_code})")
        self._handle_closed(ws)

    def _handle_closed(self, ws) -> None:
        with self._lock:
            if ws is not self._ws:
                return
            self._ws = None
            self._open = False
        self._after_disconnect()

    # ------------------------------------------------------------------
    # Reconnect
    # ------------------------------------------------------------------

    def _after_disconnect(self) -> None:
        FEED_CONNECTED.set(0)
        with self._lock:
            if not self._running:
                return
            delay_ms = self._schedule_reconnect()
            attempts = self._reconnect_attempts
        self._emit(FeedDisconnected(reconnect_in_ms=delay_ms))
        if delay_ms is None:
            self._emit(FeedUnavailable(attempts=attempts))

    def _schedule_reconnect(self) -> Optional[int]:
        """
        Arm the reconnect timer. Caller holds _lock.

        Returns:
            Delay in ms, or None if the attempt budget is spent.
        """
        if self._reconnect_attempts >= self.max_reconnect_attempts:
            self._exhausted = True
            FEED_EXHAUSTED.inc()
            logger.error("Max reconnection attempts reached for ATC24")
            return None

        delay_ms = reconnect_delay_ms(self._reconnect_attempts)
        logger.info(f"Reconnecting to ATC24 in {delay_ms}ms...")
        timer = self._timer_factory(delay_ms / 1000.0, self._reconnect)
        timer.daemon = True
        self._reconnect_timer = timer
        timer.start()
        return delay_ms

    def _reconnect(self) -> None:
        with self._lock:
            self._reconnect_timer = None
            if not self._running or self._ws is not None:
                return
            self._reconnect_attempts += 1
            FEED_RECONNECT_ATTEMPTS.inc()
            error = self._connect()
        if error is not None:
            self._emit(FeedError(cause=error))
            self._after_disconnect()
