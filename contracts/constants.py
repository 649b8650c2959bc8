"""
Shared constants for Ground Ops Hub services.

This module provides a single source of truth for:
- Upstream ATC24 feed message types
- Browser WebSocket message types
- Reconnect policy defaults
- Entity status values

All services should import from this module to ensure consistency.
"""

# Upstream feed
ATC24_WS_URL = "wss://24data.ptfs.app/wss"

# Upstream Message Types (the "t" field of a feed frame)
FEED_TYPE_AIRCRAFT_DATA = "ACFT_DATA"
FEED_TYPE_EVENT_AIRCRAFT_DATA = "EVENT_ACFT_DATA"
FEED_TYPE_FLIGHT_PLAN = "FLIGHT_PLAN"
FEED_TYPE_EVENT_FLIGHT_PLAN = "EVENT_FLIGHT_PLAN"
FEED_TYPE_CONTROLLERS = "CONTROLLERS"
FEED_TYPE_ATIS = "ATIS"

FEED_TYPES = (
    FEED_TYPE_AIRCRAFT_DATA,
    FEED_TYPE_EVENT_AIRCRAFT_DATA,
    FEED_TYPE_FLIGHT_PLAN,
    FEED_TYPE_EVENT_FLIGHT_PLAN,
    FEED_TYPE_CONTROLLERS,
    FEED_TYPE_ATIS,
)

# Reconnect policy
MAX_RECONNECT_ATTEMPTS = 5
RECONNECT_BASE_DELAY_MS = 1000
RECONNECT_MAX_DELAY_MS = 30000

# WebSocket Message Types (inbound from browsers)
WS_MESSAGE_TYPE_JOIN_FLIGHT = "join_flight"
WS_MESSAGE_TYPE_SEND_MESSAGE = "send_message"
WS_MESSAGE_TYPE_SERVICE_UPDATE = "service_update"

# WebSocket Message Types (outbound to browsers)
WS_MESSAGE_TYPE_NEW_MESSAGE = "new_message"
WS_MESSAGE_TYPE_SERVICE_UPDATED = "service_updated"
WS_MESSAGE_TYPE_FEED_STATUS = "feed_status"

# Service Request Status
SERVICE_STATUS_PENDING = "pending"
SERVICE_STATUS_IN_PROGRESS = "in_progress"
SERVICE_STATUS_COMPLETED = "completed"
SERVICE_STATUS_CANCELLED = "cancelled"

# Service Request Priority
PRIORITY_LOW = "low"
PRIORITY_NORMAL = "normal"
PRIORITY_HIGH = "high"
PRIORITY_URGENT = "urgent"

# Flight Status
FLIGHT_STATUS_PLANNING = "planning"
FLIGHT_STATUS_BOARDING = "boarding"
FLIGHT_STATUS_DEPARTED = "departed"
FLIGHT_STATUS_ARRIVED = "arrived"

# Seat Status
SEAT_STATUS_AVAILABLE = "available"
SEAT_STATUS_OCCUPIED = "occupied"
SEAT_STATUS_BLOCKED = "blocked"
