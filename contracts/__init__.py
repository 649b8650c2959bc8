"""
Ground Ops Hub Contracts Package

Provides shared constants and validation for message contracts.
"""

from contracts.constants import *
from contracts.validation import (
    FeedEnvelope,
    FeedPosition,
    AircraftState,
    AircraftSnapshot,
    FlightPlan,
    Controller,
    ControllerList,
    Atis,
    JoinFlightFrame,
    SendMessageFrame,
    ServiceUpdateFrame,
    validate_feed_envelope,
    validate_aircraft_snapshot,
    validate_flight_plan,
    validate_controllers,
    validate_atis,
    validate_inbound_frame,
)

__all__ = [
    # Constants
    "ATC24_WS_URL",
    "FEED_TYPE_AIRCRAFT_DATA",
    "FEED_TYPE_EVENT_AIRCRAFT_DATA",
    "FEED_TYPE_FLIGHT_PLAN",
    "FEED_TYPE_EVENT_FLIGHT_PLAN",
    "FEED_TYPE_CONTROLLERS",
    "FEED_TYPE_ATIS",
    "FEED_TYPES",
    "MAX_RECONNECT_ATTEMPTS",
    "RECONNECT_BASE_DELAY_MS",
    "RECONNECT_MAX_DELAY_MS",
    "WS_MESSAGE_TYPE_JOIN_FLIGHT",
    "WS_MESSAGE_TYPE_SEND_MESSAGE",
    "WS_MESSAGE_TYPE_SERVICE_UPDATE",
    "WS_MESSAGE_TYPE_NEW_MESSAGE",
    "WS_MESSAGE_TYPE_SERVICE_UPDATED",
    "WS_MESSAGE_TYPE_FEED_STATUS",
    # Models
    "FeedEnvelope",
    "FeedPosition",
    "AircraftState",
    "AircraftSnapshot",
    "FlightPlan",
    "Controller",
    "ControllerList",
    "Atis",
    "JoinFlightFrame",
    "SendMessageFrame",
    "ServiceUpdateFrame",
    # Validators
    "validate_feed_envelope",
    "validate_aircraft_snapshot",
    "validate_flight_plan",
    "validate_controllers",
    "validate_atis",
    "validate_inbound_frame",
]
