"""
Validation library for Ground Ops Hub message contracts.

Provides Pydantic models for the upstream ATC24 feed and for frames sent by
browsers to the relay. Everything crossing a socket boundary is validated
here before the backend acts on it.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel, TypeAdapter
from pydantic.alias_generators import to_camel

from contracts.constants import (
    WS_MESSAGE_TYPE_JOIN_FLIGHT,
    WS_MESSAGE_TYPE_SEND_MESSAGE,
    WS_MESSAGE_TYPE_SERVICE_UPDATE,
)


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys, as the browser and feed expect."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Upstream Feed
# ============================================================================

class FeedEnvelope(BaseModel):
    """Envelope of every upstream frame: {t: type, d: data}."""
    t: str
    d: Any = None


class FeedPosition(BaseModel):
    """Position on the game map."""
    x: float
    y: float


class AircraftState(CamelModel):
    """One aircraft in an ACFT_DATA / EVENT_ACFT_DATA snapshot."""
    heading: float
    player_name: str
    altitude: float
    aircraft_type: str
    position: FeedPosition
    speed: float
    wind: str
    is_on_ground: Optional[bool] = None
    ground_speed: float


class AircraftSnapshot(RootModel[Dict[str, AircraftState]]):
    """Callsign -> aircraft state."""


class FlightPlan(BaseModel):
    """Flight plan filed through the feed."""
    model_config = ConfigDict(populate_by_name=True)

    roblox_name: Optional[str] = Field(None, alias="robloxName")
    callsign: str = Field(min_length=1)
    real_callsign: Optional[str] = Field(None, alias="realcallsign")
    aircraft: Optional[str] = None
    flight_rules: Optional[str] = Field(None, alias="flightrules")
    departing: str
    arriving: str
    route: Optional[str] = None
    flight_level: Optional[str] = Field(None, alias="flightlevel")


class Controller(BaseModel):
    """One ATC position."""
    holder: Optional[str] = None
    claimable: bool
    airport: str
    position: str
    queue: List[str] = Field(default_factory=list)


class ControllerList(RootModel[List[Controller]]):
    """Ordered list of ATC positions."""


class Atis(BaseModel):
    """ATIS broadcast for one airport."""
    airport: str
    letter: str
    content: str
    lines: List[str]
    editor: Optional[str] = None


# ============================================================================
# Browser -> Relay Frames
# ============================================================================

class JoinFlightFrame(CamelModel):
    """Bind the connection to a flight."""
    type: Literal["join_flight"] = WS_MESSAGE_TYPE_JOIN_FLIGHT
    flight_id: str = Field(min_length=1)


class SendMessageFrame(CamelModel):
    """Post a chat message to a flight."""
    type: Literal["send_message"] = WS_MESSAGE_TYPE_SEND_MESSAGE
    flight_id: str = Field(min_length=1)
    sender: str = Field(min_length=1)
    sender_role: str = Field(min_length=1)
    message: str = Field(min_length=1)


class ServiceUpdateFrame(CamelModel):
    """Change the status of a service request."""
    type: Literal["service_update"] = WS_MESSAGE_TYPE_SERVICE_UPDATE
    flight_id: str = Field(min_length=1)
    service_id: str = Field(min_length=1)
    status: Literal["pending", "in_progress", "completed", "cancelled"]


InboundFrame = Annotated[
    Union[JoinFlightFrame, SendMessageFrame, ServiceUpdateFrame],
    Field(discriminator="type"),
]

_inbound_frame_adapter = TypeAdapter(InboundFrame)


# ============================================================================
# Validation Functions
# ============================================================================

def validate_feed_envelope(data: Any) -> tuple[bool, Optional[FeedEnvelope], Optional[str]]:
    """
    Validate the {t, d} envelope of an upstream frame.

    Returns:
        (is_valid, envelope_or_none, error_message_or_none)
    """
    try:
        envelope = FeedEnvelope.model_validate(data)
        return True, envelope, None
    except Exception as e:
        return False, None, str(e)


def validate_aircraft_snapshot(data: Any) -> tuple[bool, Optional[AircraftSnapshot], Optional[str]]:
    """Validate an ACFT_DATA / EVENT_ACFT_DATA payload."""
    try:
        snapshot = AircraftSnapshot.model_validate(data)
        return True, snapshot, None
    except Exception as e:
        return False, None, str(e)


def validate_flight_plan(data: Any) -> tuple[bool, Optional[FlightPlan], Optional[str]]:
    """Validate a FLIGHT_PLAN / EVENT_FLIGHT_PLAN payload."""
    try:
        plan = FlightPlan.model_validate(data)
        return True, plan, None
    except Exception as e:
        return False, None, str(e)


def validate_controllers(data: Any) -> tuple[bool, Optional[ControllerList], Optional[str]]:
    """Validate a CONTROLLERS payload."""
    try:
        controllers = ControllerList.model_validate(data)
        return True, controllers, None
    except Exception as e:
        return False, None, str(e)


def validate_atis(data: Any) -> tuple[bool, Optional[Atis], Optional[str]]:
    """Validate an ATIS payload."""
    try:
        atis = Atis.model_validate(data)
        return True, atis, None
    except Exception as e:
        return False, None, str(e)


def validate_inbound_frame(
    data: Any,
) -> tuple[bool, Optional[Union[JoinFlightFrame, SendMessageFrame, ServiceUpdateFrame]], Optional[str]]:
    """
    Validate a frame sent by a browser to the relay.

    The "type" field selects the frame model; an unknown type fails validation.

    Returns:
        (is_valid, frame_or_none, error_message_or_none)
    """
    try:
        frame = _inbound_frame_adapter.validate_python(data)
        return True, frame, None
    except Exception as e:
        return False, None, str(e)
