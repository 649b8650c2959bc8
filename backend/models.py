"""
Data models for stored entities and relay WebSocket messages.

Records serialise with camelCase keys (the browser's wire format). Insert
models carry what a client may supply; Update models make every field
optional for PATCH requests and are applied with exclude_unset.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from contracts import constants
from contracts.validation import CamelModel

FlightStatus = Literal["planning", "boarding", "departed", "arrived"]
AircraftStatus = Literal["active", "maintenance", "retired"]
ServiceStatus = Literal["pending", "in_progress", "completed", "cancelled"]
ServicePriority = Literal["low", "normal", "high", "urgent"]
SeatStatus = Literal["available", "occupied", "blocked"]
SeatClass = Literal["first", "business", "economy"]
ProgressStatus = Literal["pending", "in_progress", "completed"]


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _not_null(value):
    # Omit a required field to keep it; null is not a value for it
    if value is None:
        raise ValueError("may not be null")
    return value


# ============================================================================
# Aircraft
# ============================================================================

class InsertAircraft(CamelModel):
    registration: str
    type: str  # "Boeing 737-800", etc.
    status: AircraftStatus = "active"
    current_airport: str
    configuration: Dict[str, Any]  # seating layout, service points


class Aircraft(InsertAircraft):
    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Flight
# ============================================================================

class InsertFlight(CamelModel):
    flight_number: str
    aircraft_id: Optional[str] = None
    departure_airport: str
    arrival_airport: str
    status: FlightStatus = constants.FLIGHT_STATUS_PLANNING
    scheduled_departure: Optional[datetime] = None
    actual_departure: Optional[datetime] = None
    passenger_count: int = Field(0, ge=0)
    fuel_data: Optional[Dict[str, Any]] = None


class FlightUpdate(CamelModel):
    flight_number: Optional[str] = None
    aircraft_id: Optional[str] = None
    departure_airport: Optional[str] = None
    arrival_airport: Optional[str] = None
    status: Optional[FlightStatus] = None
    scheduled_departure: Optional[datetime] = None
    actual_departure: Optional[datetime] = None
    passenger_count: Optional[int] = Field(None, ge=0)
    fuel_data: Optional[Dict[str, Any]] = None

    @field_validator("flight_number", "departure_airport", "arrival_airport", "status", "passenger_count", mode="before")
    @classmethod
    def reject_null(cls, value):
        return _not_null(value)


class Flight(InsertFlight):
    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Service Request
# ============================================================================

class InsertServiceRequest(CamelModel):
    flight_id: Optional[str] = None
    service_type: str  # fuel, catering, baggage, ground_power
    status: ServiceStatus = constants.SERVICE_STATUS_PENDING
    priority: ServicePriority = constants.PRIORITY_NORMAL
    requested_by: str
    assigned_to: Optional[str] = None
    notes: Optional[str] = None


class ServiceRequestUpdate(CamelModel):
    flight_id: Optional[str] = None
    service_type: Optional[str] = None
    status: Optional[ServiceStatus] = None
    priority: Optional[ServicePriority] = None
    requested_by: Optional[str] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("service_type", "status", "priority", "requested_by", mode="before")
    @classmethod
    def reject_null(cls, value):
        return _not_null(value)


class ServiceRequest(InsertServiceRequest):
    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


# ============================================================================
# Checklists
# ============================================================================

class ChecklistItem(BaseModel):
    id: str
    text: str
    completed: bool = False


class InsertChecklist(CamelModel):
    name: str
    category: str  # cockpit_prep, before_start, engine_start, etc.
    items: List[ChecklistItem]
    aircraft_type: str
    version: str = "1.0"


class Checklist(InsertChecklist):
    id: str = Field(default_factory=new_id)


class InsertChecklistProgress(CamelModel):
    flight_id: str
    checklist_id: str
    completed_items: List[str] = Field(default_factory=list)
    status: ProgressStatus = "pending"


class ChecklistProgress(InsertChecklistProgress):
    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Communications
# ============================================================================

class InsertCommunication(CamelModel):
    flight_id: str
    sender: str
    sender_role: str  # pilot, ground_control, catering, fuel, baggage
    message: str


class Communication(InsertCommunication):
    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utcnow)
    read_by: List[str] = Field(default_factory=list)


# ============================================================================
# Seating
# ============================================================================

class InsertSeatingData(CamelModel):
    flight_id: str
    seat_number: str
    status: SeatStatus = constants.SEAT_STATUS_AVAILABLE
    passenger_name: Optional[str] = None
    seat_class: SeatClass


class SeatStatusUpdate(CamelModel):
    status: SeatStatus
    passenger_name: Optional[str] = None


class SeatingData(InsertSeatingData):
    id: str = Field(default_factory=new_id)
    updated_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Airports
# ============================================================================

class Airport(CamelModel):
    icao: str
    iata: Optional[str] = None
    name: str
    city: str
    country: str
    is_ptfs_supported: bool = True


# ============================================================================
# Relay WebSocket Messages
# ============================================================================

class NewMessageMessage(BaseModel):
    """Chat message fanned out to a flight."""
    type: Literal["new_message"] = constants.WS_MESSAGE_TYPE_NEW_MESSAGE
    data: Communication


class ServiceUpdatedMessage(BaseModel):
    """Service request change fanned out to a flight."""
    type: Literal["service_updated"] = constants.WS_MESSAGE_TYPE_SERVICE_UPDATED
    data: ServiceRequest


class FeedStatus(CamelModel):
    connected: bool
    available: bool
    reconnect_in_ms: Optional[int] = None


class FeedStatusMessage(BaseModel):
    """Upstream feed state, sent to every open connection."""
    type: Literal["feed_status"] = constants.WS_MESSAGE_TYPE_FEED_STATUS
    data: FeedStatus


def to_wire(model: BaseModel) -> dict:
    """JSON-ready dict with camelCase keys."""
    return model.model_dump(mode="json", by_alias=True)
