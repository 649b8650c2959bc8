"""
REST API for ground-ops data and the ATC24 polling endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from backend.feed import FeedCache, FeedClient
from backend.models import (
    FlightUpdate,
    InsertChecklistProgress,
    InsertCommunication,
    InsertFlight,
    InsertSeatingData,
    InsertServiceRequest,
    SeatStatusUpdate,
    ServiceRequestUpdate,
    to_wire,
)
from backend.storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def error_response(status_code: int, error: str, details=None) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def invalid(error: str, exc: ValidationError) -> JSONResponse:
    return error_response(400, error, exc.errors(include_url=False, include_context=False))


# ============================================================================
# ATC24 polling
# ============================================================================

@router.get("/atc24/aircraft")
async def get_atc24_aircraft(request: Request):
    """Latest ACFT_DATA snapshot (callsign -> aircraft). Polled every 3s."""
    cache: FeedCache = request.app.state.feed_cache
    return cache.aircraft()


@router.get("/atc24/event-aircraft")
async def get_atc24_event_aircraft(request: Request):
    cache: FeedCache = request.app.state.feed_cache
    return cache.event_aircraft()


@router.get("/atc24/controllers")
async def get_atc24_controllers(request: Request):
    """Latest CONTROLLERS list. Polled every 6s."""
    cache: FeedCache = request.app.state.feed_cache
    return cache.controllers()


@router.get("/atc24/flight-plans")
async def get_atc24_flight_plans(request: Request, event: bool = False):
    cache: FeedCache = request.app.state.feed_cache
    return cache.flight_plans(event=event)


@router.get("/atc24/atis")
async def get_atc24_atis(request: Request):
    cache: FeedCache = request.app.state.feed_cache
    return cache.atis()


@router.get("/atc24/status")
async def get_atc24_status(request: Request):
    """
    Feed health for dashboards.

    `available` is False once the reconnect budget is spent; the feed then
    stays down until the service restarts.
    """
    client: FeedClient = request.app.state.feed_client
    cache: FeedCache = request.app.state.feed_cache
    last_update = cache.last_update()
    return {
        "connected": client.is_connected(),
        "available": not client.is_exhausted(),
        "reconnectAttempts": client.reconnect_attempts,
        "lastUpdate": last_update.isoformat() if last_update else None,
    }


# ============================================================================
# Aircraft
# ============================================================================

@router.get("/aircraft")
async def list_aircraft(request: Request):
    aircraft = await get_storage(request).get_all_aircraft()
    return [to_wire(a) for a in aircraft]


@router.get("/aircraft/{aircraft_id}")
async def get_aircraft(aircraft_id: str, request: Request):
    aircraft = await get_storage(request).get_aircraft(aircraft_id)
    if aircraft is None:
        return error_response(404, "Aircraft not found")
    return to_wire(aircraft)


# ============================================================================
# Flights
# ============================================================================

@router.get("/flights")
async def list_flights(request: Request):
    flights = await get_storage(request).get_all_flights()
    return [to_wire(f) for f in flights]


@router.get("/flights/{flight_id}")
async def get_flight(flight_id: str, request: Request):
    flight = await get_storage(request).get_flight(flight_id)
    if flight is None:
        return error_response(404, "Flight not found")
    return to_wire(flight)


@router.post("/flights", status_code=201)
async def create_flight(request: Request, body: dict = Body(...)):
    try:
        data = InsertFlight.model_validate(body)
    except ValidationError as e:
        return invalid("Invalid flight data", e)
    flight = await get_storage(request).create_flight(data)
    logger.info(f"Created flight {flight.flight_number} ({flight.id})")
    return to_wire(flight)


@router.patch("/flights/{flight_id}")
async def update_flight(flight_id: str, request: Request, body: dict = Body(...)):
    try:
        changes = FlightUpdate.model_validate(body).model_dump(exclude_unset=True)
    except ValidationError as e:
        return invalid("Invalid flight data", e)
    flight = await get_storage(request).update_flight(flight_id, changes)
    if flight is None:
        return error_response(404, "Flight not found")
    return to_wire(flight)


# ============================================================================
# Service requests
# ============================================================================

@router.get("/flights/{flight_id}/services")
async def list_service_requests(flight_id: str, request: Request):
    services = await get_storage(request).get_service_requests_by_flight(flight_id)
    return [to_wire(s) for s in services]


@router.post("/flights/{flight_id}/services", status_code=201)
async def create_service_request(flight_id: str, request: Request, body: dict = Body(...)):
    try:
        data = InsertServiceRequest.model_validate({**body, "flightId": flight_id})
    except ValidationError as e:
        return invalid("Invalid service request data", e)
    service = await get_storage(request).create_service_request(data)
    return to_wire(service)


@router.patch("/services/{service_id}")
async def update_service_request(service_id: str, request: Request, body: dict = Body(...)):
    try:
        changes = ServiceRequestUpdate.model_validate(body).model_dump(exclude_unset=True)
    except ValidationError as e:
        return invalid("Invalid service request data", e)
    service = await get_storage(request).update_service_request(service_id, changes)
    if service is None:
        return error_response(404, "Service request not found")
    return to_wire(service)


# ============================================================================
# Communications
# ============================================================================

@router.get("/flights/{flight_id}/communications")
async def list_communications(flight_id: str, request: Request):
    messages = await get_storage(request).get_communications_by_flight(flight_id)
    return [to_wire(m) for m in messages]


@router.post("/flights/{flight_id}/communications", status_code=201)
async def create_communication(flight_id: str, request: Request, body: dict = Body(...)):
    try:
        data = InsertCommunication.model_validate({**body, "flightId": flight_id})
    except ValidationError as e:
        return invalid("Invalid communication data", e)
    message = await get_storage(request).create_communication(data)
    return to_wire(message)


# ============================================================================
# Seating
# ============================================================================

@router.get("/flights/{flight_id}/seating")
async def list_seating(flight_id: str, request: Request):
    seats = await get_storage(request).get_seating_data_by_flight(flight_id)
    return [to_wire(s) for s in seats]


@router.post("/flights/{flight_id}/seating", status_code=201)
async def upsert_seating(flight_id: str, request: Request, body: dict = Body(...)):
    try:
        data = InsertSeatingData.model_validate({**body, "flightId": flight_id})
    except ValidationError as e:
        return invalid("Invalid seating data", e)
    seat = await get_storage(request).create_or_update_seating_data(data)
    return to_wire(seat)


@router.patch("/flights/{flight_id}/seating/{seat_number}")
async def update_seat_status(flight_id: str, seat_number: str, request: Request, body: dict = Body(...)):
    try:
        data = SeatStatusUpdate.model_validate(body)
    except ValidationError as e:
        return invalid("Invalid seat status", e)
    seat = await get_storage(request).update_seat_status(
        flight_id, seat_number, data.status, data.passenger_name
    )
    if seat is None:
        return error_response(404, "Seat not found")
    return to_wire(seat)


# ============================================================================
# Checklists
# ============================================================================

@router.get("/checklists")
async def list_checklists(request: Request, aircraftType: Optional[str] = None):
    storage = get_storage(request)
    if aircraftType:
        checklists = await storage.get_checklists_by_aircraft_type(aircraftType)
    else:
        checklists = await storage.get_all_checklists()
    return [to_wire(c) for c in checklists]


@router.get("/flights/{flight_id}/checklist-progress")
async def list_checklist_progress(flight_id: str, request: Request):
    progress = await get_storage(request).get_checklist_progress_by_flight(flight_id)
    return [to_wire(p) for p in progress]


@router.post("/flights/{flight_id}/checklist-progress", status_code=201)
async def upsert_checklist_progress(flight_id: str, request: Request, body: dict = Body(...)):
    try:
        data = InsertChecklistProgress.model_validate({**body, "flightId": flight_id})
    except ValidationError as e:
        return invalid("Invalid checklist progress data", e)
    progress = await get_storage(request).create_or_update_checklist_progress(data)
    return to_wire(progress)


# ============================================================================
# Airports
# ============================================================================

@router.get("/airports")
async def list_airports(request: Request, ptfsOnly: bool = False):
    storage = get_storage(request)
    airports = await (storage.get_ptfs_airports() if ptfsOnly else storage.get_all_airports())
    return [to_wire(a) for a in airports]
