"""
Storage for ground-ops entities.

`Storage` is the interface the REST layer and the WebSocket relay depend on.
`MemStorage` keeps everything in process memory keyed by random UUIDs.
"""

import os
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Dict, List, Optional

from backend.models import (
    Aircraft,
    Airport,
    Checklist,
    ChecklistItem,
    ChecklistProgress,
    Communication,
    Flight,
    InsertAircraft,
    InsertChecklist,
    InsertChecklistProgress,
    InsertCommunication,
    InsertFlight,
    InsertSeatingData,
    InsertServiceRequest,
    SeatingData,
    ServiceRequest,
    utcnow,
)
from contracts import constants

logger = logging.getLogger(__name__)

SEED_DEFAULT_DATA = os.getenv("SEED_DEFAULT_DATA", "true").lower() == "true"


class Storage(ABC):
    """Async persistence interface. Update methods return None for unknown ids."""

    # Aircraft
    @abstractmethod
    async def get_aircraft(self, aircraft_id: str) -> Optional[Aircraft]: ...

    @abstractmethod
    async def get_all_aircraft(self) -> List[Aircraft]: ...

    @abstractmethod
    async def create_aircraft(self, aircraft: InsertAircraft) -> Aircraft: ...

    @abstractmethod
    async def update_aircraft(self, aircraft_id: str, changes: Dict[str, Any]) -> Optional[Aircraft]: ...

    # Flights
    @abstractmethod
    async def get_flight(self, flight_id: str) -> Optional[Flight]: ...

    @abstractmethod
    async def get_flights_by_aircraft(self, aircraft_id: str) -> List[Flight]: ...

    @abstractmethod
    async def get_all_flights(self) -> List[Flight]: ...

    @abstractmethod
    async def create_flight(self, flight: InsertFlight) -> Flight: ...

    @abstractmethod
    async def update_flight(self, flight_id: str, changes: Dict[str, Any]) -> Optional[Flight]: ...

    # Service requests
    @abstractmethod
    async def get_service_request(self, request_id: str) -> Optional[ServiceRequest]: ...

    @abstractmethod
    async def get_service_requests_by_flight(self, flight_id: str) -> List[ServiceRequest]: ...

    @abstractmethod
    async def get_all_service_requests(self) -> List[ServiceRequest]: ...

    @abstractmethod
    async def create_service_request(self, request: InsertServiceRequest) -> ServiceRequest: ...

    @abstractmethod
    async def update_service_request(self, request_id: str, changes: Dict[str, Any]) -> Optional[ServiceRequest]: ...

    # Checklists
    @abstractmethod
    async def get_checklist(self, checklist_id: str) -> Optional[Checklist]: ...

    @abstractmethod
    async def get_checklists_by_aircraft_type(self, aircraft_type: str) -> List[Checklist]: ...

    @abstractmethod
    async def get_all_checklists(self) -> List[Checklist]: ...

    @abstractmethod
    async def create_checklist(self, checklist: InsertChecklist) -> Checklist: ...

    # Checklist progress
    @abstractmethod
    async def get_checklist_progress(self, flight_id: str, checklist_id: str) -> Optional[ChecklistProgress]: ...

    @abstractmethod
    async def get_checklist_progress_by_flight(self, flight_id: str) -> List[ChecklistProgress]: ...

    @abstractmethod
    async def create_or_update_checklist_progress(self, progress: InsertChecklistProgress) -> ChecklistProgress: ...

    # Communications
    @abstractmethod
    async def get_communications_by_flight(self, flight_id: str) -> List[Communication]: ...

    @abstractmethod
    async def create_communication(self, communication: InsertCommunication) -> Communication: ...

    # Seating
    @abstractmethod
    async def get_seating_data_by_flight(self, flight_id: str) -> List[SeatingData]: ...

    @abstractmethod
    async def create_or_update_seating_data(self, seating: InsertSeatingData) -> SeatingData: ...

    @abstractmethod
    async def update_seat_status(
        self, flight_id: str, seat_number: str, status: str, passenger_name: Optional[str] = None
    ) -> Optional[SeatingData]: ...

    # Airports
    @abstractmethod
    async def get_airport(self, icao: str) -> Optional[Airport]: ...

    @abstractmethod
    async def get_all_airports(self) -> List[Airport]: ...

    @abstractmethod
    async def get_ptfs_airports(self) -> List[Airport]: ...

    @abstractmethod
    async def create_airport(self, airport: Airport) -> Airport: ...


class MemStorage(Storage):
    """
    In-memory Storage.

    Writes replace records with updated copies and never await midway, so on
    the event loop no partially applied update is ever visible.
    """

    def __init__(self, seed: bool = SEED_DEFAULT_DATA):
        self._aircraft: Dict[str, Aircraft] = {}
        self._flights: Dict[str, Flight] = {}
        self._service_requests: Dict[str, ServiceRequest] = {}
        self._checklists: Dict[str, Checklist] = {}
        self._checklist_progress: Dict[tuple, ChecklistProgress] = {}
        self._communications: Dict[str, Communication] = {}
        self._seating: Dict[str, SeatingData] = {}
        self._airports: Dict[str, Airport] = {}

        if seed:
            self._seed_default_data()

    def _seed_default_data(self) -> None:
        """PTFS airports, one 737 with a flight, and a cockpit checklist."""
        for airport in (
            Airport(icao="KLAX", iata="LAX", name="Los Angeles International", city="Los Angeles", country="USA"),
            Airport(icao="KJFK", iata="JFK", name="John F. Kennedy International", city="New York", country="USA"),
            Airport(icao="KORD", iata="ORD", name="Chicago O'Hare International", city="Chicago", country="USA"),
            Airport(icao="KSEA", iata="SEA", name="Seattle-Tacoma International", city="Seattle", country="USA"),
            Airport(icao="KDEN", iata="DEN", name="Denver International", city="Denver", country="USA"),
        ):
            self._airports[airport.icao] = airport

        aircraft = Aircraft(
            registration="N737PT",
            type="Boeing 737-800",
            status="active",
            current_airport="KLAX",
            configuration={
                "seatingLayout": {
                    "firstClass": {"rows": 2, "seatsPerRow": 4, "seatMap": "2-2"},
                    "economy": {"rows": 30, "seatsPerRow": 6, "seatMap": "3-3"},
                },
                "servicePoints": [
                    {"type": "door", "position": "forward", "status": "closed"},
                    {"type": "fuel", "position": "wing", "status": "disconnected"},
                    {"type": "catering", "position": "forward", "status": "disconnected"},
                    {"type": "baggage", "position": "aft", "status": "disconnected"},
                ],
            },
        )
        self._aircraft[aircraft.id] = aircraft

        flight = Flight(
            flight_number="PTFS001",
            aircraft_id=aircraft.id,
            departure_airport="KLAX",
            arrival_airport="KJFK",
            status="planning",
            scheduled_departure=utcnow() + timedelta(hours=2),
            passenger_count=162,
            fuel_data={"leftWing": 5746, "center": 8540, "rightWing": 5746, "total": 20032},
        )
        self._flights[flight.id] = flight

        checklist = Checklist(
            name="Cockpit Preparation",
            category="cockpit_prep",
            items=[
                ChecklistItem(id="1", text="Battery Switch - ON", completed=True),
                ChecklistItem(id="2", text="APU Start"),
                ChecklistItem(id="3", text="Hydraulic Pumps - ON"),
                ChecklistItem(id="4", text="Fuel Pumps - ON"),
            ],
            aircraft_type="Boeing 737-800",
        )
        self._checklists[checklist.id] = checklist

        logger.info(
            f"Seeded storage: {len(self._airports)} airports, "
            f"flight {flight.flight_number} ({flight.id})"
        )

    # Aircraft
    async def get_aircraft(self, aircraft_id: str) -> Optional[Aircraft]:
        return self._aircraft.get(aircraft_id)

    async def get_all_aircraft(self) -> List[Aircraft]:
        return list(self._aircraft.values())

    async def create_aircraft(self, aircraft: InsertAircraft) -> Aircraft:
        record = Aircraft(**aircraft.model_dump())
        self._aircraft[record.id] = record
        return record

    async def update_aircraft(self, aircraft_id: str, changes: Dict[str, Any]) -> Optional[Aircraft]:
        existing = self._aircraft.get(aircraft_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=changes)
        self._aircraft[aircraft_id] = updated
        return updated

    # Flights
    async def get_flight(self, flight_id: str) -> Optional[Flight]:
        return self._flights.get(flight_id)

    async def get_flights_by_aircraft(self, aircraft_id: str) -> List[Flight]:
        return [f for f in self._flights.values() if f.aircraft_id == aircraft_id]

    async def get_all_flights(self) -> List[Flight]:
        return list(self._flights.values())

    async def create_flight(self, flight: InsertFlight) -> Flight:
        record = Flight(**flight.model_dump())
        self._flights[record.id] = record
        return record

    async def update_flight(self, flight_id: str, changes: Dict[str, Any]) -> Optional[Flight]:
        existing = self._flights.get(flight_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=changes)
        self._flights[flight_id] = updated
        return updated

    # Service requests
    async def get_service_request(self, request_id: str) -> Optional[ServiceRequest]:
        return self._service_requests.get(request_id)

    async def get_service_requests_by_flight(self, flight_id: str) -> List[ServiceRequest]:
        return [r for r in self._service_requests.values() if r.flight_id == flight_id]

    async def get_all_service_requests(self) -> List[ServiceRequest]:
        return list(self._service_requests.values())

    async def create_service_request(self, request: InsertServiceRequest) -> ServiceRequest:
        record = ServiceRequest(**request.model_dump())
        self._service_requests[record.id] = record
        return record

    async def update_service_request(self, request_id: str, changes: Dict[str, Any]) -> Optional[ServiceRequest]:
        existing = self._service_requests.get(request_id)
        if existing is None:
            return None
        changes = dict(changes)
        if changes.get("status") == constants.SERVICE_STATUS_COMPLETED:
            changes["completed_at"] = utcnow()
        updated = existing.model_copy(update=changes)
        self._service_requests[request_id] = updated
        return updated

    # Checklists
    async def get_checklist(self, checklist_id: str) -> Optional[Checklist]:
        return self._checklists.get(checklist_id)

    async def get_checklists_by_aircraft_type(self, aircraft_type: str) -> List[Checklist]:
        return [c for c in self._checklists.values() if c.aircraft_type == aircraft_type]

    async def get_all_checklists(self) -> List[Checklist]:
        return list(self._checklists.values())

    async def create_checklist(self, checklist: InsertChecklist) -> Checklist:
        record = Checklist(**checklist.model_dump())
        self._checklists[record.id] = record
        return record

    # Checklist progress, one record per (flight, checklist)
    async def get_checklist_progress(self, flight_id: str, checklist_id: str) -> Optional[ChecklistProgress]:
        return self._checklist_progress.get((flight_id, checklist_id))

    async def get_checklist_progress_by_flight(self, flight_id: str) -> List[ChecklistProgress]:
        return [p for p in self._checklist_progress.values() if p.flight_id == flight_id]

    async def create_or_update_checklist_progress(self, progress: InsertChecklistProgress) -> ChecklistProgress:
        key = (progress.flight_id, progress.checklist_id)
        existing = self._checklist_progress.get(key)
        if existing is not None:
            record = existing.model_copy(update={**progress.model_dump(), "updated_at": utcnow()})
        else:
            record = ChecklistProgress(**progress.model_dump())
        self._checklist_progress[key] = record
        return record

    # Communications
    async def get_communications_by_flight(self, flight_id: str) -> List[Communication]:
        messages = [c for c in self._communications.values() if c.flight_id == flight_id]
        return sorted(messages, key=lambda c: c.timestamp)

    async def create_communication(self, communication: InsertCommunication) -> Communication:
        record = Communication(**communication.model_dump())
        self._communications[record.id] = record
        return record

    # Seating, one record per (flight, seat number)
    def _find_seat(self, flight_id: str, seat_number: str) -> Optional[SeatingData]:
        for seat in self._seating.values():
            if seat.flight_id == flight_id and seat.seat_number == seat_number:
                return seat
        return None

    async def get_seating_data_by_flight(self, flight_id: str) -> List[SeatingData]:
        return [s for s in self._seating.values() if s.flight_id == flight_id]

    async def create_or_update_seating_data(self, seating: InsertSeatingData) -> SeatingData:
        existing = self._find_seat(seating.flight_id, seating.seat_number)
        if existing is not None:
            record = existing.model_copy(update={**seating.model_dump(), "updated_at": utcnow()})
        else:
            record = SeatingData(**seating.model_dump())
        self._seating[record.id] = record
        return record

    async def update_seat_status(
        self, flight_id: str, seat_number: str, status: str, passenger_name: Optional[str] = None
    ) -> Optional[SeatingData]:
        existing = self._find_seat(flight_id, seat_number)
        if existing is None:
            return None
        updated = existing.model_copy(update={
            "status": status,
            "passenger_name": passenger_name or existing.passenger_name,
            "updated_at": utcnow(),
        })
        self._seating[existing.id] = updated
        return updated

    # Airports
    async def get_airport(self, icao: str) -> Optional[Airport]:
        return self._airports.get(icao)

    async def get_all_airports(self) -> List[Airport]:
        return list(self._airports.values())

    async def get_ptfs_airports(self) -> List[Airport]:
        return [a for a in self._airports.values() if a.is_ptfs_supported]

    async def create_airport(self, airport: Airport) -> Airport:
        self._airports[airport.icao] = airport
        return airport
