"""
Feed events emitted by the ATC24 feed client.

Every event is a frozen dataclass; FeedEvent is the union listeners receive.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from contracts.validation import AircraftState, Atis, Controller, FlightPlan


@dataclass(frozen=True)
class FeedConnected:
    """The upstream socket opened."""


@dataclass(frozen=True)
class FeedDisconnected:
    """The upstream socket closed. reconnect_in_ms is None when no retry is scheduled."""
    reconnect_in_ms: Optional[int]


@dataclass(frozen=True)
class FeedUnavailable:
    """The reconnect budget is exhausted; the feed stays down until restarted."""
    attempts: int


@dataclass(frozen=True)
class FeedError:
    cause: BaseException


@dataclass(frozen=True)
class AircraftData:
    aircraft: Dict[str, AircraftState]


@dataclass(frozen=True)
class EventAircraftData:
    aircraft: Dict[str, AircraftState]


@dataclass(frozen=True)
class FlightPlanFiled:
    plan: FlightPlan


@dataclass(frozen=True)
class EventFlightPlanFiled:
    plan: FlightPlan


@dataclass(frozen=True)
class ControllersUpdated:
    controllers: List[Controller]


@dataclass(frozen=True)
class AtisUpdated:
    atis: Atis


FeedEvent = Union[
    FeedConnected,
    FeedDisconnected,
    FeedUnavailable,
    FeedError,
    AircraftData,
    EventAircraftData,
    FlightPlanFiled,
    EventFlightPlanFiled,
    ControllersUpdated,
    AtisUpdated,
]
