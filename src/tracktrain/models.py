"""Data models for the TrackTrain core."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple


class Direction(str, Enum):
    """Direction of travel, encoded by stop-id parity in the feed."""
    NB = "NB"
    SB = "SB"


class DelayStatus(str, Enum):
    """Delay classification relative to the static timetable."""
    ON_TIME = "on-time"
    EARLY = "early"
    DELAYED = "delayed"


@dataclass(frozen=True)
class Station:
    """Represents a Caltrain station with its two directional platforms."""
    stop1: str  # Northbound stop id (odd)
    stop2: str  # Southbound stop id (even)
    name: str
    latitude: float
    longitude: float
    url_name: str = ""

    @property
    def stop_ids(self) -> Tuple[str, str]:
        return (self.stop1, self.stop2)

    @property
    def order_key(self) -> int:
        """Numeric key that orders stations north to south."""
        return int(self.stop1)


@dataclass(frozen=True)
class RouteStation:
    """A station placed on the route coordinate system."""
    station: Station
    distance_km: float
    position_percent: float


@dataclass(frozen=True)
class Route:
    """Ordered stations with cumulative distance and normalized position."""
    stations: Tuple[RouteStation, ...] = ()

    def __len__(self) -> int:
        return len(self.stations)

    def __iter__(self):
        return iter(self.stations)

    def __getitem__(self, index: int) -> RouteStation:
        return self.stations[index]

    @property
    def names(self) -> List[str]:
        return [rs.station.name for rs in self.stations]

    def index_of(self, name: str) -> Optional[int]:
        """Index of the station called ``name``, or None."""
        for i, rs in enumerate(self.stations):
            if rs.station.name == name:
                return i
        return None

    def get(self, name: str) -> Optional[RouteStation]:
        index = self.index_of(name)
        return self.stations[index] if index is not None else None

    def position_of(self, name: str) -> Optional[float]:
        rs = self.get(name)
        return rs.position_percent if rs else None


@dataclass(frozen=True)
class VehicleFix:
    """A live GPS fix for one train."""
    train_id: str
    latitude: float
    longitude: float
    bearing: Optional[float] = None
    observed_at: Optional[int] = None  # Unix timestamp
    route_id: Optional[str] = None
    direction_id: Optional[int] = None
    speed: Optional[float] = None


@dataclass(frozen=True)
class StopTimeUpdate:
    """Predicted arrival/departure for one stop of a trip (Unix timestamps)."""
    stop_id: str
    arrival: Optional[int] = None
    departure: Optional[int] = None


@dataclass(frozen=True)
class TripUpdate:
    """One live prediction feed entry."""
    trip_id: str
    route_id: str
    stop_time_updates: Tuple[StopTimeUpdate, ...] = ()
    direction_id: Optional[int] = None


@dataclass(frozen=True)
class Delay:
    """Signed offset from the timetable; positive = late."""
    minutes: int
    status: DelayStatus


@dataclass(frozen=True)
class PredictionRecord:
    """Canonical record for one train at one requested station."""
    train_id: str
    train_type: str
    route_id: str
    direction: Direction
    stop_id: str
    timestamp: int  # Predicted Unix timestamp
    eta_minutes: int
    eta_display: str  # "Now" or "12 min"
    predicted_time: str  # e.g. "8:12 PM"
    scheduled_time: str  # Timetable time, or predicted_time when unknown
    schedule_known: bool
    delay: Optional[Delay] = None
    stop_ids: Tuple[str, ...] = ()

    @property
    def delay_minutes(self) -> Optional[int]:
        return self.delay.minutes if self.delay else None

    @property
    def delay_status(self) -> Optional[DelayStatus]:
        return self.delay.status if self.delay else None


@dataclass(frozen=True)
class TrainPosition:
    """Where a train sits on the route coordinate system."""
    position_percent: float
    nearest_station_index: int
    was_interpolated: bool


@dataclass(frozen=True)
class StationETA:
    """Estimated arrival of the selected train at one station."""
    eta_minutes: int
    arrival_time: datetime
    arrival_clock: str  # e.g. "08:42 PM"


@dataclass(frozen=True)
class StaticData:
    """Reference data loaded once per session and never mutated."""
    stations: Tuple[Station, ...]
    route: Route
    schedule: Mapping[str, Mapping[str, str]]  # trip_id -> stop_id -> "8:10 PM"
    trip_stops: Mapping[str, Tuple[str, ...]]  # trip_id -> ordered stop ids

    def get_station(self, name: str) -> Station:
        """Get a station by display name or by either directional stop id."""
        for station in self.stations:
            if station.name == name or name in station.stop_ids:
                return station
        raise ValueError(f"Station {name} not found")

    def find_stations_by_name(self, name: str) -> List[Station]:
        """Find stations by name (partial match)."""
        name_lower = name.lower()
        return [s for s in self.stations if name_lower in s.name.lower()]


@dataclass(frozen=True)
class Snapshot:
    """Everything derived in one refresh cycle, published as a unit."""
    cycle: int
    taken_at: datetime
    origin: Station
    destination: Optional[Station]
    journey_direction: Optional[Direction]
    origin_predictions: Tuple[PredictionRecord, ...]
    destination_predictions: Tuple[PredictionRecord, ...]
    trains: Tuple[PredictionRecord, ...]  # Origin board filtered by journey direction
    vehicle_fixes: Mapping[str, VehicleFix]
    positions: Dict[str, Optional[TrainPosition]] = field(default_factory=dict)
    selected_train_id: Optional[str] = None
    selected_train_passed: bool = False
    station_etas: Dict[str, StationETA] = field(default_factory=dict)

    def position_of(self, train_id: str) -> Optional[TrainPosition]:
        """Position of ``train_id``; None means live tracking is unavailable."""
        return self.positions.get(train_id)
