"""TrackTrain - Real-time Caltrain positions, ETAs and delays."""

__version__ = "0.1.0"

from .models import (
    Delay,
    DelayStatus,
    Direction,
    PredictionRecord,
    Route,
    RouteStation,
    Snapshot,
    StaticData,
    Station,
    StationETA,
    StopTimeUpdate,
    TrainPosition,
    TripUpdate,
    VehicleFix,
)
from .config import TrackerConfig
from .geometry import build_route, haversine_km
from .locator import locate_train, locate_vehicle
from .prediction_merger import merge_predictions
from .eta_propagator import propagate_etas
from .gtfs_loader import GTFSLoader, build_static_data
from .tracker import TrainTracker

__all__ = [
    "TrainTracker",
    "GTFSLoader",
    "TrackerConfig",
    "build_static_data",
    "build_route",
    "haversine_km",
    "locate_vehicle",
    "locate_train",
    "merge_predictions",
    "propagate_etas",
    "Station",
    "Route",
    "RouteStation",
    "VehicleFix",
    "StopTimeUpdate",
    "TripUpdate",
    "PredictionRecord",
    "Delay",
    "DelayStatus",
    "Direction",
    "TrainPosition",
    "StationETA",
    "StaticData",
    "Snapshot",
]
