"""Decoders for live prediction and vehicle-position feed payloads.

Payloads arrive already fetched, either as the Caltrain JSON documents or as raw
GTFS-Realtime protobuf bytes. Malformed entries are dropped one at a time; a payload
that cannot be decoded at all yields an empty result.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from .models import StopTimeUpdate, TripUpdate, VehicleFix

logger = logging.getLogger(__name__)

Payload = Union[bytes, Dict[str, Any], None]


def _time_of(event: Optional[Dict[str, Any]]) -> Optional[int]:
    if not event:
        return None
    value = event.get("Time")
    return int(value) if value else None


def _parse_json_trip_update(raw: Dict[str, Any]) -> Optional[TripUpdate]:
    trip_update = raw.get("TripUpdate") or {}
    trip = trip_update.get("Trip") or {}
    trip_id = trip.get("TripId")
    if not trip_id:
        return None

    updates = []
    for stu in trip_update.get("StopTimeUpdate") or []:
        stop_id = stu.get("StopId")
        if not stop_id:
            continue
        updates.append(
            StopTimeUpdate(
                stop_id=str(stop_id),
                arrival=_time_of(stu.get("Arrival")),
                departure=_time_of(stu.get("Departure")),
            )
        )

    return TripUpdate(
        trip_id=str(trip_id),
        route_id=str(trip.get("RouteId") or ""),
        stop_time_updates=tuple(updates),
        direction_id=trip.get("DirectionId"),
    )


def parse_prediction_json(payload: Dict[str, Any]) -> List[TripUpdate]:
    """
    Parse the Caltrain stop predictions document.

    Expected shape: {"data": [{"predictions": [{"TripUpdate": {...}}, ...]}, ...]}
    """
    trip_updates: List[TripUpdate] = []
    for entry in payload.get("data") or []:
        for raw in entry.get("predictions") or []:
            try:
                parsed = _parse_json_trip_update(raw)
            except (AttributeError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed prediction entry: {e}")
                continue
            if parsed is not None:
                trip_updates.append(parsed)
    return trip_updates


def parse_vehicle_json(payload: Dict[str, Any]) -> Dict[str, VehicleFix]:
    """
    Parse the Caltrain vehicle positions document into fixes keyed by trip id.

    Expected shape: {"Entities": [{"Vehicle": {"Trip": {...}, "Position": {...}, "Timestamp": ...}}]}
    """
    fixes: Dict[str, VehicleFix] = {}
    for entity in payload.get("Entities") or []:
        try:
            vehicle = entity["Vehicle"]
            trip = vehicle.get("Trip") or {}
            position = vehicle["Position"]
            train_id = trip.get("TripId")
            if not train_id:
                continue
            fixes[str(train_id)] = VehicleFix(
                train_id=str(train_id),
                latitude=float(position["Latitude"]),
                longitude=float(position["Longitude"]),
                bearing=position.get("Bearing"),
                observed_at=vehicle.get("Timestamp"),
                route_id=trip.get("RouteId"),
                direction_id=trip.get("DirectionId"),
                speed=position.get("Speed"),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed vehicle entity: {e}")
    return fixes


def _parse_feed_message(feed_data: bytes):
    from google.transit import gtfs_realtime_pb2

    feed = gtfs_realtime_pb2.FeedMessage()
    feed.ParseFromString(feed_data)
    return feed


def parse_trip_updates_pb(feed_data: bytes) -> List[TripUpdate]:
    """
    Parse trip updates from a GTFS-Realtime feed.

    Args:
        feed_data: Raw protobuf bytes.

    Returns:
        List of TripUpdate objects.
    """
    try:
        feed = _parse_feed_message(feed_data)
    except ImportError:
        logger.error("google.transit.gtfs_realtime_pb2 not installed")
        raise
    except Exception as e:
        logger.error(f"Failed to parse trip updates: {e}")
        return []

    trip_updates: List[TripUpdate] = []
    for entity in feed.entity:
        if not entity.HasField("trip_update"):
            continue

        trip_update = entity.trip_update
        if not trip_update.trip.trip_id:
            continue
        has_dir = trip_update.trip.HasField("direction_id")

        updates = []
        for stop_time_update in trip_update.stop_time_update:
            arrival = stop_time_update.arrival.time if stop_time_update.HasField("arrival") else None
            departure = stop_time_update.departure.time if stop_time_update.HasField("departure") else None
            updates.append(
                StopTimeUpdate(
                    stop_id=stop_time_update.stop_id,
                    arrival=arrival or None,
                    departure=departure or None,
                )
            )

        trip_updates.append(
            TripUpdate(
                trip_id=trip_update.trip.trip_id,
                route_id=trip_update.trip.route_id,
                stop_time_updates=tuple(updates),
                direction_id=trip_update.trip.direction_id if has_dir else None,
            )
        )

    return trip_updates


def parse_vehicles_pb(feed_data: bytes) -> Dict[str, VehicleFix]:
    """
    Parse vehicle positions from a GTFS-Realtime feed, keyed by trip id.

    Args:
        feed_data: Raw protobuf bytes.

    Returns:
        Dictionary of trip id to VehicleFix.
    """
    try:
        feed = _parse_feed_message(feed_data)
    except ImportError:
        logger.error("google.transit.gtfs_realtime_pb2 not installed")
        raise
    except Exception as e:
        logger.error(f"Failed to parse vehicle positions: {e}")
        return {}

    fixes: Dict[str, VehicleFix] = {}
    for entity in feed.entity:
        if not entity.HasField("vehicle"):
            continue

        vehicle = entity.vehicle
        train_id = vehicle.trip.trip_id
        if not train_id or not vehicle.HasField("position"):
            continue

        position = vehicle.position
        has_dir = vehicle.trip.HasField("direction_id")
        fixes[train_id] = VehicleFix(
            train_id=train_id,
            latitude=position.latitude,
            longitude=position.longitude,
            bearing=position.bearing if position.HasField("bearing") else None,
            observed_at=vehicle.timestamp or None,
            route_id=vehicle.trip.route_id or None,
            direction_id=vehicle.trip.direction_id if has_dir else None,
            speed=position.speed if position.HasField("speed") else None,
        )

    return fixes


def decode_trip_updates(payload: Payload) -> List[TripUpdate]:
    """Decode a predictions payload of either supported format."""
    if not payload:
        return []
    if isinstance(payload, (bytes, bytearray)):
        return parse_trip_updates_pb(bytes(payload))
    if isinstance(payload, dict):
        return parse_prediction_json(payload)
    logger.warning(f"Unsupported predictions payload type {type(payload).__name__}")
    return []


def decode_vehicle_fixes(payload: Payload) -> Dict[str, VehicleFix]:
    """Decode a vehicle positions payload of either supported format."""
    if not payload:
        return {}
    if isinstance(payload, (bytes, bytearray)):
        return parse_vehicles_pb(bytes(payload))
    if isinstance(payload, dict):
        return parse_vehicle_json(payload)
    logger.warning(f"Unsupported vehicle payload type {type(payload).__name__}")
    return {}
