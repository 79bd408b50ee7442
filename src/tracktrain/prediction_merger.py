"""Merges live per-stop predictions with the static timetable."""

import logging
import time
from datetime import datetime
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from .clock import format_clock, local_datetime, minutes_between, parse_clock
from .config import DEFAULT_CONFIG, TrackerConfig
from .models import (
    Delay,
    DelayStatus,
    Direction,
    PredictionRecord,
    Station,
    StopTimeUpdate,
    TripUpdate,
)

logger = logging.getLogger(__name__)


def direction_for_stop(stop_id: str) -> Direction:
    """Odd stop ids are northbound platforms, even ones southbound."""
    return Direction.NB if int(stop_id) % 2 != 0 else Direction.SB


def classify_train_type(trip_id: str, config: TrackerConfig = DEFAULT_CONFIG) -> str:
    """Coarse train type from the trip id prefix; first matching rule wins."""
    for prefixes, train_type in config.train_type_rules:
        if trip_id.startswith(tuple(prefixes)):
            return train_type
    return config.default_train_type


def classify_delay(minutes: int, config: TrackerConfig = DEFAULT_CONFIG) -> DelayStatus:
    threshold = config.delay_threshold_minutes
    if minutes <= -threshold:
        return DelayStatus.EARLY
    if minutes >= threshold:
        return DelayStatus.DELAYED
    return DelayStatus.ON_TIME


def compute_delay(
    predicted: datetime,
    scheduled_time: str,
    config: TrackerConfig = DEFAULT_CONFIG,
) -> Optional[Delay]:
    """
    Compare a predicted time against a scheduled clock time on the same service day.

    Returns None if ``scheduled_time`` cannot be parsed.
    """
    scheduled = parse_clock(scheduled_time, predicted)
    if scheduled is None:
        logger.debug(f"Could not parse scheduled time {scheduled_time!r}")
        return None

    minutes = minutes_between(predicted, scheduled)
    return Delay(minutes=minutes, status=classify_delay(minutes, config))


def _resolve_timestamp(update: StopTimeUpdate) -> Optional[int]:
    return update.departure or update.arrival


def merge_predictions(
    trip_updates: Iterable[TripUpdate],
    station: Station,
    schedule: Mapping[str, Mapping[str, str]],
    trip_stops: Mapping[str, Sequence[str]],
    now: Optional[float] = None,
    config: TrackerConfig = DEFAULT_CONFIG,
) -> List[PredictionRecord]:
    """
    Build station-board rows for ``station``.

    Args:
        trip_updates: Live feed entries fetched for the station.
        station: The requested station; only its two directional stop ids are kept.
        schedule: trip_id -> stop_id -> scheduled clock time ("8:10 PM").
        trip_stops: trip_id -> every stop id the trip visits, in order.
        now: Unix timestamp to measure ETAs from. Defaults to the current time.
        config: Policy values (staleness window, delay threshold, train type rules).

    Returns:
        One PredictionRecord per (train, station) occurrence, ascending by time.
    """
    if now is None:
        now = time.time()
    wanted = set(station.stop_ids)

    records: List[PredictionRecord] = []

    for trip in trip_updates:
        # Get all stop ids for this trip, falling back to what the live feed reports
        static_stops = trip_stops.get(trip.trip_id)
        if static_stops:
            stop_ids: Tuple[str, ...] = tuple(static_stops)
        else:
            logger.debug(f"Trip {trip.trip_id} missing from trip stops table, using live stop ids")
            stop_ids = tuple(u.stop_id for u in trip.stop_time_updates)

        for update in trip.stop_time_updates:
            if update.stop_id not in wanted:
                continue

            timestamp = _resolve_timestamp(update)
            if not timestamp:
                logger.debug(f"Dropping update for trip {trip.trip_id} at {update.stop_id}: no time")
                continue

            # Epoch arithmetic; local wall clocks repeat an hour when DST ends
            eta = int((timestamp - now) / 60)
            if eta < -config.stale_window_minutes:
                continue

            try:
                direction = direction_for_stop(update.stop_id)
            except ValueError:
                logger.debug(f"Dropping update with non-numeric stop id {update.stop_id!r}")
                continue

            predicted = local_datetime(timestamp, config.timezone)
            predicted_time = format_clock(predicted)
            scheduled_time = schedule.get(trip.trip_id, {}).get(update.stop_id) or None
            schedule_known = scheduled_time is not None

            delay = compute_delay(predicted, scheduled_time, config) if schedule_known else None

            records.append(
                PredictionRecord(
                    train_id=trip.trip_id,
                    train_type=classify_train_type(trip.trip_id, config),
                    route_id=trip.route_id,
                    direction=direction,
                    stop_id=update.stop_id,
                    timestamp=int(timestamp),
                    eta_minutes=max(0, eta),
                    eta_display="Now" if eta <= 0 else f"{eta} min",
                    predicted_time=predicted_time,
                    scheduled_time=scheduled_time if schedule_known else predicted_time,
                    schedule_known=schedule_known,
                    delay=delay,
                    stop_ids=stop_ids,
                )
            )

    records.sort(key=lambda r: r.timestamp)
    logger.debug(f"Merged {len(records)} predictions for {station.name}")
    return records


def eta_for_train(train_id: str, predictions: Iterable[PredictionRecord]) -> Optional[int]:
    """ETA in minutes of the first prediction for ``train_id``, or None."""
    for record in predictions:
        if record.train_id == train_id:
            return record.eta_minutes
    return None


def journey_direction(origin: Station, destination: Optional[Station]) -> Optional[Direction]:
    """Southbound when the destination lies further down the line than the origin."""
    if destination is None or destination == origin:
        return None
    return Direction.SB if origin.order_key < destination.order_key else Direction.NB


def filter_by_direction(
    predictions: Iterable[PredictionRecord], direction: Optional[Direction]
) -> List[PredictionRecord]:
    if direction is None:
        return list(predictions)
    return [p for p in predictions if p.direction == direction]
