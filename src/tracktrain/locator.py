"""Maps live GPS fixes onto the route coordinate system."""

import logging
from typing import Mapping, Optional, Tuple

from .config import DEFAULT_CONFIG, TrackerConfig
from .geometry import haversine_km
from .models import Route, TrainPosition, VehicleFix

logger = logging.getLogger(__name__)


def _nearest_index(fix: VehicleFix, route: Route) -> int:
    best_idx = 0
    best_dist = float("inf")
    for i, rs in enumerate(route):
        d = haversine_km(fix.latitude, fix.longitude, rs.station.latitude, rs.station.longitude)
        if d < best_dist:
            best_dist = d
            best_idx = i
    return best_idx


def _segment_factor(fix: VehicleFix, route: Route, start: int, end: int, tolerance: float) -> Optional[float]:
    """
    Interpolation factor of ``fix`` along segment start->end, or None if the fix
    is not on that segment.
    """
    a = route[start].station
    b = route[end].station
    length = haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
    if length <= 0:
        return None

    to_start = haversine_km(fix.latitude, fix.longitude, a.latitude, a.longitude)
    to_end = haversine_km(fix.latitude, fix.longitude, b.latitude, b.longitude)
    if to_start + to_end > length * tolerance:
        return None

    return min(1.0, max(0.0, to_start / length))


def locate_vehicle(fix: VehicleFix, route: Route, config: TrackerConfig = DEFAULT_CONFIG) -> Optional[TrainPosition]:
    """
    Place a vehicle fix on the route.

    Finds the nearest station, then checks whether the fix lies on the segment to the
    previous station and, failing that, the segment to the next one. A qualifying
    segment is linearly interpolated; otherwise the nearest station's own position
    is used and ``was_interpolated`` is False.

    Args:
        fix: Live GPS fix.
        route: Route built by ``build_route``.
        config: Supplies the segment tolerance.

    Returns:
        TrainPosition within [0, 100], or None for an empty route.
    """
    if len(route) == 0:
        return None

    nearest = _nearest_index(fix, route)
    segment: Optional[Tuple[int, int, float]] = None

    if nearest > 0:
        factor = _segment_factor(fix, route, nearest - 1, nearest, config.segment_tolerance)
        if factor is not None:
            segment = (nearest - 1, nearest, factor)

    if segment is None and nearest < len(route) - 1:
        factor = _segment_factor(fix, route, nearest, nearest + 1, config.segment_tolerance)
        if factor is not None:
            segment = (nearest, nearest + 1, factor)

    if segment is None:
        return TrainPosition(
            position_percent=route[nearest].position_percent,
            nearest_station_index=nearest,
            was_interpolated=False,
        )

    start, end, factor = segment
    start_pct = route[start].position_percent
    end_pct = route[end].position_percent
    percent = start_pct + (end_pct - start_pct) * factor

    return TrainPosition(
        position_percent=min(100.0, max(0.0, percent)),
        nearest_station_index=nearest,
        was_interpolated=True,
    )


def locate_train(
    train_id: str,
    fixes: Mapping[str, VehicleFix],
    route: Route,
    config: TrackerConfig = DEFAULT_CONFIG,
) -> Optional[TrainPosition]:
    """
    Locate ``train_id`` using this cycle's fixes.

    Returns None when the train has no fix, which callers must present as
    "live tracking unavailable" rather than a position of 0%.
    """
    fix = fixes.get(train_id)
    if fix is None:
        logger.debug(f"No vehicle fix for train {train_id}")
        return None
    return locate_vehicle(fix, route, config)
