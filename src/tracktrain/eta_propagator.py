"""Estimates arrival times at every station from two observed anchor ETAs."""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from .clock import format_clock, to_local
from .config import DEFAULT_CONFIG, TrackerConfig
from .models import Route, StationETA

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _interpolate(percent: float, origin_pct: float, dest_pct: float,
                 eta_origin: float, eta_destination: float) -> float:
    """ETA for a station at ``percent`` given anchors at origin_pct and dest_pct."""
    if dest_pct > origin_pct:
        # Travelling towards higher percent (southbound on the usual orientation)
        if percent <= origin_pct:
            return eta_origin * (percent / origin_pct) if origin_pct > 0 else eta_origin
        if percent <= dest_pct:
            ratio = (percent - origin_pct) / (dest_pct - origin_pct)
            return eta_origin + (eta_destination - eta_origin) * ratio
        return eta_destination

    # Mirror image, measured from 100 downward
    if percent >= origin_pct:
        return eta_origin * ((100 - percent) / (100 - origin_pct)) if origin_pct < 100 else eta_origin
    if percent >= dest_pct:
        span = origin_pct - dest_pct
        ratio = (origin_pct - percent) / span if span > 0 else 0.0
        return eta_origin + (eta_destination - eta_origin) * ratio
    return eta_destination


def propagate_etas(
    route: Route,
    origin: str,
    eta_origin: int,
    destination: Optional[str] = None,
    eta_destination: Optional[int] = None,
    now: Optional[datetime] = None,
    config: TrackerConfig = DEFAULT_CONFIG,
) -> Dict[str, StationETA]:
    """
    Estimate the selected train's arrival at every station on the route.

    The origin and destination ETAs are anchor values taken straight from the live
    predictions; every other station is a geometric estimate. Stations behind the origin
    scale linearly from the line's start, stations between the anchors interpolate by
    relative position and stations past the destination are pinned to its ETA.

    Args:
        route: Route built by ``build_route``.
        origin: Origin station name.
        eta_origin: Observed minutes until the train reaches the origin.
        destination: Optional destination station name.
        eta_destination: Observed minutes until the train reaches the destination.
            Ignored without a destination.
        now: Reference time for arrival clock times. Defaults to the current time.
        config: Supplies the display timezone.

    Returns:
        Mapping of station name to StationETA in route order. Empty when the origin or
        a named destination is not on the route.
    """
    origin_pct = route.position_of(origin)
    if origin_pct is None:
        logger.debug(f"Origin {origin} not on route, no ETAs")
        return {}

    if destination is not None:
        dest_pct = route.position_of(destination)
        if dest_pct is None:
            logger.debug(f"Destination {destination} not on route, no ETAs")
            return {}
        if eta_destination is None:
            eta_destination = eta_origin
    else:
        dest_pct = 100.0
        eta_destination = eta_origin

    if now is None:
        now = datetime.now(timezone.utc)
    # Offsets are added in UTC so arrivals stay correct across a DST change
    now_utc = to_local(now, "UTC")

    etas: Dict[str, StationETA] = {}
    for rs in route:
        name = rs.station.name
        if name == origin:
            eta = float(eta_origin)
        elif name == destination:
            eta = float(eta_destination)
        else:
            eta = _interpolate(rs.position_percent, origin_pct, dest_pct, eta_origin, eta_destination)

        minutes = _round_half_up(max(0.0, eta))
        arrival = to_local(now_utc + timedelta(minutes=minutes), config.timezone)
        etas[name] = StationETA(
            eta_minutes=minutes,
            arrival_time=arrival,
            arrival_clock=format_clock(arrival, pad_hour=True),
        )

    return etas
