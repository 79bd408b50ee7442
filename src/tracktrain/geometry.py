"""Route geometry: turns an ordered station list into a 0-100% coordinate system."""

import logging
import math
from typing import Iterable, List

from .models import Route, RouteStation, Station

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two lat/lon points in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def station_distance_km(a: Station, b: Station) -> float:
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def build_route(stations: Iterable[Station]) -> Route:
    """
    Build the route coordinate system for a set of stations.

    Stations are sorted by their directional ordering key (north to south), distances
    between neighbours are accumulated, and each station gets
    ``position_percent = cumulative / total * 100``.

    Args:
        stations: Stations in any order.

    Returns:
        Route with monotonically non-decreasing positions. With fewer than two stations,
        or when every station shares the same coordinates, all positions are 0.
    """
    ordered: List[Station] = sorted(stations, key=lambda s: s.order_key)

    cumulative: List[float] = []
    total = 0.0
    for i, station in enumerate(ordered):
        if i > 0:
            total += station_distance_km(ordered[i - 1], station)
        cumulative.append(total)

    route_stations = tuple(
        RouteStation(
            station=station,
            distance_km=dist,
            position_percent=(dist / total) * 100 if total > 0 else 0.0,
        )
        for station, dist in zip(ordered, cumulative)
    )

    logger.debug(f"Built route with {len(route_stations)} stations over {total:.1f} km")
    return Route(stations=route_stations)
