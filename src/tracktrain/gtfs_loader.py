"""GTFS static data loader for Caltrain reference data."""

import io
import logging
import zipfile
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .clock import format_gtfs_time
from .geometry import build_route
from .models import StaticData, Station

logger = logging.getLogger(__name__)

_NAME_SUFFIXES = (" Caltrain", " Northbound", " Southbound", " Station")


def clean_station_name(name: str) -> str:
    """Strip platform/agency suffixes, e.g. "Palo Alto Caltrain Northbound" -> "Palo Alto"."""
    for suffix in _NAME_SUFFIXES:
        name = name.replace(suffix, "")
    return name.strip()


def _read_csv(csv_content: str) -> pd.DataFrame:
    return pd.read_csv(io.StringIO(csv_content), dtype=str, keep_default_na=False)


class GTFSLoader:
    """Loads Caltrain GTFS static data and builds an immutable StaticData snapshot."""

    def __init__(self):
        """Initialize the GTFS loader."""
        self.stations: List[Station] = []
        self.schedule: Dict[str, Dict[str, str]] = {}  # trip_id -> stop_id -> "8:10 PM"
        self.trip_stops: Dict[str, Tuple[str, ...]] = {}  # trip_id -> ordered stop ids

    def load_from_zip(self, zip_path: str) -> StaticData:
        """Load stops.txt and stop_times.txt from a GTFS zip archive."""
        logger.info(f"Loading GTFS data from {zip_path}")
        try:
            with zipfile.ZipFile(zip_path) as zip_file:
                self._load_stops(zip_file.read("stops.txt").decode("utf-8-sig"))
                self._load_stop_times(zip_file.read("stop_times.txt").decode("utf-8-sig"))
        except Exception as e:
            logger.error(f"Failed to load GTFS data: {e}")
            raise
        return self.snapshot()

    def load_from_files(self, stops_path: str, stop_times_path: str) -> StaticData:
        """Load GTFS data from local CSV files."""
        logger.info("Loading GTFS data from local files")
        with open(stops_path, "r", encoding="utf-8-sig") as f:
            self._load_stops(f.read())
        with open(stop_times_path, "r", encoding="utf-8-sig") as f:
            self._load_stop_times(f.read())
        return self.snapshot()

    def _load_stops(self, csv_content: str) -> None:
        """
        Parse stops.txt into stations.

        Only numeric platform stops are kept. Odd ids are northbound platforms and
        supply the station coordinates; even ids are southbound. Platforms are grouped
        by parent_station, falling back to the cleaned stop name.
        """
        stops = _read_csv(csv_content)
        if "location_type" in stops.columns:
            stops = stops[stops["location_type"] != "1"]
        stops = stops[stops["stop_id"].str.fullmatch(r"\d+")]

        grouped: Dict[str, dict] = {}
        for row in stops.itertuples(index=False):
            parent = getattr(row, "parent_station", "") or ""
            key = parent or clean_station_name(row.stop_name)
            entry = grouped.setdefault(
                key, {"name": clean_station_name(row.stop_name), "url_name": parent}
            )

            if int(row.stop_id) % 2 != 0:
                entry["stop1"] = row.stop_id
                try:
                    entry["latitude"] = float(row.stop_lat)
                    entry["longitude"] = float(row.stop_lon)
                except ValueError:
                    logger.warning(f"Stop {row.stop_id} has invalid coordinates")
            else:
                entry["stop2"] = row.stop_id

        stations = []
        for key, entry in grouped.items():
            if not all(entry.get(k) for k in ("stop1", "stop2", "name", "latitude", "longitude")):
                logger.debug(f"Skipping incomplete station {key}")
                continue
            stations.append(
                Station(
                    stop1=entry["stop1"],
                    stop2=entry["stop2"],
                    name=entry["name"],
                    latitude=entry["latitude"],
                    longitude=entry["longitude"],
                    url_name=entry["url_name"],
                )
            )

        self.stations = sorted(stations, key=lambda s: s.order_key)
        logger.info(f"Loaded {len(self.stations)} stations")

    def _load_stop_times(self, csv_content: str) -> None:
        """Parse stop_times.txt into the timetable and the trip -> stops table."""
        stop_times = _read_csv(csv_content)
        stop_times = stop_times[stop_times["trip_id"] != ""]

        if "stop_sequence" in stop_times.columns:
            stop_times = stop_times.assign(
                _seq=pd.to_numeric(stop_times["stop_sequence"], errors="coerce")
            ).sort_values(["trip_id", "_seq"], kind="mergesort")

        departure = stop_times.get("departure_time", pd.Series("", index=stop_times.index))
        arrival = stop_times.get("arrival_time", pd.Series("", index=stop_times.index))
        times = departure.where(departure != "", arrival)

        schedule: Dict[str, Dict[str, str]] = {}
        trip_stops: Dict[str, List[str]] = {}
        for trip_id, stop_id, raw_time in zip(stop_times["trip_id"], stop_times["stop_id"], times):
            formatted = format_gtfs_time(raw_time)
            if formatted:
                schedule.setdefault(trip_id, {})[stop_id] = formatted
            trip_stops.setdefault(trip_id, []).append(stop_id)

        self.schedule = schedule
        self.trip_stops = {trip_id: tuple(stops) for trip_id, stops in trip_stops.items()}
        logger.info(f"Loaded schedule for {len(self.schedule)} trips")

    def snapshot(self) -> StaticData:
        """Freeze what has been loaded into a read-only StaticData."""
        return build_static_data(self.stations, self.schedule, self.trip_stops)


def build_static_data(
    stations: List[Station],
    schedule: Optional[Dict[str, Dict[str, str]]] = None,
    trip_stops: Optional[Dict[str, Tuple[str, ...]]] = None,
) -> StaticData:
    """Build a read-only StaticData from plain collections."""
    schedule = schedule or {}
    trip_stops = trip_stops or {}
    return StaticData(
        stations=tuple(sorted(stations, key=lambda s: s.order_key)),
        route=build_route(stations),
        schedule=MappingProxyType(
            {trip_id: MappingProxyType(dict(stops)) for trip_id, stops in schedule.items()}
        ),
        trip_stops=MappingProxyType(
            {trip_id: tuple(stops) for trip_id, stops in trip_stops.items()}
        ),
    )
