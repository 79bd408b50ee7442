"""Main TrackTrain tracker: refresh cycles and snapshot publishing."""

import itertools
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional

from .clock import local_datetime
from .config import DEFAULT_CONFIG, TrackerConfig
from .eta_propagator import propagate_etas
from .feeds import Payload, decode_trip_updates, decode_vehicle_fixes
from .locator import locate_train
from .models import Direction, PredictionRecord, Snapshot, StaticData, Station, StationETA
from .prediction_merger import eta_for_train, filter_by_direction, journey_direction, merge_predictions

logger = logging.getLogger(__name__)

PredictionsFetcher = Callable[[Station], Payload]
VehiclesFetcher = Callable[[], Payload]


class TrainTracker:
    """
    Tracks trains between an origin and an optional destination.

    Each refresh cycle fetches origin predictions, destination predictions and vehicle
    positions concurrently, derives the station board, train positions and station ETAs,
    and publishes them as one Snapshot. Readers use ``tracker.snapshot``.
    """

    def __init__(
        self,
        static_data: StaticData,
        origin: str,
        predictions_fetcher: PredictionsFetcher,
        vehicles_fetcher: VehiclesFetcher,
        destination: Optional[str] = None,
        config: TrackerConfig = DEFAULT_CONFIG,
    ):
        """
        Initialize the tracker.

        Args:
            static_data: Reference data from GTFSLoader.
            origin: Origin station name or stop id.
            predictions_fetcher: Returns the live predictions payload for a station.
            vehicles_fetcher: Returns the live vehicle positions payload.
            destination: Optional destination station name or stop id. "All" means none.
            config: Policy values.

        Raises:
            ValueError: If origin or destination is not a known station.
        """
        self.static_data = static_data
        self.config = config
        self.predictions_fetcher = predictions_fetcher
        self.vehicles_fetcher = vehicles_fetcher

        self.origin = self.get_station(origin)
        self.destination = (
            self.get_station(destination) if destination and destination != "All" else None
        )

        self._snapshot: Optional[Snapshot] = None
        self._cycles = itertools.count(1)
        self._selected_train_id: Optional[str] = None

        self._fetch_pool = ThreadPoolExecutor(max_workers=6, thread_name_prefix="tracktrain-fetch")
        self._cycle_pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="tracktrain-cycle")
        self._lock = threading.Lock()
        self._in_flight: Dict[str, Future] = {}
        self._stop_event = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None

    @property
    def snapshot(self) -> Optional[Snapshot]:
        """The last published snapshot, or None before the first cycle completes."""
        return self._snapshot

    def get_station(self, station_input: str) -> Station:
        """
        Get a station by name or stop id, falling back to a partial name match.

        Raises:
            ValueError: If station not found.
        """
        try:
            return self.static_data.get_station(station_input)
        except ValueError:
            pass

        stations = self.static_data.find_stations_by_name(station_input)
        if not stations:
            raise ValueError(f"No station found matching '{station_input}'")
        return stations[0]

    def select_train(self, train_id: Optional[str]) -> None:
        """Follow ``train_id`` in subsequent cycles; None returns to auto-selection."""
        self._selected_train_id = train_id

    def refresh(self, now: Optional[float] = None) -> Optional[Snapshot]:
        """
        Run one refresh cycle and publish its snapshot.

        Args:
            now: Unix timestamp for the cycle. Defaults to the current time.

        Returns:
            The published snapshot. If a newer cycle has already published, this cycle's
            result is discarded and the newer snapshot is returned.
        """
        cycle = next(self._cycles)
        if now is None:
            now = time.time()

        futures: Dict[str, Future] = {
            "origin": self._submit(cycle, "origin", self.predictions_fetcher, self.origin),
            "vehicles": self._submit(cycle, "vehicles", self.vehicles_fetcher),
        }
        if self.destination is not None:
            futures["destination"] = self._submit(cycle, "destination", self.predictions_fetcher, self.destination)

        payloads = self._collect(cycle, futures)
        snapshot = self._build_snapshot(cycle, now, payloads)
        return self._publish(snapshot)

    def _submit(self, cycle: int, name: str, fetcher: Callable[..., Payload], *args: Any) -> Future:
        """
        Start a fetch for one source, or join the one already running.

        A source never has more than one fetch in flight, so a hung upstream holds at
        most one worker and cannot starve the other sources.
        """
        with self._lock:
            running = self._in_flight.get(name)
            if running is not None and not running.done():
                logger.debug(f"Cycle {cycle}: {name} fetch still running, waiting on it")
                return running
            future = self._fetch_pool.submit(fetcher, *args)
            self._in_flight[name] = future
            return future

    def _collect(self, cycle: int, futures: Dict[str, Future]) -> Dict[str, Any]:
        """Wait for every fetch; failures and timeouts become empty payloads."""
        done, _ = wait(futures.values(), timeout=self.config.fetch_timeout_seconds)

        payloads: Dict[str, Any] = {}
        for name, future in futures.items():
            if future not in done:
                logger.warning(f"Cycle {cycle}: {name} fetch timed out")
                payloads[name] = None
                continue
            try:
                payloads[name] = future.result()
            except Exception as e:
                logger.warning(f"Cycle {cycle}: {name} fetch failed: {e}")
                payloads[name] = None
        return payloads

    def _build_snapshot(self, cycle: int, now: float, payloads: Dict[str, Any]) -> Snapshot:
        static = self.static_data
        route = static.route

        origin_predictions = merge_predictions(
            decode_trip_updates(payloads.get("origin")),
            self.origin,
            static.schedule,
            static.trip_stops,
            now=now,
            config=self.config,
        )
        destination_predictions: List[PredictionRecord] = []
        if self.destination is not None:
            destination_predictions = merge_predictions(
                decode_trip_updates(payloads.get("destination")),
                self.destination,
                static.schedule,
                static.trip_stops,
                now=now,
                config=self.config,
            )

        direction = journey_direction(self.origin, self.destination)
        trains = filter_by_direction(origin_predictions, direction)
        fixes = decode_vehicle_fixes(payloads.get("vehicles"))

        positions = {
            train.train_id: locate_train(train.train_id, fixes, route, self.config)
            for train in trains
        }

        # An explicitly selected train that drops off the board has most likely passed
        selected = self._selected_train_id
        selected_passed = False
        if selected is not None:
            if not any(t.train_id == selected for t in trains):
                logger.info(f"Selected train {selected} no longer predicted, likely passed")
                selected_passed = True
        elif trains:
            selected = trains[0].train_id

        taken_at = local_datetime(now, self.config.timezone)
        station_etas: Dict[str, StationETA] = {}
        if selected is not None and not selected_passed:
            station_etas = self._station_etas(selected, origin_predictions, destination_predictions, taken_at)

        logger.debug(
            f"Cycle {cycle}: {len(trains)} trains, {len(fixes)} vehicle fixes, "
            f"{len(station_etas)} station ETAs"
        )

        return Snapshot(
            cycle=cycle,
            taken_at=taken_at,
            origin=self.origin,
            destination=self.destination,
            journey_direction=direction,
            origin_predictions=tuple(origin_predictions),
            destination_predictions=tuple(destination_predictions),
            trains=tuple(trains),
            vehicle_fixes=fixes,
            positions=positions,
            selected_train_id=selected,
            selected_train_passed=selected_passed,
            station_etas=station_etas,
        )

    def _station_etas(self, train_id, origin_predictions, destination_predictions, taken_at):
        eta_origin = eta_for_train(train_id, origin_predictions)
        if eta_origin is None:
            return {}

        destination = None
        eta_destination = None
        if self.destination is not None:
            eta_destination = eta_for_train(train_id, destination_predictions)
            if eta_destination is not None:
                destination = self.destination.name
            else:
                logger.debug(f"Train {train_id} has no destination prediction, using origin anchor only")

        return propagate_etas(
            self.static_data.route,
            self.origin.name,
            eta_origin,
            destination=destination,
            eta_destination=eta_destination,
            now=taken_at,
            config=self.config,
        )

    def _publish(self, snapshot: Snapshot) -> Snapshot:
        with self._lock:
            current = self._snapshot
            if current is not None and current.cycle > snapshot.cycle:
                logger.debug(f"Discarding cycle {snapshot.cycle}, cycle {current.cycle} already published")
                return current
            self._snapshot = snapshot
            return snapshot

    def get_arrivals(self, snapshot: Optional[Snapshot] = None) -> Dict[Direction, List[PredictionRecord]]:
        """
        Group the board's trains by direction.

        Args:
            snapshot: Snapshot to read. Defaults to the current one.

        Returns:
            {Direction: [PredictionRecord, ...]} in time order; empty before the first cycle.
        """
        snapshot = snapshot or self._snapshot
        result: Dict[Direction, List[PredictionRecord]] = {}
        if snapshot is None:
            return result

        for train in snapshot.trains:
            result.setdefault(train.direction, []).append(train)
        return result

    def start(self) -> None:
        """Start refreshing every ``refresh_interval_seconds`` on a background thread."""
        if self._timer_thread is not None and self._timer_thread.is_alive():
            logger.warning("Tracker already running")
            return

        self._stop_event.clear()
        self._timer_thread = threading.Thread(target=self._run_loop, name="tracktrain-timer", daemon=True)
        self._timer_thread.start()
        logger.info(f"Tracker started (interval: {self.config.refresh_interval_seconds}s)")

    def stop(self) -> None:
        """Stop the refresh loop."""
        self._stop_event.set()
        if self._timer_thread is not None:
            self._timer_thread.join()
            self._timer_thread = None
        logger.info("Tracker stopped")

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            # Submit without waiting so a slow cycle never delays the next tick
            self._cycle_pool.submit(self._safe_refresh)
            self._stop_event.wait(self.config.refresh_interval_seconds)

    def _safe_refresh(self) -> None:
        try:
            self.refresh()
        except Exception as e:
            logger.error(f"Refresh cycle failed: {e} - will retry in {self.config.refresh_interval_seconds}s")

    def cleanup(self) -> None:
        """Stop refreshing and release worker threads."""
        self.stop()
        self._cycle_pool.shutdown(wait=False)
        self._fetch_pool.shutdown(wait=False)
        logger.info("Cleaned up tracker resources")

    def __enter__(self) -> "TrainTracker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()
