"""Tests for station ETA propagation."""

import unittest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

# Add src to path so we can import tracktrain
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tracktrain.eta_propagator import propagate_etas
from tracktrain.models import Route, RouteStation, Station

PACIFIC = ZoneInfo("America/Los_Angeles")
NOW = datetime(2026, 10, 19, 20, 0, tzinfo=PACIFIC)


def make_route(*placements):
    """Route from (name, percent) pairs, north to south."""
    stations = []
    for i, (name, percent) in enumerate(placements):
        station = Station(
            stop1=str(70011 + 10 * i),
            stop2=str(70012 + 10 * i),
            name=name,
            latitude=37.8 - i * 0.05,
            longitude=-122.3,
        )
        stations.append(RouteStation(station=station, distance_km=percent / 2, position_percent=percent))
    return Route(stations=tuple(stations))


class TestPropagateEtas(unittest.TestCase):
    """Test interpolation between anchor ETAs."""

    def setUp(self):
        self.abc = make_route(("A", 0.0), ("B", 50.0), ("C", 100.0))
        self.line = make_route(
            ("SF", 0.0), ("22nd", 5.0), ("Millbrae", 30.0), ("Palo Alto", 60.0),
            ("Mountain View", 75.0), ("San Jose", 100.0),
        )

    def test_midpoint_scenario(self):
        etas = propagate_etas(self.abc, "A", 10, destination="C", eta_destination=30, now=NOW)
        self.assertEqual(etas["A"].eta_minutes, 10)
        self.assertEqual(etas["B"].eta_minutes, 20)
        self.assertEqual(etas["C"].eta_minutes, 30)

    def test_anchors_are_exact(self):
        etas = propagate_etas(self.line, "Millbrae", 7, destination="Mountain View", eta_destination=41, now=NOW)
        self.assertEqual(etas["Millbrae"].eta_minutes, 7)
        self.assertEqual(etas["Mountain View"].eta_minutes, 41)

    def test_no_overshoot_between_anchors(self):
        etas = propagate_etas(self.line, "SF", 3, destination="San Jose", eta_destination=60, now=NOW)
        for name in ("22nd", "Millbrae", "Palo Alto", "Mountain View"):
            self.assertGreaterEqual(etas[name].eta_minutes, 3)
            self.assertLessEqual(etas[name].eta_minutes, 60)
        self.assertEqual(etas["Palo Alto"].eta_minutes, 37)  # 3 + 57 * 0.6 = 37.2

    def test_southbound_zones(self):
        etas = propagate_etas(self.line, "Millbrae", 12, destination="Palo Alto", eta_destination=24, now=NOW)

        self.assertEqual(etas["SF"].eta_minutes, 0)
        self.assertEqual(etas["22nd"].eta_minutes, 2)  # 12 * 5 / 30
        self.assertEqual(etas["Mountain View"].eta_minutes, 24)
        self.assertEqual(etas["San Jose"].eta_minutes, 24)

    def test_northbound_zones(self):
        etas = propagate_etas(self.line, "Mountain View", 10, destination="Millbrae", eta_destination=40, now=NOW)

        self.assertEqual(etas["San Jose"].eta_minutes, 0)
        self.assertEqual(etas["Mountain View"].eta_minutes, 10)
        self.assertEqual(etas["Palo Alto"].eta_minutes, 20)  # 10 + 30 * 15 / 45
        self.assertEqual(etas["Millbrae"].eta_minutes, 40)
        self.assertEqual(etas["22nd"].eta_minutes, 40)
        self.assertEqual(etas["SF"].eta_minutes, 40)

    def test_northbound_behind_origin_scales_from_end(self):
        etas = propagate_etas(self.line, "Palo Alto", 20, destination="SF", eta_destination=50, now=NOW)
        self.assertEqual(etas["Mountain View"].eta_minutes, 13)  # 20 * 25 / 40 = 12.5, rounded half up

    def test_without_destination(self):
        etas = propagate_etas(self.line, "Millbrae", 12, now=NOW)

        self.assertEqual(etas["Millbrae"].eta_minutes, 12)
        self.assertEqual(etas["San Jose"].eta_minutes, 12)
        self.assertEqual(etas["SF"].eta_minutes, 0)

    def test_missing_origin_or_destination(self):
        self.assertEqual(propagate_etas(self.abc, "Nowhere", 10, now=NOW), {})
        self.assertEqual(propagate_etas(self.abc, "A", 10, destination="Nowhere", eta_destination=20, now=NOW), {})

    def test_coincident_anchors(self):
        route = make_route(("A", 0.0), ("B", 40.0), ("B2", 40.0), ("C", 100.0))
        etas = propagate_etas(route, "B", 10, destination="B2", eta_destination=12, now=NOW)

        self.assertEqual(etas["B"].eta_minutes, 10)
        self.assertEqual(etas["B2"].eta_minutes, 12)
        self.assertEqual(len(etas), 4)

    def test_arrival_clock_times(self):
        etas = propagate_etas(self.abc, "A", 10, destination="C", eta_destination=30, now=NOW)

        self.assertEqual(etas["B"].arrival_time, NOW + timedelta(minutes=20))
        self.assertEqual(etas["B"].arrival_clock, "08:20 PM")
        self.assertEqual(list(etas), ["A", "B", "C"])

    def test_arrival_across_dst_fall_back(self):
        now = datetime(2026, 11, 1, 8, 55, tzinfo=timezone.utc)  # 01:55 PDT
        etas = propagate_etas(self.abc, "A", 10, destination="C", eta_destination=30, now=now)

        self.assertEqual(etas["A"].arrival_time, now + timedelta(minutes=10))
        self.assertEqual(etas["A"].arrival_clock, "01:05 AM")
        self.assertEqual(etas["C"].arrival_clock, "01:25 AM")

    def test_negative_eta_clamped(self):
        etas = propagate_etas(self.abc, "A", -3, destination="C", eta_destination=5, now=NOW)
        self.assertEqual(etas["A"].eta_minutes, 0)
        self.assertEqual(etas["A"].arrival_time, NOW)


if __name__ == "__main__":
    unittest.main()
