"""Tests for route geometry and vehicle location."""

import unittest
import sys
from pathlib import Path

# Add src to path so we can import tracktrain
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tracktrain.config import TrackerConfig
from tracktrain.geometry import build_route, haversine_km
from tracktrain.locator import locate_train, locate_vehicle
from tracktrain.models import Route, Station, VehicleFix


def make_station(stop1, name, lat, lon=-122.3):
    return Station(stop1=str(stop1), stop2=str(stop1 + 1), name=name, latitude=lat, longitude=lon)


LINE = [
    make_station(70011, "San Francisco", 37.7766),
    make_station(70021, "22nd Street", 37.7574),
    make_station(70061, "Millbrae", 37.6000),
    make_station(70171, "Palo Alto", 37.4435),
    make_station(70261, "San Jose Diridon", 37.3297),
]


class TestHaversine(unittest.TestCase):
    """Test great-circle distance."""

    def test_zero_distance(self):
        self.assertEqual(haversine_km(37.0, -122.0, 37.0, -122.0), 0.0)

    def test_one_degree_latitude(self):
        # One degree of latitude is about 111.2 km on a 6371 km sphere
        self.assertAlmostEqual(haversine_km(37.0, -122.0, 38.0, -122.0), 111.19, places=1)

    def test_symmetric(self):
        a = haversine_km(37.7766, -122.3942, 37.4435, -122.1651)
        b = haversine_km(37.4435, -122.1651, 37.7766, -122.3942)
        self.assertAlmostEqual(a, b, places=9)


class TestBuildRoute(unittest.TestCase):
    """Test the route coordinate system."""

    def test_endpoints_and_monotonic(self):
        route = build_route(LINE)
        percents = [rs.position_percent for rs in route]

        self.assertEqual(percents[0], 0.0)
        self.assertAlmostEqual(percents[-1], 100.0, places=9)
        self.assertEqual(percents, sorted(percents))

    def test_sorted_by_directional_key(self):
        route = build_route(list(reversed(LINE)))
        self.assertEqual(route.names, [s.name for s in LINE])
        self.assertEqual(route.index_of("Palo Alto"), 3)
        self.assertIsNone(route.index_of("Nowhere"))

    def test_equal_spacing_gives_midpoint(self):
        stations = [
            make_station(1, "A", 37.0),
            make_station(3, "B", 37.1),
            make_station(5, "C", 37.2),
        ]
        route = build_route(stations)
        self.assertAlmostEqual(route.position_of("B"), 50.0, places=6)
        self.assertAlmostEqual(route.get("C").distance_km, 2 * route.get("B").distance_km, places=6)

    def test_fewer_than_two_stations(self):
        self.assertEqual(len(build_route([])), 0)

        route = build_route([make_station(1, "Only", 37.0)])
        self.assertEqual(route[0].position_percent, 0.0)

    def test_coincident_stations(self):
        stations = [make_station(1, "A", 37.0), make_station(3, "B", 37.0)]
        route = build_route(stations)
        self.assertEqual([rs.position_percent for rs in route], [0.0, 0.0])

    def test_duplicate_coordinates_mid_route(self):
        stations = [
            make_station(1, "A", 37.0),
            make_station(3, "B", 37.1),
            make_station(5, "B2", 37.1),
            make_station(7, "C", 37.2),
        ]
        route = build_route(stations)
        self.assertEqual(route.position_of("B"), route.position_of("B2"))
        self.assertAlmostEqual(route.position_of("C"), 100.0, places=9)

    def test_idempotent(self):
        self.assertEqual(build_route(LINE), build_route(LINE))


class TestLocateVehicle(unittest.TestCase):
    """Test mapping GPS fixes onto the route."""

    def setUp(self):
        self.route = build_route(LINE)

    def test_fix_at_station_returns_station_position(self):
        for i, rs in enumerate(self.route):
            fix = VehicleFix(train_id="101", latitude=rs.station.latitude, longitude=rs.station.longitude)
            position = locate_vehicle(fix, self.route)
            self.assertAlmostEqual(position.position_percent, rs.position_percent, places=6)
            self.assertEqual(position.nearest_station_index, i)

    def test_fix_between_stations_is_interpolated(self):
        millbrae = self.route.get("Millbrae")
        palo_alto = self.route.get("Palo Alto")
        lat = (millbrae.station.latitude + palo_alto.station.latitude) / 2
        fix = VehicleFix(train_id="101", latitude=lat, longitude=-122.3)

        position = locate_vehicle(fix, self.route)

        self.assertTrue(position.was_interpolated)
        expected = (millbrae.position_percent + palo_alto.position_percent) / 2
        self.assertAlmostEqual(position.position_percent, expected, delta=0.01)

    def test_fix_off_route_falls_back_to_nearest_station(self):
        # Well west of Palo Alto: nearest station, but on no segment
        fix = VehicleFix(train_id="101", latitude=37.4435, longitude=-122.6)
        position = locate_vehicle(fix, self.route)

        self.assertFalse(position.was_interpolated)
        self.assertEqual(position.nearest_station_index, 3)
        self.assertEqual(position.position_percent, self.route.position_of("Palo Alto"))

    def test_fix_beyond_terminus_stays_in_range(self):
        north = VehicleFix(train_id="1", latitude=37.9, longitude=-122.3)
        south = VehicleFix(train_id="2", latitude=37.1, longitude=-122.3)

        self.assertEqual(locate_vehicle(north, self.route).position_percent, 0.0)
        self.assertEqual(locate_vehicle(south, self.route).position_percent, 100.0)

    def test_positions_always_within_bounds(self):
        for lat in (37.2, 37.35, 37.5, 37.65, 37.77, 37.8, 38.0):
            for lon in (-122.5, -122.3, -122.1):
                fix = VehicleFix(train_id="x", latitude=lat, longitude=lon)
                percent = locate_vehicle(fix, self.route).position_percent
                self.assertGreaterEqual(percent, 0.0)
                self.assertLessEqual(percent, 100.0)

    def test_tighter_tolerance_disables_interpolation(self):
        # Slightly off the line between Millbrae and Palo Alto
        fix = VehicleFix(train_id="101", latitude=37.52, longitude=-122.33)
        strict = TrackerConfig(segment_tolerance=1.0)

        self.assertTrue(locate_vehicle(fix, self.route).was_interpolated)
        self.assertFalse(locate_vehicle(fix, self.route, strict).was_interpolated)

    def test_empty_route(self):
        fix = VehicleFix(train_id="101", latitude=37.5, longitude=-122.3)
        self.assertIsNone(locate_vehicle(fix, Route()))

    def test_locate_train_without_fix_is_unavailable(self):
        fixes = {"101": VehicleFix(train_id="101", latitude=37.6, longitude=-122.3)}

        self.assertIsNone(locate_train("202", fixes, self.route))
        self.assertIsNotNone(locate_train("101", fixes, self.route))


if __name__ == "__main__":
    unittest.main()
