import random
import unittest
from fleetsim.domain import config
from fleetsim.domain.errors import DataInconsistency, InvalidStatusTransition
from fleetsim.domain.models import Coordinate, RouteWaypoint, ShuttleLeg, Trend, VehicleState, VehicleStatus, Zone
from fleetsim.application.commands import StopVehicleCommand
from fleetsim.domain.state import RoutePhase, RouteRegistry
from fleetsim.kernel.command_queue import CommandQueue
from fleetsim.infrastructure.stores import InMemoryVehicleStore, InMemoryZoneStore, seed_vehicles, seed_zones
from fleetsim.systems.shuttle_system import ShuttleSystem
from fleetsim.systems.zone_system import ZoneSystem, count_vehicles, density_tier, rush_bonus

A = Coordinate(lat=0.0, lng=0.0)
B = Coordinate(lat=0.05, lng=0.0) # about 5.5 km north
POINTS = [RouteWaypoint(lat=0.0, lng=0.0), RouteWaypoint(lat=0.05, lng=0.0)]

class TestVehicleStore(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryVehicleStore([VehicleState(id="V1", location=A, destination=B)])

    def test_reads_are_copies(self):
        vehicle = self.store.get("V1")
        vehicle.fuel = 1.0
        self.assertEqual(self.store.get("V1").fuel, 100.0)

    def test_status_transitions(self):
        self.store.update_status("V1", VehicleStatus.IN_TRANSIT)
        self.store.update_status("V1", VehicleStatus.NEEDS_APPROVAL)
        self.assertEqual(self.store.get("V1").status, VehicleStatus.NEEDS_APPROVAL)
        self.assertEqual(self.store.list_in_transit(), [])

        with self.assertRaises(InvalidStatusTransition):
            self.store.update_status("V1", VehicleStatus.MAINTENANCE)

    def test_same_status_is_a_no_op(self):
        self.store.update_status("V1", VehicleStatus.IDLE)
        self.assertEqual(self.store.get("V1").status, VehicleStatus.IDLE)

    def test_fuel_is_clamped(self):
        self.store.update_fuel("V1", 140.0)
        self.assertEqual(self.store.get("V1").fuel, 100.0)
        self.store.update_fuel("V1", -3.0)
        self.assertEqual(self.store.get("V1").fuel, 0.0)

    def test_unknown_vehicle(self):
        self.assertIsNone(self.store.get("nope"))
        with self.assertRaises(KeyError):
            self.store.update_fuel("nope", 50.0)

    def test_seed_fleet(self):
        store = InMemoryVehicleStore(seed_vehicles())
        self.assertEqual(len(store.list_all()), 4)
        self.assertTrue(all(v.destination is not None for v in store.list_all()))

class TestZones(unittest.TestCase):
    def test_trend(self):
        store = InMemoryZoneStore([Zone(id="Z1", name="Zone", center=A, congestion=30)])
        store.update_congestion("Z1", 50, 3)
        self.assertEqual(store.list()[0].trend, Trend.UP)
        store.update_congestion("Z1", 48, 3)
        self.assertEqual(store.list()[0].trend, Trend.STABLE)
        store.update_congestion("Z1", 20, 0)
        zone = store.list()[0]
        self.assertEqual((zone.trend, zone.congestion, zone.vehicle_count), (Trend.DOWN, 20, 0))

    def test_tiers_and_rush(self):
        self.assertEqual([density_tier(n) for n in (0, 1, 3, 6)], [0.0, 10.0, 25.0, 40.0])
        self.assertEqual([rush_bonus(h) for h in (7, 8, 10, 11, 17, 19, 20)], [0, 20, 20, 0, 20, 20, 0])

    def test_congestion_is_clamped(self):
        zones = ZoneSystem(random.Random(4))
        for count in (0, 3, 10):
            for hour in range(24):
                level = zones.congestion(count, hour)
                self.assertGreaterEqual(level, config.ZONE_CONGESTION_MIN)
                self.assertLessEqual(level, config.ZONE_CONGESTION_MAX)

    def test_count_uses_zone_radius(self):
        zone = Zone(id="Z1", name="Zone", center=A, radius_m=1000)
        near = VehicleState(id="V1", location=Coordinate(lat=0.005, lng=0.0))
        far = VehicleState(id="V2", location=Coordinate(lat=0.02, lng=0.0))
        self.assertEqual(count_vehicles(zone, [near, far]), 1)
        with self.assertRaises(DataInconsistency):
            count_vehicles(Zone(id="Z2", name="Broken"), [near])

    def test_update_skips_zones_without_center(self):
        store = InMemoryZoneStore(seed_zones() + [Zone(id="Z9", name="Broken")])
        with self.assertLogs("fleetsim.systems.zone_system", level="WARNING"):
            updated = ZoneSystem(random.Random(1)).update(store, [], 12)
        self.assertEqual(len(updated), 8)
        self.assertNotIn("Z9", updated)

    def test_store_failure_does_not_stop_other_zones(self):
        class FlakyZoneStore(InMemoryZoneStore):
            def update_congestion(self, zone_id, level, vehicle_count):
                if zone_id == "Z1":
                    raise KeyError(zone_id)
                super().update_congestion(zone_id, level, vehicle_count)

        store = FlakyZoneStore([Zone(id="Z1", name="One", center=A), Zone(id="Z2", name="Two", center=B)])
        with self.assertLogs("fleetsim.systems.zone_system", level="ERROR"):
            updated = ZoneSystem(random.Random(1)).update(store, [], 12)
        self.assertEqual(updated, ["Z2"])

class TestShuttle(unittest.TestCase):
    def setUp(self):
        self.shuttle = ShuttleSystem()

    def test_arrival_at_b_heads_back(self):
        outcome = self.shuttle.on_arrival(Coordinate(lat=0.0501, lng=0.0), A, B)
        self.assertEqual((outcome.leg, outcome.next_destination), (ShuttleLeg.AT_B, A))

    def test_arrival_at_a_heads_out(self):
        outcome = self.shuttle.on_arrival(A, A, B)
        self.assertEqual((outcome.leg, outcome.next_destination), (ShuttleLeg.AT_A, B))

    def test_unknown_position_returns_to_start(self):
        outcome = self.shuttle.on_arrival(Coordinate(lat=0.5, lng=0.5), A, B)
        self.assertEqual((outcome.leg, outcome.next_destination), (ShuttleLeg.AT_A, A))

    def test_departing(self):
        self.assertEqual(ShuttleSystem.departing(ShuttleLeg.AT_A), ShuttleLeg.EN_ROUTE_A_TO_B)
        self.assertEqual(ShuttleSystem.departing(ShuttleLeg.AT_B), ShuttleLeg.EN_ROUTE_B_TO_A)

class TestRouteRegistry(unittest.TestCase):
    def setUp(self):
        self.routes = RouteRegistry()

    def test_activate(self):
        runtime = self.routes.activate("V1", POINTS, A, B)
        self.assertIs(self.routes.get("V1"), runtime)
        self.assertEqual(self.routes.phase("V1"), RoutePhase.ROUTE_ACTIVE)
        self.assertEqual((runtime.original_start, runtime.original_destination), (A, B))
        self.assertIn("V1", self.routes)

    def test_reroute_keeps_endpoints(self):
        self.routes.activate("V1", POINTS, A, B)
        self.routes.force_reroute("V1")
        self.assertEqual(self.routes.phase("V1"), RoutePhase.NO_ROUTE)
        self.assertIsNone(self.routes.get("V1"))

        midway = Coordinate(lat=0.02, lng=0.0)
        runtime = self.routes.activate("V1", POINTS[1:], midway, B)
        self.assertEqual(runtime.original_start, A)

    def test_return_leg_keeps_shuttle_pair(self):
        self.routes.activate("V1", POINTS, A, B)
        self.routes.arrive("V1")
        self.assertEqual(self.routes.phase("V1"), RoutePhase.ARRIVED)
        self.assertEqual(len(self.routes), 0)

        runtime = self.routes.activate("V1", list(reversed(POINTS)), B, A)
        self.assertEqual((runtime.original_start, runtime.original_destination), (A, B))

    def test_new_destination_starts_new_pair(self):
        self.routes.activate("V1", POINTS, A, B)
        self.routes.arrive("V1")
        elsewhere = Coordinate(lat=0.05, lng=0.05)
        runtime = self.routes.activate("V1", POINTS, B, elsewhere)
        self.assertEqual(self.routes.endpoints("V1"), (B, elsewhere))
        self.assertEqual(runtime.original_start, B)

    def test_pending_approval(self):
        self.routes.activate("V1", POINTS, A, B)
        self.routes.request_approval("V1")
        self.assertEqual(self.routes.phase("V1"), RoutePhase.PENDING_APPROVAL)
        self.assertNotIn("V1", self.routes)

    def test_release(self):
        self.routes.activate("V1", POINTS, A, B)
        self.routes.release("V1")
        self.assertEqual(self.routes.phase("V1"), RoutePhase.NO_ROUTE)
        self.assertEqual(self.routes.vehicle_ids(), [])

class TestCommandQueue(unittest.TestCase):
    def test_drain_in_order(self):
        queue = CommandQueue()
        queue.add(StopVehicleCommand("V1"))
        queue.add(StopVehicleCommand("V2"))
        self.assertEqual([c.vehicle_id for c in queue.drain()], ["V1", "V2"])
        self.assertEqual(len(queue), 0)

    def test_full_queue_drops_oldest(self):
        queue = CommandQueue(limit=2)
        for vid in ("V1", "V2", "V3"):
            queue.add(StopVehicleCommand(vid))
        self.assertEqual([c.vehicle_id for c in queue.pending()], ["V2", "V3"])

if __name__ == '__main__':
    unittest.main()
