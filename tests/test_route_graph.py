import unittest
from fleetsim.domain.errors import RouteUnresolvable
from fleetsim.domain.graph import RouteGraph
from fleetsim.domain.models import Coordinate, Incident, IncidentType, Severity, Zone
from fleetsim.routing.optimization import (
    build_route_graph, compare_routes, find_optimal_route, incident_cost_factor, summarize_remaining,
    weather_cost_factor, zone_traffic_factor
)
from fakes import make_route

class TestRouteGraph(unittest.TestCase):
    def setUp(self):
        self.graph = RouteGraph()
        for node, lat in (("A", 0.0), ("B", 0.01), ("C", 0.02)):
            self.graph.add_node(node, lat, 0.0)
        self.graph.add_edge("A", "B", base_time=10)
        self.graph.add_edge("B", "C", base_time=15)

    def test_chain_shortest_path(self):
        path, cost = self.graph.shortest_path("A", "C")
        self.assertEqual(path, ["A", "B", "C"])
        self.assertEqual(cost, 25)

    def test_critical_incident_scales_edge(self):
        self.graph.set_factors("B", "C", incident_factor=3.0)
        self.assertEqual(self.graph.get_edge_data("B", "C")["cost"], 45)
        path, cost = self.graph.shortest_path("A", "C")
        self.assertEqual(cost, 55)

    def test_cheaper_detour_wins_after_incident(self):
        self.graph.add_node("D", 0.01, 0.01)
        self.graph.add_edge("A", "D", base_time=20)
        self.graph.add_edge("D", "C", base_time=20)
        self.assertEqual(self.graph.shortest_path("A", "C")[0], ["A", "B", "C"])

        self.graph.set_factors("B", "C", incident_factor=3.0)
        path, cost = self.graph.shortest_path("A", "C")
        self.assertEqual(path, ["A", "D", "C"])
        self.assertEqual(cost, 40)

    def test_no_path(self):
        self.graph.add_node("Z", 1.0, 1.0)
        with self.assertRaises(RouteUnresolvable):
            self.graph.shortest_path("A", "Z")
        with self.assertRaises(RouteUnresolvable):
            self.graph.shortest_path("A", "missing")

    def test_set_factors_on_missing_edge(self):
        with self.assertRaises(KeyError):
            self.graph.set_factors("C", "A", traffic_factor=2.0)

    def test_node_position(self):
        self.assertEqual(self.graph.get_node_pos("B"), (0.01, 0.0))

class TestCostFactors(unittest.TestCase):
    def test_weather_cost_factor(self):
        self.assertEqual(weather_cost_factor(1.0), 1.0)
        self.assertEqual(weather_cost_factor(0.5), 2.0)
        self.assertEqual(weather_cost_factor(0.0), 1.0)

    def test_zone_traffic_factor(self):
        zones = [Zone(id="Z1", name="Center", center=Coordinate(lat=0.0, lng=0.0), radius_m=1000, congestion=50)]
        self.assertEqual(zone_traffic_factor(0.001, 0.0, zones), 2.0)
        self.assertEqual(zone_traffic_factor(0.5, 0.0, zones), 1.0)

    def test_incident_cost_factor_uses_worst_severity(self):
        incidents = [
            Incident(id="I1", type=IncidentType.ACCIDENT, severity=Severity.LOW, location=Coordinate(lat=0.0, lng=0.0)),
            Incident(id="I2", type=IncidentType.ACCIDENT, severity=Severity.CRITICAL, location=Coordinate(lat=0.001, lng=0.0)),
        ]
        self.assertEqual(incident_cost_factor(0.0, 0.0, incidents), 3.0)

class TestFindOptimalRoute(unittest.TestCase):
    def setUp(self):
        self.direct = make_route([(0.0, 0.0), (0.01, 0.0), (0.02, 0.0)])
        self.detour = make_route([(0.0, 0.0), (0.01, 0.005), (0.02, 0.0)])

    def test_direct_route(self):
        result = find_optimal_route([self.direct], [], [], "van")
        self.assertEqual([n.id for n in result.path], ["0.0,0.0", "0.01,0.0", "0.02,0.0"])
        self.assertAlmostEqual(result.total_distance, 2224, delta=2)
        # 2.224 km at 40 km/h
        self.assertAlmostEqual(result.estimated_time, 200, delta=1)
        self.assertEqual(result.congestion_level, 30)
        self.assertIn("Light traffic", result.reasoning)

    def test_incident_pushes_onto_detour(self):
        blocked = [Incident(id="I1", type=IncidentType.ACCIDENT, severity=Severity.CRITICAL,
                            location=Coordinate(lat=0.015, lng=-0.003))]
        result = find_optimal_route([self.direct, self.detour], [], blocked, "van")
        self.assertEqual(result.path[1].id, "0.01,0.005")

    def test_weather_slows_estimate(self):
        clear = find_optimal_route([self.direct], [], [], "van", 1.0)
        storm = find_optimal_route([self.direct], [], [], "van", 0.5)
        self.assertAlmostEqual(storm.estimated_time, clear.estimated_time * 2, delta=1)
        self.assertIn("Adverse weather", storm.reasoning)

    def test_fuel_cost_depends_on_class(self):
        truck = find_optimal_route([self.direct], [], [], "truck")
        car = find_optimal_route([self.direct], [], [], "car")
        self.assertGreater(truck.fuel_cost, car.fuel_cost)

    def test_single_point_route(self):
        with self.assertRaises(RouteUnresolvable):
            build_route_graph([make_route([(0.0, 0.0)])], [], [])
        self.assertIsNone(summarize_remaining(make_route([(0.0, 0.0)]).waypoints, [], [], "van", 1.0))

    def test_summarize_remaining(self):
        summary = summarize_remaining(self.direct.waypoints[1:], [], [], "van", 1.0)
        self.assertEqual(len(summary.path), 2)

    def test_compare_routes(self):
        fast = find_optimal_route([self.direct], [], [], "van")
        slow = find_optimal_route([self.direct], [], [], "van", 0.5)
        chosen, reason = compare_routes(slow, fast, "time")
        self.assertIs(chosen, fast)
        self.assertIn("Route 2", reason)

if __name__ == '__main__':
    unittest.main()
