import random
from datetime import datetime
from typing import List, Optional, Sequence, Tuple
from fleetsim.domain.errors import ProviderUnavailable
from fleetsim.domain.geo import haversine_km
from fleetsim.domain.models import Coordinate, Route, RouteWaypoint, VehicleState
from fleetsim.infrastructure.stores import InMemoryVehicleStore, InMemoryZoneStore
from fleetsim.kernel.simulation_kernel import SimulationKernel
from fleetsim.simulation.environment import EnvironmentEngine

NOON = datetime(2024, 1, 3, 12, 0)

def make_route(coords: Sequence[Tuple[float, float]], duration: Optional[float] = None) -> Route:
    waypoints = []
    total = 0.0
    prev = None
    for lat, lng in coords:
        if prev is not None:
            total += haversine_km(prev[0], prev[1], lat, lng) * 1000.0
        waypoints.append(RouteWaypoint(lat=lat, lng=lng, distance=total))
        prev = (lat, lng)
    return Route(waypoints=waypoints, total_distance=total,
                 total_duration=duration if duration is not None else total / 1000.0 / 40.0 * 3600.0)

def straight_route(start: Coordinate, end: Coordinate, steps: int = 10) -> Route:
    coords = [
        (start.lat + (end.lat - start.lat) * i / steps, start.lng + (end.lng - start.lng) * i / steps)
        for i in range(steps + 1)
    ]
    return make_route(coords)

class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

class FakeRouting:
    """Straight-line routing with call counters; no network."""

    def __init__(self, alternatives: Optional[List[Route]] = None, fail: bool = False):
        self.alternative_routes = alternatives
        self.fail = fail
        self.route_calls = 0
        self.alternative_calls = 0

    def route(self, start: Coordinate, end: Coordinate) -> Route:
        self.route_calls += 1
        if self.fail:
            raise ProviderUnavailable("routing offline")
        return straight_route(start, end)

    def alternatives(self, start: Coordinate, end: Coordinate) -> List[Route]:
        self.alternative_calls += 1
        if self.fail:
            raise ProviderUnavailable("routing offline")
        if self.alternative_routes is not None:
            return self.alternative_routes
        return [straight_route(start, end)]

    def nearest_road(self, point: Coordinate) -> Coordinate:
        return point

class StaticIncidentFeed:
    def __init__(self, incidents=None):
        self.incidents = list(incidents or [])
        self.hotspots = []

    def current(self, weather=None, hour=None, day_of_week=None, now=None):
        return list(self.incidents)

    def spawn(self, weather=None, rush_hour=False, now=None, incident_type=None, severity=None):
        return None

def build_kernel(vehicles: Sequence[VehicleState], routing=None, incident_feed=None, zones=(),
                 seed: int = 7, decision_provider=None) -> SimulationKernel:
    rng = random.Random(seed)
    kernel = SimulationKernel(
        vehicles=InMemoryVehicleStore(vehicles),
        zones=InMemoryZoneStore(zones),
        routing=routing or FakeRouting(),
        incident_feed=incident_feed or StaticIncidentFeed(),
        environment=EnvironmentEngine(rng=random.Random(seed), clock=FakeClock(), start_time=NOON),
        decision_provider=decision_provider,
        rng=rng,
    )
    kernel.initialize(seed)
    return kernel
