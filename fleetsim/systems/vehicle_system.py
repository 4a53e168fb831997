import logging
from dataclasses import dataclass
from fleetsim.domain import config
from fleetsim.domain.errors import DegenerateGeometry
from fleetsim.domain.geo import bearing_deg, haversine_km, interpolate
from fleetsim.domain.models import Coordinate, RouteWaypoint
from fleetsim.domain.state import RouteRuntimeState

logger = logging.getLogger(__name__)

@dataclass
class WalkResult:
    position: Coordinate
    heading: float
    distance_km: float
    arrived: bool

class PartialWalk(DegenerateGeometry):
    def __init__(self, result: WalkResult, iterations: int):
        super().__init__(f"Walk stopped after {iterations} iterations")
        self.result = result

def distance_budget(base_speed: float, speed_factor: float, traffic_factor: float) -> float:
    """Kilometers a vehicle may cover in one tick."""
    return base_speed * speed_factor * traffic_factor * config.TICK_DURATION_HOURS * config.TIME_SCALE

def snap_if_drifted(runtime: RouteRuntimeState, location: Coordinate) -> bool:
    """
    Prepends a connector at the vehicle's position when it has drifted far
    from a route it has not started walking yet.
    """
    if runtime.cursor != 0 or not runtime.points:
        return False
    first = runtime.points[0]
    if haversine_km(location.lat, location.lng, first.lat, first.lng) <= config.DRIFT_SNAP_KM:
        return False
    runtime.points.insert(0, RouteWaypoint(lat=location.lat, lng=location.lng))
    return True

def walk_route(runtime: RouteRuntimeState, location: Coordinate, heading: float, budget_km: float) -> WalkResult:
    """
    Advances along the cached polyline from the cursor, consuming at most
    budget_km. Moves runtime.cursor forward. Raises PartialWalk (carrying the
    progress so far) when the iteration cap is hit.
    """
    if snap_if_drifted(runtime, location):
        logger.info("Route start drifted more than %.0f km, added connector", config.DRIFT_SNAP_KM)

    points = runtime.points
    lat, lng = location.lat, location.lng
    remaining = max(0.0, budget_km)
    travelled = 0.0
    iterations = 0

    while runtime.cursor < len(points) - 1 and remaining > 0:
        iterations += 1
        if iterations > config.MAX_WALK_ITERATIONS:
            result = WalkResult(Coordinate(lat=lat, lng=lng), heading, travelled, False)
            raise PartialWalk(result, iterations - 1)

        origin = points[runtime.cursor]
        target = points[runtime.cursor + 1]
        segment = haversine_km(lat, lng, target.lat, target.lng)

        if segment <= config.MIN_SEGMENT_KM:
            lat, lng = target.lat, target.lng
            runtime.cursor += 1
            continue

        heading = bearing_deg(origin.lat, origin.lng, target.lat, target.lng)
        if remaining >= segment:
            remaining -= segment
            travelled += segment
            lat, lng = target.lat, target.lng
            runtime.cursor += 1
        else:
            lat, lng = interpolate(lat, lng, target.lat, target.lng, remaining / segment)
            travelled += remaining
            remaining = 0.0

    return WalkResult(
        position=Coordinate(lat=lat, lng=lng),
        heading=heading,
        distance_km=travelled,
        arrived=runtime.finished,
    )

class StuckDetector:
    def __init__(self, threshold: int = config.STUCK_THRESHOLD):
        self.threshold = threshold

    def update(self, runtime: RouteRuntimeState, start: Coordinate, end: Coordinate, red_zone: bool) -> bool:
        """Returns True exactly when the counter reaches the threshold; the counter is reset then."""
        displacement = haversine_km(start.lat, start.lng, end.lat, end.lng)
        if displacement >= config.STUCK_DISPLACEMENT_KM:
            runtime.stuck_counter = 0
            return False

        runtime.stuck_counter += config.STUCK_INCREMENT_RED if red_zone else config.STUCK_INCREMENT
        if runtime.stuck_counter >= self.threshold:
            runtime.stuck_counter = 0
            return True
        return False
