from enum import Enum
from typing import Dict, List, Optional, Set, Tuple
from pydantic import BaseModel, ConfigDict, Field
from fleetsim.domain import config
from fleetsim.domain.geo import distance_km
from fleetsim.domain.models import (
    Coordinate, RouteWaypoint, DensityMarker, Hotspot, Incident, ShuttleLeg, EnvironmentState
)

class RoutePhase(str, Enum):
    NO_ROUTE = "no_route"
    ROUTE_ACTIVE = "route_active"
    PENDING_APPROVAL = "pending_approval"
    ARRIVED = "arrived"

class RouteRuntimeState(BaseModel):
    points: List[RouteWaypoint]
    cursor: int = 0
    stuck_counter: int = 0
    last_position: Coordinate
    original_start: Coordinate
    original_destination: Coordinate

    @property
    def finished(self) -> bool:
        return self.cursor >= len(self.points) - 1

    def remaining_points(self) -> List[RouteWaypoint]:
        return self.points[self.cursor:]

class RouteRegistry:
    """
    Owns the ephemeral per-vehicle route state. A vehicle has at most one
    runtime; every phase change goes through a named transition.
    """
    def __init__(self):
        self._runtimes: Dict[str, RouteRuntimeState] = {}
        self._phases: Dict[str, RoutePhase] = {}
        # Shuttle endpoints (A, B), kept across reroutes and arrivals
        self._endpoints: Dict[str, Tuple[Coordinate, Coordinate]] = {}

    def get(self, vehicle_id: str) -> Optional[RouteRuntimeState]:
        return self._runtimes.get(vehicle_id)

    def phase(self, vehicle_id: str) -> RoutePhase:
        return self._phases.get(vehicle_id, RoutePhase.NO_ROUTE)

    def vehicle_ids(self) -> List[str]:
        return list(self._runtimes.keys())

    def endpoints(self, vehicle_id: str) -> Optional[Tuple[Coordinate, Coordinate]]:
        return self._endpoints.get(vehicle_id)

    def activate(self, vehicle_id: str, points: List[RouteWaypoint], location: Coordinate,
                 destination: Coordinate) -> RouteRuntimeState:
        start, end = self._endpoints.get(vehicle_id, (location, destination))
        if not self._is_endpoint(destination, start, end):
            # New trip, new shuttle pair
            start, end = location, destination
        self._endpoints[vehicle_id] = (start, end)
        runtime = RouteRuntimeState(
            points=list(points),
            last_position=location,
            original_start=start,
            original_destination=end,
        )
        self._runtimes[vehicle_id] = runtime
        self._phases[vehicle_id] = RoutePhase.ROUTE_ACTIVE
        return runtime

    @staticmethod
    def _is_endpoint(point: Coordinate, start: Coordinate, end: Coordinate) -> bool:
        return (distance_km(point, start) <= config.SHUTTLE_TOLERANCE_KM
                or distance_km(point, end) <= config.SHUTTLE_TOLERANCE_KM)

    def request_approval(self, vehicle_id: str):
        self._runtimes.pop(vehicle_id, None)
        self._phases[vehicle_id] = RoutePhase.PENDING_APPROVAL

    def force_reroute(self, vehicle_id: str):
        self._runtimes.pop(vehicle_id, None)
        self._phases[vehicle_id] = RoutePhase.NO_ROUTE

    def arrive(self, vehicle_id: str):
        self._runtimes.pop(vehicle_id, None)
        self._phases[vehicle_id] = RoutePhase.ARRIVED

    def release(self, vehicle_id: str):
        self._runtimes.pop(vehicle_id, None)
        self._phases.pop(vehicle_id, None)

    def clear(self):
        self._runtimes.clear()
        self._phases.clear()
        self._endpoints.clear()

    def __len__(self):
        return len(self._runtimes)

    def __contains__(self, vehicle_id: str):
        return vehicle_id in self._runtimes

class SimulationState(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    tick_id: int = 0
    time: float = 0.0 # seconds of simulated run time
    running: bool = False
    routes: RouteRegistry = Field(default_factory=RouteRegistry)
    environment: EnvironmentState = Field(default_factory=EnvironmentState)
    incidents: List[Incident] = []
    hotspots: List[Hotspot] = []
    density_markers: List[DensityMarker] = []
    shuttle_legs: Dict[str, ShuttleLeg] = {}

    # Operator decisions on proposed alternatives, consumed by the next acquisition
    approved_alternatives: Set[str] = set()
    declined_alternatives: Set[str] = set()
    low_fuel_vehicles: Set[str] = set()
