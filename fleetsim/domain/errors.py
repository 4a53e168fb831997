class SimulationError(Exception):
    pass

class ProviderUnavailable(SimulationError):
    """An external provider failed, timed out or returned something unusable."""

class RouteUnresolvable(SimulationError):
    """No usable route exists (fewer than two waypoints, or no path in the graph)."""

class DataInconsistency(SimulationError):
    """A persisted record is missing a field the engine needs."""

class DegenerateGeometry(SimulationError):
    """Route geometry could not be walked within the iteration cap."""

class InvalidStatusTransition(SimulationError):
    def __init__(self, vehicle_id: str, current, target):
        super().__init__(f"Vehicle {vehicle_id}: cannot move from {current} to {target}")
        self.vehicle_id = vehicle_id
        self.current = current
        self.target = target
