import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional
from fleetsim.domain.models import Coordinate, DensityMarker, VehicleStatus, WeatherCondition

logger = logging.getLogger(__name__)

class Command(ABC):
    @abstractmethod
    def execute(self, kernel: Any):
        pass

class DeployVehicleCommand(Command):
    def __init__(self, vehicle_id: str, destination: Optional[Coordinate] = None):
        self.vehicle_id = vehicle_id
        self.destination = destination

    def execute(self, kernel: Any):
        vehicle = kernel.vehicles.get(self.vehicle_id)
        if vehicle is None:
            return
        if self.destination is not None:
            kernel.vehicles.update_destination(self.vehicle_id, self.destination.lat, self.destination.lng)
        elif vehicle.destination is None:
            logger.warning("Vehicle %s has no destination, not deploying", self.vehicle_id)
            return
        kernel.vehicles.update_status(self.vehicle_id, VehicleStatus.IN_TRANSIT)
        kernel.state.routes.release(self.vehicle_id)
        kernel.state.approved_alternatives.discard(self.vehicle_id)
        kernel.state.declined_alternatives.discard(self.vehicle_id)
        kernel.depart(self.vehicle_id)

class StopVehicleCommand(Command):
    def __init__(self, vehicle_id: str):
        self.vehicle_id = vehicle_id

    def execute(self, kernel: Any):
        vehicle = kernel.vehicles.get(self.vehicle_id)
        if vehicle is None:
            return
        kernel.vehicles.update_status(self.vehicle_id, VehicleStatus.IDLE)
        kernel.vehicles.update_location(self.vehicle_id, vehicle.location.lat, vehicle.location.lng, 0.0, vehicle.heading)
        kernel.state.routes.release(self.vehicle_id)

class RefuelVehicleCommand(Command):
    """Refuels in place, or sends the vehicle to a station when one is given."""

    def __init__(self, vehicle_id: str, station: Optional[Coordinate] = None):
        self.vehicle_id = vehicle_id
        self.station = station

    def execute(self, kernel: Any):
        if self.station is None:
            kernel.vehicles.update_fuel(self.vehicle_id, kernel.fuel.refill(self.vehicle_id))
            return
        kernel.vehicles.update_destination(self.vehicle_id, self.station.lat, self.station.lng)
        kernel.vehicles.update_status(self.vehicle_id, VehicleStatus.IN_TRANSIT)
        kernel.state.routes.release(self.vehicle_id)

class ApproveAlternativeCommand(Command):
    def __init__(self, vehicle_id: str):
        self.vehicle_id = vehicle_id

    def execute(self, kernel: Any):
        vehicle = kernel.vehicles.get(self.vehicle_id)
        if vehicle is None or vehicle.alternative_snapshot is None:
            logger.warning("Vehicle %s has no pending alternative", self.vehicle_id)
            return
        kernel.vehicles.update_status(self.vehicle_id, VehicleStatus.IN_TRANSIT)
        kernel.state.approved_alternatives.add(self.vehicle_id)
        kernel.state.declined_alternatives.discard(self.vehicle_id)

class RejectAlternativeCommand(Command):
    def __init__(self, vehicle_id: str):
        self.vehicle_id = vehicle_id

    def execute(self, kernel: Any):
        vehicle = kernel.vehicles.get(self.vehicle_id)
        if vehicle is None:
            return
        kernel.vehicles.update_route_snapshots(self.vehicle_id, vehicle.route_snapshot, None)
        kernel.vehicles.update_status(self.vehicle_id, VehicleStatus.IN_TRANSIT)
        kernel.state.declined_alternatives.add(self.vehicle_id)
        kernel.state.approved_alternatives.discard(self.vehicle_id)

class SetWeatherCommand(Command):
    def __init__(self, condition: WeatherCondition):
        self.condition = condition

    def execute(self, kernel: Any):
        kernel.environment.set_weather(self.condition)

class SetWeatherModeCommand(Command):
    def __init__(self, use_real_weather: bool):
        self.use_real_weather = use_real_weather

    def execute(self, kernel: Any):
        kernel.environment.set_weather_mode(self.use_real_weather)

class SetTimeMultiplierCommand(Command):
    def __init__(self, multiplier: float):
        self.multiplier = multiplier

    def execute(self, kernel: Any):
        kernel.environment.set_time_multiplier(self.multiplier)

class SetRushHourCommand(Command):
    def __init__(self, enabled: Optional[bool]):
        self.enabled = enabled

    def execute(self, kernel: Any):
        kernel.environment.set_rush_hour(self.enabled)

class SetDensityMarkersCommand(Command):
    def __init__(self, markers: List[DensityMarker]):
        self.markers = markers

    def execute(self, kernel: Any):
        kernel.state.density_markers = list(self.markers)
