import logging
from fleetsim.domain import config

logger = logging.getLogger(__name__)

def consume(fuel: float, distance_km: float, actual_speed: float) -> float:
    """Fuel left after one tick. Empty tanks are not drained further."""
    if fuel <= 0:
        return 0.0
    rate = config.FUEL_RATE_PER_KM_SLOW if actual_speed < config.FUEL_SLOW_SPEED else config.FUEL_RATE_PER_KM
    consumed = distance_km * rate + config.FUEL_IDLE_PER_TICK
    return min(config.FUEL_MAX, max(0.0, fuel - consumed))

class FuelSystem:
    """Tracks which vehicles dropped below the low-fuel line so refuel routing can pick them up."""

    def __init__(self, low_fuel_vehicles: set):
        self.low_fuel_vehicles = low_fuel_vehicles

    def update(self, vehicle_id: str, name: str, fuel: float, distance_km: float, actual_speed: float) -> float:
        new_fuel = consume(fuel, distance_km, actual_speed)
        if new_fuel < config.LOW_FUEL_THRESHOLD:
            if vehicle_id not in self.low_fuel_vehicles:
                logger.warning("Vehicle %s entered low fuel state (%.1f%%)", name or vehicle_id, new_fuel)
            self.low_fuel_vehicles.add(vehicle_id)
            if new_fuel < config.CRITICAL_FUEL_THRESHOLD <= fuel:
                logger.warning("Vehicle %s is out of fuel, refuel required", name or vehicle_id)
        return new_fuel

    def refill(self, vehicle_id: str) -> float:
        self.low_fuel_vehicles.discard(vehicle_id)
        return config.FUEL_MAX
