import logging
import random
from typing import List, Optional, Sequence
from fleetsim.domain import config
from fleetsim.domain.errors import DataInconsistency
from fleetsim.domain.geo import distance_km
from fleetsim.domain.models import VehicleState, Zone

logger = logging.getLogger(__name__)

def density_tier(count: int) -> float:
    for more_than, bonus in config.ZONE_VEHICLE_TIERS:
        if count > more_than:
            return bonus
    return 0.0

def rush_bonus(hour: int) -> float:
    for start, end in config.ZONE_RUSH_HOURS:
        if start <= hour <= end:
            return config.ZONE_RUSH_BONUS
    return 0.0

def count_vehicles(zone: Zone, vehicles: Sequence[VehicleState]) -> int:
    if zone.center is None:
        raise DataInconsistency(f"Zone {zone.id} has no center")
    radius_km = zone.radius_m / 1000.0
    return sum(1 for v in vehicles if distance_km(v.location, zone.center) <= radius_km)

class ZoneSystem:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def congestion(self, count: int, hour: int) -> int:
        level = (config.ZONE_BASE_MIN + self.rng.random() * config.ZONE_BASE_SPREAD
                 + density_tier(count)
                 + rush_bonus(hour)
                 + (self.rng.random() - 0.5) * 2 * config.ZONE_NOISE)
        return round(min(config.ZONE_CONGESTION_MAX, max(config.ZONE_CONGESTION_MIN, level)))

    def update(self, zone_store, vehicles: Sequence[VehicleState], hour: int) -> List[str]:
        """Recomputes every zone. Returns the ids of zones that were updated."""
        updated = []
        for zone in zone_store.list():
            try:
                count = count_vehicles(zone, vehicles)
            except DataInconsistency as e:
                logger.warning("Skipping zone: %s", e)
                continue
            try:
                zone_store.update_congestion(zone.id, self.congestion(count, hour), count)
            except Exception:
                logger.exception("Zone %s congestion update failed", zone.id)
                continue
            updated.append(zone.id)
        return updated
