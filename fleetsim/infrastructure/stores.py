import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional
from fleetsim.domain.errors import InvalidStatusTransition
from fleetsim.domain.models import (
    ALLOWED_STATUS_TRANSITIONS, Coordinate, Personality, Route, Trend, VehicleClass, VehicleState,
    VehicleStatus, Zone
)

logger = logging.getLogger(__name__)

TREND_THRESHOLD = 5.0 # congestion points

class VehicleStore(ABC):
    @abstractmethod
    def list_in_transit(self) -> List[VehicleState]:
        pass

    @abstractmethod
    def list_all(self) -> List[VehicleState]:
        pass

    @abstractmethod
    def get(self, vehicle_id: str) -> Optional[VehicleState]:
        pass

    @abstractmethod
    def update_location(self, vehicle_id: str, lat: float, lng: float, speed: float, heading: float):
        pass

    @abstractmethod
    def update_fuel(self, vehicle_id: str, fuel: float):
        pass

    @abstractmethod
    def update_status(self, vehicle_id: str, status: VehicleStatus):
        pass

    @abstractmethod
    def update_destination(self, vehicle_id: str, lat: float, lng: float):
        pass

    @abstractmethod
    def update_route_snapshots(self, vehicle_id: str, route: Optional[Route] = None,
                               alternative: Optional[Route] = None):
        pass

class ZoneStore(ABC):
    @abstractmethod
    def list(self) -> List[Zone]:
        pass

    @abstractmethod
    def update_congestion(self, zone_id: str, level: float, vehicle_count: int):
        pass

class InMemoryVehicleStore(VehicleStore):
    """
    Process-local vehicle records. Reads hand out copies so callers never
    mutate the stored record outside the update methods.
    """
    def __init__(self, vehicles: Iterable[VehicleState] = ()):
        self._vehicles: Dict[str, VehicleState] = {v.id: v.model_copy(deep=True) for v in vehicles}

    def add(self, vehicle: VehicleState):
        self._vehicles[vehicle.id] = vehicle.model_copy(deep=True)

    def list_in_transit(self) -> List[VehicleState]:
        return [v.model_copy(deep=True) for v in self._vehicles.values() if v.status == VehicleStatus.IN_TRANSIT]

    def list_all(self) -> List[VehicleState]:
        return [v.model_copy(deep=True) for v in self._vehicles.values()]

    def get(self, vehicle_id: str) -> Optional[VehicleState]:
        vehicle = self._vehicles.get(vehicle_id)
        return vehicle.model_copy(deep=True) if vehicle else None

    def _require(self, vehicle_id: str) -> VehicleState:
        vehicle = self._vehicles.get(vehicle_id)
        if vehicle is None:
            raise KeyError(vehicle_id)
        return vehicle

    def update_location(self, vehicle_id: str, lat: float, lng: float, speed: float, heading: float):
        vehicle = self._require(vehicle_id)
        vehicle.location = Coordinate(lat=lat, lng=lng)
        vehicle.speed = speed
        vehicle.heading = heading

    def update_fuel(self, vehicle_id: str, fuel: float):
        self._require(vehicle_id).fuel = max(0.0, min(100.0, fuel))

    def update_status(self, vehicle_id: str, status: VehicleStatus):
        vehicle = self._require(vehicle_id)
        if vehicle.status == status:
            return
        if status not in ALLOWED_STATUS_TRANSITIONS[vehicle.status]:
            raise InvalidStatusTransition(vehicle_id, vehicle.status.value, status.value)
        vehicle.status = status

    def update_destination(self, vehicle_id: str, lat: float, lng: float):
        self._require(vehicle_id).destination = Coordinate(lat=lat, lng=lng)

    def update_route_snapshots(self, vehicle_id: str, route: Optional[Route] = None,
                               alternative: Optional[Route] = None):
        vehicle = self._require(vehicle_id)
        vehicle.route_snapshot = route
        vehicle.alternative_snapshot = alternative

class InMemoryZoneStore(ZoneStore):
    def __init__(self, zones: Iterable[Zone] = ()):
        self._zones: Dict[str, Zone] = {z.id: z.model_copy(deep=True) for z in zones}

    def list(self) -> List[Zone]:
        return [z.model_copy(deep=True) for z in self._zones.values()]

    def update_congestion(self, zone_id: str, level: float, vehicle_count: int):
        zone = self._zones.get(zone_id)
        if zone is None:
            raise KeyError(zone_id)
        level = max(0.0, min(100.0, level))
        if level > zone.congestion + TREND_THRESHOLD:
            zone.trend = Trend.UP
        elif level < zone.congestion - TREND_THRESHOLD:
            zone.trend = Trend.DOWN
        else:
            zone.trend = Trend.STABLE
        zone.congestion = level
        zone.vehicle_count = vehicle_count

def seed_zones() -> List[Zone]:
    """Bengaluru traffic zones used when no external store is configured."""
    zones = [
        ("Z1", "Silk Board Junction", 12.9166, 77.6222, 1500),
        ("Z2", "Koramangala 80ft Rd", 12.9352, 77.6245, 1200),
        ("Z3", "Indiranagar 100ft Rd", 12.9716, 77.6412, 1000),
        ("Z4", "MG Road", 12.9756, 77.6066, 1000),
        ("Z5", "Whitefield Main Road", 12.9698, 77.7499, 2000),
        ("Z6", "Hebbal Flyover", 13.0358, 77.5970, 1500),
        ("Z7", "Electronic City", 12.8458, 77.6603, 2000),
        ("Z8", "Marathahalli Bridge", 12.9591, 77.6974, 1200),
    ]
    return [
        Zone(id=zid, name=name, center=Coordinate(lat=lat, lng=lng), radius_m=radius)
        for zid, name, lat, lng, radius in zones
    ]

def seed_vehicles() -> List[VehicleState]:
    fleet = [
        ("V-001", "Truck Alpha", VehicleClass.TRUCK, Personality.CAUTIOUS, (12.9716, 77.5946), (12.8458, 77.6603)),
        ("V-002", "Van Bravo", VehicleClass.VAN, Personality.BALANCED, (12.9352, 77.6245), (13.0358, 77.5970)),
        ("V-003", "Car Charlie", VehicleClass.CAR, Personality.AGGRESSIVE, (12.9698, 77.7499), (12.9166, 77.6222)),
        ("V-004", "Van Delta", VehicleClass.VAN, Personality.EFFICIENT, (12.9591, 77.6974), (12.8892, 77.5956)),
    ]
    return [
        VehicleState(
            id=vid,
            name=name,
            vehicle_class=vclass,
            personality=personality,
            location=Coordinate(lat=start[0], lng=start[1]),
            destination=Coordinate(lat=dest[0], lng=dest[1]),
        )
        for vid, name, vclass, personality, start, dest in fleet
    ]
