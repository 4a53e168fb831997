from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

class VehicleClass(str, Enum):
    TRUCK = "truck"
    VAN = "van"
    CAR = "car"

class VehicleStatus(str, Enum):
    IDLE = "idle"
    IN_TRANSIT = "in_transit"
    NEEDS_APPROVAL = "needs_approval"
    REFUELING = "refueling"
    MAINTENANCE = "maintenance"

# Status changes the engine and the command layer are allowed to make
ALLOWED_STATUS_TRANSITIONS = {
    VehicleStatus.IDLE: {VehicleStatus.IN_TRANSIT, VehicleStatus.REFUELING, VehicleStatus.MAINTENANCE},
    VehicleStatus.IN_TRANSIT: {VehicleStatus.IDLE, VehicleStatus.NEEDS_APPROVAL, VehicleStatus.REFUELING},
    VehicleStatus.NEEDS_APPROVAL: {VehicleStatus.IN_TRANSIT, VehicleStatus.IDLE},
    VehicleStatus.REFUELING: {VehicleStatus.IDLE, VehicleStatus.IN_TRANSIT},
    VehicleStatus.MAINTENANCE: {VehicleStatus.IDLE},
}

class Personality(str, Enum):
    AGGRESSIVE = "aggressive"
    CAUTIOUS = "cautious"
    BALANCED = "balanced"
    EFFICIENT = "efficient"

class WeatherCondition(str, Enum):
    CLEAR = "clear"
    CLOUDY = "cloudy"
    RAIN = "rain"
    HEAVY_RAIN = "heavy_rain"
    FOG = "fog"
    STORM = "storm"

class IncidentType(str, Enum):
    ACCIDENT = "accident"
    ROADWORK = "roadwork"
    CONGESTION = "congestion"
    WEATHER = "weather"
    BREAKDOWN = "breakdown"

class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

class DensitySeverity(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"

class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"

class AIAction(str, Enum):
    CONTINUE = "continue"
    REROUTE = "reroute"
    REFUEL = "refuel"
    SLOW_DOWN = "slow_down"
    SPEED_UP = "speed_up"
    REST_BREAK = "rest_break"

class ShuttleLeg(str, Enum):
    AT_A = "at_a"
    EN_ROUTE_A_TO_B = "en_route_a_to_b"
    AT_B = "at_b"
    EN_ROUTE_B_TO_A = "en_route_b_to_a"

class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float

# Routes

class RouteWaypoint(BaseModel):
    lat: float
    lng: float
    distance: float = 0.0 # meters, cumulative from route start
    duration: float = 0.0 # seconds, cumulative

class RouteSegment(BaseModel):
    speed: float # km/h
    distance: float # meters
    duration: float # seconds

class Route(BaseModel):
    waypoints: List[RouteWaypoint]
    total_distance: float # meters
    total_duration: float # seconds
    geometry: Dict[str, Any] = {}
    segments: Optional[List[RouteSegment]] = None

# Vehicles

class VehicleState(BaseModel):
    id: str
    name: str = ""
    vehicle_class: VehicleClass = VehicleClass.VAN
    status: VehicleStatus = VehicleStatus.IDLE
    location: Coordinate
    destination: Optional[Coordinate] = None
    fuel: float = Field(default=100.0, ge=0.0, le=100.0)
    speed: float = 0.0 # km/h, last tick
    heading: float = 0.0 # degrees
    cargo_weight: float = 0.0
    cargo_capacity: float = 1000.0
    personality: Personality = Personality.BALANCED
    route_snapshot: Optional[Route] = None
    alternative_snapshot: Optional[Route] = None

# Conditions

class Incident(BaseModel):
    id: str
    type: IncidentType
    severity: Severity
    description: str = ""
    location: Coordinate
    delay_minutes: Optional[float] = None
    affected_roads: List[str] = []
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def ttl_minutes(self) -> int:
        if self.severity == Severity.CRITICAL:
            return 60
        if self.severity == Severity.HIGH:
            return 45
        return 30

    def is_expired(self, now: datetime) -> bool:
        return (now - self.created_at).total_seconds() > self.ttl_minutes * 60

class Hotspot(BaseModel):
    name: str
    location: Coordinate
    incident_probability: float
    severity: Severity = Severity.MEDIUM

class DensityMarker(BaseModel):
    location: Coordinate
    severity: DensitySeverity

class Zone(BaseModel):
    id: str
    name: str
    center: Optional[Coordinate] = None
    radius_m: float = 1000.0
    congestion: float = Field(default=30.0, ge=0.0, le=100.0)
    vehicle_count: int = 0
    trend: Trend = Trend.STABLE

class WeatherReport(BaseModel):
    condition: WeatherCondition
    temperature: float
    visibility_m: float
    wind_speed: float = 0.0
    speed_factor: float = 1.0

class EnvironmentState(BaseModel):
    condition: WeatherCondition = WeatherCondition.CLEAR
    temperature: float = 28.0
    visibility_m: float = 15000.0
    wind_speed: float = 0.0
    sim_time: datetime = Field(default_factory=datetime.now)
    time_multiplier: float = 1.0
    global_congestion: float = 30.0
    rush_hour: bool = False
    weather_speed_factor: float = 1.0
    congestion_speed_factor: float = 1.0
    live_weather: bool = False

    @property
    def speed_factor(self) -> float:
        return self.weather_speed_factor * self.congestion_speed_factor

# AI decisions

class AIDecision(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: AIAction
    reasoning: str
    target_speed: Optional[float] = None
    priority: Severity = Severity.LOW
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

class RouteNode(BaseModel):
    id: str
    lat: float
    lng: float

class OptimizedRoute(BaseModel):
    path: List[RouteNode]
    total_distance: float # meters
    estimated_time: float # seconds
    fuel_cost: float
    congestion_level: float
    incidents: List[Incident] = []
    reasoning: str = ""

class DecisionContext(BaseModel):
    vehicle: VehicleState
    environment: EnvironmentState
    nearby_incidents: List[Incident] = []
    nearby_zones: List[Zone] = []
    optimized_route: Optional[OptimizedRoute] = None

# API/Response Models

class VehicleSnapshot(BaseModel):
    id: str
    name: str
    status: VehicleStatus
    location: Coordinate
    destination: Optional[Coordinate] = None
    fuel: float
    speed: float
    heading: float
    phase: str
    cursor: int = 0
    stuck_counter: int = 0
    low_fuel: bool = False

class SimulationSnapshot(BaseModel):
    tick: int
    running: bool
    environment: EnvironmentState
    vehicles: List[VehicleSnapshot]
    zones: List[Zone]
    incidents: List[Incident]

class DeployRequest(BaseModel):
    destination: Optional[Coordinate] = None

class RefuelRequest(BaseModel):
    station: Optional[Coordinate] = None

class WeatherOverride(BaseModel):
    condition: WeatherCondition

class TimeMultiplierUpdate(BaseModel):
    multiplier: float

class DensityMarkerUpdate(BaseModel):
    markers: List[DensityMarker]
