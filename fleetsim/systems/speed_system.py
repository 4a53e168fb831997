from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
from fleetsim.domain import config
from fleetsim.domain.geo import distance_km
from fleetsim.domain.models import (
    AIAction, AIDecision, Coordinate, DensityMarker, DensitySeverity, Incident, VehicleState
)

@dataclass
class SpeedProfile:
    base_speed: float # km/h
    incident_factor: float
    environment_factor: float
    decision: Optional[AIDecision]
    density_factor: float
    density_severity: Optional[DensitySeverity]

    @property
    def speed_factor(self) -> float:
        return ai_adjustment(self.base_factor, self.decision)

    @property
    def base_factor(self) -> float:
        return self.incident_factor * self.environment_factor

    @property
    def effective_speed(self) -> float:
        return self.base_speed * self.speed_factor * self.density_factor

    @property
    def red_zone(self) -> bool:
        return self.density_severity == DensitySeverity.RED

def base_speed(vehicle_class) -> float:
    return config.BASE_SPEED_BY_CLASS.get(vehicle_class, config.DEFAULT_BASE_SPEED)

def incident_factor(location: Coordinate, incidents: Sequence[Incident]) -> float:
    """Slowest multiplier imposed by any incident within the proximity radius."""
    factor = 1.0
    for incident in incidents:
        if distance_km(location, incident.location) >= config.INCIDENT_PROXIMITY_KM:
            continue
        delay = incident.delay_minutes or 0.0
        factor = min(factor, 1.0 - min(config.MAX_INCIDENT_SLOWDOWN, delay / 60.0))
    return factor

def density_factor(location: Coordinate, markers: Sequence[DensityMarker]) -> Tuple[float, Optional[DensitySeverity]]:
    # red overrides yellow overrides none
    severity = None
    for marker in markers:
        if distance_km(location, marker.location) > config.DENSITY_MARKER_RADIUS_KM:
            continue
        if marker.severity == DensitySeverity.RED:
            severity = DensitySeverity.RED
            break
        if marker.severity == DensitySeverity.YELLOW:
            severity = DensitySeverity.YELLOW

    if severity == DensitySeverity.RED:
        return config.DENSITY_FACTOR_RED, severity
    if severity == DensitySeverity.YELLOW:
        return config.DENSITY_FACTOR_YELLOW, severity
    return 1.0, severity

def ai_adjustment(factor: float, decision: Optional[AIDecision]) -> float:
    if decision is None:
        return factor
    if decision.action == AIAction.SLOW_DOWN:
        return factor * config.AI_SLOW_DOWN_FACTOR
    if decision.action == AIAction.SPEED_UP:
        return min(config.AI_SPEED_CAP, factor * config.AI_SPEED_UP_FACTOR)
    return factor

class SpeedSystem:
    def profile(self, vehicle: VehicleState, incidents: Sequence[Incident], markers: Sequence[DensityMarker],
                environment_factor: float = 1.0, decision: Optional[AIDecision] = None) -> SpeedProfile:
        density, severity = density_factor(vehicle.location, markers)
        return SpeedProfile(
            base_speed=base_speed(vehicle.vehicle_class),
            incident_factor=incident_factor(vehicle.location, incidents),
            environment_factor=environment_factor,
            decision=decision,
            density_factor=density,
            density_severity=severity,
        )
