import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
from fleetsim.domain import config
from fleetsim.domain.errors import ProviderUnavailable, RouteUnresolvable
from fleetsim.domain.geo import distance_km
from fleetsim.domain.models import Coordinate, Hotspot, Incident, Route, Severity, VehicleState
from fleetsim.kernel.external import call_external

logger = logging.getLogger(__name__)

@dataclass
class AcquisitionResult:
    route: Optional[Route] = None
    # Set when a better-than-default alternative needs operator approval
    pending_alternative: Optional[Route] = None

    @property
    def needs_approval(self) -> bool:
        return self.pending_alternative is not None

def nearby_incidents(location: Coordinate, incidents: Sequence[Incident],
                     radius_km: float = config.ALTERNATIVE_TRIGGER_KM) -> List[Incident]:
    # A feed this large is treated as a glitch and ignored for rerouting
    if len(incidents) >= config.MAX_TRUSTED_INCIDENTS:
        return []
    return [i for i in incidents if distance_km(location, i.location) <= radius_km]

def nearby_hotspots(location: Coordinate, hotspots: Sequence[Hotspot]) -> List[Hotspot]:
    return [
        h for h in hotspots
        if h.severity == Severity.HIGH and distance_km(location, h.location) <= config.HOTSPOT_PROXIMITY_KM
    ]

def score_route(route: Route, incidents: Sequence[Incident], hotspots: Sequence[Hotspot]) -> float:
    """
    Duration plus the delay of every incident and hotspot near any sampled
    waypoint, each counted once. Lower is better.
    """
    sampled = route.waypoints[::config.WAYPOINT_SAMPLE_STRIDE]
    score = route.total_duration
    for incident in incidents:
        if any(distance_km(wp, incident.location) < config.INCIDENT_PROXIMITY_KM for wp in sampled):
            delay = incident.delay_minutes
            if delay is None:
                delay = config.DEFAULT_INCIDENT_DELAY_MINUTES
            score += delay * 60.0
    for hotspot in hotspots:
        if any(distance_km(wp, hotspot.location) < config.HOTSPOT_PROXIMITY_KM for wp in sampled):
            if hotspot.severity == Severity.HIGH:
                score += config.HOTSPOT_PENALTY_HIGH
            else:
                score += config.HOTSPOT_PENALTY_MEDIUM
    return score

def choose_route(candidates: Sequence[Route], incidents: Sequence[Incident],
                 hotspots: Sequence[Hotspot]) -> Tuple[int, Route]:
    """Index and route with the minimum score. Ties keep the earlier candidate."""
    best_idx = 0
    best_score = None
    for idx, route in enumerate(candidates):
        score = score_route(route, incidents, hotspots)
        if best_score is None or score < best_score:
            best_idx, best_score = idx, score
    return best_idx, candidates[best_idx]

def ensure_walkable(route: Route) -> Route:
    if len(route.waypoints) < 2:
        raise RouteUnresolvable("Route has fewer than two waypoints")
    return route

class RouteAcquirer:
    """
    Picks a route for a vehicle that has none. A failed alternatives lookup
    falls back to the primary route; primary route errors propagate to the
    caller, which skips the vehicle for this tick.
    """
    def __init__(self, routing):
        self.routing = routing

    async def acquire(self, vehicle: VehicleState, incidents: Sequence[Incident], hotspots: Sequence[Hotspot],
                      approved: bool = False, declined: bool = False) -> AcquisitionResult:
        if vehicle.destination is None:
            raise RouteUnresolvable(f"Vehicle {vehicle.id} has no destination")

        if approved and vehicle.alternative_snapshot is not None:
            logger.info("Vehicle %s: activating approved alternative", vehicle.id)
            return AcquisitionResult(route=ensure_walkable(vehicle.alternative_snapshot))

        near_incidents = nearby_incidents(vehicle.location, incidents)
        near_hotspots = nearby_hotspots(vehicle.location, hotspots)

        if (near_incidents or near_hotspots) and not declined:
            try:
                candidates = await call_external(
                    "alternatives", self.routing.alternatives, vehicle.location, vehicle.destination,
                    timeout=config.ALTERNATIVES_TIMEOUT,
                )
            except (ProviderUnavailable, RouteUnresolvable) as e:
                logger.warning("Vehicle %s: alternatives unavailable, using primary route (%s)", vehicle.id, e)
                candidates = []
            candidates = [r for r in candidates if len(r.waypoints) >= 2]
            if candidates:
                idx, best = choose_route(candidates, near_incidents, near_hotspots)
                if idx != 0:
                    logger.info("Vehicle %s: alternative %d beats default route, awaiting approval", vehicle.id, idx)
                    return AcquisitionResult(pending_alternative=best)
                return AcquisitionResult(route=best)

        route = await call_external(
            "route", self.routing.route, vehicle.location, vehicle.destination,
            timeout=config.ROUTE_TIMEOUT,
        )
        return AcquisitionResult(route=ensure_walkable(route))
