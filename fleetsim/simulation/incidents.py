import itertools
import logging
import random
import threading
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from pydantic import BaseModel
from fleetsim.domain.geo import distance_km
from fleetsim.domain.models import (
    Coordinate, Hotspot, Incident, IncidentType, Severity, WeatherCondition, Zone
)

logger = logging.getLogger(__name__)

# Known Bengaluru hotspots, weighted by how often incidents happen there
HOTSPOTS = [
    ("Silk Board Junction", 12.9166, 77.6222, 0.15),
    ("Outer Ring Road", 12.9352, 77.6245, 0.12),
    ("Hosur Road", 12.9298, 77.6197, 0.10),
    ("Whitefield Main Road", 12.9698, 77.7499, 0.08),
    ("Hebbal Flyover", 13.0358, 77.5970, 0.09),
    ("Bannerghatta Road", 12.8892, 77.5956, 0.07),
    ("Tumkur Road", 13.0299, 77.5538, 0.06),
    ("Electronic City", 12.8458, 77.6603, 0.11),
    ("Marathahalli Bridge", 12.9591, 77.6974, 0.10),
    ("Koramangala", 12.9279, 77.6271, 0.08),
    ("Indiranagar", 12.9716, 77.6412, 0.05),
    ("MG Road", 12.9716, 77.5946, 0.04),
]

BASE_SPAWN_PROBABILITY = 0.05
WEATHER_SPAWN_MULTIPLIER = {
    WeatherCondition.RAIN: 2.0,
    WeatherCondition.HEAVY_RAIN: 3.5,
    WeatherCondition.FOG: 2.5,
    WeatherCondition.STORM: 4.0,
}
LOCATION_JITTER = 0.005 # degrees, about 500 m

# Zone traffic impact of one incident: (speed multiplier, congestion added)
INCIDENT_ZONE_IMPACT = {
    Severity.CRITICAL: (0.4, 35),
    Severity.HIGH: (0.6, 25),
    Severity.MEDIUM: (0.75, 15),
    Severity.LOW: (0.9, 8),
}

class ZoneTrafficData(BaseModel):
    zone_id: str
    zone_name: str
    avg_speed: int
    congestion_level: int
    active_incidents: int

class TrafficSummary(BaseModel):
    total_incidents: int
    critical_incidents: int
    avg_congestion: str

def default_hotspots() -> List[Hotspot]:
    return [
        Hotspot(
            name=name,
            location=Coordinate(lat=lat, lng=lng),
            incident_probability=p,
            severity=Severity.HIGH if p >= 0.1 else Severity.MEDIUM,
        )
        for name, lat, lng, p in HOTSPOTS
    ]

def is_incident_rush_hour(hour: int) -> bool:
    return 7 <= hour <= 10 or 17 <= hour <= 20

def flow_description(congestion: float) -> str:
    if congestion >= 80:
        return "SEVERE traffic jam - bumper to bumper, barely moving"
    if congestion >= 60:
        return "HEAVY congestion - stop-and-go traffic"
    if congestion >= 40:
        return "MODERATE traffic - slower than usual, some delays"
    if congestion >= 20:
        return "LIGHT traffic - minor slowdowns, mostly flowing"
    return "FREE flow - clear roads"

class IncidentFeed:
    """
    Synthetic incident source. Incidents appear at hotspots with a
    probability driven by time and weather and expire after a
    severity-dependent TTL.
    """
    def __init__(self, hotspots: Optional[List[Hotspot]] = None, rng: Optional[random.Random] = None):
        self.hotspots = hotspots if hotspots is not None else default_hotspots()
        self.rng = rng or random.Random()
        self.active: List[Incident] = []
        # current() may still be running in a worker thread when the loop spawns
        self._lock = threading.RLock()
        self._ids = itertools.count(1)

    def current(self, weather: Optional[WeatherCondition] = None, hour: Optional[int] = None,
                day_of_week: Optional[int] = None, now: Optional[datetime] = None) -> List[Incident]:
        """
        Active incidents after expiry and a possible new spawn.
        day_of_week follows datetime.weekday(): Monday is 0.
        """
        now = now or datetime.now()
        hour = now.hour if hour is None else hour
        day_of_week = now.weekday() if day_of_week is None else day_of_week

        probability = BASE_SPAWN_PROBABILITY
        if is_incident_rush_hour(hour):
            probability *= 2.5
        if day_of_week < 5:
            probability *= 1.5
        probability *= WEATHER_SPAWN_MULTIPLIER.get(weather, 1.0)

        with self._lock:
            self.expire(now)
            if self.rng.random() < probability:
                self.spawn(weather, is_incident_rush_hour(hour), now)
            return list(self.active)

    def expire(self, now: datetime):
        with self._lock:
            before = len(self.active)
            self.active = [i for i in self.active if not i.is_expired(now)]
            expired = before - len(self.active)
        if expired:
            logger.debug("Expired %d incidents", expired)

    def spawn(self, weather: Optional[WeatherCondition] = None, rush_hour: bool = False,
              now: Optional[datetime] = None, incident_type: Optional[IncidentType] = None,
              severity: Optional[Severity] = None) -> Incident:
        with self._lock:
            hotspot = self._pick_hotspot()
            rolled_type, description, rolled_severity = self._roll_type(weather, rush_hour)
            if incident_type is not None and incident_type != rolled_type:
                description = f"{incident_type.value.capitalize()} reported near {hotspot.name}"
            incident_type = incident_type or rolled_type
            severity = severity or rolled_severity
            incident = Incident(
                id=f"INC-{next(self._ids)}",
                type=incident_type,
                severity=severity,
                description=description,
                location=Coordinate(
                    lat=hotspot.location.lat + (self.rng.random() - 0.5) * LOCATION_JITTER,
                    lng=hotspot.location.lng + (self.rng.random() - 0.5) * LOCATION_JITTER,
                ),
                delay_minutes=round(self._delay(severity)),
                affected_roads=[hotspot.name],
                created_at=now or datetime.now(),
            )
            self.active.append(incident)
        logger.info("New incident: %s at %s (%s)", incident.type.value, hotspot.name, severity.value)
        return incident

    def _pick_hotspot(self) -> Hotspot:
        total = sum(h.incident_probability for h in self.hotspots)
        roll = self.rng.random() * total
        for hotspot in self.hotspots:
            roll -= hotspot.incident_probability
            if roll <= 0:
                return hotspot
        return self.hotspots[0]

    def _roll_type(self, weather, rush_hour: bool):
        r = self.rng.random
        roll = r()
        if weather in (WeatherCondition.HEAVY_RAIN, WeatherCondition.STORM):
            if roll < 0.35:
                severity = Severity.CRITICAL if r() < 0.3 else Severity.HIGH if r() < 0.6 else Severity.MEDIUM
                return IncidentType.ACCIDENT, "Vehicle collision due to slippery roads", severity
            if roll < 0.55:
                return IncidentType.WEATHER, "Waterlogging causing road blockage", Severity.HIGH if r() < 0.4 else Severity.MEDIUM
            if roll < 0.75:
                return IncidentType.BREAKDOWN, "Vehicle breakdown in heavy rain", Severity.LOW if r() < 0.7 else Severity.MEDIUM
            return IncidentType.CONGESTION, "Slow-moving traffic due to weather conditions", Severity.MEDIUM

        if rush_hour:
            if roll < 0.4:
                return IncidentType.CONGESTION, "Heavy rush hour traffic buildup", Severity.HIGH if r() < 0.2 else Severity.MEDIUM
            if roll < 0.65:
                return IncidentType.ACCIDENT, "Minor vehicle collision causing lane blockage", Severity.MEDIUM if r() < 0.5 else Severity.LOW
            if roll < 0.85:
                return IncidentType.BREAKDOWN, "Vehicle breakdown blocking lane", Severity.LOW
            return IncidentType.ROADWORK, "Ongoing road maintenance reducing lanes", Severity.MEDIUM

        if roll < 0.35:
            if r() < 0.1:
                severity = Severity.CRITICAL
            elif r() < 0.3:
                severity = Severity.HIGH
            elif r() < 0.6:
                severity = Severity.MEDIUM
            else:
                severity = Severity.LOW
            return IncidentType.ACCIDENT, "Traffic accident reported", severity
        if roll < 0.55:
            return IncidentType.BREAKDOWN, "Vehicle breakdown on roadside", Severity.MEDIUM if r() < 0.3 else Severity.LOW
        if roll < 0.75:
            return IncidentType.ROADWORK, "Road construction work in progress", Severity.HIGH if r() < 0.2 else Severity.MEDIUM
        return IncidentType.CONGESTION, "Slow traffic flow reported", Severity.MEDIUM if r() < 0.4 else Severity.LOW

    def _delay(self, severity: Severity) -> float:
        if severity == Severity.CRITICAL:
            return 25 + self.rng.random() * 20
        if severity == Severity.HIGH:
            return 15 + self.rng.random() * 15
        if severity == Severity.MEDIUM:
            return 8 + self.rng.random() * 10
        return 3 + self.rng.random() * 7

    def zone_traffic(self, zones: Sequence[Zone], weather: Optional[WeatherCondition] = None,
                     hour: Optional[int] = None) -> List[ZoneTrafficData]:
        """Per-zone speed and congestion estimate from time, weather and nearby incidents."""
        hour = datetime.now().hour if hour is None else hour
        rush = is_incident_rush_hour(hour)
        night = hour >= 22 or hour <= 5
        weather_effect: Dict[WeatherCondition, tuple] = {
            WeatherCondition.RAIN: (0.8, 15),
            WeatherCondition.HEAVY_RAIN: (0.5, 30),
            WeatherCondition.FOG: (0.6, 25),
            WeatherCondition.STORM: (0.4, 40),
        }

        results = []
        for zone in zones:
            if zone.center is None:
                continue
            speed = 40.0
            congestion = 20.0
            if rush:
                speed *= 0.5
                congestion += 40
            elif night:
                speed *= 1.3
                congestion -= 10
            speed_mult, congestion_add = weather_effect.get(weather, (1.0, 0))
            speed *= speed_mult
            congestion += congestion_add

            nearby = [i for i in self.active if distance_km(zone.center, i.location) * 1000.0 <= zone.radius_m]
            for incident in nearby:
                speed_mult, congestion_add = INCIDENT_ZONE_IMPACT[incident.severity]
                speed *= speed_mult
                congestion += congestion_add

            results.append(ZoneTrafficData(
                zone_id=zone.id,
                zone_name=zone.name,
                avg_speed=round(max(5.0, min(80.0, speed))),
                congestion_level=round(max(0.0, min(100.0, congestion))),
                active_incidents=len(nearby),
            ))
        return results

    def summary(self) -> TrafficSummary:
        count = len(self.active)
        critical = sum(1 for i in self.active if i.severity in (Severity.CRITICAL, Severity.HIGH))
        if count == 0:
            level = "normal"
        elif count <= 2:
            level = "light"
        elif count <= 5:
            level = "moderate"
        else:
            level = "heavy"
        return TrafficSummary(total_incidents=count, critical_incidents=critical, avg_congestion=level)
