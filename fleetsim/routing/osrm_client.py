import logging
import requests
from typing import Any, Dict, List, Optional
from fleetsim.domain import config
from fleetsim.domain.errors import ProviderUnavailable, RouteUnresolvable
from fleetsim.domain.geo import haversine_km
from fleetsim.domain.models import Coordinate, Route, RouteSegment, RouteWaypoint

logger = logging.getLogger(__name__)

class OSRMClient:
    """
    Road routing over the OSRM HTTP API. Coordinates go over the wire as
    lng,lat. Failures raise; there is no straight-line fallback.
    """
    def __init__(self, base_url: str = config.OSRM_BASE_URL, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def route(self, start: Coordinate, end: Coordinate, alternatives: bool = False,
              steps: bool = False, overview: str = "full") -> Route:
        routes = self._fetch_routes(start, end, alternatives, steps, overview, config.ROUTE_TIMEOUT)
        return routes[0]

    def alternatives(self, start: Coordinate, end: Coordinate) -> List[Route]:
        """All candidate routes, provider's preferred route first."""
        return self._fetch_routes(start, end, True, False, "full", config.ALTERNATIVES_TIMEOUT)

    def nearest_road(self, point: Coordinate) -> Coordinate:
        url = f"{self.base_url}/nearest/v1/driving/{point.lng},{point.lat}"
        data = self._get(url, {"number": 1}, config.NEAREST_TIMEOUT)
        waypoints = data.get("waypoints") or []
        if data.get("code") != "Ok" or not waypoints:
            raise RouteUnresolvable(f"No road near {point.lat},{point.lng}")
        lng, lat = waypoints[0]["location"]
        return Coordinate(lat=lat, lng=lng)

    def _fetch_routes(self, start: Coordinate, end: Coordinate, alternatives: bool, steps: bool,
                      overview: str, timeout: float) -> List[Route]:
        url = f"{self.base_url}/route/v1/driving/{start.lng},{start.lat};{end.lng},{end.lat}"
        params = {
            "alternatives": str(alternatives).lower(),
            "steps": str(steps).lower(),
            "overview": overview,
            "geometries": "geojson",
            "annotations": "speed,distance,duration",
        }
        data = self._get(url, params, timeout)
        if data.get("code") != "Ok" or not data.get("routes"):
            raise RouteUnresolvable(f"Routing failed: {data.get('code')} {data.get('message', '')}".strip())
        return [parse_route(r) for r in data["routes"]]

    def _get(self, url: str, params: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.warning("OSRM request failed: %s", e)
            raise ProviderUnavailable(str(e)) from e
        except ValueError as e:
            raise ProviderUnavailable(f"Invalid OSRM response: {e}") from e

def parse_route(raw: Dict[str, Any]) -> Route:
    """Builds a Route from one OSRM route object with GeoJSON geometry."""
    geometry = raw.get("geometry") or {}
    coordinates = geometry.get("coordinates") or []
    if len(coordinates) < 2:
        raise RouteUnresolvable("Route geometry has fewer than two points")

    waypoints = []
    cumulative_m = 0.0
    prev = None
    for lng, lat in coordinates:
        if prev is not None:
            cumulative_m += haversine_km(prev[1], prev[0], lat, lng) * 1000.0
        waypoints.append(RouteWaypoint(
            lat=lat,
            lng=lng,
            distance=cumulative_m,
            duration=cumulative_m / 1000.0 / config.GRAPH_BASE_SPEED * 3600.0,
        ))
        prev = (lng, lat)

    segments = []
    for leg in raw.get("legs") or []:
        annotation = leg.get("annotation") or {}
        speeds = annotation.get("speed") or []
        distances = annotation.get("distance") or []
        durations = annotation.get("duration") or []
        for speed, distance, duration in zip(speeds, distances, durations):
            segments.append(RouteSegment(speed=speed * 3.6, distance=distance, duration=duration))

    return Route(
        waypoints=waypoints,
        total_distance=raw.get("distance", cumulative_m),
        total_duration=raw.get("duration", waypoints[-1].duration),
        geometry=geometry,
        segments=segments or None,
    )

def estimate_fuel_consumption(distance_m: float, vehicle_class: str) -> float:
    """Litres needed for a distance at the class's nominal efficiency."""
    efficiency = config.FUEL_EFFICIENCY.get(vehicle_class, config.DEFAULT_FUEL_EFFICIENCY)
    return distance_m / 1000.0 / efficiency
