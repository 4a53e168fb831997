import logging
from typing import List, Optional, Sequence, Tuple
from fleetsim.domain import config
from fleetsim.domain.geo import haversine_km
from fleetsim.domain.graph import RouteGraph
from fleetsim.domain.errors import RouteUnresolvable
from fleetsim.domain.models import Incident, OptimizedRoute, Route, RouteNode, Zone

logger = logging.getLogger(__name__)

def node_id(lat: float, lng: float) -> str:
    # Waypoints shared by several routes collapse onto one node
    return f"{round(lat, config.GRAPH_NODE_PRECISION)},{round(lng, config.GRAPH_NODE_PRECISION)}"

def weather_cost_factor(weather_speed_factor: float) -> float:
    if weather_speed_factor <= 0:
        return 1.0
    return 1.0 / weather_speed_factor

def zone_traffic_factor(lat: float, lng: float, zones: Sequence[Zone]) -> float:
    factor = 1.0
    for zone in zones:
        if zone.center is None:
            continue
        if haversine_km(lat, lng, zone.center.lat, zone.center.lng) < zone.radius_m / 1000.0:
            factor = max(factor, 1.0 + (zone.congestion / 100.0) * 2.0)
    return factor

def incident_cost_factor(lat: float, lng: float, incidents: Sequence[Incident]) -> float:
    factor = 1.0
    for incident in incidents:
        if haversine_km(lat, lng, incident.location.lat, incident.location.lng) < config.INCIDENT_PROXIMITY_KM:
            factor = max(factor, config.INCIDENT_COST_FACTOR[incident.severity.value])
    return factor

def build_route_graph(routes: Sequence[Route], zones: Sequence[Zone], incidents: Sequence[Incident],
                      weather_speed_factor: float = 1.0) -> Tuple[RouteGraph, str, str]:
    """
    Builds the weighted graph for one or more routes between the same endpoints.
    Returns the graph plus the source and target node ids of the first route.
    """
    if not routes or len(routes[0].waypoints) < 2:
        raise RouteUnresolvable("Cannot build a graph from an empty route")

    graph = RouteGraph()
    weather_factor = weather_cost_factor(weather_speed_factor)

    for route in routes:
        prev_id = None
        prev_wp = None
        for wp in route.waypoints:
            current_id = node_id(wp.lat, wp.lng)
            if not graph.has_node(current_id):
                graph.add_node(current_id, wp.lat, wp.lng)
            if prev_id is not None and prev_id != current_id:
                distance_km = haversine_km(prev_wp.lat, prev_wp.lng, wp.lat, wp.lng)
                mid_lat = (prev_wp.lat + wp.lat) / 2
                mid_lng = (prev_wp.lng + wp.lng) / 2
                graph.add_edge(
                    prev_id, current_id,
                    base_time=distance_km / config.GRAPH_BASE_SPEED * 3600.0,
                    distance=distance_km * 1000.0,
                    traffic_factor=zone_traffic_factor(mid_lat, mid_lng, zones),
                    weather_factor=weather_factor,
                    incident_factor=incident_cost_factor(mid_lat, mid_lng, incidents),
                )
            prev_id, prev_wp = current_id, wp

    first = routes[0].waypoints
    return graph, node_id(first[0].lat, first[0].lng), node_id(first[-1].lat, first[-1].lng)

def find_optimal_route(routes: Sequence[Route], zones: Sequence[Zone], incidents: Sequence[Incident],
                       vehicle_class: str = "van", weather_speed_factor: float = 1.0) -> OptimizedRoute:
    graph, source, target = build_route_graph(routes, zones, incidents, weather_speed_factor)
    path, cost = graph.shortest_path(source, target)

    nodes = []
    for nid in path:
        lat, lng = graph.get_node_pos(nid)
        nodes.append(RouteNode(id=nid, lat=lat, lng=lng))

    total_distance = sum(edge["distance"] for edge in graph.path_edges(path))
    efficiency = config.FUEL_EFFICIENCY.get(vehicle_class, config.DEFAULT_FUEL_EFFICIENCY)
    fuel_cost = total_distance / 1000.0 / efficiency * config.FUEL_PRICE

    # Zones and incidents touched by the path
    path_zones = {}
    path_incidents = {}
    for node in nodes:
        for zone in zones:
            if zone.center is None or zone.id in path_zones:
                continue
            if haversine_km(node.lat, node.lng, zone.center.lat, zone.center.lng) < zone.radius_m / 1000.0:
                path_zones[zone.id] = zone
        for incident in incidents:
            if incident.id in path_incidents:
                continue
            if haversine_km(node.lat, node.lng, incident.location.lat, incident.location.lng) < config.INCIDENT_PROXIMITY_KM:
                path_incidents[incident.id] = incident

    if path_zones:
        congestion = sum(z.congestion for z in path_zones.values()) / len(path_zones)
    else:
        congestion = config.DEFAULT_PATH_CONGESTION

    found = list(path_incidents.values())
    return OptimizedRoute(
        path=nodes,
        total_distance=round(total_distance),
        estimated_time=round(cost),
        fuel_cost=round(fuel_cost),
        congestion_level=round(congestion),
        incidents=found,
        reasoning=route_reasoning(total_distance, cost, congestion, found, weather_cost_factor(weather_speed_factor)),
    )

def route_reasoning(distance: float, time: float, congestion: float, incidents: List[Incident],
                    weather_factor: float) -> str:
    parts = [f"Route optimized for {distance / 1000:.1f} km distance."]

    if congestion > 70:
        parts.append("Heavy traffic expected - route avoids high-congestion zones where possible.")
    elif congestion > 40:
        parts.append("Moderate traffic conditions factored into route calculation.")
    else:
        parts.append("Light traffic - optimal driving conditions.")

    if incidents:
        parts.append(f"{len(incidents)} active incident(s) on or near route - delays accounted for.")

    if weather_factor > 1.2:
        parts.append("Adverse weather conditions detected - reduced speed limits applied.")

    parts.append(f"Estimated time: {round(time / 60)} minutes.")
    return " ".join(parts)

def compare_routes(route1: OptimizedRoute, route2: OptimizedRoute, priority: str = "time") -> Tuple[OptimizedRoute, str]:
    if priority == "time":
        if route1.estimated_time < route2.estimated_time:
            return route1, f"Route 1 is {round((route2.estimated_time - route1.estimated_time) / 60)} minutes faster"
        return route2, f"Route 2 is {round((route1.estimated_time - route2.estimated_time) / 60)} minutes faster"
    if priority == "distance":
        if route1.total_distance < route2.total_distance:
            return route1, f"Route 1 is {(route2.total_distance - route1.total_distance) / 1000:.1f} km shorter"
        return route2, f"Route 2 is {(route1.total_distance - route2.total_distance) / 1000:.1f} km shorter"
    if priority == "fuel":
        if route1.fuel_cost < route2.fuel_cost:
            return route1, f"Route 1 saves {round(route2.fuel_cost - route1.fuel_cost)} in fuel"
        return route2, f"Route 2 saves {round(route1.fuel_cost - route2.fuel_cost)} in fuel"
    if priority == "safety":
        if len(route1.incidents) < len(route2.incidents):
            return route1, f"Route 1 has {len(route2.incidents) - len(route1.incidents)} fewer incidents"
        return route2, f"Route 2 has {len(route1.incidents) - len(route2.incidents)} fewer incidents"
    return route1, "Default route"

def summarize_remaining(points, zones: Sequence[Zone], incidents: Sequence[Incident], vehicle_class: str,
                        weather_speed_factor: float) -> Optional[OptimizedRoute]:
    """Optimized-route summary over the unwalked part of a route, or None if too short."""
    if len(points) < 2:
        return None
    route = Route(waypoints=list(points), total_distance=0.0, total_duration=0.0)
    try:
        return find_optimal_route([route], zones, incidents, vehicle_class, weather_speed_factor)
    except RouteUnresolvable:
        logger.debug("Remaining route could not be summarized")
        return None
