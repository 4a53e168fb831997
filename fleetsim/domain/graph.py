import networkx as nx
from typing import Any, Dict, List, Tuple
from fleetsim.domain.errors import RouteUnresolvable

class RouteGraph:
    """
    Weighted directed road graph. Edge cost is
    base_time * traffic_factor * weather_factor * incident_factor.
    """
    def __init__(self):
        self.graph = nx.DiGraph()

    def add_node(self, node_id: str, lat: float, lng: float):
        self.graph.add_node(node_id, lat=lat, lng=lng)

    def add_edge(self, u: str, v: str, base_time: float, distance: float = 0.0,
                 traffic_factor: float = 1.0, weather_factor: float = 1.0, incident_factor: float = 1.0):
        self.graph.add_edge(
            u, v,
            base_time=base_time,
            distance=distance,
            traffic_factor=traffic_factor,
            weather_factor=weather_factor,
            incident_factor=incident_factor,
            cost=base_time * traffic_factor * weather_factor * incident_factor,
        )

    def set_factors(self, u: str, v: str, **factors: float):
        data = self.graph.get_edge_data(u, v)
        if data is None:
            raise KeyError(f"No edge {u} -> {v}")
        data.update(factors)
        data["cost"] = data["base_time"] * data["traffic_factor"] * data["weather_factor"] * data["incident_factor"]

    def get_edge_data(self, u: str, v: str) -> Dict[str, Any]:
        return self.graph.get_edge_data(u, v)

    def get_node_pos(self, u: str) -> Tuple[float, float]:
        node = self.graph.nodes[u]
        return node.get("lat", 0.0), node.get("lng", 0.0)

    def has_node(self, u: str) -> bool:
        return self.graph.has_node(u)

    def shortest_path(self, source: str, target: str) -> Tuple[List[str], float]:
        """Dijkstra on edge cost. Raises RouteUnresolvable when target is unreachable."""
        try:
            cost, path = nx.single_source_dijkstra(self.graph, source, target, weight="cost")
        except (nx.NetworkXNoPath, nx.NodeNotFound) as e:
            raise RouteUnresolvable(f"No path from {source} to {target}") from e
        return path, cost

    def path_edges(self, path: List[str]) -> List[Dict[str, Any]]:
        return [self.graph.get_edge_data(u, v) for u, v in zip(path, path[1:])]
