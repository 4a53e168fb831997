from dataclasses import dataclass
from fleetsim.domain import config
from fleetsim.domain.geo import distance_km
from fleetsim.domain.models import Coordinate, ShuttleLeg

@dataclass
class ArrivalOutcome:
    leg: ShuttleLeg
    next_destination: Coordinate

class ShuttleSystem:
    """
    Round trip between a route's original start (A) and destination (B).
    Arrival parks the vehicle at one end and points it at the other.
    """
    def __init__(self, tolerance_km: float = config.SHUTTLE_TOLERANCE_KM):
        self.tolerance_km = tolerance_km

    def on_arrival(self, position: Coordinate, original_start: Coordinate,
                   original_destination: Coordinate) -> ArrivalOutcome:
        if distance_km(position, original_destination) <= self.tolerance_km:
            return ArrivalOutcome(ShuttleLeg.AT_B, original_start)
        if distance_km(position, original_start) <= self.tolerance_km:
            return ArrivalOutcome(ShuttleLeg.AT_A, original_destination)
        # Unknown position: head back to where the route began
        return ArrivalOutcome(ShuttleLeg.AT_A, original_start)

    @staticmethod
    def departing(leg: ShuttleLeg) -> ShuttleLeg:
        if leg == ShuttleLeg.AT_B:
            return ShuttleLeg.EN_ROUTE_B_TO_A
        return ShuttleLeg.EN_ROUTE_A_TO_B
