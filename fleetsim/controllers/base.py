import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional
from fleetsim.domain import config
from fleetsim.domain.models import AIDecision, DecisionContext

class DecisionProvider(ABC):
    """
    Produces driving decisions for a vehicle. Decisions for the same vehicle
    are rate limited; inside the cooldown window decide() returns None.
    """
    def __init__(self, cooldown: float = config.AI_COOLDOWN_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.cooldown = cooldown
        self.clock = clock
        self._last_decision: Dict[str, float] = {}

    def decide(self, context: DecisionContext) -> Optional[AIDecision]:
        vehicle_id = context.vehicle.id
        now = self.clock()
        last = self._last_decision.get(vehicle_id)
        if last is not None and now - last < self.cooldown:
            return None
        decision = self.make_decision(context)
        self._last_decision[vehicle_id] = now
        return decision

    @abstractmethod
    def make_decision(self, context: DecisionContext) -> AIDecision:
        pass
