import logging
import os
import random
from typing import Optional
from fleetsim.controllers.implementations import HeuristicDecisionProvider, OpenRouterDecisionProvider
from fleetsim.domain import config
from fleetsim.domain.models import SimulationSnapshot
from fleetsim.infrastructure.stores import (
    InMemoryVehicleStore, InMemoryZoneStore, seed_vehicles, seed_zones
)
from fleetsim.kernel.scheduler import TickScheduler
from fleetsim.kernel.simulation_kernel import SimulationKernel
from fleetsim.kernel.snapshot_builder import SnapshotBuilder
from fleetsim.routing.osrm_client import OSRMClient
from fleetsim.simulation.environment import EnvironmentEngine
from fleetsim.simulation.incidents import IncidentFeed
from fleetsim.simulation.weather import OpenWeatherMapProvider

logger = logging.getLogger(__name__)

class ApplicationContext:
    """Owns the kernel and its single scheduler handle for one process."""

    def __init__(self, kernel: SimulationKernel, interval: float = config.TICK_INTERVAL):
        self.kernel = kernel
        self.scheduler = TickScheduler(kernel, interval)
        self.snapshots = SnapshotBuilder()

    @classmethod
    def from_env(cls, seed: Optional[int] = None) -> "ApplicationContext":
        """
        Wires live providers from environment variables:
        FLEETSIM_OSRM_URL, OPENWEATHER_API_KEY, OPENROUTER_API_KEY.
        Without a weather key the weather is simulated; without an
        OpenRouter key decisions come from the heuristic provider.
        """
        rng = random.Random(seed)
        weather_key = os.environ.get("OPENWEATHER_API_KEY")
        weather = OpenWeatherMapProvider(weather_key) if weather_key else None

        ai_key = os.environ.get("OPENROUTER_API_KEY")
        if ai_key:
            decisions = OpenRouterDecisionProvider(ai_key, model=os.environ.get("FLEETSIM_AI_MODEL", config.OPENROUTER_MODEL))
        else:
            decisions = HeuristicDecisionProvider()

        kernel = SimulationKernel(
            vehicles=InMemoryVehicleStore(seed_vehicles()),
            zones=InMemoryZoneStore(seed_zones()),
            routing=OSRMClient(os.environ.get("FLEETSIM_OSRM_URL", config.OSRM_BASE_URL)),
            incident_feed=IncidentFeed(rng=random.Random(rng.random())),
            environment=EnvironmentEngine(weather, rng=random.Random(rng.random())),
            decision_provider=decisions,
            rng=rng,
        )
        kernel.initialize(seed)
        logger.info("Context ready (live weather: %s, AI: %s)", weather is not None, type(decisions).__name__)
        return cls(kernel)

    def start(self) -> bool:
        return self.scheduler.start()

    def stop(self) -> bool:
        return self.scheduler.stop()

    async def shutdown(self):
        await self.scheduler.shutdown()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def status(self) -> dict:
        return {
            "running": self.running,
            "tick": self.kernel.state.tick_id,
            "activeRoutes": len(self.kernel.state.routes),
            "pendingCommands": len(self.kernel.command_queue),
        }

    def snapshot(self) -> SimulationSnapshot:
        return self.snapshots.build(self.kernel)
