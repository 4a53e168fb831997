import asyncio
import logging
import random
from typing import List, Optional
from fleetsim.domain import config
from fleetsim.domain.errors import DataInconsistency, ProviderUnavailable, SimulationError
from fleetsim.domain.geo import distance_km
from fleetsim.domain.models import (
    AIDecision, DecisionContext, Incident, ShuttleLeg, VehicleState, VehicleStatus, Zone
)
from fleetsim.domain.state import RouteRuntimeState, SimulationState
from fleetsim.kernel.command_queue import CommandQueue
from fleetsim.kernel.external import call_external
from fleetsim.routing.acquisition import RouteAcquirer
from fleetsim.routing.optimization import summarize_remaining
from fleetsim.systems.fuel_system import FuelSystem
from fleetsim.systems.shuttle_system import ShuttleSystem
from fleetsim.systems.speed_system import SpeedProfile, SpeedSystem
from fleetsim.systems.vehicle_system import PartialWalk, StuckDetector, distance_budget, walk_route
from fleetsim.systems.zone_system import ZoneSystem

logger = logging.getLogger(__name__)

class SimulationKernel:
    """
    One tick: commands, environment, incidents, every in-transit vehicle,
    then zone congestion. Ticks are serialised by a lock. Results of external
    calls that return after the kernel was invalidated are dropped.
    """
    def __init__(self, vehicles, zones, routing, incident_feed, environment, decision_provider=None,
                 rng: Optional[random.Random] = None):
        self.vehicles = vehicles
        self.zones = zones
        self.incident_feed = incident_feed
        self.environment = environment
        self.decision_provider = decision_provider
        self.rng = rng or random.Random()

        self.state = SimulationState()
        self.command_queue = CommandQueue()
        self.acquirer = RouteAcquirer(routing)
        self.speed = SpeedSystem()
        self.stuck = StuckDetector()
        self.fuel = FuelSystem(self.state.low_fuel_vehicles)
        self.shuttle = ShuttleSystem()
        self.zone_system = ZoneSystem(self.rng)

        self.epoch = 0
        self.initialized = False
        self._tick_lock = asyncio.Lock()

    def initialize(self, seed: Optional[int] = None):
        self.state.tick_id = 0
        self.state.time = 0.0
        self.state.routes.clear()
        self.state.hotspots = list(self.incident_feed.hotspots)
        if seed is not None:
            self.rng.seed(seed)
        self.initialized = True
        logger.info("Kernel initialized (seed: %s)", seed)

    def queue_command(self, command):
        self.command_queue.add(command)

    def invalidate(self):
        """Drops whatever an in-flight tick is still waiting for."""
        self.epoch += 1

    def _is_current(self, epoch: int) -> bool:
        return epoch == self.epoch

    def depart(self, vehicle_id: str):
        leg = self.state.shuttle_legs.get(vehicle_id)
        if leg is not None:
            self.state.shuttle_legs[vehicle_id] = self.shuttle.departing(leg)

    async def run_tick(self):
        if not self.initialized:
            self.initialize()

        async with self._tick_lock:
            epoch = self.epoch

            # 1. Process Commands
            for cmd in self.command_queue.drain():
                try:
                    cmd.execute(self)
                except (SimulationError, KeyError) as e:
                    logger.warning("Command %s rejected: %s", type(cmd).__name__, e)

            # 2. Environment
            env = await self.environment.update()
            if not self._is_current(epoch):
                return
            self.state.environment = env.model_copy()

            # 3. Incidents
            spawn = self.environment.should_spawn_incident()
            if spawn is not None:
                incident_type, severity = spawn
                self.incident_feed.spawn(env.condition, env.rush_hour, incident_type=incident_type, severity=severity)
            await self._refresh_incidents(env)
            if not self._is_current(epoch):
                return

            # 4. Vehicles
            in_transit = self.vehicles.list_in_transit()
            active_ids = {v.id for v in in_transit}
            for vehicle_id in self.state.routes.vehicle_ids():
                if vehicle_id not in active_ids:
                    self.state.routes.release(vehicle_id)

            for vehicle in in_transit:
                try:
                    await self._update_vehicle(vehicle, epoch)
                except SimulationError as e:
                    logger.warning("Vehicle %s skipped this tick: %s", vehicle.id, e)
                except Exception:
                    logger.exception("Vehicle %s update failed", vehicle.id)
                if not self._is_current(epoch):
                    return

            # 5. Zones
            try:
                self.zone_system.update(self.zones, self.vehicles.list_in_transit(), env.sim_time.hour)
            except Exception:
                logger.exception("Zone congestion update failed")

            # 6. Time Advance
            self.state.time += config.TICK_INTERVAL
            self.state.tick_id += 1

    async def _refresh_incidents(self, env):
        try:
            self.state.incidents = await call_external(
                "incidents", self.incident_feed.current, env.condition, env.sim_time.hour, env.sim_time.weekday(),
                timeout=config.INCIDENT_TIMEOUT,
            )
        except ProviderUnavailable as e:
            # keep the last known incidents
            logger.warning("Incident feed unavailable: %s", e)

    async def _update_vehicle(self, vehicle: VehicleState, epoch: int):
        runtime = self.state.routes.get(vehicle.id)
        if runtime is None:
            runtime = await self._acquire_route(vehicle, epoch)
            if runtime is None:
                return

        incidents = self.state.incidents
        markers = self.state.density_markers
        profile = self.speed.profile(vehicle, incidents, markers, self.state.environment.speed_factor)

        # AI hook: consulted before moving, applied to this tick only
        decision = await self._maybe_consult_ai(vehicle, runtime, profile)
        if not self._is_current(epoch):
            return
        if decision is not None:
            profile = self.speed.profile(vehicle, incidents, markers, self.state.environment.speed_factor, decision)

        budget = distance_budget(profile.base_speed, profile.speed_factor, profile.density_factor)
        try:
            walk = walk_route(runtime, vehicle.location, vehicle.heading, budget)
        except PartialWalk as e:
            logger.warning("Vehicle %s: %s, resuming next tick", vehicle.id, e)
            walk = e.result

        actual_speed = profile.effective_speed
        self.vehicles.update_location(vehicle.id, walk.position.lat, walk.position.lng, actual_speed, walk.heading)

        # Stuck detection, skipped on the tick the route is completed
        start = runtime.last_position
        runtime.last_position = walk.position
        if not walk.arrived and self.stuck.update(runtime, start, walk.position, profile.red_zone):
            logger.info("Vehicle %s stuck for %.0fs at (%.4f, %.4f), forcing reroute",
                        vehicle.id, config.STUCK_SECONDS, walk.position.lat, walk.position.lng)
            self.state.routes.force_reroute(vehicle.id)
            return

        # Fuel
        fuel = self.fuel.update(vehicle.id, vehicle.name, vehicle.fuel, walk.distance_km, actual_speed)
        self.vehicles.update_fuel(vehicle.id, fuel)

        # Arrival
        if walk.arrived:
            self._arrive(vehicle, runtime, walk.position)

    async def _acquire_route(self, vehicle: VehicleState, epoch: int) -> Optional[RouteRuntimeState]:
        if vehicle.destination is None:
            raise DataInconsistency(f"Vehicle {vehicle.id} is in transit without a destination")

        result = await self.acquirer.acquire(
            vehicle, self.state.incidents, self.state.hotspots,
            approved=vehicle.id in self.state.approved_alternatives,
            declined=vehicle.id in self.state.declined_alternatives,
        )
        if not self._is_current(epoch):
            return None

        if result.needs_approval:
            self.vehicles.update_route_snapshots(vehicle.id, vehicle.route_snapshot, result.pending_alternative)
            self.vehicles.update_status(vehicle.id, VehicleStatus.NEEDS_APPROVAL)
            self.state.routes.request_approval(vehicle.id)
            return None

        self.state.approved_alternatives.discard(vehicle.id)
        self.state.declined_alternatives.discard(vehicle.id)
        self.vehicles.update_route_snapshots(vehicle.id, result.route, None)
        leg = self.state.shuttle_legs.get(vehicle.id)
        if leg is None or leg in (ShuttleLeg.AT_A, ShuttleLeg.AT_B):
            self.state.shuttle_legs[vehicle.id] = self.shuttle.departing(leg or ShuttleLeg.AT_A)
        return self.state.routes.activate(vehicle.id, result.route.waypoints, vehicle.location, vehicle.destination)

    async def _maybe_consult_ai(self, vehicle: VehicleState, runtime: RouteRuntimeState,
                                profile: SpeedProfile) -> Optional[AIDecision]:
        if self.decision_provider is None:
            return None
        consult = self.rng.random() < config.AI_BASE_PROBABILITY
        if not consult and profile.base_factor < config.AI_CONGESTED_SPEED_FACTOR:
            consult = self.rng.random() < config.AI_CONGESTED_PROBABILITY
        if not consult:
            return None

        context = self._decision_context(vehicle, runtime)
        try:
            return await call_external("decision", self.decision_provider.decide, context, timeout=config.AI_TIMEOUT)
        except ProviderUnavailable as e:
            logger.debug("Vehicle %s: no decision this tick (%s)", vehicle.id, e)
            return None

    def _decision_context(self, vehicle: VehicleState, runtime: RouteRuntimeState) -> DecisionContext:
        env = self.state.environment
        nearby_incidents: List[Incident] = [
            i for i in self.state.incidents if distance_km(vehicle.location, i.location) <= config.AI_CONTEXT_RADIUS_KM
        ]
        nearby_zones: List[Zone] = [
            z for z in self.zones.list()
            if z.center is not None and distance_km(vehicle.location, z.center) <= config.AI_CONTEXT_RADIUS_KM
        ]
        summary = summarize_remaining(
            runtime.remaining_points(), nearby_zones, nearby_incidents,
            vehicle.vehicle_class.value, env.weather_speed_factor,
        )
        return DecisionContext(
            vehicle=vehicle,
            environment=env,
            nearby_incidents=nearby_incidents,
            nearby_zones=nearby_zones,
            optimized_route=summary,
        )

    def _arrive(self, vehicle: VehicleState, runtime: RouteRuntimeState, position):
        outcome = self.shuttle.on_arrival(position, runtime.original_start, runtime.original_destination)
        self.vehicles.update_fuel(vehicle.id, self.fuel.refill(vehicle.id))
        self.vehicles.update_status(vehicle.id, VehicleStatus.IDLE)
        self.vehicles.update_destination(vehicle.id, outcome.next_destination.lat, outcome.next_destination.lng)
        self.vehicles.update_route_snapshots(vehicle.id, None, None)
        self.state.shuttle_legs[vehicle.id] = outcome.leg
        self.state.routes.arrive(vehicle.id)
        logger.info("Vehicle %s arrived (%s), next destination (%.4f, %.4f)",
                    vehicle.id, outcome.leg.value, outcome.next_destination.lat, outcome.next_destination.lng)
