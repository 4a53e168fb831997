import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from fleetsim.application.commands import (
    ApproveAlternativeCommand, DeployVehicleCommand, RefuelVehicleCommand, RejectAlternativeCommand,
    SetDensityMarkersCommand, SetRushHourCommand, SetTimeMultiplierCommand, SetWeatherCommand,
    SetWeatherModeCommand, StopVehicleCommand
)
from fleetsim.application.context import ApplicationContext
from fleetsim.domain import config
from fleetsim.domain.errors import SimulationError
from fleetsim.domain.models import (
    Coordinate, DensityMarkerUpdate, DeployRequest, Incident, OptimizedRoute,
    RefuelRequest, SimulationSnapshot, TimeMultiplierUpdate, VehicleClass, VehicleState, WeatherOverride
)
from fleetsim.kernel.external import call_external
from fleetsim.routing.optimization import find_optimal_route
from fleetsim.simulation.incidents import TrafficSummary

logger = logging.getLogger(__name__)

class RouteRequest(BaseModel):
    start: Coordinate
    end: Coordinate
    vehicle_class: VehicleClass = VehicleClass.VAN

class WeatherModeUpdate(BaseModel):
    real: bool

class RushHourUpdate(BaseModel):
    enabled: Optional[bool] = None

def create_app(context: Optional[ApplicationContext] = None, autostart: bool = True) -> FastAPI:
    logging.basicConfig(
        level=os.environ.get("FLEETSIM_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx = context or ApplicationContext.from_env()
    kernel = ctx.kernel

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: Start the simulation loop
        if autostart:
            ctx.start()
        yield
        # Shutdown
        await ctx.shutdown()

    app = FastAPI(title="Fleet Simulation", lifespan=lifespan)
    app.state.context = ctx

    # Enable CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def require_vehicle(vehicle_id: str) -> VehicleState:
        vehicle = kernel.vehicles.get(vehicle_id)
        if vehicle is None:
            raise HTTPException(status_code=404, detail="Vehicle not found")
        return vehicle

    @app.get("/")
    def read_root():
        return {"status": "Fleet Simulation Engine Running"}

    @app.post("/api/simulation/start")
    async def start_simulation():
        """Starts the tick loop; a second start while running does nothing"""
        started = ctx.start()
        return {"started": started, **ctx.status()}

    @app.post("/api/simulation/stop")
    async def stop_simulation():
        stopped = ctx.stop()
        return {"stopped": stopped, **ctx.status()}

    @app.get("/api/simulation/status")
    async def get_simulation_status():
        return ctx.status()

    @app.get("/api/simulation/state", response_model=SimulationSnapshot)
    async def get_simulation_state():
        """Returns vehicles, zones, incidents and environment as of the last tick"""
        return ctx.snapshot()

    @app.get("/api/vehicles", response_model=List[VehicleState])
    async def list_vehicles():
        return kernel.vehicles.list_all()

    @app.get("/api/vehicles/{vehicle_id}", response_model=VehicleState)
    async def get_vehicle(vehicle_id: str):
        return require_vehicle(vehicle_id)

    # Vehicle actions are queued and applied at the start of the next tick

    @app.post("/api/vehicles/{vehicle_id}/deploy")
    async def deploy_vehicle(vehicle_id: str, request: DeployRequest):
        require_vehicle(vehicle_id)
        kernel.queue_command(DeployVehicleCommand(vehicle_id, request.destination))
        return {"status": "queued", "vehicleId": vehicle_id}

    @app.post("/api/vehicles/{vehicle_id}/stop")
    async def stop_vehicle(vehicle_id: str):
        require_vehicle(vehicle_id)
        kernel.queue_command(StopVehicleCommand(vehicle_id))
        return {"status": "queued", "vehicleId": vehicle_id}

    @app.post("/api/vehicles/{vehicle_id}/refuel")
    async def refuel_vehicle(vehicle_id: str, request: RefuelRequest):
        require_vehicle(vehicle_id)
        kernel.queue_command(RefuelVehicleCommand(vehicle_id, request.station))
        return {"status": "queued", "vehicleId": vehicle_id}

    @app.post("/api/vehicles/{vehicle_id}/approve")
    async def approve_alternative(vehicle_id: str):
        """Accepts the pending alternative route"""
        vehicle = require_vehicle(vehicle_id)
        if vehicle.alternative_snapshot is None:
            raise HTTPException(status_code=409, detail="No pending alternative")
        kernel.queue_command(ApproveAlternativeCommand(vehicle_id))
        return {"status": "queued", "vehicleId": vehicle_id}

    @app.post("/api/vehicles/{vehicle_id}/reject")
    async def reject_alternative(vehicle_id: str):
        """Keeps the default route"""
        require_vehicle(vehicle_id)
        kernel.queue_command(RejectAlternativeCommand(vehicle_id))
        return {"status": "queued", "vehicleId": vehicle_id}

    @app.get("/api/environment")
    async def get_environment():
        env = kernel.environment
        return {
            "state": env.snapshot(),
            "weatherMode": "real" if env.use_real_weather else "simulated",
            "weatherDescription": env.weather_description(),
            "timeDescription": env.time_description(),
            "speedFactor": env.speed_factor(),
        }

    @app.post("/api/environment/weather")
    async def set_weather(update: WeatherOverride):
        kernel.queue_command(SetWeatherCommand(update.condition))
        return {"status": "queued", "condition": update.condition}

    @app.post("/api/environment/weather-mode")
    async def set_weather_mode(update: WeatherModeUpdate):
        if update.real and kernel.environment.weather_provider is None:
            raise HTTPException(status_code=409, detail="No weather provider configured")
        kernel.queue_command(SetWeatherModeCommand(update.real))
        return {"status": "queued", "real": update.real}

    @app.post("/api/environment/time-multiplier")
    async def set_time_multiplier(update: TimeMultiplierUpdate):
        kernel.queue_command(SetTimeMultiplierCommand(update.multiplier))
        return {"status": "queued", "multiplier": update.multiplier}

    @app.post("/api/environment/rush-hour")
    async def set_rush_hour(update: RushHourUpdate):
        kernel.queue_command(SetRushHourCommand(update.enabled))
        return {"status": "queued", "enabled": update.enabled}

    @app.post("/api/traffic/density")
    async def set_density_markers(update: DensityMarkerUpdate):
        kernel.queue_command(SetDensityMarkersCommand(update.markers))
        return {"status": "queued", "markers": len(update.markers)}

    @app.get("/api/traffic/incidents", response_model=List[Incident])
    async def get_incidents():
        return kernel.state.incidents

    @app.get("/api/traffic/summary", response_model=TrafficSummary)
    async def get_traffic_summary():
        return kernel.incident_feed.summary()

    @app.post("/api/routing/optimize", response_model=OptimizedRoute)
    async def optimize_route(request: RouteRequest):
        """Shortest path over the provider's candidate routes under current conditions"""
        try:
            routes = await call_external(
                "alternatives", kernel.acquirer.routing.alternatives, request.start, request.end,
                timeout=config.ALTERNATIVES_TIMEOUT,
            )
            return find_optimal_route(
                routes, kernel.zones.list(), kernel.state.incidents,
                request.vehicle_class.value, kernel.state.environment.weather_speed_factor,
            )
        except SimulationError as e:
            logger.warning("Route optimization failed: %s", e)
            raise HTTPException(status_code=503, detail=str(e))

    return app

app = create_app()
