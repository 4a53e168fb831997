from fleetsim.domain.models import SimulationSnapshot, VehicleSnapshot

class SnapshotBuilder:
    def build(self, kernel) -> SimulationSnapshot:
        state = kernel.state
        vehicles = []
        for v in kernel.vehicles.list_all():
            runtime = state.routes.get(v.id)
            vehicles.append(VehicleSnapshot(
                id=v.id,
                name=v.name,
                status=v.status,
                location=v.location,
                destination=v.destination,
                fuel=v.fuel,
                speed=v.speed,
                heading=v.heading,
                phase=state.routes.phase(v.id).value,
                cursor=runtime.cursor if runtime else 0,
                stuck_counter=runtime.stuck_counter if runtime else 0,
                low_fuel=v.id in state.low_fuel_vehicles,
            ))
        return SimulationSnapshot(
            tick=state.tick_id,
            running=state.running,
            environment=state.environment,
            vehicles=vehicles,
            zones=kernel.zones.list(),
            incidents=list(state.incidents),
        )
