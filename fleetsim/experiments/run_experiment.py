import asyncio
import json
import logging
import sys
import time
from statistics import mean
from typing import Any, Dict, List
from fleetsim.application.context import ApplicationContext
from fleetsim.domain.models import VehicleStatus

logger = logging.getLogger(__name__)

async def run_headless_experiment(kernel, ticks: int) -> List[Dict[str, Any]]:
    """Runs ticks back to back, no scheduler, and summarizes each one."""
    results = []
    for _ in range(ticks):
        await kernel.run_tick()
        vehicles = kernel.vehicles.list_all()
        env = kernel.state.environment
        results.append({
            "tick": kernel.state.tick_id,
            "in_transit": sum(1 for v in vehicles if v.status == VehicleStatus.IN_TRANSIT),
            "needs_approval": sum(1 for v in vehicles if v.status == VehicleStatus.NEEDS_APPROVAL),
            "active_routes": len(kernel.state.routes),
            "incidents": len(kernel.state.incidents),
            "weather": env.condition.value,
            "global_congestion": round(env.global_congestion, 1),
            "mean_fuel": round(mean(v.fuel for v in vehicles), 2) if vehicles else None,
        })
    return results

def main(argv: List[str]) -> int:
    if len(argv) < 2:
        print("Usage: python -m fleetsim.experiments.run_experiment <output.json> [ticks] [seed]")
        return 1
    output_path = argv[1]
    ticks = int(argv[2]) if len(argv) > 2 else 100
    seed = int(argv[3]) if len(argv) > 3 else 42

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    context = ApplicationContext.from_env(seed=seed)

    start_time = time.time()
    results = asyncio.run(run_headless_experiment(context.kernel, ticks))
    logger.info("Experiment finished in %.4fs", time.time() - start_time)

    with open(output_path, 'w') as f:
        json.dump(results, f, indent=2)
    return 0

if __name__ == "__main__":
    sys.exit(main(sys.argv))
