import asyncio
import logging
import time
from typing import Optional, Set
from fleetsim.domain import config

logger = logging.getLogger(__name__)

class TickScheduler:
    """
    Fixed-interval loop around SimulationKernel.run_tick. Owns exactly one
    loop task; start() while it is alive is a no-op.
    """
    def __init__(self, kernel, interval: float = config.TICK_INTERVAL):
        self.kernel = kernel
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        # Stopped loops still finishing their last tick
        self._retiring: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        if self.running:
            logger.info("Simulation already running")
            return False
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event))
        self.kernel.state.running = True
        logger.info("Simulation started (tick %.0f ms)", self.interval * 1000)
        return True

    def stop(self) -> bool:
        if self._task is None:
            return False
        self._stop_event.set()
        self.kernel.invalidate()
        if not self._task.done():
            self._retiring.add(self._task)
            self._task.add_done_callback(self._retiring.discard)
        self._task = None
        self._stop_event = None
        self.kernel.state.running = False
        logger.info("Simulation stopped")
        return True

    async def shutdown(self):
        self.stop()
        for task in list(self._retiring):
            task.cancel()
        if self._retiring:
            await asyncio.gather(*self._retiring, return_exceptions=True)

    async def _run(self, stop_event: asyncio.Event):
        while not stop_event.is_set():
            start_time = time.monotonic()

            try:
                await self.kernel.run_tick()
            except Exception:
                logger.exception("Tick %d failed", self.kernel.state.tick_id)

            # Sleep to maintain tick rate
            elapsed = time.monotonic() - start_time
            sleep_time = max(0.0, self.interval - elapsed)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=sleep_time)
            except asyncio.TimeoutError:
                pass
