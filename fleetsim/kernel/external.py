import asyncio
import logging
from typing import Any, Callable
from fleetsim.domain.errors import ProviderUnavailable, SimulationError

logger = logging.getLogger(__name__)

async def call_external(label: str, fn: Callable[..., Any], *args: Any, timeout: float) -> Any:
    """
    Runs a blocking provider call in a worker thread, bounded by a timeout.
    Timeouts and unexpected provider exceptions surface as ProviderUnavailable.
    The worker thread is not cancelled on timeout; its result is dropped.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ProviderUnavailable(f"{label} timed out after {timeout}s") from e
    except SimulationError:
        raise
    except Exception as e:
        logger.exception("%s failed", label)
        raise ProviderUnavailable(f"{label} failed: {e}") from e
