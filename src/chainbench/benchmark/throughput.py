"""
Throughput Prober - one concurrent burst through one adapter
"""
import asyncio
import time
from typing import Any, Awaitable, Callable

from loguru import logger

from ..data.models import ThroughputResult
from .stats import round2


async def _attempt(fetch: Callable[[], Awaitable[Any]]) -> bool:
    try:
        await fetch()
        return True
    except Exception as e:
        logger.debug(f"burst call failed: {e}")
        return False


async def probe_throughput(fetch: Callable[[], Awaitable[Any]], concurrency: int) -> ThroughputResult:
    """Fire ``concurrency`` calls together and count how many succeed."""
    concurrency = max(concurrency, 0)
    start = time.perf_counter()
    outcomes = await asyncio.gather(*(_attempt(fetch) for _ in range(concurrency)))
    elapsed = (time.perf_counter() - start) * 1000

    completed = sum(1 for ok in outcomes if ok)
    rps = round2(completed / (elapsed / 1000)) if concurrency and elapsed > 0 else 0.0
    return ThroughputResult(
        requests_per_second=rps,
        concurrent_requests=concurrency,
        completed_in_window=completed,
        window_ms=int(round(elapsed)) if concurrency else 0,
    )
