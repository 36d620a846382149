"""
Latency/Reliability Sampler - sequential calls through one adapter
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

from loguru import logger

from ..data.models import LatencyStats, ReliabilityResult
from ..data.sources.base import ProviderTimeoutError
from .stats import calculate_latency_stats, percent

T = TypeVar("T")

MAX_ERRORS = 5
MAX_ERROR_LENGTH = 200


def elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


def describe_error(exc: BaseException) -> str:
    message = str(exc) or exc.__class__.__name__
    if isinstance(exc, (ProviderTimeoutError, asyncio.TimeoutError)) and not message.startswith("timeout"):
        message = f"timeout: {message}"
    if len(message) > MAX_ERROR_LENGTH:
        message = message[:MAX_ERROR_LENGTH - 3] + "..."
    return message


def reliability(successes: int, failures: int, errors: List[str]) -> ReliabilityResult:
    total = successes + failures
    return ReliabilityResult(
        success_rate=percent(successes, total),
        total_requests=total,
        successful_requests=successes,
        failed_requests=failures,
        errors=errors[:MAX_ERRORS],
    )


@dataclass
class SampleOutcome(Generic[T]):
    latency: LatencyStats
    reliability: ReliabilityResult
    last_payload: Optional[T] = None
    samples: List[int] = field(default_factory=list)


async def sample_latency(fetch: Callable[[], Awaitable[T]], iterations: int, label: str = "") -> SampleOutcome[T]:
    """
    Call ``fetch`` ``iterations`` times, one after another.

    Every call is timed whether it succeeds or not. Iteration i+1 starts only
    after iteration i has been recorded, so samples never overlap.
    """
    samples: List[int] = []
    errors: List[str] = []
    successes = failures = 0
    last_payload: Optional[T] = None

    for i in range(max(iterations, 0)):
        start = time.perf_counter()
        try:
            payload = await fetch()
        except Exception as e:
            samples.append(elapsed_ms(start))
            failures += 1
            if len(errors) < MAX_ERRORS:
                errors.append(describe_error(e))
            logger.debug(f"{label} iteration {i + 1}/{iterations} failed: {e}")
        else:
            samples.append(elapsed_ms(start))
            successes += 1
            last_payload = payload

    return SampleOutcome(
        latency=calculate_latency_stats(samples),
        reliability=reliability(successes, failures, errors),
        last_payload=last_payload,
        samples=samples,
    )
