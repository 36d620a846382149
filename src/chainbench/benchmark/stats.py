"""
Numeric reductions shared by the benchmark components.

Rounding is half-up (``floor(x + 0.5)``), not Python's banker's rounding,
so 62.5% reports as 63.
"""
import math
from typing import Iterable, List, Optional, Sequence

from ..data.models import LatencyStats

P95 = 0.95


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round2(value: float) -> float:
    return round_half_up(value, 2)


def percent(part: int, whole: int) -> int:
    """Integer percentage; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return int(round_half_up(part / whole * 100))


def mean(values: Sequence[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def median(values: Iterable[float]) -> Optional[float]:
    ordered = sorted(values)
    if not ordered:
        return None
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def calculate_latency_stats(samples: List[int]) -> LatencyStats:
    """
    Latency summary over elapsed-time samples in milliseconds.

    p95 is the observed sample at ``floor(0.95 * n)``, clamped to the last
    index, never an interpolated value. An empty sample set yields zeros
    with ``empty`` set.
    """
    if not samples:
        return LatencyStats(avg=0, min=0, max=0, p95=0, samples=[], empty=True)
    ordered = sorted(samples)
    p95_index = min(math.floor(len(ordered) * P95), len(ordered) - 1)
    return LatencyStats(
        avg=int(round_half_up(sum(ordered) / len(ordered))),
        min=ordered[0],
        max=ordered[-1],
        p95=ordered[p95_index],
        samples=list(samples),
    )
