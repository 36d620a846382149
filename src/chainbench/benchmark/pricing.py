"""
Consensus Pricing Aggregator

Every provider quotes the whole token set in one batch call. Once all batch
calls have settled, each token gets a median consensus price and every
provider is scored on coverage and on its deviation from that consensus.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from ..data.models import (
    CategoryBreakdown,
    PricingBenchmarkResult,
    PricingToken,
    TokenCategory,
    TokenPriceResult,
)
from ..data.sources.base import ProviderAdapter
from .sampler import describe_error
from .stats import mean, median, percent, round2

PriceMap = Mapping[str, Optional[float]]


def compute_consensus_price(prices: Sequence[Optional[float]]) -> Optional[float]:
    """Median of the positive quotes; zero quotes count as missing."""
    return median(p for p in prices if p is not None and p > 0)


def compute_deviation(price: Optional[float], consensus: Optional[float]) -> Optional[float]:
    if price is None or consensus is None or consensus == 0:
        return None
    return abs((price - consensus) / consensus) * 100


@dataclass
class PriceCollection:
    prices: Dict[str, Dict[str, Optional[float]]] = field(default_factory=dict)
    latencies: Dict[str, int] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    timed_out: List[str] = field(default_factory=list)


@dataclass
class PricingOutcome:
    token_results: List[TokenPriceResult]
    provider_results: List[PricingBenchmarkResult]
    collection: PriceCollection


async def collect_prices(providers: Sequence[Tuple[ProviderAdapter, str]], tokens: Sequence[PricingToken],
                         chain: str, deadline: Optional[float] = None) -> PriceCollection:
    """Fetch every provider's batch concurrently and wait for all of them."""
    collection = PriceCollection()
    token_list = list(tokens)

    async def fetch(adapter: ProviderAdapter, api_key: str):
        start = time.perf_counter()
        try:
            call = adapter.fetch_prices(token_list, chain, api_key)
            quotes = await (asyncio.wait_for(call, deadline) if deadline else call)
        except asyncio.TimeoutError:
            logger.warning(f"{adapter.name} pricing batch missed the {deadline:g}s deadline")
            collection.timed_out.append(adapter.name)
            quotes = {}
        except Exception as e:
            logger.warning(f"{adapter.name} pricing batch failed: {e}")
            collection.errors[adapter.name] = describe_error(e)
            quotes = {}
        collection.latencies[adapter.name] = int(round((time.perf_counter() - start) * 1000))
        collection.prices[adapter.name] = {t.address: quotes.get(t.address) for t in token_list}

    await asyncio.gather(*(fetch(adapter, key) for adapter, key in providers))
    return collection


def _token_results(tokens: Sequence[PricingToken], names: Sequence[str],
                   prices: Mapping[str, PriceMap]) -> List[TokenPriceResult]:
    results = []
    for token in tokens:
        quoted = {name: (prices.get(name) or {}).get(token.address) for name in names}
        consensus = compute_consensus_price(list(quoted.values()))
        results.append(TokenPriceResult(
            token=token,
            prices=quoted,
            consensus_price=consensus,
            deviations={name: compute_deviation(quoted[name], consensus) for name in names},
        ))
    return results


def _provider_result(adapter: ProviderAdapter, token_results: Sequence[TokenPriceResult],
                     latency_ms: int) -> PricingBenchmarkResult:
    name = adapter.name
    covered = [tr for tr in token_results if tr.prices.get(name) is not None]
    devs = [tr.deviations[name] for tr in covered if tr.deviations.get(name) is not None]
    avg = mean(devs)

    breakdown: Dict[str, CategoryBreakdown] = {}
    for category in TokenCategory:
        in_category = [tr for tr in token_results if tr.token.category == category]
        cat_devs = [tr.deviations[name] for tr in in_category if tr.deviations.get(name) is not None]
        cat_avg = mean(cat_devs)
        breakdown[category.value] = CategoryBreakdown(
            covered=sum(1 for tr in in_category if tr.prices.get(name) is not None),
            total=len(in_category),
            avg_deviation=round2(cat_avg) if cat_avg is not None else None,
        )

    return PricingBenchmarkResult(
        provider=name,
        display_name=adapter.display_name,
        color=adapter.color,
        tokens_covered=len(covered),
        total_tokens=len(token_results),
        coverage_percent=percent(len(covered), len(token_results)),
        avg_deviation=round2(avg) if avg is not None else None,
        max_deviation=round2(max(devs)) if devs else None,
        latency_ms=latency_ms,
        category_breakdown=breakdown,
    )


def aggregate_prices(tokens: Sequence[PricingToken], adapters: Sequence[ProviderAdapter],
                     collection: PriceCollection) -> Tuple[List[TokenPriceResult], List[PricingBenchmarkResult]]:
    names = [a.name for a in adapters]
    token_results = _token_results(tokens, names, collection.prices)
    provider_results = [
        _provider_result(a, token_results, collection.latencies.get(a.name, 0)) for a in adapters
    ]
    return token_results, provider_results


async def run_pricing_benchmark(tokens: Sequence[PricingToken], chain: str,
                                providers: Sequence[Tuple[ProviderAdapter, str]],
                                deadline: Optional[float] = None) -> PricingOutcome:
    collection = await collect_prices(providers, tokens, chain, deadline)
    token_results, provider_results = aggregate_prices(tokens, [a for a, _ in providers], collection)
    return PricingOutcome(token_results, provider_results, collection)
