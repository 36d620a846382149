"""
Benchmark Orchestrator - composes sampling, throughput, completeness and
consensus pricing into immutable run records
"""
import asyncio
import time
from datetime import datetime, timezone
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from loguru import logger

from ..data.chains import is_supported
from ..data.config import ConfigManager
from ..data.keys import EnvKeyResolver
from ..data.models import (
    BenchmarkRun,
    CompletenessResult,
    COMPLETENESS_FIELDS,
    LatencyStats,
    NftBenchmarkResult,
    NftRun,
    PricingRun,
    PricingToken,
    ProviderBenchmarkResult,
    RunStatus,
    ThroughputResult,
    TriggerType,
)
from ..data.registry import DataRegistry, ProviderName
from ..data.sources.base import ConfigurationError, InvalidRequestError, ProviderAdapter
from ..data.tokens import get_pricing_tokens
from ..storage.store import RunStore
from .completeness import score_completeness
from .pricing import run_pricing_benchmark
from .sampler import describe_error, elapsed_ms, reliability, sample_latency
from .throughput import probe_throughput

RAW_SAMPLE_SIZE = 5


@dataclass(frozen=True)
class ProviderSelection:
    name: ProviderName
    api_key: Optional[str] = None


SelectionLike = Union[ProviderSelection, ProviderName, str, Tuple[str, Optional[str]], Dict[str, Any]]


def to_selection(item: SelectionLike) -> ProviderSelection:
    if isinstance(item, ProviderSelection):
        return item
    if isinstance(item, dict):
        return ProviderSelection(ProviderName(item["name"]), item.get("api_key"))
    if isinstance(item, tuple):
        return ProviderSelection(ProviderName(item[0]), item[1])
    return ProviderSelection(ProviderName(item))


class RunTracker:
    """Per-invocation state machine: PENDING -> FETCHING -> AGGREGATING -> COMPLETED."""

    TRANSITIONS = {
        RunStatus.PENDING: {RunStatus.FETCHING, RunStatus.ERROR},
        RunStatus.FETCHING: {RunStatus.AGGREGATING, RunStatus.ERROR},
        RunStatus.AGGREGATING: {RunStatus.COMPLETED, RunStatus.ERROR},
        RunStatus.COMPLETED: set(),
        RunStatus.ERROR: set(),
    }

    def __init__(self, scenario: str):
        self.scenario = scenario
        self.status = RunStatus.PENDING
        self.started = time.perf_counter()

    def advance(self, status: RunStatus):
        if status not in self.TRANSITIONS[self.status]:
            raise RuntimeError(f"Illegal run transition {self.status.value} -> {status.value}")
        logger.debug(f"[{self.scenario}] {self.status.value} -> {status.value}")
        self.status = status

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self.started


@dataclass
class ResolvedProvider:
    name: ProviderName
    adapter: ProviderAdapter
    api_key: str


class BenchmarkOrchestrator:
    """
    Entry point for the three benchmark scenarios.

    Collaborators are injected: the key resolver supplies credentials, the
    registry supplies adapters, and the optional store receives every
    finished run on a best-effort basis.
    """

    def __init__(self, key_resolver: Optional[EnvKeyResolver] = None, store: Optional[RunStore] = None,
                 registry: Optional[DataRegistry] = None, config: Optional[ConfigManager] = None,
                 run_deadline: Optional[float] = None):
        self.config = config or ConfigManager()
        self.key_resolver = key_resolver or EnvKeyResolver()
        self.registry = registry or DataRegistry(timeout=self.config.request_timeout)
        self.store = store
        self.run_deadline = run_deadline if run_deadline is not None else self.config.run_deadline

    # Setup

    def _validate(self, chain: str, providers: Sequence[SelectionLike], wallet: Optional[str] = None,
                  wallet_required: bool = False) -> List[ProviderSelection]:
        if wallet_required and not (wallet or "").strip():
            raise InvalidRequestError("wallet address is required")
        if not providers:
            raise InvalidRequestError("at least one provider is required")
        if not is_supported(chain):
            raise InvalidRequestError(f"unsupported chain: {chain}")
        try:
            selections = [to_selection(p) for p in providers]
        except (ValueError, KeyError, IndexError) as e:
            raise InvalidRequestError(f"unknown provider: {e}") from e

        unique: Dict[ProviderName, ProviderSelection] = {}
        for s in selections:
            unique.setdefault(s.name, s)
        return list(unique.values())

    def _resolve(self, selections: Iterable[ProviderSelection],
                 needs_nfts: bool = False) -> Tuple[List[ResolvedProvider], List[str]]:
        resolved, skipped = [], []
        for s in selections:
            try:
                if s.name not in self.registry:
                    raise ConfigurationError("no adapter registered")
                adapter = self.registry.get(s.name)
                if needs_nfts and not adapter.supports_nfts:
                    raise ConfigurationError("NFT endpoint not supported")
                key = self.key_resolver.resolve(s.name, s.api_key)
                if not key:
                    raise ConfigurationError("no API key configured")
            except ConfigurationError as e:
                logger.warning(f"Skipping {s.name.value}: {e}")
                skipped.append(s.name.value)
                continue
            resolved.append(ResolvedProvider(s.name, adapter, key))
        return resolved, skipped

    async def _until_deadline(self, tasks: Dict[ProviderName, "asyncio.Task"],
                              deadline: Optional[float] = None) -> Tuple[Dict[ProviderName, Any], List[str]]:
        """Wait for provider tasks; keep what finished when the deadline hits."""
        if not tasks:
            return {}, []
        deadline = self.run_deadline if deadline is None else deadline
        done, pending = await asyncio.wait(tasks.values(), timeout=deadline)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        finished, incomplete = {}, []
        for name, task in tasks.items():
            if task in done and not task.cancelled() and task.exception() is None:
                finished[name] = task.result()
            else:
                if task in done and not task.cancelled():
                    logger.error(f"{name.value} task crashed: {task.exception()}")
                incomplete.append(name.value)
        if incomplete:
            logger.warning(f"Run deadline of {deadline:g}s reached; incomplete: {', '.join(incomplete)}")
        return finished, incomplete

    async def _persist(self, run, trigger: TriggerType):
        if self.store is None:
            return
        try:
            await asyncio.to_thread(self.store.save, run, trigger)
        except Exception as e:
            logger.error(f"Failed to persist {run.kind} run {run.id}: {e}")

    # Balances

    async def benchmark_provider(self, adapter: ProviderAdapter, wallet: str, chain: str, api_key: str,
                                 iterations: int, concurrency: int) -> ProviderBenchmarkResult:
        fetch = partial(adapter.fetch_balances, wallet, chain, api_key)
        try:
            sample = await sample_latency(fetch, iterations, label=adapter.name)
            throughput = await probe_throughput(fetch, concurrency)
            records = sample.last_payload or []
            completeness = score_completeness(records)
        except Exception as e:
            logger.exception(f"{adapter.name} benchmark aborted")
            return self._failed_result(adapter, iterations, concurrency, e)

        logger.info(
            f"{adapter.name}: avg {sample.latency.avg}ms p95 {sample.latency.p95}ms, "
            f"{sample.reliability.success_rate}% ok, {throughput.requests_per_second} rps, "
            f"completeness {completeness.score}"
        )
        return ProviderBenchmarkResult(
            provider=adapter.name,
            display_name=adapter.display_name,
            color=adapter.color,
            latency=sample.latency,
            completeness=completeness,
            reliability=sample.reliability,
            throughput=throughput,
            raw_data_sample=list(records[:RAW_SAMPLE_SIZE]),
        )

    @staticmethod
    def _failed_result(adapter: ProviderAdapter, iterations: int, concurrency: int,
                       error: BaseException) -> ProviderBenchmarkResult:
        return ProviderBenchmarkResult(
            provider=adapter.name,
            display_name=adapter.display_name,
            color=adapter.color,
            latency=LatencyStats(avg=0, min=0, max=0, p95=0, samples=[], empty=True),
            completeness=CompletenessResult(
                score=0, present_fields=0, tokens_returned=0,
                field_breakdown={f: False for f in COMPLETENESS_FIELDS},
            ),
            reliability=reliability(0, iterations, [describe_error(error)]),
            throughput=ThroughputResult(
                requests_per_second=0, concurrent_requests=concurrency, completed_in_window=0, window_ms=0,
            ),
        )

    async def run_balance_benchmark(self, wallet: str, chain: Optional[str] = None,
                                    providers: Sequence[SelectionLike] = (), iterations: Optional[int] = None,
                                    concurrency: Optional[int] = None,
                                    trigger: TriggerType = TriggerType.MANUAL,
                                    deadline: Optional[float] = None) -> BenchmarkRun:
        chain = chain or self.config.default_chain
        iterations = self.config.default_iterations if iterations is None else iterations
        concurrency = self.config.default_concurrency if concurrency is None else concurrency
        if iterations < 1:
            raise InvalidRequestError("iterations must be at least 1")
        if concurrency < 0:
            raise InvalidRequestError("concurrency cannot be negative")
        selections = self._validate(chain, providers, wallet, wallet_required=True)
        wallet = wallet.strip()

        tracker = RunTracker("balances")
        resolved, skipped = self._resolve(selections)
        logger.info(f"Balance benchmark on {chain} for {wallet}: {[p.name.value for p in resolved]} "
                    f"({iterations} iterations, concurrency {concurrency})")

        tracker.advance(RunStatus.FETCHING)
        tasks = {
            p.name: asyncio.create_task(
                self.benchmark_provider(p.adapter, wallet, chain, p.api_key, iterations, concurrency)
            )
            for p in resolved
        }
        finished, incomplete = await self._until_deadline(tasks, deadline)

        tracker.advance(RunStatus.AGGREGATING)
        results = [finished[p.name] for p in resolved if p.name in finished]

        tracker.advance(RunStatus.COMPLETED)
        run = BenchmarkRun(
            wallet_address=wallet,
            chain=chain,
            results=results,
            status=tracker.status,
            skipped_providers=skipped,
            incomplete_providers=incomplete,
        )
        logger.info(f"Balance run {run.id} completed in {tracker.elapsed:.2f}s")
        await self._persist(run, trigger)
        return run

    # Pricing

    async def run_pricing_benchmark(self, tokens: Optional[Sequence[PricingToken]] = None,
                                    chain: Optional[str] = None, providers: Sequence[SelectionLike] = (),
                                    trigger: TriggerType = TriggerType.MANUAL,
                                    deadline: Optional[float] = None) -> PricingRun:
        chain = chain or self.config.default_chain
        selections = self._validate(chain, providers)
        tokens = list(tokens) if tokens is not None else get_pricing_tokens(chain)

        tracker = RunTracker("pricing")
        resolved, skipped = self._resolve(selections)
        logger.info(f"Pricing benchmark on {chain}: {len(tokens)} tokens, {[p.name.value for p in resolved]}")

        tracker.advance(RunStatus.FETCHING)
        outcome = await run_pricing_benchmark(
            tokens, chain, [(p.adapter, p.api_key) for p in resolved],
            deadline=self.run_deadline if deadline is None else deadline,
        )

        tracker.advance(RunStatus.AGGREGATING)
        for name, error in outcome.collection.errors.items():
            logger.info(f"{name} pricing degraded to null quotes: {error}")

        tracker.advance(RunStatus.COMPLETED)
        run = PricingRun(
            chain=chain,
            token_results=outcome.token_results,
            provider_results=outcome.provider_results,
            status=tracker.status,
            skipped_providers=skipped,
            incomplete_providers=outcome.collection.timed_out,
        )
        logger.info(f"Pricing run {run.id} completed in {tracker.elapsed:.2f}s")
        await self._persist(run, trigger)
        return run

    # NFTs

    async def nft_probe(self, adapter: ProviderAdapter, wallet: str, chain: str, api_key: str) -> NftBenchmarkResult:
        start = time.perf_counter()
        try:
            count = await adapter.fetch_nft_count(wallet, chain, api_key)
        except Exception as e:
            return NftBenchmarkResult(
                provider=adapter.name, display_name=adapter.display_name, color=adapter.color,
                nft_count=0, latency_ms=elapsed_ms(start), success=False, error=describe_error(e),
            )
        return NftBenchmarkResult(
            provider=adapter.name, display_name=adapter.display_name, color=adapter.color,
            nft_count=count, latency_ms=elapsed_ms(start), success=True,
        )

    async def run_nft_benchmark(self, wallet: str, chain: Optional[str] = None,
                                providers: Sequence[SelectionLike] = (),
                                trigger: TriggerType = TriggerType.MANUAL,
                                deadline: Optional[float] = None) -> NftRun:
        chain = chain or self.config.default_chain
        selections = self._validate(chain, providers, wallet, wallet_required=True)
        wallet = wallet.strip()

        tracker = RunTracker("nfts")
        resolved, skipped = self._resolve(selections, needs_nfts=True)

        tracker.advance(RunStatus.FETCHING)
        tasks = {p.name: asyncio.create_task(self.nft_probe(p.adapter, wallet, chain, p.api_key)) for p in resolved}
        finished, incomplete = await self._until_deadline(tasks, deadline)

        tracker.advance(RunStatus.AGGREGATING)
        results = [finished[p.name] for p in resolved if p.name in finished]

        tracker.advance(RunStatus.COMPLETED)
        run = NftRun(
            wallet_address=wallet,
            chain=chain,
            results=results,
            status=tracker.status,
            skipped_providers=skipped,
            incomplete_providers=incomplete,
        )
        await self._persist(run, trigger)
        return run

    # Scheduled trigger

    async def run_scheduled(self) -> Dict[str, Any]:
        """Run every scenario with server-side keys only, as the cron trigger does."""
        settings = self.config.scheduled_config
        wallet, chain = settings["wallet"], settings["chain"]
        providers = [n for n in ProviderName if self.key_resolver.env_key(n)]
        summary: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "providers": [p.value for p in providers],
        }
        if not providers:
            summary["error"] = "No API keys configured"
            return summary

        if self.store is not None:
            try:
                recent = await asyncio.to_thread(self.store.has_recent_scheduled_run, settings["dedupe_minutes"])
            except Exception as e:
                logger.error(f"Could not check for recent scheduled runs: {e}")
                recent = False
            if recent:
                summary["skipped"] = "recent scheduled run exists"
                return summary

        # one deadline covers all three scenarios
        ends_at = time.perf_counter() + self.run_deadline
        summary["skipped_scenarios"] = []

        def remaining(scenario: str) -> Optional[float]:
            left = ends_at - time.perf_counter()
            if left <= 0:
                logger.warning(f"Scheduled run deadline reached; skipping {scenario}")
                summary["skipped_scenarios"].append(scenario)
                return None
            return left

        budget = remaining("balances")
        if budget is not None:
            balances = await self.run_balance_benchmark(
                wallet, chain, providers, settings["iterations"], settings["concurrency"],
                trigger=TriggerType.SCHEDULED, deadline=budget,
            )
            summary["balances"] = {"run_id": balances.id, "providers": len(balances.results)}

        budget = remaining("pricing")
        if budget is not None:
            pricing = await self.run_pricing_benchmark(
                chain=chain, providers=providers, trigger=TriggerType.SCHEDULED, deadline=budget,
            )
            summary["pricing"] = {"run_id": pricing.id, "providers": len(pricing.provider_results)}

        budget = remaining("nfts")
        if budget is not None:
            nfts = await self.run_nft_benchmark(wallet, chain, providers, trigger=TriggerType.SCHEDULED, deadline=budget)
            summary["nfts"] = {
                "run_id": nfts.id,
                "results": [{"provider": r.provider, "count": r.nft_count, "success": r.success} for r in nfts.results],
            }
        return summary
