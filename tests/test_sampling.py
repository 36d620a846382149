"""
Tests for latency statistics, the sequential sampler and the throughput prober
"""

import asyncio
from functools import partial

import pytest

from chainbench.benchmark.sampler import MAX_ERRORS, MAX_ERROR_LENGTH, describe_error, sample_latency
from chainbench.benchmark.stats import calculate_latency_stats, median, percent, round2, round_half_up
from chainbench.benchmark.throughput import probe_throughput
from chainbench.data.sources.base import ProviderError, ProviderTimeoutError

from conftest import WALLET, ScriptedAdapter


class TestLatencyStats:
    """Test latency summaries"""

    def test_empty_samples(self):
        stats = calculate_latency_stats([])
        assert stats.empty
        assert (stats.avg, stats.min, stats.max, stats.p95) == (0, 0, 0, 0)
        assert stats.samples == []

    def test_ordering_invariant(self):
        stats = calculate_latency_stats([120, 80, 95, 300, 101])
        assert stats.min <= stats.avg <= stats.max
        assert stats.min <= stats.p95 <= stats.max
        assert (stats.min, stats.max) == (80, 300)
        assert stats.avg == 139

    def test_p95_is_an_observed_sample(self):
        samples = list(range(1, 21))
        stats = calculate_latency_stats(samples)
        # floor(20 * 0.95) = 19 -> last element
        assert stats.p95 == 20
        assert stats.p95 in samples

    def test_p95_small_sample(self):
        assert calculate_latency_stats([10, 20, 30]).p95 == 30
        assert calculate_latency_stats([42]).p95 == 42

    def test_samples_keep_call_order(self):
        assert calculate_latency_stats([30, 10, 20]).samples == [30, 10, 20]

    def test_half_up_rounding(self):
        assert round_half_up(62.5) == 63
        assert round_half_up(2.5) == 3
        assert round2(3.14159) == 3.14
        assert percent(5, 8) == 63
        assert percent(1, 0) == 0

    def test_median(self):
        assert median([]) is None
        assert median([3, 1, 2]) == 2
        assert median([100, 102]) == 101


class TestSampler:
    """Test the latency/reliability sampler"""

    @pytest.mark.asyncio
    async def test_one_failure_in_five(self):
        adapter = ScriptedAdapter("covalent", fail_on={3})
        outcome = await sample_latency(partial(adapter.fetch_balances, WALLET, "eth-mainnet", "k"), 5)

        assert adapter.calls == 5
        assert outcome.reliability.total_requests == 5
        assert outcome.reliability.successful_requests == 4
        assert outcome.reliability.failed_requests == 1
        assert outcome.reliability.success_rate == 80
        assert len(outcome.reliability.errors) == 1
        assert "HTTP 500" in outcome.reliability.errors[0]
        assert len(outcome.latency.samples) == 5
        assert outcome.last_payload is not None

    @pytest.mark.asyncio
    async def test_all_fail_keeps_timings(self):
        adapter = ScriptedAdapter("moralis", fail_on={"all"})
        outcome = await sample_latency(partial(adapter.fetch_balances, WALLET, "eth-mainnet", "k"), 7)

        assert outcome.reliability.success_rate == 0
        assert len(outcome.reliability.errors) == MAX_ERRORS
        assert len(outcome.latency.samples) == 7
        assert outcome.last_payload is None

    @pytest.mark.asyncio
    async def test_calls_never_overlap(self):
        in_flight = 0
        peak = 0

        async def fetch():
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1
            return []

        await sample_latency(fetch, 4)
        assert peak == 1

    @pytest.mark.asyncio
    async def test_zero_iterations(self):
        async def fetch():
            return []

        outcome = await sample_latency(fetch, 0)
        assert outcome.latency.empty
        assert outcome.reliability.total_requests == 0
        assert outcome.reliability.success_rate == 0

    def test_describe_error(self):
        assert describe_error(ProviderTimeoutError("timeout after 15s")) == "timeout after 15s"
        assert describe_error(asyncio.TimeoutError()).startswith("timeout")
        long = describe_error(ProviderError("x" * 500))
        assert len(long) == MAX_ERROR_LENGTH


class TestThroughput:
    """Test the concurrent burst prober"""

    @pytest.mark.asyncio
    async def test_one_of_four_fails(self):
        adapter = ScriptedAdapter("alchemy", fail_on={2}, delay=0.01)
        result = await probe_throughput(partial(adapter.fetch_balances, WALLET, "eth-mainnet", "k"), 4)

        assert result.concurrent_requests == 4
        assert result.completed_in_window == 3
        assert result.window_ms > 0
        assert result.requests_per_second > 0

    @pytest.mark.asyncio
    async def test_calls_run_together(self):
        adapter = ScriptedAdapter("mobula", delay=0.05)
        result = await probe_throughput(partial(adapter.fetch_balances, WALLET, "eth-mainnet", "k"), 5)

        assert result.completed_in_window == 5
        # five 50ms calls in parallel finish well under 250ms
        assert result.window_ms < 200

    @pytest.mark.asyncio
    async def test_zero_concurrency(self):
        async def fetch():
            raise AssertionError("should not be called")

        result = await probe_throughput(fetch, 0)
        assert result.requests_per_second == 0
        assert result.completed_in_window == 0
        assert result.window_ms == 0

    @pytest.mark.asyncio
    async def test_all_fail(self):
        adapter = ScriptedAdapter("codex", fail_on={"all"})
        result = await probe_throughput(partial(adapter.fetch_balances, WALLET, "eth-mainnet", "k"), 3)
        assert result.completed_in_window == 0
        assert result.requests_per_second == 0
