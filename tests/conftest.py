"""
Shared fixtures: scripted provider adapters that never touch the network
"""
import asyncio
from typing import Any, Dict, List, Optional

import pytest

from chainbench.data.config import ConfigManager
from chainbench.data.keys import EnvKeyResolver
from chainbench.data.models import PricingToken, TokenCategory, TokenRecord
from chainbench.data.registry import DataRegistry, ProviderName
from chainbench.data.sources.base import ProviderAdapter, ProviderError

WALLET = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


def full_record(symbol: str = "USDC") -> TokenRecord:
    return TokenRecord(
        token_address="0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
        name=f"{symbol} Token",
        symbol=symbol,
        decimals=6,
        logo_url="https://logos.example/usdc.png",
        balance="1000000",
        balance_usd=1.0,
        price_usd=1.0,
        price_24h_change=0.01,
        contract_type="ERC-20",
        is_spam=False,
        last_transfer_date="2024-01-01T00:00:00Z",
    )


class ScriptedAdapter(ProviderAdapter):
    """Adapter whose responses and delays are set per test."""

    def __init__(self, name: str, records: Optional[List[TokenRecord]] = None,
                 prices: Optional[Dict[str, Any]] = None, delay: float = 0.001,
                 fail_on: Optional[set] = None, nft_count: Optional[int] = None,
                 price_error: Optional[Exception] = None):
        super().__init__(timeout=5)
        self.name = name
        self.display_name = name.title()
        self.color = "#000000"
        self.records = records if records is not None else [full_record()]
        self.prices = prices or {}
        self.delay = delay
        self.fail_on = fail_on or set()
        self.nft_count = nft_count
        self.price_error = price_error
        self.calls = 0

    async def fetch_balances(self, wallet: str, chain: str, api_key: str) -> List[TokenRecord]:
        self.calls += 1
        call = self.calls
        await asyncio.sleep(self.delay)
        if call in self.fail_on or "all" in self.fail_on:
            raise ProviderError(f"HTTP 500 call {call}", 500)
        return list(self.records)

    async def quote_prices(self, tokens: List[PricingToken], chain: str, api_key: str) -> Dict[str, Any]:
        await asyncio.sleep(self.delay)
        if self.price_error is not None:
            raise self.price_error
        return {k.lower(): v for k, v in self.prices.items()}

    async def fetch_nft_count(self, wallet: str, chain: str, api_key: str) -> int:
        await asyncio.sleep(self.delay)
        if self.nft_count is None:
            raise ProviderError("HTTP 403 Forbidden", 403)
        return self.nft_count


class NoNftAdapter(ScriptedAdapter):
    fetch_nft_count = ProviderAdapter.fetch_nft_count


class MemoryStore:
    """Minimal in-process run store used where SQL is beside the point."""

    def __init__(self, fail: bool = False, recent: bool = False):
        self.saved = []
        self.fail = fail
        self.recent = recent

    def save(self, run, trigger_type=None):
        if self.fail:
            raise RuntimeError("database is locked")
        self.saved.append((run, trigger_type))
        return run.id

    def has_recent_scheduled_run(self, within_minutes: int = 15) -> bool:
        return self.recent


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch, tmp_path):
    """Every test starts from built-in defaults, never a local config file."""
    monkeypatch.setenv("CHAINBENCH_CONFIG", str(tmp_path / "missing.json"))
    for var in ("CHAINBENCH_ITERATIONS", "CHAINBENCH_CONCURRENCY", "CHAINBENCH_CHAIN",
                "CHAINBENCH_REQUEST_TIMEOUT", "CHAINBENCH_RUN_DEADLINE", "DATABASE_URL"):
        monkeypatch.delenv(var, raising=False)
    ConfigManager.reset()
    yield
    ConfigManager.reset()


@pytest.fixture
def tokens() -> List[PricingToken]:
    return [
        PricingToken(address="0xAAA", symbol="WETH", name="Wrapped Ether", category=TokenCategory.BLUE_CHIP, chain_id=1),
        PricingToken(address="0xBBB", symbol="USDC", name="USD Coin", category=TokenCategory.STABLECOIN, chain_id=1),
        PricingToken(address="0xCCC", symbol="PEPE", name="Pepe", category=TokenCategory.LONG_TAIL, chain_id=1),
    ]


@pytest.fixture
def all_keys() -> EnvKeyResolver:
    return EnvKeyResolver(env={
        "COVALENT_API_KEY": "cqt_test_key_1234",
        "ALCHEMY_API_KEY": "alchemy_test_key",
        "MORALIS_API_KEY": "moralis_test_key",
        "MOBULA_API_KEY": "mobula_test_key",
        "CODEX_API_KEY": "codex_test_key",
    })


def make_registry(**adapters: ProviderAdapter) -> DataRegistry:
    return DataRegistry(adapters={ProviderName(name): adapter for name, adapter in adapters.items()})
