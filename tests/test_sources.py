"""
Tests for provider adapters, with the HTTP layer patched out
"""

from unittest.mock import AsyncMock

import pytest

from chainbench.data.chains import get_chain, is_supported
from chainbench.data.sources import alchemy, codex, covalent, graphql, mobula, moralis
from chainbench.data.sources.base import (
    ConfigurationError,
    ProviderError,
    ProviderTimeoutError,
    UnsupportedOperationError,
    as_price,
)
from chainbench.data import registry as registry_module
from chainbench.data.tokens import get_pricing_tokens, well_known_addresses

from conftest import WALLET


class TestChains:
    """Test chain lookup"""

    def test_known_chain(self):
        chain = get_chain("bsc-mainnet")
        assert chain.chain_id == 56
        assert chain.alchemy_subdomain == "bnb-mainnet"

    def test_unknown_chain(self):
        assert not is_supported("solana-mainnet")
        with pytest.raises(ConfigurationError):
            get_chain("solana-mainnet")

    def test_pricing_tokens_cover_every_category(self):
        categories = {t.category.value for t in get_pricing_tokens("eth-mainnet")}
        assert categories == {"blue-chip", "stablecoin", "defi", "long-tail"}

    def test_well_known_falls_back_to_ethereum(self):
        assert well_known_addresses(999999) == well_known_addresses(1)


class TestPriceCoercion:
    def test_as_price(self):
        assert as_price("1.5") == 1.5
        assert as_price(2) == 2.0
        assert as_price(None) is None
        assert as_price(True) is None
        assert as_price("n/a") is None
        assert as_price(float("nan")) is None


class TestCovalent:
    """Test Covalent adapter mapping"""

    @pytest.mark.asyncio
    async def test_balances(self, monkeypatch):
        payload = {"data": {"items": [{
            "contract_address": "0xa0b8", "contract_name": "USD Coin", "contract_ticker_symbol": "USDC",
            "contract_decimals": 6, "logo_url": "https://logo", "balance": "2500000", "quote": 2.5,
            "quote_rate": 1.0, "quote_rate_24h": 0.99, "type": "stablecoin", "is_spam": False,
            "last_transferred_at": "2024-05-01T00:00:00Z",
        }]}}
        get_json = AsyncMock(return_value=payload)
        monkeypatch.setattr(covalent, "get_json", get_json)

        records = await covalent.Covalent().fetch_balances(WALLET, "eth-mainnet", "cqt_key")

        assert len(records) == 1
        assert records[0].symbol == "USDC"
        assert records[0].balance == "2500000"
        assert records[0].last_transfer_date == "2024-05-01T00:00:00Z"
        url = get_json.call_args.args[0]
        assert f"/1/address/{WALLET}/balances_v2/" in url
        assert get_json.call_args.kwargs["params"]["key"] == "cqt_key"

    @pytest.mark.asyncio
    async def test_malformed_balances(self, monkeypatch):
        monkeypatch.setattr(covalent, "get_json", AsyncMock(return_value={"error": True}))
        with pytest.raises(ProviderError):
            await covalent.Covalent().fetch_balances(WALLET, "eth-mainnet", "k")

    @pytest.mark.asyncio
    async def test_prices_keyed_by_requested_address(self, monkeypatch):
        tokens = get_pricing_tokens("eth-mainnet")[:2]
        payload = {"data": [
            {"contract_address": tokens[0].address.lower(), "prices": [{"price": 3100.5}]},
        ]}
        monkeypatch.setattr(covalent, "get_json", AsyncMock(return_value=payload))

        prices = await covalent.Covalent().fetch_prices(tokens, "eth-mainnet", "k")

        assert prices == {tokens[0].address: 3100.5, tokens[1].address: None}


class TestAlchemy:
    """Test Alchemy adapter mapping"""

    @pytest.mark.asyncio
    async def test_balances_filter_zero_and_merge_metadata(self, monkeypatch):
        balances = {"result": {"tokenBalances": [
            {"contractAddress": "0xaaa", "tokenBalance": "0x01"},
            {"contractAddress": "0xbbb", "tokenBalance": alchemy.ZERO_BALANCE},
        ]}}
        metadata = [{"id": 0, "result": {"name": "Alpha", "symbol": "ALP", "decimals": 18, "logo": None}}]
        post_json = AsyncMock(side_effect=[balances, metadata])
        monkeypatch.setattr(alchemy, "post_json", post_json)

        records = await alchemy.Alchemy().fetch_balances(WALLET, "eth-mainnet", "key")

        assert [r.token_address for r in records] == ["0xaaa"]
        assert records[0].symbol == "ALP"
        assert records[0].contract_type == "ERC-20"
        assert post_json.call_count == 2

    @pytest.mark.asyncio
    async def test_metadata_failure_keeps_balances(self, monkeypatch):
        balances = {"result": {"tokenBalances": [{"contractAddress": "0xaaa", "tokenBalance": "0x01"}]}}
        monkeypatch.setattr(alchemy, "post_json", AsyncMock(side_effect=[balances, ProviderError("HTTP 429", 429)]))

        records = await alchemy.Alchemy().fetch_balances(WALLET, "eth-mainnet", "key")

        assert len(records) == 1
        assert records[0].symbol is None

    @pytest.mark.asyncio
    async def test_rpc_error(self, monkeypatch):
        monkeypatch.setattr(alchemy, "post_json", AsyncMock(return_value={"error": {"message": "invalid key"}}))
        with pytest.raises(ProviderError, match="invalid key"):
            await alchemy.Alchemy().fetch_balances(WALLET, "eth-mainnet", "key")

    @pytest.mark.asyncio
    async def test_nft_count(self, monkeypatch):
        monkeypatch.setattr(alchemy, "get_json", AsyncMock(return_value={"totalCount": 42, "ownedNfts": []}))
        assert await alchemy.Alchemy().fetch_nft_count(WALLET, "eth-mainnet", "key") == 42


class TestMoralisAndMobula:
    """Test Moralis and Mobula mapping"""

    def test_moralis_record(self):
        record = moralis.to_record({
            "token_address": "0xabc", "name": "Token", "symbol": "TKN", "decimals": "18",
            "balance": "1000", "usd_price": 2.0, "usd_value": 0.002, "possible_spam": True,
        })
        assert record.decimals == 18
        assert record.is_spam is True
        assert record.contract_type == "ERC-20"

    @pytest.mark.asyncio
    async def test_moralis_prices(self, monkeypatch):
        tokens = get_pricing_tokens("eth-mainnet")[:1]
        monkeypatch.setattr(moralis, "post_json", AsyncMock(
            return_value=[{"tokenAddress": tokens[0].address.upper(), "usdPrice": "3000"}]
        ))
        prices = await moralis.Moralis().fetch_prices(tokens, "eth-mainnet", "k")
        assert prices == {tokens[0].address: 3000.0}

    def test_mobula_record_nested_asset(self):
        record = mobula.to_record({
            "asset": {"name": "Ether", "symbol": "ETH", "logo": "https://l", "contracts": ["0xeee"]},
            "token_balance": 1.5, "price": 3000, "estimated_balance": 4500,
        })
        assert record.token_address == "0xeee"
        assert record.symbol == "ETH"
        assert record.balance == "1.5"

    @pytest.mark.asyncio
    async def test_mobula_http_error_propagates(self, monkeypatch):
        monkeypatch.setattr(mobula, "get_json", AsyncMock(side_effect=ProviderTimeoutError("timeout after 15s")))
        with pytest.raises(ProviderTimeoutError):
            await mobula.Mobula().fetch_balances(WALLET, "eth-mainnet", "k")


class TestCodex:
    """Test the Codex GraphQL adapter"""

    @pytest.mark.asyncio
    async def test_falls_back_to_token_metadata(self, monkeypatch):
        query = AsyncMock(side_effect=[
            ProviderError("GraphQL error: plan does not include balances"),
            {"tokens": [{"address": "0xc02a", "name": "Wrapped Ether", "symbol": "WETH", "decimals": 18}]},
        ])
        monkeypatch.setattr(codex, "graph_query", query)

        records = await codex.Codex().fetch_balances(WALLET, "eth-mainnet", "k")

        assert [r.symbol for r in records] == ["WETH"]
        assert query.call_args.args[1] == codex.TOKENS_QUERY

    @pytest.mark.asyncio
    async def test_timeout_does_not_fall_back(self, monkeypatch):
        query = AsyncMock(side_effect=ProviderTimeoutError("timeout after 15s"))
        monkeypatch.setattr(codex, "graph_query", query)
        with pytest.raises(ProviderTimeoutError):
            await codex.Codex().fetch_balances(WALLET, "eth-mainnet", "k")
        assert query.call_count == 1

    @pytest.mark.asyncio
    async def test_nfts_unsupported(self):
        adapter = codex.Codex()
        assert not adapter.supports_nfts
        with pytest.raises(UnsupportedOperationError):
            await adapter.fetch_nft_count(WALLET, "eth-mainnet", "k")

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self, monkeypatch):
        monkeypatch.setattr(graphql, "post_json", AsyncMock(return_value={"errors": [{"message": "Unauthorized"}]}))
        with pytest.raises(ProviderError, match="Unauthorized"):
            await graphql.graph_query("https://graph.example/graphql", "{ x }")


class TestRegistry:
    def test_builds_every_provider(self):
        registry = registry_module.DataRegistry()
        assert {name.value for name in registry} == {"covalent", "alchemy", "moralis", "mobula", "codex"}
        assert registry.get(registry_module.ProviderName.CODEX).name == "codex"

    def test_no_shared_module_instance(self):
        assert not hasattr(registry_module, "registry")
