"""
Codex GraphQL adapter.

The ``balances`` query needs a Growth/Enterprise plan. Free keys get a
GraphQL error (or an empty list), in which case balances fall back to token
metadata for a fixed set of well-known tokens on the network.
"""
from typing import Any, Dict, List
from loguru import logger
from .base import ProviderAdapter, ProviderError, ProviderTimeoutError
from .graphql import graph_query
from ..chains import get_chain
from ..models import PricingToken, TokenRecord
from ..tokens import well_known_addresses

BALANCES_QUERY = """
query Balances($wallet: String!, $networks: [Int!]) {
  balances(walletAddress: $wallet, networks: $networks, removeScams: true, limit: 50) {
    items {
      tokenAddress balance shiftedBalance balanceUsd tokenPriceUsd
      token { address name symbol decimals isScam info { imageSmallUrl } }
    }
  }
}
"""

TOKENS_QUERY = """
query Tokens($ids: [TokenInput!]) {
  tokens(ids: $ids) {
    address name symbol decimals isScam
    info { imageSmallUrl }
  }
}
"""

PRICES_QUERY = """
query Prices($inputs: [GetPriceInput]) {
  getTokenPrices(inputs: $inputs) { address priceUsd }
}
"""


def _balance_record(item: Dict[str, Any]) -> TokenRecord:
    token = item.get("token") or {}
    info = token.get("info") or {}
    balance = item.get("balance") if item.get("balance") is not None else item.get("shiftedBalance")
    return TokenRecord(
        token_address=item.get("tokenAddress") or token.get("address"),
        name=token.get("name"),
        symbol=token.get("symbol"),
        decimals=token.get("decimals"),
        logo_url=info.get("imageSmallUrl"),
        balance=str(balance) if balance is not None else None,
        balance_usd=item.get("balanceUsd"),
        price_usd=item.get("tokenPriceUsd"),
        is_spam=token.get("isScam"),
    )


def _token_record(token: Dict[str, Any]) -> TokenRecord:
    info = token.get("info") or {}
    return TokenRecord(
        token_address=token.get("address"),
        name=token.get("name"),
        symbol=token.get("symbol"),
        decimals=token.get("decimals"),
        logo_url=info.get("imageSmallUrl"),
        is_spam=token.get("isScam"),
    )


class Codex(ProviderAdapter):
    name = "codex"
    display_name = "Codex"
    color = "#A78BFA"
    URL = "https://graph.codex.io/graphql"

    async def _query(self, query: str, variables: Dict[str, Any], api_key: str) -> Dict[str, Any]:
        return await graph_query(self.URL, query, variables, headers={"Authorization": api_key}, timeout=self.timeout)

    async def fetch_balances(self, wallet: str, chain: str, api_key: str) -> List[TokenRecord]:
        network_id = get_chain(chain).codex_network_id
        try:
            data = await self._query(BALANCES_QUERY, {"wallet": wallet, "networks": [network_id]}, api_key)
            items = ((data.get("balances") or {}).get("items")) or []
            if items:
                return [_balance_record(i) for i in items if isinstance(i, dict)]
        except ProviderTimeoutError:
            raise
        except ProviderError as e:
            logger.debug(f"Codex balances query unavailable, using token fallback: {e}")

        ids = [{"address": a, "networkId": network_id} for a in well_known_addresses(network_id)]
        data = await self._query(TOKENS_QUERY, {"ids": ids}, api_key)
        tokens = [t for t in data.get("tokens") or [] if isinstance(t, dict)]
        if not tokens:
            raise ProviderError("Codex returned no data. Verify your API key at https://dashboard.codex.io/")
        return [_token_record(t) for t in tokens]

    async def quote_prices(self, tokens: List[PricingToken], chain: str, api_key: str) -> Dict[str, Any]:
        network_id = get_chain(chain).codex_network_id
        inputs = [{"address": t.address, "networkId": network_id} for t in tokens]
        data = await self._query(PRICES_QUERY, {"inputs": inputs}, api_key)
        return {
            entry["address"].lower(): entry.get("priceUsd")
            for entry in data.get("getTokenPrices") or []
            if isinstance(entry, dict) and entry.get("address")
        }
