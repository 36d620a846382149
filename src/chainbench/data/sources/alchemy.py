from typing import Any, Dict, List
from loguru import logger
from .base import ProviderAdapter, ProviderError
from ..chains import get_chain
from ..http_client import get_json, post_json
from ..models import PricingToken, TokenRecord

ZERO_BALANCE = "0x" + "0" * 64
MAX_METADATA_LOOKUPS = 50


def _rpc_result(payload: Any) -> Any:
    if not isinstance(payload, dict):
        raise ProviderError("Alchemy: malformed JSON-RPC payload")
    if payload.get("error"):
        error = payload["error"]
        message = error.get("message") if isinstance(error, dict) else error
        raise ProviderError(f"Alchemy JSON-RPC error: {message}")
    return payload.get("result")


class Alchemy(ProviderAdapter):
    name = "alchemy"
    display_name = "Alchemy"
    color = "#5B8DEF"
    PRICES = "https://api.g.alchemy.com/prices/v1"

    def _rpc_url(self, chain: str, api_key: str) -> str:
        return f"https://{get_chain(chain).alchemy_subdomain}.g.alchemy.com/v2/{api_key}"

    async def fetch_balances(self, wallet: str, chain: str, api_key: str) -> List[TokenRecord]:
        url = self._rpc_url(chain, api_key)
        result = _rpc_result(await post_json(url, {
            "jsonrpc": "2.0", "id": 1,
            "method": "alchemy_getTokenBalances",
            "params": [wallet, "erc20"],
        }, timeout=self.timeout))
        balances = (result or {}).get("tokenBalances") if isinstance(result, dict) else None
        if not isinstance(balances, list):
            raise ProviderError("Alchemy: malformed token balance payload")

        held = [
            b for b in balances
            if isinstance(b, dict) and b.get("tokenBalance") and b["tokenBalance"] != ZERO_BALANCE
        ][:MAX_METADATA_LOOKUPS]
        metadata = await self._metadata(url, [b.get("contractAddress") for b in held])

        records = []
        for i, b in enumerate(held):
            meta = metadata.get(i, {})
            records.append(TokenRecord(
                token_address=b.get("contractAddress"),
                name=meta.get("name"),
                symbol=meta.get("symbol"),
                decimals=meta.get("decimals"),
                logo_url=meta.get("logo"),
                balance=b.get("tokenBalance"),
                contract_type="ERC-20",
            ))
        return records

    async def _metadata(self, url: str, addresses: List[str]) -> Dict[int, Dict[str, Any]]:
        """One batched JSON-RPC call; metadata is best effort."""
        if not addresses:
            return {}
        batch = [
            {"jsonrpc": "2.0", "id": i, "method": "alchemy_getTokenMetadata", "params": [address]}
            for i, address in enumerate(addresses)
        ]
        try:
            replies = await post_json(url, batch, timeout=self.timeout)
        except ProviderError as e:
            logger.warning(f"Alchemy metadata lookup failed, returning bare balances: {e}")
            return {}
        metadata: Dict[int, Dict[str, Any]] = {}
        for reply in replies if isinstance(replies, list) else []:
            if isinstance(reply, dict) and isinstance(reply.get("result"), dict):
                metadata[reply.get("id")] = reply["result"]
        return metadata

    async def quote_prices(self, tokens: List[PricingToken], chain: str, api_key: str) -> Dict[str, Any]:
        network = get_chain(chain).alchemy_subdomain
        payload = await post_json(
            f"{self.PRICES}/{api_key}/tokens/by-address",
            {"addresses": [{"network": network, "address": t.address} for t in tokens]},
            headers={"accept": "application/json"},
            timeout=self.timeout,
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise ProviderError("Alchemy: malformed pricing payload")
        quotes: Dict[str, Any] = {}
        for entry in data:
            if not isinstance(entry, dict) or not entry.get("address"):
                continue
            prices = entry.get("prices") or []
            if prices and isinstance(prices[0], dict):
                quotes[entry["address"].lower()] = prices[0].get("value")
        return quotes

    async def fetch_nft_count(self, wallet: str, chain: str, api_key: str) -> int:
        subdomain = get_chain(chain).alchemy_subdomain
        payload = await get_json(
            f"https://{subdomain}.g.alchemy.com/nft/v3/{api_key}/getNFTsForOwner",
            params={"owner": wallet, "withMetadata": "false", "pageSize": "100"},
            timeout=self.timeout,
        )
        if not isinstance(payload, dict):
            raise ProviderError("Alchemy: malformed NFT payload")
        total = payload.get("totalCount")
        return int(total) if total is not None else len(payload.get("ownedNfts") or [])
