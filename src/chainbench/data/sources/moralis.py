from typing import Any, Dict, List, Optional
from .base import ProviderAdapter, ProviderError
from ..chains import get_chain
from ..http_client import get_json, post_json
from ..models import PricingToken, TokenRecord


def _decimals(value: Any) -> Optional[int]:
    try:
        return int(value) or None
    except (TypeError, ValueError):
        return None


def to_record(item: Dict[str, Any]) -> TokenRecord:
    balance = item.get("balance")
    return TokenRecord(
        token_address=item.get("token_address"),
        name=item.get("name"),
        symbol=item.get("symbol"),
        decimals=_decimals(item.get("decimals")),
        logo_url=item.get("logo"),
        balance=str(balance) if balance is not None else None,
        balance_usd=item.get("usd_value"),
        price_usd=item.get("usd_price"),
        price_24h_change=item.get("usd_price_24hr_percent_change"),
        contract_type="ERC-20",
        is_spam=item.get("possible_spam"),
    )


class Moralis(ProviderAdapter):
    name = "moralis"
    display_name = "Moralis"
    color = "#57C5B6"
    BASE = "https://deep-index.moralis.io/api/v2.2"

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {"accept": "application/json", "X-API-Key": api_key}

    async def fetch_balances(self, wallet: str, chain: str, api_key: str) -> List[TokenRecord]:
        payload = await get_json(
            f"{self.BASE}/{wallet}/erc20",
            params={"chain": get_chain(chain).moralis_chain},
            headers=self._headers(api_key),
            timeout=self.timeout,
        )
        if not isinstance(payload, list):
            raise ProviderError("Moralis: malformed payload")
        return [to_record(i) for i in payload if isinstance(i, dict)]

    async def quote_prices(self, tokens: List[PricingToken], chain: str, api_key: str) -> Dict[str, Any]:
        moralis_chain = get_chain(chain).moralis_chain
        payload = await post_json(
            f"{self.BASE}/erc20/prices",
            {"tokens": [{"token_address": t.address, "chain": moralis_chain} for t in tokens]},
            headers=self._headers(api_key),
            timeout=self.timeout,
        )
        if not isinstance(payload, list):
            raise ProviderError("Moralis: malformed pricing payload")
        return {
            item["tokenAddress"].lower(): item.get("usdPrice")
            for item in payload
            if isinstance(item, dict) and item.get("tokenAddress")
        }

    async def fetch_nft_count(self, wallet: str, chain: str, api_key: str) -> int:
        payload = await get_json(
            f"{self.BASE}/{wallet}/nft",
            params={"chain": get_chain(chain).moralis_chain, "limit": "100"},
            headers=self._headers(api_key),
            timeout=self.timeout,
        )
        if not isinstance(payload, dict):
            raise ProviderError("Moralis: malformed NFT payload")
        total = payload.get("total")
        return int(total) if total is not None else len(payload.get("result") or [])
