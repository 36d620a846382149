from typing import Any, Dict, List
from .base import ProviderAdapter, ProviderError
from ..chains import get_chain
from ..http_client import get_json
from ..models import PricingToken, TokenRecord


def _items(payload: Any) -> List[Dict[str, Any]]:
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        raise ProviderError("Covalent: malformed payload")
    return [i for i in data.get("items") or [] if isinstance(i, dict)]


def to_record(item: Dict[str, Any]) -> TokenRecord:
    balance = item.get("balance")
    return TokenRecord(
        token_address=item.get("contract_address"),
        name=item.get("contract_name"),
        symbol=item.get("contract_ticker_symbol"),
        decimals=item.get("contract_decimals"),
        logo_url=item.get("logo_url"),
        balance=str(balance) if balance is not None else None,
        balance_usd=item.get("quote"),
        price_usd=item.get("quote_rate"),
        price_24h_change=item.get("quote_rate_24h"),
        contract_type=item.get("type"),
        is_spam=item.get("is_spam"),
        last_transfer_date=item.get("last_transferred_at"),
    )


class Covalent(ProviderAdapter):
    name = "covalent"
    display_name = "Covalent (GoldRush)"
    color = "#FF4C3B"
    BASE = "https://api.covalenthq.com/v1"

    async def fetch_balances(self, wallet: str, chain: str, api_key: str) -> List[TokenRecord]:
        chain_id = get_chain(chain).covalent_id
        payload = await get_json(
            f"{self.BASE}/{chain_id}/address/{wallet}/balances_v2/",
            params={"key": api_key, "no-spam": "true", "no-nft-asset-metadata": "true"},
            timeout=self.timeout,
        )
        return [to_record(i) for i in _items(payload)]

    async def quote_prices(self, tokens: List[PricingToken], chain: str, api_key: str) -> Dict[str, Any]:
        chain_id = get_chain(chain).covalent_id
        addresses = ",".join(t.address.lower() for t in tokens)
        payload = await get_json(
            f"{self.BASE}/pricing/historical_by_addresses_v2/{chain_id}/USD/{addresses}/",
            params={"key": api_key},
            timeout=self.timeout,
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise ProviderError("Covalent: malformed pricing payload")
        quotes: Dict[str, Any] = {}
        for entry in data:
            if not isinstance(entry, dict) or not entry.get("contract_address"):
                continue
            prices = entry.get("prices") or []
            if prices and isinstance(prices[0], dict):
                quotes[entry["contract_address"].lower()] = prices[0].get("price")
        return quotes

    async def fetch_nft_count(self, wallet: str, chain: str, api_key: str) -> int:
        chain_id = get_chain(chain).covalent_id
        payload = await get_json(
            f"{self.BASE}/{chain_id}/address/{wallet}/balances_nft/",
            params={"key": api_key, "no-spam": "true"},
            timeout=self.timeout,
        )
        return len(_items(payload))
