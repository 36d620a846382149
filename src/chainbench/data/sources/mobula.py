from typing import Any, Dict, List
from .base import ProviderAdapter, ProviderError
from ..chains import get_chain
from ..http_client import get_json
from ..models import PricingToken, TokenRecord


def to_record(item: Dict[str, Any]) -> TokenRecord:
    # asset metadata is nested under "asset" in newer responses
    asset = item.get("asset") if isinstance(item.get("asset"), dict) else {}
    contracts = asset.get("contracts") or []
    balance = item.get("token_balance")
    return TokenRecord(
        token_address=item.get("token_address") or (contracts[0] if contracts else None),
        name=asset.get("name") or (item["asset"] if isinstance(item.get("asset"), str) else None),
        symbol=asset.get("symbol") or item.get("symbol"),
        decimals=item.get("decimals"),
        logo_url=asset.get("logo") or item.get("logo"),
        balance=str(balance) if balance is not None else None,
        balance_usd=item.get("estimated_balance"),
        price_usd=item.get("price"),
        price_24h_change=item.get("price_change_24h"),
        contract_type=item.get("type"),
    )


class Mobula(ProviderAdapter):
    name = "mobula"
    display_name = "Mobula"
    color = "#E5A93D"
    BASE = "https://api.mobula.io/api/1"

    async def fetch_balances(self, wallet: str, chain: str, api_key: str) -> List[TokenRecord]:
        payload = await get_json(
            f"{self.BASE}/wallet/portfolio",
            params={"wallet": wallet, "blockchains": get_chain(chain).mobula_chain},
            headers={"Authorization": api_key},
            timeout=self.timeout,
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise ProviderError("Mobula: malformed payload")
        return [to_record(a) for a in data.get("assets") or [] if isinstance(a, dict)]

    async def quote_prices(self, tokens: List[PricingToken], chain: str, api_key: str) -> Dict[str, Any]:
        get_chain(chain)
        payload = await get_json(
            f"{self.BASE}/market/multi-data",
            params={"assets": ",".join(t.address for t in tokens)},
            headers={"Authorization": api_key},
            timeout=self.timeout,
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise ProviderError("Mobula: malformed pricing payload")
        return {
            address.lower(): entry.get("price")
            for address, entry in data.items()
            if isinstance(entry, dict)
        }

    async def fetch_nft_count(self, wallet: str, chain: str, api_key: str) -> int:
        get_chain(chain)
        payload = await get_json(
            f"{self.BASE}/wallet/nfts",
            params={"wallet": wallet},
            headers={"Authorization": api_key},
            timeout=self.timeout,
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        return len(data) if isinstance(data, list) else 0
