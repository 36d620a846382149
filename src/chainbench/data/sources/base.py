from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import math

from ..models import PricingToken, TokenRecord


class ChainbenchError(Exception):
    """Base class for all benchmark errors."""


class ConfigurationError(ChainbenchError):
    """Provider cannot take part in a run (no key, unsupported chain...)."""


class UnsupportedOperationError(ConfigurationError):
    pass


class InvalidRequestError(ChainbenchError):
    """The benchmark request is malformed; raised before any provider work."""


class ProviderError(ChainbenchError):
    """Upstream answered with a failure status or an unusable payload."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ProviderTimeoutError(ProviderError):
    pass


def as_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if math.isfinite(price) else None


class ProviderAdapter(ABC):
    """Common fetch contract every provider variant satisfies.

    Adapters are stateless apart from their request timeout, so one instance
    can serve concurrent calls.
    """
    name: str
    display_name: str
    color: str

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    @abstractmethod
    async def fetch_balances(self, wallet: str, chain: str, api_key: str) -> List[TokenRecord]:
        ...

    @abstractmethod
    async def quote_prices(self, tokens: List[PricingToken], chain: str, api_key: str) -> Dict[str, Any]:
        """Raw quotes keyed by lower-cased token address."""
        ...

    async def fetch_prices(self, tokens: List[PricingToken], chain: str, api_key: str) -> Dict[str, Optional[float]]:
        quotes = await self.quote_prices(tokens, chain, api_key) if tokens else {}
        return {t.address: as_price(quotes.get(t.address.lower())) for t in tokens}

    async def fetch_nft_count(self, wallet: str, chain: str, api_key: str) -> int:
        raise UnsupportedOperationError(f"{self.display_name} does not expose NFT holdings")

    @property
    def supports_nfts(self) -> bool:
        return type(self).fetch_nft_count is not ProviderAdapter.fetch_nft_count

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"
