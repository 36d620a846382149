from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Type

from .sources.base import ProviderAdapter
from .sources.alchemy import Alchemy
from .sources.codex import Codex
from .sources.covalent import Covalent
from .sources.mobula import Mobula
from .sources.moralis import Moralis


class ProviderName(str, Enum):
    COVALENT = "covalent"
    ALCHEMY = "alchemy"
    MORALIS = "moralis"
    MOBULA = "mobula"
    CODEX = "codex"


ADAPTER_CLASSES: Mapping[ProviderName, Type[ProviderAdapter]] = MappingProxyType({
    ProviderName.COVALENT: Covalent,
    ProviderName.ALCHEMY: Alchemy,
    ProviderName.MORALIS: Moralis,
    ProviderName.MOBULA: Mobula,
    ProviderName.CODEX: Codex,
})


class DataRegistry:
    """One adapter instance per provider, built from the closed provider set."""

    def __init__(self, timeout: Optional[float] = None,
                 adapters: Optional[Mapping[ProviderName, ProviderAdapter]] = None):
        if adapters is None:
            adapters = {name: cls(timeout=timeout) for name, cls in ADAPTER_CLASSES.items()}
        self._adapters: Dict[ProviderName, ProviderAdapter] = {ProviderName(k): v for k, v in adapters.items()}

    def get(self, name: ProviderName) -> ProviderAdapter:
        return self._adapters[ProviderName(name)]

    def __contains__(self, name: object) -> bool:
        try:
            return ProviderName(name) in self._adapters
        except ValueError:
            return False

    def __iter__(self) -> Iterator[ProviderName]:
        return iter(self._adapters)
