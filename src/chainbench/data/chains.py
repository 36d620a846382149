from dataclasses import dataclass
from typing import Dict, List

from .sources.base import ConfigurationError


@dataclass(frozen=True)
class ChainOption:
    """One supported chain and how each provider spells it."""
    id: str
    name: str
    chain_id: int
    covalent_id: int
    alchemy_subdomain: str
    moralis_chain: str
    mobula_chain: str
    codex_network_id: int


SUPPORTED_CHAINS: List[ChainOption] = [
    ChainOption("eth-mainnet", "Ethereum", 1, 1, "eth-mainnet", "eth", "ethereum", 1),
    ChainOption("polygon-mainnet", "Polygon", 137, 137, "polygon-mainnet", "polygon", "polygon", 137),
    ChainOption("bsc-mainnet", "BNB Chain (BSC)", 56, 56, "bnb-mainnet", "bsc", "bsc", 56),
    ChainOption("arbitrum-mainnet", "Arbitrum", 42161, 42161, "arb-mainnet", "arbitrum", "arbitrum", 42161),
    ChainOption("optimism-mainnet", "Optimism", 10, 10, "opt-mainnet", "optimism", "optimism", 10),
    ChainOption("base-mainnet", "Base", 8453, 8453, "base-mainnet", "base", "base", 8453),
    ChainOption("avalanche-mainnet", "Avalanche", 43114, 43114, "avax-mainnet", "avalanche", "avalanche", 43114),
]

_BY_ID: Dict[str, ChainOption] = {c.id: c for c in SUPPORTED_CHAINS}


def get_chain(chain: str) -> ChainOption:
    try:
        return _BY_ID[chain]
    except KeyError:
        raise ConfigurationError(f"Unsupported chain: {chain}") from None


def is_supported(chain: str) -> bool:
    return chain in _BY_ID
