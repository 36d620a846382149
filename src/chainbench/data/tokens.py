"""
Reference token sets used as the common pricing probe per chain.
"""
from typing import Dict, List, Tuple

from .chains import get_chain
from .models import PricingToken, TokenCategory

BLUE, STABLE, DEFI, LONG = (
    TokenCategory.BLUE_CHIP, TokenCategory.STABLECOIN, TokenCategory.DEFI, TokenCategory.LONG_TAIL,
)

_TOKENS: Dict[int, List[Tuple[str, str, str, TokenCategory]]] = {
    1: [
        ("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "WETH", "Wrapped Ether", BLUE),
        ("0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599", "WBTC", "Wrapped BTC", BLUE),
        ("0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "USDC", "USD Coin", STABLE),
        ("0xdAC17F958D2ee523a2206206994597C13D831ec7", "USDT", "Tether USD", STABLE),
        ("0x6B175474E89094C44Da98b954EedeAC495271d0F", "DAI", "Dai Stablecoin", STABLE),
        ("0x514910771AF9Ca656af840dff83E8264EcF986CA", "LINK", "Chainlink", DEFI),
        ("0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984", "UNI", "Uniswap", DEFI),
        ("0x7Fc66500c84A76Ad7e9c93437bFc5Ac33E2DDaE9", "AAVE", "Aave", DEFI),
        ("0x9f8F72aA9304c8B593d555F12eF6589cC3A579A2", "MKR", "Maker", DEFI),
        ("0x5A98FcBEA516Cf06857215779Fd812CA3beF1B32", "LDO", "Lido DAO", DEFI),
        ("0x6982508145454Ce325dDbE47a25d4ec3d2311933", "PEPE", "Pepe", LONG),
        ("0x95aD61b0a150d79219dCF64E1E6Cc01f0B64C4cE", "SHIB", "Shiba Inu", LONG),
    ],
    137: [
        ("0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270", "WMATIC", "Wrapped Matic", BLUE),
        ("0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619", "WETH", "Wrapped Ether", BLUE),
        ("0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359", "USDC", "USD Coin", STABLE),
        ("0xc2132D05D31c914a87C6611C10748AEb04B58e8F", "USDT", "Tether USD", STABLE),
        ("0xD6DF932A45C0f255f85145f286eA0b292B21C90B", "AAVE", "Aave", DEFI),
    ],
    56: [
        ("0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c", "WBNB", "Wrapped BNB", BLUE),
        ("0x2170Ed0880ac9A755fd29B2688956BD959F933F8", "ETH", "Binance-Peg Ethereum", BLUE),
        ("0x55d398326f99059fF775485246999027B3197955", "USDT", "Tether USD", STABLE),
        ("0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d", "USDC", "USD Coin", STABLE),
        ("0x0E09FaBB73Bd3Ade0a17ECC321fD13a19e81cE82", "CAKE", "PancakeSwap", DEFI),
    ],
    42161: [
        ("0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", "WETH", "Wrapped Ether", BLUE),
        ("0xaf88d065e77c8cC2239327C5EDb3A432268e5831", "USDC", "USD Coin", STABLE),
        ("0x912CE59144191C1204E64559FE8253a0e49E6548", "ARB", "Arbitrum", DEFI),
        ("0xfc5A1A6EB076a2C7aD06eD22C90d7E710E35ad0a", "GMX", "GMX", LONG),
    ],
    10: [
        ("0x4200000000000000000000000000000000000006", "WETH", "Wrapped Ether", BLUE),
        ("0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85", "USDC", "USD Coin", STABLE),
        ("0x4200000000000000000000000000000000000042", "OP", "Optimism", DEFI),
    ],
    8453: [
        ("0x4200000000000000000000000000000000000006", "WETH", "Wrapped Ether", BLUE),
        ("0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USDC", "USD Coin", STABLE),
    ],
    43114: [
        ("0xB31f66AA3C1e785363F0875A1B74E27b85FD66c7", "WAVAX", "Wrapped AVAX", BLUE),
        ("0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E", "USDC", "USD Coin", STABLE),
    ],
}

PRICING_TEST_TOKENS: List[PricingToken] = [
    PricingToken(address=a, symbol=s, name=n, category=c, chain_id=1) for a, s, n, c in _TOKENS[1]
]


def get_pricing_tokens(chain: str) -> List[PricingToken]:
    """Pricing probe set for a chain id such as ``eth-mainnet``."""
    chain_id = get_chain(chain).chain_id
    return [
        PricingToken(address=a, symbol=s, name=n, category=c, chain_id=chain_id)
        for a, s, n, c in _TOKENS.get(chain_id, [])
    ]


def well_known_addresses(chain_id: int) -> List[str]:
    """Addresses used when a provider can only look tokens up by id."""
    rows = _TOKENS.get(chain_id) or _TOKENS[1]
    return [a for a, *_ in rows]
