"""Demo token table shared by the trade and portfolio agents."""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class TokenInfo:
    address: str
    symbol: str
    decimals: int
    price_usd: float


SUPPORTED_TOKENS: Tuple[TokenInfo, ...] = (
    TokenInfo("0x0000000000000000000000000000000000000000", "ETH", 18, 2000.0),
    TokenInfo("0x1000000000000000000000000000000000000000", "STT", 18, 1.0),
    TokenInfo("0x2000000000000000000000000000000000000000", "USDC", 6, 1.0),
    TokenInfo("0x3000000000000000000000000000000000000000", "WBTC", 8, 45000.0),
)

_BY_KEY: Dict[str, TokenInfo] = {}
for _token in SUPPORTED_TOKENS:
    _BY_KEY[_token.address.lower()] = _token
    _BY_KEY[_token.symbol.lower()] = _token


def resolve_token(identifier: str) -> Optional[TokenInfo]:
    """Look a token up by address or symbol, case-insensitively."""

    return _BY_KEY.get(identifier.strip().lower())
