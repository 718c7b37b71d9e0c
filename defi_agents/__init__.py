from .analytics import AnalyticsAgent, DecodedTransaction, TransactionSource
from .portfolio import BalanceSource, PortfolioAgent, StaticBalanceSource
from .research import CompletionClient, ResearchAgent
from .stake import DEFAULT_VALIDATORS, StakeAgent, ValidatorInfo
from .tokens import SUPPORTED_TOKENS, TokenInfo, resolve_token
from .trade import SwapQuote, TradeAgent, quote_swap

__all__ = [
    "AnalyticsAgent",
    "BalanceSource",
    "CompletionClient",
    "DEFAULT_VALIDATORS",
    "DecodedTransaction",
    "PortfolioAgent",
    "ResearchAgent",
    "SUPPORTED_TOKENS",
    "StakeAgent",
    "StaticBalanceSource",
    "SwapQuote",
    "TokenInfo",
    "TradeAgent",
    "TransactionSource",
    "ValidatorInfo",
    "quote_swap",
    "resolve_token",
]
