"""Token swaps routed through the swap adapter."""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from agent_engine.base import DEFAULT_EXPLORER_URL, ExecutionBoundary, TransactingAgent
from agent_engine.errors import IntentValidationError
from agent_engine.formatting import format_amount
from agent_engine.models import AgentIntent, CallData, Capability, ExecutionResult, SimulationResult
from agent_engine.parameters import SwapParameters, parse_operation_parameters
from agent_engine.risk import apply_risk_penalty, calculate_risk
from execution_adapter.ethereum import checksum_address, encode_function_call, to_base_units, to_bytes32

from .tokens import SUPPORTED_TOKENS, TokenInfo, resolve_token

logger = logging.getLogger(__name__)

AMM_FEE = 0.003
MAX_PRICE_IMPACT = 15.0
SWAP_GAS_ESTIMATE = 180_000
SWAP_GAS_LIMIT = 200_000
DEFAULT_SLIPPAGE = 1.0

_SWAP_ARG_TYPES = ("(address,address,uint256,uint256,address,uint256,bytes)", "bytes32")
_ZERO_BYTES32 = b"\x00" * 32


@dataclass(frozen=True)
class SwapQuote:
    amount_out: float
    price_impact: float
    gas_estimate: int
    route: Tuple[str, str]
    dex_used: str


def quote_swap(token_in: TokenInfo, token_out: TokenInfo, amount_in: float) -> SwapQuote:
    """Quote a swap against the demo AMM.

    Output is priced through the token table less a flat 0.3% fee. Price
    impact is in percent and grows with size up to ``MAX_PRICE_IMPACT``.
    """

    amount_out = amount_in * (token_in.price_usd / token_out.price_usd) * (1 - AMM_FEE)
    price_impact = min(amount_in / 100_000 * 2, MAX_PRICE_IMPACT)
    return SwapQuote(
        amount_out=amount_out,
        price_impact=price_impact,
        gas_estimate=SWAP_GAS_ESTIMATE,
        route=(token_in.address, token_out.address),
        dex_used="Demo AMM",
    )


class TradeAgent(TransactingAgent):
    default_operation = "swap"
    parameter_models = (SwapParameters,)
    subject = "swap"

    def __init__(
        self,
        swap_adapter_address: str,
        boundary: ExecutionBoundary,
        clock: Optional[Callable[[], float]] = None,
        explorer_url: str = DEFAULT_EXPLORER_URL,
    ) -> None:
        super().__init__(
            "trade-agent",
            "Trade Agent",
            (Capability.SWAP.value, "token_analysis", "price_discovery", "route_optimization"),
            clock=clock,
            explorer_url=explorer_url,
            boundary=boundary,
        )
        self._swap_adapter = checksum_address(swap_adapter_address)

    async def _simulate(self, intent: AgentIntent, params: SwapParameters) -> SimulationResult:
        token_in, token_out = _resolve_pair(params)
        slippage = _effective_slippage(intent, params)
        quote = quote_swap(token_in, token_out, params.amount_in)
        call = self._build_swap_call(intent, params, token_in, token_out, quote, slippage)

        risk = calculate_risk(
            value_at_risk=params.amount_in * token_in.price_usd,
            complexity=1,
            price_impact=quote.price_impact / 100,
        )
        warnings: List[str] = []
        if quote.price_impact > 5:
            warnings.append(f"High price impact: {quote.price_impact:.2f}%")
        if slippage > 3:
            warnings.append(f"High slippage tolerance: {format_amount(slippage)}%")

        confidence = 0.9 - min(quote.price_impact / 100 * 2, 0.4)
        return SimulationResult(
            success=True,
            gas_estimate=quote.gas_estimate,
            value_estimate=params.amount_in,
            risk=risk,
            calls=(call,),
            justification=(
                f"Executing swap of {format_amount(params.amount_in)} {token_in.symbol} for approximately "
                f"{quote.amount_out:.4f} {token_out.symbol} via {quote.dex_used}. "
                f"Price impact: {quote.price_impact:.2f}%. Gas estimate: {quote.gas_estimate:,} gas."
            ),
            warnings=tuple(warnings),
            confidence=apply_risk_penalty(confidence, risk),
        )

    async def _execute(self, intent: AgentIntent, params: SwapParameters) -> ExecutionResult:
        token_in, token_out = _resolve_pair(params)
        quote = quote_swap(token_in, token_out, params.amount_in)
        call = self._build_swap_call(
            intent, params, token_in, token_out, quote, _effective_slippage(intent, params)
        )
        logger.info("Submitting swap of %s %s for intent %s", params.amount_in, token_in.symbol, intent.id)
        return await self._submit(intent, (call,), value_transferred=params.amount_in)

    async def explain(self, result: ExecutionResult) -> str:
        if result.success:
            explanation = await super().explain(result)
            return (
                f"{explanation} The swap was executed successfully with optimal routing "
                "to minimize slippage and gas costs."
            )
        return (
            f"Swap failed: {result.error}. This could be due to insufficient balance, "
            "high slippage, or network congestion."
        )

    def get_supported_tokens(self) -> Tuple[TokenInfo, ...]:
        return SUPPORTED_TOKENS

    def get_best_route(self, token_in: str, token_out: str, amount_in: float) -> SwapQuote:
        params = parse_operation_parameters(
            {"tokenIn": token_in, "tokenOut": token_out, "amountIn": amount_in}, self.default_operation
        )
        return quote_swap(*_resolve_pair(params), params.amount_in)

    def _build_swap_call(
        self,
        intent: AgentIntent,
        params: SwapParameters,
        token_in: TokenInfo,
        token_out: TokenInfo,
        quote: SwapQuote,
        slippage: float,
    ) -> CallData:
        amount_out_min = params.amount_out_min
        if amount_out_min is None:
            amount_out_min = quote.amount_out * (1 - slippage / 100)
        preferred_dex = to_bytes32(params.preferred_dex) if params.preferred_dex else _ZERO_BYTES32

        swap_request = (
            checksum_address(token_in.address),
            checksum_address(token_out.address),
            to_base_units(params.amount_in, token_in.decimals),
            to_base_units(amount_out_min, token_out.decimals),
            checksum_address(intent.user_address),
            intent.deadline,
            b"",
        )
        return CallData(
            target=self._swap_adapter,
            data=encode_function_call("executeSwap", _SWAP_ARG_TYPES, (swap_request, preferred_dex)),
            value=0,
            description=f"Swap {format_amount(params.amount_in)} {token_in.symbol} for {token_out.symbol}",
            gas_limit=SWAP_GAS_LIMIT,
        )


def _resolve_pair(params: SwapParameters) -> Tuple[TokenInfo, TokenInfo]:
    token_in = resolve_token(params.token_in)
    token_out = resolve_token(params.token_out)
    if token_in is None or token_out is None:
        raise IntentValidationError("Unsupported token pair")
    return token_in, token_out


def _effective_slippage(intent: AgentIntent, params: SwapParameters) -> float:
    if intent.slippage:
        return intent.slippage
    if params.slippage:
        return params.slippage
    return DEFAULT_SLIPPAGE
