"""Read-only portfolio queries: balances, PnL, positions and history."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Sequence

from agent_engine.base import DEFAULT_EXPLORER_URL, BaseAgent
from agent_engine.models import (
    AgentIntent,
    CallResult,
    Capability,
    ExecutionResult,
    RiskLevel,
    SimulationResult,
)
from agent_engine.parameters import PortfolioParameters

from .tokens import resolve_token

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60
READ_GAS_ESTIMATE = 50_000

PNL_TIMEFRAME_MULTIPLIERS = {
    "24h": 0.5,
    "7d": 2,
    "30d": 5,
    "1y": 15,
    "all": 25,
}
_BASE_GAIN = 500.0
_BASE_STAKING_REWARDS = 15.5
_BASE_GAS_SPENT = 0.15

_HISTORY_DAYS = {"24h": 1, "7d": 7, "30d": 30}


@dataclass(frozen=True)
class Holding:
    symbol: str
    balance: float
    change_24h: float


@dataclass(frozen=True)
class StakingPosition:
    position_id: str
    validator_name: str
    amount: float
    rewards: float
    apr: float
    started_days_ago: int

    @property
    def value(self) -> float:
        return self.amount + self.rewards


class BalanceSource(Protocol):
    async def holdings(self, user_address: str) -> Sequence[Holding]:
        ...

    async def staking_positions(self, user_address: str) -> Sequence[StakingPosition]:
        ...


class StaticBalanceSource:
    """Fixed demo balances, identical for every address."""

    HOLDINGS = (
        Holding("ETH", 2.5, 2.5),
        Holding("STT", 1500.0, 1.2),
        Holding("USDC", 3000.0, 0.1),
    )
    POSITIONS = (
        StakingPosition("0xpos1", "Somnia Validator Alpha", 5000.0, 15.5, 12.0, 30),
    )

    async def holdings(self, user_address: str) -> Sequence[Holding]:
        return self.HOLDINGS

    async def staking_positions(self, user_address: str) -> Sequence[StakingPosition]:
        return self.POSITIONS


class PortfolioAgent(BaseAgent):
    default_operation = "get_balances"
    parameter_models = (PortfolioParameters,)
    subject = "portfolio query"
    failure_warning = "Query simulation failed"

    def __init__(
        self,
        balance_source: Optional[BalanceSource] = None,
        clock: Optional[Callable[[], float]] = None,
        explorer_url: str = DEFAULT_EXPLORER_URL,
    ) -> None:
        super().__init__(
            "portfolio-agent",
            "Portfolio Agent",
            (
                Capability.PORTFOLIO_ANALYSIS.value,
                "balance_tracking",
                "pnl_calculation",
                "asset_allocation",
                "performance_metrics",
            ),
            clock=clock,
            explorer_url=explorer_url,
        )
        self._source = balance_source or StaticBalanceSource()

    async def _simulate(self, intent: AgentIntent, params: PortfolioParameters) -> SimulationResult:
        return SimulationResult(
            success=True,
            gas_estimate=READ_GAS_ESTIMATE,
            value_estimate=0,
            risk=RiskLevel.LOW,
            calls=(),
            justification=_justification(params),
            warnings=(),
            confidence=0.95,
        )

    async def _execute(self, intent: AgentIntent, params: PortfolioParameters) -> ExecutionResult:
        if params.operation == "get_balances":
            result = await self.get_balances(intent.user_address, params.include_staking)
        elif params.operation == "get_pnl":
            result = await self.get_pnl(intent.user_address, params.timeframe)
        elif params.operation == "get_positions":
            result = await self.get_positions(intent.user_address)
        else:
            result = await self.get_history(intent.user_address, params.timeframe)

        return ExecutionResult(
            success=True,
            calls=(CallResult(success=True, gas_used=0, return_data=json.dumps(result)),),
            gas_used=0,
            value_transferred=0,
            timestamp=self._clock(),
        )

    async def explain(self, result: ExecutionResult) -> str:
        if not result.success:
            return f"Portfolio query failed: {result.error}"
        if not result.calls or not result.calls[0].return_data:
            return "Portfolio data retrieved successfully."
        try:
            data = json.loads(result.calls[0].return_data)
        except ValueError:
            return "Portfolio data retrieved successfully."
        return _format_portfolio_data(data)

    async def get_balances(self, user_address: str, include_staking: bool = True) -> Dict[str, Any]:
        tokens = [_token_entry(holding) for holding in await self._source.holdings(user_address)]
        positions = await self._source.staking_positions(user_address) if include_staking else ()
        total = sum(token["valueUSD"] for token in tokens) + sum(position.value for position in positions)
        return {
            "tokens": tokens,
            "stakingPositions": [self._position_entry(position) for position in positions],
            "totalValueUSD": total,
        }

    async def get_pnl(self, user_address: str, timeframe: str = "24h") -> Dict[str, Any]:
        current_value = (await self.get_balances(user_address))["totalValueUSD"]
        multiplier = PNL_TIMEFRAME_MULTIPLIERS.get(timeframe, 1)
        gain_loss = _BASE_GAIN * multiplier
        base_value = current_value - gain_loss
        return {
            "timeframe": timeframe,
            "totalValueUSD": current_value,
            "change24h": 1.5,
            "change7d": 3.2,
            "change30d": 8.7,
            "gainLoss": gain_loss,
            "gainLossPercent": gain_loss / base_value * 100 if base_value else 0.0,
            "stakingRewards": _BASE_STAKING_REWARDS * multiplier,
            "gasSpent": _BASE_GAS_SPENT * multiplier,
        }

    async def get_positions(self, user_address: str) -> Dict[str, Any]:
        positions = await self._source.staking_positions(user_address)
        return {
            "staking": [self._position_entry(position) for position in positions],
            "liquidity": [],
            "lending": [],
        }

    async def get_history(self, user_address: str, timeframe: str = "7d") -> Dict[str, Any]:
        now = self._clock()
        days = _HISTORY_DAYS.get(timeframe, 365)
        transactions = [
            {
                "hash": "0x123...",
                "type": "stake",
                "amount": "5000 STT",
                "timestamp": now - 30 * DAY_SECONDS,
                "status": "success",
            },
            {
                "hash": "0x456...",
                "type": "swap",
                "amount": "1 ETH -> 2000 STT",
                "timestamp": now - 25 * DAY_SECONDS,
                "status": "success",
            },
        ]
        value_history = [
            {"timestamp": now - (days - index) * DAY_SECONDS, "value": 14_000 + index * 10}
            for index in range(days)
        ]
        return {"transactions": transactions, "valueHistory": value_history}

    async def calculate_allocation(self, user_address: str) -> Dict[str, Any]:
        balances = await self.get_balances(user_address, include_staking=True)
        total = balances["totalValueUSD"]
        staking_value = sum(
            position["amount"] + position["rewards"] for position in balances["stakingPositions"]
        )
        return {
            "tokens": [
                {
                    "symbol": token["symbol"],
                    "percentage": _percentage(token["valueUSD"], total),
                    "valueUSD": token["valueUSD"],
                }
                for token in balances["tokens"]
            ],
            "staking": {"percentage": _percentage(staking_value, total), "valueUSD": staking_value},
        }

    async def get_performance_metrics(self, user_address: str) -> Dict[str, float]:
        return {"roi": 12.5, "sharpeRatio": 1.8, "maxDrawdown": -8.3, "winRate": 65.0}

    def _position_entry(self, position: StakingPosition) -> Dict[str, Any]:
        return {
            "positionId": position.position_id,
            "validatorName": position.validator_name,
            "amount": position.amount,
            "rewards": position.rewards,
            "apr": position.apr,
            "startTime": self._clock() - position.started_days_ago * DAY_SECONDS,
        }


def _token_entry(holding: Holding) -> Dict[str, Any]:
    token = resolve_token(holding.symbol)
    if token is None:
        logger.warning("No price for %s; valuing at zero", holding.symbol)
    return {
        "address": token.address if token else "",
        "symbol": holding.symbol,
        "balance": holding.balance,
        "valueUSD": holding.balance * token.price_usd if token else 0.0,
        "change24h": holding.change_24h,
    }


def _percentage(part: float, total: float) -> float:
    return part / total * 100 if total else 0.0


def _justification(params: PortfolioParameters) -> str:
    if params.operation == "get_balances":
        staking = " and staking positions" if params.include_staking else ""
        return f"Retrieving current token balances{staking} for comprehensive portfolio view."
    if params.operation == "get_pnl":
        return (
            f"Calculating profit/loss over {params.timeframe} timeframe, including trading gains, "
            "staking rewards, and gas costs."
        )
    if params.operation == "get_positions":
        return "Analyzing all active positions including staking, liquidity pools, and lending protocols."
    return f"Fetching transaction history for the past {params.timeframe} to analyze portfolio activity."


def _signed(value: float, suffix: str = "") -> str:
    return f"+{value:.2f}{suffix}" if value > 0 else f"{value:.2f}{suffix}"


def _format_portfolio_data(data: Dict[str, Any]) -> str:
    if "tokens" in data and "totalValueUSD" in data:
        staking_count = len(data.get("stakingPositions") or ())
        staking = f" and {staking_count} staking positions" if staking_count else ""
        return f"Portfolio: ${data['totalValueUSD']:,.2f} across {len(data['tokens'])} tokens{staking}."
    if "gainLoss" in data:
        return (
            f"Portfolio P&L: ${_signed(data['gainLoss'])} ({_signed(data['gainLossPercent'], '%')}). "
            f"Staking rewards: ${data['stakingRewards']:.2f}. Gas spent: ${data['gasSpent']:.2f}."
        )
    return "Portfolio data retrieved successfully."
