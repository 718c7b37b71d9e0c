"""Transaction decoding plus gas, performance, risk and optimization reports."""

import json
import logging
from typing import Any, Callable, Dict, List, Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from agent_engine.base import DEFAULT_EXPLORER_URL, BaseAgent
from agent_engine.errors import UpstreamError
from agent_engine.formatting import NATIVE_SYMBOL
from agent_engine.models import (
    AgentIntent,
    CallResult,
    Capability,
    ExecutionResult,
    RiskLevel,
    SimulationResult,
    SourcedData,
)
from agent_engine.parameters import AnalyticsParameters

logger = logging.getLogger(__name__)

HIGH_GAS_THRESHOLD = 200_000


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class DecodedOperation(_Payload):
    type: str
    description: str
    tokens: List[str] = Field(default_factory=list)
    amounts: List[str] = Field(default_factory=list)


class DecodedTransaction(_Payload):
    hash: str
    sender: str = Field(alias="from")
    to: str
    value: str
    gas_used: int = Field(alias="gasUsed", ge=0)
    gas_price: str = Field(alias="gasPrice")
    total_cost: float = Field(alias="totalCost")
    status: Literal["success", "failed"]
    timestamp: float
    operations: List[DecodedOperation] = Field(default_factory=list)
    summary: str
    recommendation: Optional[str] = None


class TransactionSource(Protocol):
    async def fetch_transaction(self, transaction_hash: str) -> Optional[DecodedTransaction]:
        ...


class AnalyticsAgent(BaseAgent):
    default_operation = "performance_report"
    parameter_models = (AnalyticsParameters,)
    subject = "analytics query"
    failure_warning = "Analytics simulation failed"

    def __init__(
        self,
        transaction_source: Optional[TransactionSource] = None,
        clock: Optional[Callable[[], float]] = None,
        explorer_url: str = DEFAULT_EXPLORER_URL,
    ) -> None:
        super().__init__(
            "analytics-agent",
            "Analytics Agent",
            (
                Capability.TRANSACTION_ANALYSIS.value,
                "gas_analysis",
                "performance_metrics",
                "risk_assessment",
                "optimization",
                "reporting",
            ),
            clock=clock,
            explorer_url=explorer_url,
        )
        self._source = transaction_source
        self._decoded: Dict[str, DecodedTransaction] = {}

    async def _simulate(self, intent: AgentIntent, params: AnalyticsParameters) -> SimulationResult:
        return SimulationResult(
            success=True,
            gas_estimate=0,
            value_estimate=0,
            risk=RiskLevel.LOW,
            calls=(),
            justification=_justification(params),
            warnings=(),
            confidence=0.90,
        )

    async def _execute(self, intent: AgentIntent, params: AnalyticsParameters) -> ExecutionResult:
        user_address = params.user_address or intent.user_address
        degraded_reason = None
        if params.operation == "decode_transaction":
            sourced = await self.decode_transaction(params.transaction_hash)
            result = sourced.data.model_dump(by_alias=True)
            degraded_reason = sourced.degraded_reason
        elif params.operation == "analyze_gas":
            result = self.analyze_gas(user_address, params.timeframe)
        elif params.operation == "performance_report":
            result = self.performance_report(user_address, params.timeframe)
        elif params.operation == "risk_assessment":
            result = self.assess_risk(user_address)
        else:
            result = self.optimization_suggestions(user_address)

        return ExecutionResult(
            success=True,
            calls=(CallResult(success=True, gas_used=0, return_data=json.dumps(result)),),
            gas_used=0,
            value_transferred=0,
            degraded_reason=degraded_reason,
            timestamp=self._clock(),
        )

    async def explain(self, result: ExecutionResult) -> str:
        if not result.success:
            return f"Analytics query failed: {result.error}"
        if not result.calls or not result.calls[0].return_data:
            return "Analytics data retrieved successfully."
        try:
            data = json.loads(result.calls[0].return_data)
        except ValueError:
            return "Analytics data retrieved successfully."
        summary = _format_analytics_data(data)
        if result.degraded_reason:
            summary += f" (fallback data: {result.degraded_reason})"
        return summary

    async def decode_transaction(self, transaction_hash: str) -> SourcedData:
        cached = self._decoded.get(transaction_hash)
        if cached is not None:
            return SourcedData(cached)

        if self._source is None:
            return SourcedData(self._sample_transaction(transaction_hash), "No transaction source configured")
        try:
            decoded = await self._source.fetch_transaction(transaction_hash)
        except UpstreamError as exc:
            logger.warning("Transaction lookup failed for %s, using sample data: %s", transaction_hash, exc)
            return SourcedData(self._sample_transaction(transaction_hash), f"Transaction lookup failed: {exc}")
        if decoded is None:
            return SourcedData(self._sample_transaction(transaction_hash), "Transaction not found")

        self._decoded[transaction_hash] = decoded
        return SourcedData(decoded)

    async def compare_transactions(self, first_hash: str, second_hash: str) -> Dict[str, Any]:
        first = (await self.decode_transaction(first_hash)).data
        second = (await self.decode_transaction(second_hash)).data
        gas_difference = first.gas_used - second.gas_used
        cost_difference = first.total_cost - second.total_cost
        gas_percent = abs(gas_difference / first.gas_used * 100) if first.gas_used else 0.0
        return {
            "tx1": first.model_dump(by_alias=True),
            "tx2": second.model_dump(by_alias=True),
            "comparison": {
                "gasDifference": gas_difference,
                "costDifference": cost_difference,
                "moreEfficient": first_hash if gas_difference < 0 else second_hash,
                "insights": [
                    f"Gas difference: {abs(gas_difference):,} ({gas_percent:.1f}%)",
                    f"Cost difference: {abs(cost_difference):.6f} {NATIVE_SYMBOL}",
                    "First transaction was more efficient"
                    if gas_difference < 0
                    else "Second transaction was more efficient",
                ],
            },
        }

    async def get_transaction_insights(self, transaction_hash: str) -> List[str]:
        decoded = (await self.decode_transaction(transaction_hash)).data
        insights = []
        if decoded.gas_used > HIGH_GAS_THRESHOLD:
            insights.append("High gas usage - consider optimizing or batching operations")
        if decoded.status == "success":
            insights.append("Transaction executed successfully")
        else:
            insights.append("Transaction failed - review parameters and conditions")
        if decoded.recommendation:
            insights.append(decoded.recommendation)
        return insights

    def clear_cache(self) -> None:
        self._decoded.clear()

    def analyze_gas(self, user_address: str, timeframe: str = "7d") -> Dict[str, Any]:
        return {
            "timeframe": timeframe,
            "totalGasUsed": 1_250_000,
            "totalCostSTT": 0.025,
            "averageGasPrice": 20,
            "mostExpensiveTx": {"hash": "0xabc123...", "cost": 0.008},
            "cheapestTx": {"hash": "0xdef456...", "cost": 0.001},
            "optimizationTips": [
                "Consider batching multiple operations into single transactions to save ~30% on gas",
                "Execute transactions during off-peak hours (typically 2-6 AM UTC) for lower gas prices",
                "Use transaction simulators before execution to avoid failed transactions",
                "Set appropriate gas limits to avoid over-paying while ensuring success",
            ],
            "savingsPotential": 0.0075,
        }

    def performance_report(self, user_address: str, timeframe: str = "7d") -> Dict[str, Any]:
        return {
            "period": timeframe,
            "metrics": {
                "totalTransactions": 42,
                "successRate": 97.6,
                "averageGasUsed": 185_000,
                "totalVolume": 15_500,
                "profitLoss": 650,
                "roi": 4.35,
            },
            "breakdown": {"swaps": 18, "stakes": 12, "claims": 8, "other": 4},
            "topPerformers": [
                {"operation": "ETH/STT Swap", "profit": 250, "roi": 12.5},
                {"operation": "Validator Alpha Staking", "profit": 185, "roi": 3.7},
                {"operation": "Rewards Claim", "profit": 125, "roi": 100},
            ],
        }

    def assess_risk(self, user_address: str) -> Dict[str, Any]:
        return {
            "overallRisk": RiskLevel.LOW.value,
            "score": 25,
            "factors": [
                {
                    "category": "Portfolio Concentration",
                    "level": "low",
                    "description": "Portfolio is well-diversified across 5 tokens",
                    "mitigation": "Maintain diversification, consider adding 1-2 more assets",
                },
                {
                    "category": "Smart Contract Risk",
                    "level": "low",
                    "description": "All interactions with audited contracts",
                    "mitigation": "Continue using verified contracts only",
                },
                {
                    "category": "Validator Risk",
                    "level": "low",
                    "description": "Staking with top-tier validators (>99% uptime)",
                    "mitigation": "Consider spreading stakes across 3-4 validators",
                },
                {
                    "category": "Liquidity Risk",
                    "level": "medium",
                    "description": "15% of portfolio in low-liquidity assets",
                    "mitigation": "Reduce exposure to illiquid positions or plan gradual exits",
                },
            ],
            "recommendations": [
                "Your current risk profile is well-balanced for steady growth",
                "Consider setting stop-loss limits on volatile positions",
                "Maintain emergency fund (20-30% in stablecoins)",
                "Review and rebalance portfolio monthly",
            ],
        }

    def optimization_suggestions(self, user_address: str) -> Dict[str, Any]:
        return {
            "gasOptimization": [
                "Batch similar operations: Save ~30% on gas by combining multiple swaps",
                "Use multicall for stake+claim operations: Reduce overhead by 40%",
                "Optimize approval amounts: Set exact approvals to avoid multiple transactions",
                "Schedule transactions during low-activity periods: Save 15-25% on gas prices",
            ],
            "strategyOptimization": [
                "Auto-compound staking rewards: Increase yield by ~8% annually",
                "Rebalance to optimal allocation: Maintain 60/30/10 split for risk-adjusted returns",
                "Implement dollar-cost averaging: Reduce timing risk on entries",
                "Set up automated claims: Capture rewards before fee increases",
            ],
            "securityOptimization": [
                f"Enable 2FA confirmation for transactions >1000 {NATIVE_SYMBOL}",
                "Set daily spending limits: Protect against unauthorized access",
                "Use hardware wallet for large holdings: Enhanced security for 50%+ of portfolio",
                "Regular allowance audits: Revoke unused approvals monthly",
            ],
            "estimatedImpact": {"gasSavings": 35, "yieldIncrease": 12, "riskReduction": 40},
        }

    def _sample_transaction(self, transaction_hash: str) -> DecodedTransaction:
        return DecodedTransaction(
            hash=transaction_hash,
            sender="0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb",
            to="0x0000000000000000000000000000000000001000",
            value="100",
            gas_used=185_000,
            gas_price="20",
            total_cost=0.0037,
            status="success",
            timestamp=self._clock() - 60 * 60,
            operations=[
                DecodedOperation(
                    type="swap",
                    description="Swapped 100 STT for 0.048 ETH",
                    tokens=["STT", "ETH"],
                    amounts=["100", "0.048"],
                )
            ],
            summary=(
                "Successfully swapped 100 STT tokens for 0.048 ETH via DEX router. "
                "Transaction completed with optimal gas usage."
            ),
            recommendation=(
                "Gas price was in the optimal range. Consider batching similar operations to save on gas costs."
            ),
        )


def _justification(params: AnalyticsParameters) -> str:
    if params.operation == "decode_transaction":
        return (
            f"Decoding transaction {params.transaction_hash[:10]}... to extract operations, costs, "
            "and provide insights."
        )
    if params.operation == "analyze_gas":
        return (
            f"Analyzing gas usage patterns over {params.timeframe} to identify optimization "
            "opportunities and cost savings."
        )
    if params.operation == "performance_report":
        return (
            f"Generating comprehensive performance report for {params.timeframe} including transaction "
            "metrics, P&L, and top operations."
        )
    if params.operation == "risk_assessment":
        return (
            "Evaluating portfolio risk across concentration, smart contracts, validators, and liquidity "
            "with mitigation strategies."
        )
    return (
        "Analyzing current operations to provide actionable optimization suggestions for gas, "
        "strategy, and security."
    )


def _format_analytics_data(data: Dict[str, Any]) -> str:
    if "hash" in data and "operations" in data:
        return (
            f"Transaction {data['hash'][:10]}...: {data['summary']} Gas used: {data['gasUsed']:,}. "
            f"Status: {data['status']}."
        )
    if "totalGasUsed" in data:
        savings = round(data["savingsPotential"] / data["totalCostSTT"] * 100) if data["totalCostSTT"] else 0
        return (
            f"Gas Analysis: Used {data['totalGasUsed']:,} gas ({data['totalCostSTT']:g} {NATIVE_SYMBOL}). "
            f"Potential savings: {data['savingsPotential']:g} {NATIVE_SYMBOL} ({savings}%)."
        )
    if "metrics" in data:
        metrics = data["metrics"]
        return (
            f"Performance ({data['period']}): {metrics['totalTransactions']} txs, "
            f"{metrics['successRate']:g}% success rate. "
            f"P&L: +{metrics['profitLoss']:g} {NATIVE_SYMBOL} ({metrics['roi']:g}% ROI)."
        )
    if "overallRisk" in data:
        return (
            f"Risk Assessment: {data['overallRisk'].upper()} (score: {data['score']}/100). "
            f"{len(data['factors'])} factors analyzed. {len(data['recommendations'])} recommendations provided."
        )
    if "estimatedImpact" in data:
        impact = data["estimatedImpact"]
        return (
            f"Optimization Potential: {impact['gasSavings']}% gas savings, "
            f"{impact['yieldIncrease']}% yield increase, {impact['riskReduction']}% risk reduction."
        )
    return "Analytics completed successfully."
