"""Deterministic expansion of a classification into agent intents, with validation."""

import time
from typing import Any, Callable, Mapping, Optional, Tuple

from agent_engine.models import AgentIntent, RiskLevel, generate_trace_id

from .models import Classification, ExecutionPlan

STEP_TTL_SECONDS = 3600

COMPLEX_OPERATION_WARNING = (
    "Multi-agent operations are not supported yet; no steps were generated for this request."
)

_HIGH_RISK_TEXT = "High risk operation - please review carefully before confirming."
_MEDIUM_RISK_TEXT = "Medium risk operation - standard DeFi risks apply."
_LOW_RISK_TEXT = "Low risk operation - minimal risk expected."

# intent -> (description, operation); None keeps the operation the classifier chose
_READ_ONLY_INTENTS = {
    "portfolio_analysis": ("Analyze portfolio performance", "get_pnl"),
    "get_balances": ("Get portfolio balances", "get_balances"),
    "market_research": ("Research market data", None),
    "transaction_analysis": ("Analyze transaction", "decode_transaction"),
    "risk_assessment": ("Assess portfolio risk", "risk_assessment"),
    "get_news": ("Fetch crypto news", "news"),
}


class PlanValidationError(ValueError):
    """Raised when an execution plan violates hard validation rules."""


class UnsupportedIntentError(ValueError):
    """Raised when the planner has no mapping for a classified intent."""


class ExecutionPlanner:
    """Builds one step per classified intent.

    ``complex_operation`` deliberately yields no steps; callers surface
    ``COMPLEX_OPERATION_WARNING`` instead.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory or (lambda: generate_trace_id(clock))

    def create_execution_steps(
        self, classification: Classification, user_address: str
    ) -> Tuple[AgentIntent, ...]:
        params = dict(classification.parameters)
        intent = classification.intent

        if intent == "swap_tokens":
            return (
                self._step(
                    classification,
                    user_address,
                    description=(
                        f"Swap {params.get('amountIn')} {params.get('tokenIn')} for {params.get('tokenOut')}"
                    ),
                    parameters={**params, "operation": "swap"},
                    max_gas=300_000,
                    max_value=_number(params.get("amountIn")),
                    slippage=_number(params.get("slippage"), default=1.0) or 1.0,
                ),
            )
        if intent == "stake_tokens":
            return (
                self._step(
                    classification,
                    user_address,
                    description=f"Stake {params.get('amount')} STT",
                    parameters={**params, "operation": "stake"},
                    max_gas=300_000,
                    max_value=_number(params.get("amount")),
                ),
            )
        if intent == "unstake_tokens":
            return (
                self._step(
                    classification,
                    user_address,
                    description=f"Unstake {params.get('amount')} STT",
                    parameters={**params, "operation": "unstake"},
                    max_gas=250_000,
                    max_value=0,
                ),
            )
        if intent == "claim_rewards":
            return (
                self._step(
                    classification,
                    user_address,
                    description="Claim staking rewards",
                    parameters={**params, "operation": "claim_rewards"},
                    max_gas=200_000,
                    max_value=0,
                ),
            )
        if intent in _READ_ONLY_INTENTS:
            description, operation = _READ_ONLY_INTENTS[intent]
            return (
                self._step(
                    classification,
                    user_address,
                    description=description,
                    parameters={**params, "operation": operation or params.get("operation") or "market_data"},
                    max_gas=0,
                    max_value=0,
                ),
            )
        if intent == "complex_operation":
            return ()
        raise UnsupportedIntentError(f"Unsupported intent: {intent}")

    def _step(
        self,
        classification: Classification,
        user_address: str,
        description: str,
        parameters: Mapping[str, Any],
        max_gas: float,
        max_value: float,
        slippage: Optional[float] = None,
    ) -> AgentIntent:
        return AgentIntent(
            id=self._id_factory(),
            user_address=user_address,
            description=description,
            parameters=parameters,
            max_gas=max_gas,
            max_value=max_value,
            deadline=int(self._clock()) + STEP_TTL_SECONDS,
            slippage=slippage,
            priority=classification.priority,
        )


def assess_risk(classification: Classification, estimated_value: float) -> str:
    if classification.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL) or estimated_value > 10_000:
        return _HIGH_RISK_TEXT
    if classification.risk_level == RiskLevel.MEDIUM or estimated_value > 1_000:
        return _MEDIUM_RISK_TEXT
    return _LOW_RISK_TEXT


def validate_plan(plan: ExecutionPlan) -> None:
    if not plan.id:
        raise PlanValidationError("Plan must have an id.")
    if not plan.user_address:
        raise PlanValidationError("Plan must name a user address.")
    if plan.estimated_gas < 0 or plan.estimated_value < 0:
        raise PlanValidationError("Plan estimates must be non-negative.")
    if not plan.risk_assessment:
        raise PlanValidationError("Plan must include a risk assessment.")
    if not plan.steps and not plan.warnings:
        raise PlanValidationError("A plan without steps must explain why in its warnings.")

    _validate_steps(plan)


def _validate_steps(plan: ExecutionPlan) -> None:
    seen = set()
    for step in plan.steps:
        if step.id in seen:
            raise PlanValidationError(f"Duplicate step id {step.id}.")
        seen.add(step.id)
        if step.user_address != plan.user_address:
            raise PlanValidationError("Every step must belong to the plan's user.")
        if not step.parameters.get("operation"):
            raise PlanValidationError("Every step must name its operation.")


def _number(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
