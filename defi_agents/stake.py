"""Staking, unstaking and reward claims through the staking adapter."""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from agent_engine.base import DEFAULT_EXPLORER_URL, ExecutionBoundary, TransactingAgent
from agent_engine.errors import IntentValidationError
from agent_engine.formatting import NATIVE_SYMBOL, format_amount
from agent_engine.models import AgentIntent, CallData, Capability, ExecutionResult, SimulationResult
from agent_engine.parameters import StakeParameters
from agent_engine.risk import apply_risk_penalty, calculate_risk
from execution_adapter.ethereum import checksum_address, encode_function_call, to_base_units, to_bytes32

logger = logging.getLogger(__name__)

GAS_BY_OPERATION = {
    "stake": 250_000,
    "unstake": 180_000,
    "claim_rewards": 150_000,
}
UNBONDING_DAYS = 21


@dataclass(frozen=True)
class ValidatorInfo:
    id: str
    name: str
    address: str
    commission: float
    apr: float
    uptime: float
    total_staked: float
    max_capacity: float
    active: bool = True

    @property
    def score(self) -> float:
        return self.apr * (1 - self.commission / 100) * (self.uptime / 100)

    def has_capacity_for(self, amount: float) -> bool:
        return self.total_staked + amount <= self.max_capacity


DEFAULT_VALIDATORS: Tuple[ValidatorInfo, ...] = (
    ValidatorInfo(
        id="validator_1",
        name="Somnia Validator Alpha",
        address="0x1111111111111111111111111111111111111111",
        commission=5,
        apr=12,
        uptime=99.5,
        total_staked=500_000,
        max_capacity=1_000_000,
    ),
    ValidatorInfo(
        id="validator_2",
        name="Somnia Validator Beta",
        address="0x2222222222222222222222222222222222222222",
        commission=3,
        apr=14,
        uptime=99.0,
        total_staked=300_000,
        max_capacity=500_000,
    ),
    ValidatorInfo(
        id="validator_3",
        name="Somnia Validator Gamma",
        address="0x3333333333333333333333333333333333333333",
        commission=7,
        apr=10,
        uptime=98.0,
        total_staked=750_000,
        max_capacity=2_000_000,
    ),
)


class StakeAgent(TransactingAgent):
    parameter_models = (StakeParameters,)
    subject = "staking operation"

    def __init__(
        self,
        staking_adapter_address: str,
        boundary: ExecutionBoundary,
        validators: Iterable[ValidatorInfo] = DEFAULT_VALIDATORS,
        clock: Optional[Callable[[], float]] = None,
        explorer_url: str = DEFAULT_EXPLORER_URL,
    ) -> None:
        super().__init__(
            "stake-agent",
            "Stake Agent",
            (
                Capability.STAKE.value,
                Capability.UNSTAKE.value,
                "validator_analysis",
                "rewards_optimization",
                "risk_assessment",
            ),
            clock=clock,
            explorer_url=explorer_url,
            boundary=boundary,
        )
        self._staking_adapter = checksum_address(staking_adapter_address)
        self._validators: Dict[str, ValidatorInfo] = {validator.id: validator for validator in validators}

    async def _simulate(self, intent: AgentIntent, params: StakeParameters) -> SimulationResult:
        validator = self._resolve_validator(params) if params.operation == "stake" else None
        call = self._build_call(intent, params, validator)

        complexity = 2 if params.operation == "unstake" else 1
        if validator is not None and validator.uptime < 95:
            complexity += 1
        risk = calculate_risk(params.amount, complexity)

        warnings: List[str] = []
        if params.operation == "stake":
            if params.amount < 1:
                warnings.append("Amount below minimum staking threshold")
            if params.amount > 1000:
                warnings.append("Large staking amount - consider validator limits")

        confidence = 0.9
        if validator is not None and params.validator_id:
            if validator.uptime < 95:
                confidence -= 0.2
            if validator.commission > 10:
                confidence -= 0.1

        return SimulationResult(
            success=True,
            gas_estimate=GAS_BY_OPERATION[params.operation],
            value_estimate=params.amount,
            risk=risk,
            calls=(call,),
            justification=_justification(params, validator),
            warnings=tuple(warnings),
            confidence=apply_risk_penalty(confidence, risk),
        )

    async def _execute(self, intent: AgentIntent, params: StakeParameters) -> ExecutionResult:
        validator = self._resolve_validator(params) if params.operation == "stake" else None
        call = self._build_call(intent, params, validator)
        logger.info("Submitting %s for intent %s", params.operation, intent.id)
        return await self._submit(intent, (call,), value_transferred=params.amount)

    async def explain(self, result: ExecutionResult) -> str:
        if result.success:
            explanation = await super().explain(result)
            return (
                f"{explanation} The staking operation was completed successfully. "
                "Rewards will begin accruing immediately."
            )
        return (
            f"Staking operation failed: {result.error}. This could be due to insufficient balance, "
            "validator capacity limits, or network issues."
        )

    def select_best_validator(self, amount: float) -> ValidatorInfo:
        candidates = [
            validator
            for validator in self._validators.values()
            if validator.active and validator.has_capacity_for(amount)
        ]
        if not candidates:
            raise IntentValidationError("No suitable validators available")
        return max(candidates, key=lambda validator: validator.score)

    def get_validators(self) -> Tuple[ValidatorInfo, ...]:
        return tuple(validator for validator in self._validators.values() if validator.active)

    def get_best_validators(self, count: int = 3) -> Tuple[ValidatorInfo, ...]:
        ranked = sorted(self.get_validators(), key=lambda validator: validator.score, reverse=True)
        return tuple(ranked[:count])

    def calculate_expected_rewards(self, amount: float, validator_id: str, days: int = 365) -> float:
        validator = self._validators.get(validator_id)
        if validator is None:
            return 0.0
        net_apr = validator.apr * (1 - validator.commission / 100) / 100
        return amount * net_apr * (days / 365)

    def _resolve_validator(self, params: StakeParameters) -> ValidatorInfo:
        if not params.validator_id:
            return self.select_best_validator(params.amount)
        validator = self._validators.get(params.validator_id)
        if validator is None or not validator.active:
            raise IntentValidationError(f"Unknown validator: {params.validator_id}")
        return validator

    def _build_call(
        self,
        intent: AgentIntent,
        params: StakeParameters,
        validator: Optional[ValidatorInfo],
    ) -> CallData:
        amount = format_amount(params.amount)
        if params.operation == "stake":
            data = encode_function_call(
                "stake",
                ("bytes32", "uint256", "address"),
                (to_bytes32(validator.id), to_base_units(params.amount), checksum_address(intent.user_address)),
            )
            description = f"Stake {amount} {NATIVE_SYMBOL} with validator {validator.name}"
        elif params.operation == "unstake":
            data = encode_function_call(
                "requestUnstake",
                ("bytes32", "uint256"),
                (to_bytes32(params.position_id), to_base_units(params.amount)),
            )
            description = f"Unstake {amount} {NATIVE_SYMBOL} from position {params.position_id[:8]}..."
        else:
            data = encode_function_call("claimRewards", ("bytes32",), (to_bytes32(params.position_id),))
            description = f"Claim rewards from position {params.position_id[:8]}..."

        return CallData(
            target=self._staking_adapter,
            data=data,
            value=0,
            description=description,
            gas_limit=GAS_BY_OPERATION[params.operation],
        )


def _justification(params: StakeParameters, validator: Optional[ValidatorInfo]) -> str:
    amount = format_amount(params.amount)
    if params.operation == "stake":
        return (
            f"Staking {amount} {NATIVE_SYMBOL} with {validator.name} (APR: {validator.apr:g}%, "
            f"Commission: {validator.commission:g}%, Uptime: {validator.uptime:g}%). "
            "This validator offers competitive rewards with good performance history."
        )
    if params.operation == "unstake":
        return (
            f"Requesting unstake of {amount} {NATIVE_SYMBOL}. Tokens will be available after the "
            f"{UNBONDING_DAYS}-day unbonding period. "
            "Consider the opportunity cost of missing rewards during this period."
        )
    return (
        "Claiming accumulated staking rewards. This will reset the reward calculation period "
        f"and transfer earned {NATIVE_SYMBOL} to your wallet."
    )
