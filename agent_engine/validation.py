"""Shape validation for agent intents."""

from numbers import Real
from typing import Iterable

from .errors import CeilingExceededError, IntentValidationError
from .models import AgentIntent, CallData, Priority


def validate_intent(intent: AgentIntent) -> None:
    if not isinstance(intent.id, str) or not intent.id:
        raise IntentValidationError("Invalid intent: id must be a non-empty string.")
    if not isinstance(intent.user_address, str) or not intent.user_address:
        raise IntentValidationError("Invalid intent: userAddress must be a non-empty string.")
    if not isinstance(intent.description, str):
        raise IntentValidationError("Invalid intent: description must be a string.")
    if not _is_number(intent.max_gas) or intent.max_gas < 0:
        raise IntentValidationError("Invalid intent: maxGas must be non-negative.")
    if not _is_number(intent.max_value) or intent.max_value < 0:
        raise IntentValidationError("Invalid intent: maxValue must be non-negative.")
    if isinstance(intent.deadline, bool) or not isinstance(intent.deadline, int):
        raise IntentValidationError("Invalid intent: deadline must be a Unix timestamp.")
    if intent.slippage is not None:
        if not _is_number(intent.slippage) or not 0 <= intent.slippage <= 100:
            raise IntentValidationError("Invalid intent: slippage must be between 0 and 100.")
    if intent.priority is not None and not isinstance(intent.priority, Priority):
        raise IntentValidationError("Invalid intent: priority must be low, medium or high.")


def check_ceilings(intent: AgentIntent, calls: Iterable[CallData]) -> None:
    calls = tuple(calls)
    total_gas = sum(call.gas_limit or 0 for call in calls)
    total_value = sum(call.value for call in calls)
    if intent.max_gas > 0 and total_gas > intent.max_gas:
        raise CeilingExceededError(
            f"Gas limit {total_gas} exceeds intent maxGas {intent.max_gas:g}."
        )
    if total_value > intent.max_value:
        raise CeilingExceededError(
            f"Call value {total_value:g} exceeds intent maxValue {intent.max_value:g}."
        )


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)
