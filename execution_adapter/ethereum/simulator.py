"""Dry-run execution boundary standing in for the on-chain execution proxy."""

import logging
from typing import FrozenSet, Iterable, List, Optional, Sequence

from eth_utils import is_address, keccak

from agent_engine.errors import AgentError
from agent_engine.models import BoundaryReceipt, CallData, CallResult

logger = logging.getLogger(__name__)


class SimulationError(AgentError):
    """Raised when a batch cannot be accepted by the execution boundary."""


_DEFAULT_GAS_USED = 21_000
_GAS_USAGE_RATIO = 0.9


class DryRunBoundary:
    """Accepts call batches without network access.

    Each call is validated the way the proxy would validate it; targets outside
    ``allowed_targets`` produce a failed call result instead of an error.
    """

    def __init__(self, allowed_targets: Optional[Iterable[str]] = None) -> None:
        self._allowed: Optional[FrozenSet[str]] = (
            None if allowed_targets is None else frozenset(target.lower() for target in allowed_targets)
        )
        self._nonce = 0

    async def submit(self, user_address: str, calls: Sequence[CallData]) -> BoundaryReceipt:
        if not calls:
            raise SimulationError("Batch must include at least one call.")
        for call in calls:
            _validate_call(call)

        results: List[CallResult] = []
        total_gas = 0
        for call in calls:
            if self._allowed is not None and call.target.lower() not in self._allowed:
                logger.warning("Rejected call to non-allowlisted target %s", call.target)
                results.append(
                    CallResult(success=False, gas_used=0, error=f"Target {call.target} is not allowlisted")
                )
                continue
            gas_used = int(call.gas_limit * _GAS_USAGE_RATIO) if call.gas_limit else _DEFAULT_GAS_USED
            results.append(CallResult(success=True, gas_used=gas_used, return_data="0x"))
            total_gas += gas_used

        self._nonce += 1
        return BoundaryReceipt(
            transaction_hash=_transaction_hash(user_address, calls, self._nonce),
            call_results=tuple(results),
            gas_used=total_gas,
        )


def _validate_call(call: CallData) -> None:
    if not call.target or not is_address(call.target):
        raise SimulationError("Call must include a valid target address.")
    if not call.data.startswith("0x"):
        raise SimulationError("Call data must be hex-prefixed.")
    if call.value < 0:
        raise SimulationError("Call value must be non-negative.")


def _transaction_hash(user_address: str, calls: Sequence[CallData], nonce: int) -> str:
    encoded = "|".join(f"{call.target}:{call.data}:{call.value}" for call in calls)
    return "0x" + keccak(text=f"{user_address}|{nonce}|{encoded}").hex()
