"""Agent contract: simulate, execute and explain over a shared intent shape."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable, Iterable, Optional, Protocol, Sequence, Tuple, Type

from pydantic import BaseModel

from .errors import AgentError, IntentExpiredError, UnsupportedOperationError
from .models import (
    AgentIntent,
    BoundaryReceipt,
    CallData,
    ExecutionResult,
    SimulationResult,
    failed_execution,
    failed_simulation,
)
from .parameters import parse_operation_parameters
from .validation import check_ceilings, validate_intent

logger = logging.getLogger(__name__)

DEFAULT_EXPLORER_URL = "https://explorer.testnet.somnia.network"


class ExecutionBoundary(Protocol):
    async def submit(self, user_address: str, calls: Sequence[CallData]) -> BoundaryReceipt:
        ...


class BaseAgent(ABC):
    """Shared plumbing for all agents.

    Subclasses implement ``_simulate`` and ``_execute`` against already
    validated, typed parameters. Any :class:`AgentError` raised there is
    turned into a failed result here, so callers never see it as an
    exception.
    """

    default_operation: str = ""
    parameter_models: Tuple[Type[BaseModel], ...] = ()
    subject: str = "operation"
    failure_warning: str = "Simulation failed - transaction may fail"

    def __init__(
        self,
        agent_id: str,
        name: str,
        capabilities: Iterable[str],
        clock: Optional[Callable[[], float]] = None,
        explorer_url: str = DEFAULT_EXPLORER_URL,
    ) -> None:
        self.agent_id = agent_id
        self.name = name
        self.capabilities = tuple(capabilities)
        self._clock = clock or time.time
        self._explorer_url = explorer_url.rstrip("/")

    async def simulate(self, intent: AgentIntent) -> SimulationResult:
        try:
            validate_intent(intent)
            params = self._parse_parameters(intent)
            result = await self._simulate(intent, params)
            check_ceilings(intent, result.calls)
        except AgentError as exc:
            logger.info("%s simulation rejected intent %s: %s", self.agent_id, intent.id, exc)
            return failed_simulation(
                f"Failed to simulate {self.subject}: {exc}",
                warnings=(self.failure_warning,),
                error_kind=exc.kind,
            )

        if self._is_expired(intent):
            result = replace(
                result,
                warnings=result.warnings + ("Intent deadline has passed; execution will be rejected.",),
            )
        return result

    async def execute(self, intent: AgentIntent) -> ExecutionResult:
        try:
            validate_intent(intent)
            if self._is_expired(intent):
                raise IntentExpiredError(f"Intent expired at {intent.deadline}")
            params = self._parse_parameters(intent)
            return await self._execute(intent, params)
        except AgentError as exc:
            logger.warning("%s execution failed for intent %s: %s", self.agent_id, intent.id, exc)
            return failed_execution(str(exc), exc.kind, timestamp=self._clock())

    async def explain(self, result: ExecutionResult) -> str:
        if result.success:
            explanation = f"Successfully executed transaction. Gas used: {result.gas_used}."
            if result.transaction_hash:
                explanation += f" Transaction: {result.transaction_hash}"
            return explanation
        return f"Transaction failed: {result.error or 'Unknown error'}"

    @abstractmethod
    async def _simulate(self, intent: AgentIntent, params: BaseModel) -> SimulationResult:
        ...

    @abstractmethod
    async def _execute(self, intent: AgentIntent, params: BaseModel) -> ExecutionResult:
        ...

    def _parse_parameters(self, intent: AgentIntent) -> BaseModel:
        params = parse_operation_parameters(intent.parameters, self.default_operation or None)
        if self.parameter_models and not isinstance(params, self.parameter_models):
            raise UnsupportedOperationError(f"Unsupported operation: {params.operation}")
        return params

    def _is_expired(self, intent: AgentIntent) -> bool:
        return intent.deadline < self._clock()

    def _explorer_link(self, transaction_hash: str) -> str:
        return f"{self._explorer_url}/tx/{transaction_hash}"


class TransactingAgent(BaseAgent):
    """Agent whose execute path sends calls through an execution boundary."""

    def __init__(self, *args, boundary: ExecutionBoundary, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._boundary = boundary

    async def _submit(
        self,
        intent: AgentIntent,
        calls: Sequence[CallData],
        value_transferred: float,
    ) -> ExecutionResult:
        check_ceilings(intent, calls)
        receipt = await self._boundary.submit(intent.user_address, calls)
        failed = [result for result in receipt.call_results if result.required and not result.success]
        if failed:
            return ExecutionResult(
                success=False,
                calls=receipt.call_results,
                transaction_hash=receipt.transaction_hash,
                gas_used=receipt.gas_used,
                error=failed[0].error or "Required call failed",
                timestamp=self._clock(),
            )
        return ExecutionResult(
            success=True,
            calls=receipt.call_results,
            transaction_hash=receipt.transaction_hash,
            gas_used=receipt.gas_used,
            value_transferred=value_transferred,
            explorer_url=self._explorer_link(receipt.transaction_hash),
            timestamp=self._clock(),
        )
