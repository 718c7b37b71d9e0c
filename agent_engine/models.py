"""Domain models shared by agents, the planner and the router."""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Priority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Capability(Enum):
    SWAP = "swap"
    STAKE = "stake"
    UNSTAKE = "unstake"
    PORTFOLIO_ANALYSIS = "portfolio_analysis"
    MARKET_RESEARCH = "market_research"
    TRANSACTION_ANALYSIS = "transaction_analysis"
    YIELD_FARMING = "yield_farming"
    GOVERNANCE = "governance"
    BRIDGE = "bridge"


class ErrorKind(Enum):
    VALIDATION = "validation"
    UPSTREAM = "upstream"
    DISPATCH = "dispatch"
    EXPIRED = "expired"
    EXECUTION = "execution"


@dataclass(frozen=True)
class CallData:
    """One call destined for the execution proxy."""

    target: str
    data: str
    value: float
    description: str
    gas_limit: Optional[int] = None


@dataclass(frozen=True)
class CallResult:
    success: bool
    gas_used: int
    return_data: Optional[str] = None
    error: Optional[str] = None
    required: bool = True


@dataclass(frozen=True)
class AgentIntent:
    """A single operation directed at one agent.

    ``parameters`` is copied into a read-only mapping on construction so a
    consumer cannot mutate the step it was handed.
    """

    id: str
    user_address: str
    description: str
    parameters: Mapping[str, Any]
    max_gas: float
    max_value: float
    deadline: int
    slippage: Optional[float] = None
    priority: Optional[Priority] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "userAddress": self.user_address,
            "description": self.description,
            "parameters": dict(self.parameters),
            "maxGas": self.max_gas,
            "maxValue": self.max_value,
            "deadline": self.deadline,
        }
        if self.slippage is not None:
            result["slippage"] = self.slippage
        if self.priority is not None:
            result["priority"] = self.priority.value
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AgentIntent":
        priority = data.get("priority")
        return cls(
            id=data["id"],
            user_address=data["userAddress"],
            description=data["description"],
            parameters=dict(data.get("parameters") or {}),
            max_gas=data["maxGas"],
            max_value=data["maxValue"],
            deadline=data["deadline"],
            slippage=data.get("slippage"),
            priority=Priority(priority) if priority is not None else None,
        )


@dataclass(frozen=True)
class SimulationResult:
    success: bool
    gas_estimate: float
    value_estimate: float
    risk: RiskLevel
    calls: Tuple[CallData, ...]
    justification: str
    warnings: Tuple[str, ...] = ()
    confidence: float = 0.0
    error_kind: Optional[ErrorKind] = None

    def __post_init__(self) -> None:
        if not self.success and self.calls:
            raise ValueError("A failed simulation must not carry calls.")
        if not self.success and self.risk == RiskLevel.LOW:
            raise ValueError("A failed simulation must not report LOW risk.")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("confidence must be between 0 and 1.")


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    calls: Tuple[CallResult, ...] = ()
    transaction_hash: Optional[str] = None
    gas_used: Optional[int] = None
    value_transferred: Optional[float] = None
    explorer_url: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    degraded_reason: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.success and any(call.required and not call.success for call in self.calls):
            raise ValueError("A successful execution cannot contain failed required calls.")


@dataclass(frozen=True)
class SourcedData:
    """Payload plus the reason it came from fallback data, if it did."""

    data: Any
    degraded_reason: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.degraded_reason is not None


def failed_simulation(
    justification: str,
    warnings: Tuple[str, ...] = (),
    error_kind: ErrorKind = ErrorKind.VALIDATION,
) -> SimulationResult:
    return SimulationResult(
        success=False,
        gas_estimate=0,
        value_estimate=0,
        risk=RiskLevel.HIGH,
        calls=(),
        justification=justification,
        warnings=warnings,
        confidence=0.0,
        error_kind=error_kind,
    )


def failed_execution(
    error: str,
    error_kind: ErrorKind = ErrorKind.EXECUTION,
    timestamp: Optional[float] = None,
) -> ExecutionResult:
    return ExecutionResult(
        success=False,
        calls=(),
        error=error,
        error_kind=error_kind,
        timestamp=time.time() if timestamp is None else timestamp,
    )


def generate_trace_id(clock=time.time) -> str:
    return f"trace_{int(clock() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True)
class BoundaryReceipt:
    """What the execution boundary reports back for one submitted batch."""

    transaction_hash: str
    call_results: Tuple[CallResult, ...]
    gas_used: int
