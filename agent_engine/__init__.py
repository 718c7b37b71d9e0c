from .base import DEFAULT_EXPLORER_URL, BaseAgent, ExecutionBoundary, TransactingAgent
from .errors import (
    AgentError,
    CeilingExceededError,
    IntentExpiredError,
    IntentValidationError,
    UnsupportedOperationError,
    UpstreamError,
)
from .models import (
    AgentIntent,
    BoundaryReceipt,
    CallData,
    CallResult,
    Capability,
    ErrorKind,
    ExecutionResult,
    Priority,
    RiskLevel,
    SimulationResult,
    SourcedData,
    generate_trace_id,
)
from .parameters import OPERATION_MODELS, parse_operation_parameters
from .registry import AgentRegistry
from .risk import calculate_risk

__all__ = [
    "AgentError",
    "AgentIntent",
    "AgentRegistry",
    "BaseAgent",
    "BoundaryReceipt",
    "CallData",
    "CallResult",
    "Capability",
    "CeilingExceededError",
    "DEFAULT_EXPLORER_URL",
    "ErrorKind",
    "ExecutionBoundary",
    "ExecutionResult",
    "IntentExpiredError",
    "IntentValidationError",
    "OPERATION_MODELS",
    "Priority",
    "RiskLevel",
    "SimulationResult",
    "SourcedData",
    "TransactingAgent",
    "UnsupportedOperationError",
    "UpstreamError",
    "calculate_risk",
    "generate_trace_id",
    "parse_operation_parameters",
]
