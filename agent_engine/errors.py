"""Agent-side failures, each tagged with the ErrorKind it surfaces as."""

from .models import ErrorKind


class AgentError(RuntimeError):
    """Base class for failures an agent reports as a failed result."""

    kind = ErrorKind.EXECUTION


class IntentValidationError(AgentError, ValueError):
    """Raised when an intent or its parameters fail validation."""

    kind = ErrorKind.VALIDATION


class UnsupportedOperationError(IntentValidationError):
    """Raised when an agent is handed an operation it does not serve."""


class CeilingExceededError(IntentValidationError):
    """Raised when the calls for an intent would exceed its gas or value ceiling."""


class IntentExpiredError(AgentError):
    """Raised when an intent is executed after its deadline."""

    kind = ErrorKind.EXPIRED


class UpstreamError(AgentError):
    """Raised when an external data source fails and no fallback applies."""

    kind = ErrorKind.UPSTREAM
