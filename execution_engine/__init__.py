from .models import Classification, ExecutionPlan
from .planner import (
    COMPLEX_OPERATION_WARNING,
    ExecutionPlanner,
    PlanValidationError,
    UnsupportedIntentError,
    assess_risk,
    validate_plan,
)

__all__ = [
    "COMPLEX_OPERATION_WARNING",
    "Classification",
    "ExecutionPlan",
    "ExecutionPlanner",
    "PlanValidationError",
    "UnsupportedIntentError",
    "assess_risk",
    "validate_plan",
]
