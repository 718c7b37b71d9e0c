"""Plan lifecycle states."""

from enum import Enum
from typing import Sequence

from agent_engine.models import AgentIntent, ExecutionResult, Priority


class PlanState(Enum):
    CREATED = "created"
    SIMULATED = "simulated"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


def execution_outcome(steps: Sequence[AgentIntent], results: Sequence[ExecutionResult]) -> PlanState:
    """Final state of an executed plan.

    A plan completes when every step ran and only low-priority steps failed.
    Missing results mean execution stopped early.
    """

    if len(results) < len(steps):
        return PlanState.FAILED
    for step, result in zip(steps, results):
        if not result.success and step.priority != Priority.LOW:
            return PlanState.FAILED
    return PlanState.COMPLETED
