"""Domain models for intent classification and execution planning."""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field

from agent_engine.models import AgentIntent, Priority, RiskLevel


class Classification(BaseModel):
    """Structured reading of one user message, as produced by the classifier."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    intent: str = Field(min_length=1)
    confidence: float = Field(ge=0, le=1)
    required_agents: Tuple[str, ...] = Field(default=(), alias="requiredAgents")
    parameters: Dict[str, Any] = Field(default_factory=dict)
    priority: Priority = Priority.MEDIUM
    risk_level: RiskLevel = Field(default=RiskLevel.MEDIUM, alias="riskLevel")


@dataclass(frozen=True)
class ExecutionPlan:
    id: str
    user_address: str
    classification: Classification
    steps: Tuple[AgentIntent, ...]
    estimated_gas: float
    estimated_value: float
    risk_assessment: str
    explanation: str
    warnings: Tuple[str, ...] = ()
