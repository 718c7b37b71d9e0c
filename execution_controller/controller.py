"""Router: classify, plan, simulate and execute with fail-fast dispatch."""

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from agent_engine.base import BaseAgent
from agent_engine.models import (
    AgentIntent,
    Capability,
    ErrorKind,
    ExecutionResult,
    Priority,
    SimulationResult,
    failed_execution,
    failed_simulation,
    generate_trace_id,
)
from agent_engine.registry import AgentRegistry
from execution_engine.models import Classification, ExecutionPlan
from execution_engine.planner import (
    COMPLEX_OPERATION_WARNING,
    ExecutionPlanner,
    assess_risk,
    validate_plan,
)

from .memory import InMemoryUserStore, UserPreferences, UserStore
from .modes import PlanState, execution_outcome
from .policy import PlanCheck, PreferencePolicy

logger = logging.getLogger(__name__)

UNKNOWN_CAPABILITY = "unknown"
DEFAULT_EXPLANATION = "Execution plan generated successfully."

_PORTFOLIO_OPERATIONS = ("get_balances", "get_pnl", "get_positions")
_RESEARCH_OPERATIONS = ("market_data", "news", "token_analysis", "protocol_analysis")
_ANALYTICS_OPERATIONS = ("decode_transaction", "analyze_gas", "risk_assessment", "performance_report")


class IntentParseError(RuntimeError):
    """Raised when a user message cannot be turned into an execution plan."""


class IntentClassifier(Protocol):
    async def classify(
        self, user_message: str, context: Optional[Mapping[str, Any]] = None
    ) -> Classification:
        ...


class PlanNarrator(Protocol):
    async def narrate(
        self,
        classification: Classification,
        steps: Sequence[AgentIntent],
        estimated_gas: float,
        estimated_value: float,
    ) -> str:
        ...


def infer_capability_from_step(step: AgentIntent) -> str:
    """Map a step to the capability string used for registry lookup.

    The checks run in a fixed order; a description mentioning "swap" wins
    over any operation.
    """

    operation = step.parameters.get("operation")
    description = step.description.lower()

    if "swap" in description or operation == "swap":
        return Capability.SWAP.value
    if operation == "stake":
        return Capability.STAKE.value
    if operation == "unstake":
        return Capability.UNSTAKE.value
    if operation == "claim_rewards":
        return Capability.STAKE.value
    if "portfolio" in description or operation in _PORTFOLIO_OPERATIONS:
        return Capability.PORTFOLIO_ANALYSIS.value
    if operation in _RESEARCH_OPERATIONS:
        return Capability.MARKET_RESEARCH.value
    if operation in _ANALYTICS_OPERATIONS:
        return Capability.TRANSACTION_ANALYSIS.value
    return UNKNOWN_CAPABILITY


class CoreRouter:
    """Top-level orchestrator over one registry of agents.

    The first registered agent for a capability serves every step that maps
    to it. Steps run strictly in order and are never retried.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        classifier: IntentClassifier,
        narrator: Optional[PlanNarrator] = None,
        planner: Optional[ExecutionPlanner] = None,
        store: Optional[UserStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._classifier = classifier
        self._narrator = narrator
        self._clock = clock
        self._planner = planner or ExecutionPlanner(clock=clock)
        self._store = store or InMemoryUserStore(clock=clock)

    async def parse_intent(
        self,
        user_message: str,
        user_address: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionPlan:
        try:
            classification = await self._classifier.classify(user_message, context)
            steps = self._planner.create_execution_steps(classification, user_address)

            warnings: List[str] = []
            if classification.intent == "complex_operation":
                warnings.append(COMPLEX_OPERATION_WARNING)

            estimated_gas = 0.0
            estimated_value = 0.0
            for step in steps:
                capability = infer_capability_from_step(step)
                agent = self._agent_for(capability)
                if agent is None:
                    logger.warning("No agent for capability %s while planning %s", capability, step.id)
                    warnings.append(f"No agent found for capability: {capability}")
                    continue
                simulation = await agent.simulate(step)
                if not simulation.success:
                    warnings.append(simulation.justification)
                    continue
                estimated_gas += simulation.gas_estimate
                estimated_value += simulation.value_estimate
                warnings.extend(simulation.warnings)

            explanation = await self._explain_plan(classification, steps, estimated_gas, estimated_value)
            plan = ExecutionPlan(
                id=generate_trace_id(self._clock),
                user_address=user_address,
                classification=classification,
                steps=steps,
                estimated_gas=estimated_gas,
                estimated_value=estimated_value,
                risk_assessment=assess_risk(classification, estimated_value),
                explanation=explanation,
                warnings=tuple(warnings),
            )
            validate_plan(plan)
        except Exception as exc:
            logger.exception("Failed to parse intent for %s", user_address)
            raise IntentParseError(f"Failed to parse intent: {exc}") from exc
        return plan

    async def simulate_plan(self, plan: ExecutionPlan) -> Tuple[SimulationResult, ...]:
        results = []
        for step in plan.steps:
            capability = infer_capability_from_step(step)
            agent = self._agent_for(capability)
            if agent is None:
                logger.warning("No agent for capability %s while simulating %s", capability, step.id)
                results.append(
                    failed_simulation(
                        f"No agent found for capability: {capability}",
                        warnings=(f"Missing agent for {capability}",),
                        error_kind=ErrorKind.DISPATCH,
                    )
                )
                continue
            results.append(await agent.simulate(step))
        return tuple(results)

    async def execute_plan(self, plan: ExecutionPlan) -> Tuple[ExecutionResult, ...]:
        results: List[ExecutionResult] = []
        for step in plan.steps:
            capability = infer_capability_from_step(step)
            agent = self._agent_for(capability)
            if agent is None:
                logger.warning("No agent for capability %s; stopping plan %s", capability, plan.id)
                results.append(
                    failed_execution(
                        f"No agent found for capability: {capability}",
                        ErrorKind.DISPATCH,
                        timestamp=self._clock(),
                    )
                )
                break

            try:
                result = await agent.execute(step)
            except Exception as exc:
                logger.exception("Step %s raised during execution of plan %s", step.id, plan.id)
                results.append(
                    failed_execution(str(exc) or type(exc).__name__, ErrorKind.EXECUTION, timestamp=self._clock())
                )
                break

            results.append(result)
            if not result.success and step.priority != Priority.LOW:
                logger.warning("Step %s failed; stopping plan %s: %s", step.id, plan.id, result.error)
                break

        outcome = execution_outcome(plan.steps, results)
        logger.info("Plan %s finished %s after %d of %d steps", plan.id, outcome.value, len(results), len(plan.steps))
        return tuple(results)

    async def explain_results(
        self, plan: ExecutionPlan, results: Sequence[ExecutionResult]
    ) -> Tuple[str, ...]:
        explanations = []
        for step, result in zip(plan.steps, results):
            agent = self._agent_for(infer_capability_from_step(step))
            if agent is None:
                explanations.append(f"Transaction failed: {result.error or 'Unknown error'}")
                continue
            explanations.append(await agent.explain(result))
        return tuple(explanations)

    def plan_outcome(self, plan: ExecutionPlan, results: Sequence[ExecutionResult]) -> PlanState:
        return execution_outcome(plan.steps, results)

    def get_available_capabilities(self) -> Tuple[str, ...]:
        capabilities: Dict[str, None] = {}
        for agent in self._registry.get_all():
            for capability in agent.capabilities:
                capabilities.setdefault(capability, None)
        return tuple(capabilities)

    async def health_check(self) -> Tuple[Dict[str, str], ...]:
        report = []
        for agent in self._registry.get_all():
            probe = AgentIntent(
                id="health-check",
                user_address="0x0000000000000000000000000000000000000000",
                description="Health check",
                parameters={},
                max_gas=100_000,
                max_value=0,
                deadline=int(self._clock()) + 300,
            )
            try:
                await agent.simulate(probe)
            except Exception as exc:
                logger.exception("Health check failed for %s", agent.agent_id)
                report.append({"agent": agent.name, "status": "error", "error": str(exc)})
                continue
            report.append({"agent": agent.name, "status": "healthy"})
        return tuple(report)

    def get_user_preferences(self, user_address: str) -> UserPreferences:
        return self._store.get_preferences(user_address)

    def set_user_preferences(self, user_address: str, **changes) -> UserPreferences:
        return self._store.set_preferences(user_address, **changes)

    def record_intent(self, user_address: str, intent: str) -> None:
        self._store.record_intent(user_address, intent)

    def get_frequent_operations(self, user_address: str, limit: int = 5) -> Tuple[Tuple[str, int], ...]:
        return self._store.frequent_operations(user_address, limit)

    def get_recent_intents(self, user_address: str) -> Tuple[str, ...]:
        return self._store.recent_intents(user_address)

    def clear_user_memory(self, user_address: str) -> None:
        self._store.clear(user_address)

    def check_plan(self, plan: ExecutionPlan, simulations: Sequence[SimulationResult] = ()) -> PlanCheck:
        policy = PreferencePolicy(self.get_user_preferences(plan.user_address))
        return policy.check(plan, simulations)

    def _agent_for(self, capability: str) -> Optional[BaseAgent]:
        agents = self._registry.get_by_capability(capability)
        return agents[0] if agents else None

    async def _explain_plan(
        self,
        classification: Classification,
        steps: Sequence[AgentIntent],
        estimated_gas: float,
        estimated_value: float,
    ) -> str:
        if self._narrator is None:
            return DEFAULT_EXPLANATION
        return await self._narrator.narrate(classification, steps, estimated_gas, estimated_value)
