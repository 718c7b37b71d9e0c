"""Checks a plan against the user's stored preferences."""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from agent_engine.formatting import format_amount
from agent_engine.models import AgentIntent, SimulationResult
from execution_engine.models import ExecutionPlan

from .memory import UserPreferences


@dataclass(frozen=True)
class PlanCheck:
    allowed: bool
    requires_2fa: bool
    violations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PreferencePolicy:
    preferences: UserPreferences

    def validate_step(
        self,
        step: AgentIntent,
        simulation: Optional[SimulationResult] = None,
    ) -> Tuple[str, ...]:
        violations = []
        prefs = self.preferences

        value = simulation.value_estimate if simulation is not None else step.max_value
        if value > prefs.max_spend_per_intent:
            violations.append(
                f"{step.description}: value {format_amount(value)} exceeds max spend per intent "
                f"{format_amount(prefs.max_spend_per_intent)}."
            )

        if prefs.allowed_contracts and simulation is not None:
            allowed = {contract.lower() for contract in prefs.allowed_contracts}
            for call in simulation.calls:
                if call.target.lower() not in allowed:
                    violations.append(f"{step.description}: contract {call.target} is not allowed.")

        dex = step.parameters.get("preferredDex")
        if prefs.allowed_protocols and dex and dex not in prefs.allowed_protocols:
            violations.append(f"{step.description}: protocol {dex} is not allowed.")

        return tuple(violations)

    def validate_steps(
        self,
        steps: Iterable[AgentIntent],
        simulations: Sequence[SimulationResult] = (),
    ) -> Tuple[str, ...]:
        violations = []
        for index, step in enumerate(steps):
            simulation = simulations[index] if index < len(simulations) else None
            violations.extend(self.validate_step(step, simulation))
        return tuple(violations)

    def requires_2fa(self, estimated_value: float) -> bool:
        return self.preferences.auto_2fa and estimated_value >= self.preferences.auto_2fa_threshold

    def check(self, plan: ExecutionPlan, simulations: Sequence[SimulationResult] = ()) -> PlanCheck:
        violations = self.validate_steps(plan.steps, simulations)
        return PlanCheck(
            allowed=not violations,
            requires_2fa=self.requires_2fa(plan.estimated_value),
            violations=violations,
        )
