"""Step construction, risk text and plan validation for the execution planner."""

import itertools
import unittest
from dataclasses import replace

from pydantic import ValidationError

from agent_engine.models import Priority, RiskLevel
from execution_engine.models import Classification, ExecutionPlan
from execution_engine.planner import (
    COMPLEX_OPERATION_WARNING,
    STEP_TTL_SECONDS,
    ExecutionPlanner,
    PlanValidationError,
    UnsupportedIntentError,
    assess_risk,
    validate_plan,
)

NOW = 1_700_000_000.0
USER = "0x1111111111111111111111111111111111111111"


def _classification(intent: str, parameters=None, **overrides) -> Classification:
    payload = {
        "intent": intent,
        "confidence": 0.9,
        "requiredAgents": [],
        "parameters": parameters or {},
        "priority": "medium",
        "riskLevel": "low",
    }
    payload.update(overrides)
    return Classification.model_validate(payload)


class ExecutionPlannerTests(unittest.TestCase):
    def setUp(self) -> None:
        counter = itertools.count(1)
        self.planner = ExecutionPlanner(clock=lambda: NOW, id_factory=lambda: f"step-{next(counter)}")

    def test_swap_step(self) -> None:
        (step,) = self.planner.create_execution_steps(
            _classification("swap_tokens", {"tokenIn": "ETH", "tokenOut": "USDC", "amountIn": "1.5"}),
            USER,
        )

        self.assertEqual(step.description, "Swap 1.5 ETH for USDC")
        self.assertEqual(step.parameters["operation"], "swap")
        self.assertEqual(step.max_gas, 300_000)
        self.assertEqual(step.max_value, 1.5)
        self.assertEqual(step.slippage, 1.0)
        self.assertEqual(step.deadline, int(NOW) + STEP_TTL_SECONDS)
        self.assertEqual(step.priority, Priority.MEDIUM)

    def test_swap_keeps_requested_slippage(self) -> None:
        (step,) = self.planner.create_execution_steps(
            _classification("swap_tokens", {"tokenIn": "ETH", "tokenOut": "USDC", "amountIn": 1, "slippage": 2.5}),
            USER,
        )

        self.assertEqual(step.slippage, 2.5)

    def test_staking_steps(self) -> None:
        (stake,) = self.planner.create_execution_steps(_classification("stake_tokens", {"amount": 100}), USER)
        (unstake,) = self.planner.create_execution_steps(
            _classification("unstake_tokens", {"amount": 50, "positionId": "0xpos1"}), USER
        )
        (claim,) = self.planner.create_execution_steps(
            _classification("claim_rewards", {"positionId": "0xpos1"}), USER
        )

        self.assertEqual((stake.description, stake.max_gas, stake.max_value), ("Stake 100 STT", 300_000, 100.0))
        self.assertEqual((unstake.parameters["operation"], unstake.max_gas, unstake.max_value), ("unstake", 250_000, 0))
        self.assertEqual((claim.description, claim.max_gas), ("Claim staking rewards", 200_000))

    def test_read_only_steps(self) -> None:
        expected = {
            "portfolio_analysis": "get_pnl",
            "get_balances": "get_balances",
            "transaction_analysis": "decode_transaction",
            "risk_assessment": "risk_assessment",
            "get_news": "news",
        }
        for intent, operation in expected.items():
            with self.subTest(intent=intent):
                (step,) = self.planner.create_execution_steps(_classification(intent), USER)
                self.assertEqual(step.parameters["operation"], operation)
                self.assertEqual((step.max_gas, step.max_value), (0, 0))

    def test_market_research_keeps_classifier_operation(self) -> None:
        (default,) = self.planner.create_execution_steps(_classification("market_research"), USER)
        (explicit,) = self.planner.create_execution_steps(
            _classification("market_research", {"operation": "token_analysis", "tokens": ["STT"]}), USER
        )

        self.assertEqual(default.parameters["operation"], "market_data")
        self.assertEqual(explicit.parameters["operation"], "token_analysis")

    def test_priority_is_inherited(self) -> None:
        (step,) = self.planner.create_execution_steps(
            _classification("get_balances", priority="low"), USER
        )

        self.assertEqual(step.priority, Priority.LOW)

    def test_complex_operation_has_no_steps(self) -> None:
        self.assertEqual(self.planner.create_execution_steps(_classification("complex_operation"), USER), ())

    def test_unknown_intent_is_rejected(self) -> None:
        with self.assertRaisesRegex(UnsupportedIntentError, "Unsupported intent: bridge_tokens"):
            self.planner.create_execution_steps(_classification("bridge_tokens"), USER)

    def test_same_input_same_steps(self) -> None:
        classification = _classification("stake_tokens", {"amount": 10})
        first = ExecutionPlanner(clock=lambda: NOW, id_factory=lambda: "fixed").create_execution_steps(
            classification, USER
        )
        second = ExecutionPlanner(clock=lambda: NOW, id_factory=lambda: "fixed").create_execution_steps(
            classification, USER
        )

        self.assertEqual(first, second)


class ClassificationModelTests(unittest.TestCase):
    def test_defaults_and_aliases(self) -> None:
        classification = Classification.model_validate({"intent": "get_balances", "confidence": 0.4})

        self.assertEqual(classification.priority, Priority.MEDIUM)
        self.assertEqual(classification.risk_level, RiskLevel.MEDIUM)
        self.assertEqual(classification.required_agents, ())

    def test_rejects_out_of_range_confidence(self) -> None:
        with self.assertRaises(ValidationError):
            Classification.model_validate({"intent": "swap_tokens", "confidence": 1.5})


class RiskAssessmentTests(unittest.TestCase):
    def test_thresholds(self) -> None:
        low = _classification("stake_tokens")

        self.assertTrue(assess_risk(low, 0).startswith("Low risk"))
        self.assertTrue(assess_risk(low, 1_001).startswith("Medium risk"))
        self.assertTrue(assess_risk(low, 10_001).startswith("High risk"))
        self.assertTrue(assess_risk(_classification("stake_tokens", riskLevel="medium"), 0).startswith("Medium risk"))
        self.assertTrue(assess_risk(_classification("stake_tokens", riskLevel="high"), 0).startswith("High risk"))


class PlanValidationTests(unittest.TestCase):
    def setUp(self) -> None:
        counter = itertools.count(1)
        planner = ExecutionPlanner(clock=lambda: NOW, id_factory=lambda: f"step-{next(counter)}")
        classification = _classification("stake_tokens", {"amount": 10})
        self.plan = ExecutionPlan(
            id="plan-1",
            user_address=USER,
            classification=classification,
            steps=planner.create_execution_steps(classification, USER),
            estimated_gas=250_000,
            estimated_value=10,
            risk_assessment=assess_risk(classification, 10),
            explanation="Stake 10 STT.",
        )

    def test_valid_plan(self) -> None:
        validate_plan(self.plan)

    def test_empty_plan_needs_a_warning(self) -> None:
        empty = replace(self.plan, steps=())

        with self.assertRaises(PlanValidationError):
            validate_plan(empty)
        validate_plan(replace(empty, warnings=(COMPLEX_OPERATION_WARNING,)))

    def test_duplicate_step_ids(self) -> None:
        with self.assertRaisesRegex(PlanValidationError, "Duplicate step id"):
            validate_plan(replace(self.plan, steps=self.plan.steps * 2))

    def test_steps_must_belong_to_the_plan_user(self) -> None:
        other = replace(self.plan.steps[0], user_address="0x2222222222222222222222222222222222222222")

        with self.assertRaises(PlanValidationError):
            validate_plan(replace(self.plan, steps=(other,)))

    def test_negative_estimates(self) -> None:
        with self.assertRaises(PlanValidationError):
            validate_plan(replace(self.plan, estimated_gas=-1))


if __name__ == "__main__":
    unittest.main()
