"""Intent shape, parameter parsing, risk scoring and registry lookups."""

import unittest
from dataclasses import replace

from agent_engine.base import BaseAgent
from agent_engine.errors import (
    CeilingExceededError,
    IntentValidationError,
    UnsupportedOperationError,
)
from agent_engine.models import (
    AgentIntent,
    CallData,
    ErrorKind,
    ExecutionResult,
    CallResult,
    Priority,
    RiskLevel,
    SimulationResult,
    failed_simulation,
    generate_trace_id,
)
from agent_engine.parameters import (
    StakeParameters,
    SwapParameters,
    parse_operation_parameters,
)
from agent_engine.registry import AgentRegistry
from agent_engine.risk import apply_risk_penalty, calculate_risk, risk_score
from agent_engine.validation import check_ceilings, validate_intent


def _intent(**overrides) -> AgentIntent:
    fields = dict(
        id="step-1",
        user_address="0x1111111111111111111111111111111111111111",
        description="Swap 1 ETH for USDC",
        parameters={"operation": "swap", "tokenIn": "ETH", "tokenOut": "USDC", "amountIn": 1},
        max_gas=300_000,
        max_value=1,
        deadline=2_000_000_000,
        slippage=1.0,
        priority=Priority.MEDIUM,
    )
    fields.update(overrides)
    return AgentIntent(**fields)


class _StubAgent(BaseAgent):
    def __init__(self, agent_id, capabilities):
        super().__init__(agent_id, agent_id.title(), capabilities)

    async def _simulate(self, intent, params):
        raise NotImplementedError

    async def _execute(self, intent, params):
        raise NotImplementedError


class AgentIntentTests(unittest.TestCase):
    def test_round_trip_through_wire_dict(self) -> None:
        intent = _intent()

        data = intent.to_dict()

        self.assertEqual(data["userAddress"], intent.user_address)
        self.assertEqual(data["priority"], "medium")
        self.assertEqual(AgentIntent.from_dict(data), intent)

    def test_optional_fields_are_omitted_when_unset(self) -> None:
        data = _intent(slippage=None, priority=None).to_dict()

        self.assertNotIn("slippage", data)
        self.assertNotIn("priority", data)

    def test_parameters_are_read_only(self) -> None:
        source = {"operation": "swap"}
        intent = _intent(parameters=source)
        source["operation"] = "stake"

        self.assertEqual(intent.parameters["operation"], "swap")
        with self.assertRaises(TypeError):
            intent.parameters["operation"] = "stake"  # type: ignore[index]

    def test_trace_ids_are_unique_and_prefixed(self) -> None:
        first = generate_trace_id(lambda: 1.5)
        second = generate_trace_id(lambda: 1.5)

        self.assertTrue(first.startswith("trace_1500_"))
        self.assertNotEqual(first, second)


class ValidationTests(unittest.TestCase):
    def test_valid_intent_passes(self) -> None:
        validate_intent(_intent())

    def test_zero_max_gas_is_allowed(self) -> None:
        validate_intent(_intent(max_gas=0))

    def test_bad_shapes_are_rejected(self) -> None:
        cases = (
            {"id": ""},
            {"user_address": ""},
            {"max_gas": -1},
            {"max_value": -0.5},
            {"deadline": 12.5},
            {"deadline": True},
            {"slippage": 150},
        )
        for overrides in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(IntentValidationError):
                    validate_intent(_intent(**overrides))

    def test_ceilings(self) -> None:
        call = CallData(target="0x01", data="0x", value=0, description="call", gas_limit=200_000)

        check_ceilings(_intent(max_gas=0), (call, call))
        with self.assertRaises(CeilingExceededError):
            check_ceilings(_intent(max_gas=300_000), (call, call))
        with self.assertRaises(CeilingExceededError):
            check_ceilings(_intent(max_value=0), (replace(call, value=1),))


class ParameterParsingTests(unittest.TestCase):
    def test_swap_parameters_accept_camel_case(self) -> None:
        params = parse_operation_parameters(
            {"operation": "swap", "tokenIn": "ETH", "tokenOut": "USDC", "amountIn": "2.5", "preferredDex": "Demo"}
        )

        self.assertIsInstance(params, SwapParameters)
        self.assertEqual(params.amount_in, 2.5)
        self.assertEqual(params.preferred_dex, "Demo")

    def test_default_operation_fills_missing_operation(self) -> None:
        params = parse_operation_parameters({"amount": 10}, default_operation="stake")

        self.assertIsInstance(params, StakeParameters)
        self.assertEqual(params.operation, "stake")

    def test_unknown_operation_is_unsupported(self) -> None:
        with self.assertRaisesRegex(UnsupportedOperationError, "Unsupported operation: bridge"):
            parse_operation_parameters({"operation": "bridge"})

    def test_non_finite_amounts_are_rejected(self) -> None:
        for amount in ("1e400", float("inf"), float("nan")):
            with self.subTest(amount=amount):
                with self.assertRaises(IntentValidationError):
                    parse_operation_parameters(
                        {"operation": "swap", "tokenIn": "ETH", "tokenOut": "USDC", "amountIn": amount}
                    )

    def test_transaction_hash_accepts_short_key(self) -> None:
        params = parse_operation_parameters({"operation": "decode_transaction", "txHash": "0xabc"})

        self.assertEqual(params.transaction_hash, "0xabc")

    def test_missing_inputs_report_the_reason(self) -> None:
        with self.assertRaisesRegex(IntentValidationError, "Position ID required for unstaking"):
            parse_operation_parameters({"operation": "unstake", "amount": 5})
        with self.assertRaisesRegex(IntentValidationError, "Transaction hash required for decoding"):
            parse_operation_parameters({"operation": "decode_transaction"})
        with self.assertRaisesRegex(IntentValidationError, "amountIn"):
            parse_operation_parameters({"operation": "swap", "tokenIn": "ETH", "tokenOut": "USDC"})


class RiskScoringTests(unittest.TestCase):
    def test_tiers(self) -> None:
        self.assertEqual(calculate_risk(50, 1), RiskLevel.LOW)
        self.assertEqual(calculate_risk(5_000, 1), RiskLevel.MEDIUM)
        self.assertEqual(calculate_risk(50_000, 2), RiskLevel.HIGH)
        self.assertEqual(calculate_risk(50_000, 3, 0.5), RiskLevel.CRITICAL)

    def test_score_is_monotonic_in_each_input(self) -> None:
        values = (0, 100, 101, 1_001, 10_001, 1_000_000)
        complexities = (0, 1, 2, 3, 10)
        impacts = (0.0, 0.01, 0.1, 0.3, 1.0)
        order = list(RiskLevel)

        for complexity in complexities:
            for impact in impacts:
                levels = [order.index(calculate_risk(v, complexity, impact)) for v in values]
                self.assertEqual(levels, sorted(levels))
        for value in values:
            scores = [risk_score(value, c, 0.05) for c in complexities]
            self.assertEqual(scores, sorted(scores))
            scores = [risk_score(value, 1, i) for i in impacts]
            self.assertEqual(scores, sorted(scores))

    def test_components_are_capped(self) -> None:
        self.assertEqual(risk_score(1e12, 100, 100), 100)

    def test_penalty_never_drops_below_floor(self) -> None:
        self.assertAlmostEqual(apply_risk_penalty(0.9, RiskLevel.MEDIUM), 0.8)
        self.assertEqual(apply_risk_penalty(0.3, RiskLevel.CRITICAL), 0.1)


class ResultShapeTests(unittest.TestCase):
    def test_failed_simulation_shape(self) -> None:
        result = failed_simulation("nope", ("warn",))

        self.assertFalse(result.success)
        self.assertEqual(result.calls, ())
        self.assertNotEqual(result.risk, RiskLevel.LOW)
        self.assertEqual(result.error_kind, ErrorKind.VALIDATION)

    def test_failed_simulation_cannot_carry_calls(self) -> None:
        call = CallData(target="0x01", data="0x", value=0, description="call")
        with self.assertRaises(ValueError):
            SimulationResult(False, 0, 0, RiskLevel.HIGH, (call,), "bad")

    def test_success_cannot_hide_failed_required_call(self) -> None:
        with self.assertRaises(ValueError):
            ExecutionResult(success=True, calls=(CallResult(success=False, gas_used=0),))
        ExecutionResult(success=True, calls=(CallResult(success=False, gas_used=0, required=False),))


class AgentRegistryTests(unittest.TestCase):
    def test_lookup_keeps_registration_order(self) -> None:
        registry = AgentRegistry()
        first = _StubAgent("first", ("swap",))
        second = _StubAgent("second", ("swap", "stake"))
        registry.register(first)
        registry.register(second)

        self.assertEqual(registry.get_by_capability("swap"), (first, second))
        self.assertEqual(registry.get_by_capability("stake"), (second,))
        self.assertEqual(registry.get_by_capability("bridge"), ())
        self.assertIs(registry.get("second"), second)

    def test_unregister_and_replace(self) -> None:
        registry = AgentRegistry()
        registry.register(_StubAgent("agent", ("swap",)))
        replacement = _StubAgent("agent", ("stake",))
        registry.register(replacement)

        self.assertEqual(registry.get_all(), (replacement,))
        registry.unregister("agent")
        registry.unregister("agent")
        self.assertIsNone(registry.get("agent"))


if __name__ == "__main__":
    unittest.main()
