"""Configuration loading and end-to-end wiring of the agent system."""

import json
import logging
import os
import tempfile
import unittest
from unittest import mock

from agent_system.config import DEFAULT_SWAP_ADAPTER_ADDRESS, AgentSystemConfig, ConfigError
from agent_system.logging_config import configure_logging
from agent_system.system import AgentSystem, create_agent_system
from execution_controller.modes import PlanState

NOW = 1_700_000_000.0
USER = "0x1111111111111111111111111111111111111111"


class _ScriptedLLM:
    """Answers classification prompts from a queue and everything else with a fixed line."""

    def __init__(self, classifications=()) -> None:
        self.classifications = list(classifications)
        self.closed = False

    async def complete(self, messages, temperature, max_tokens):
        if messages[0]["role"] == "system":
            return json.dumps(self.classifications.pop(0))
        return "Here is what will happen."

    async def close(self) -> None:
        self.closed = True


class AgentSystemConfigTests(unittest.TestCase):
    def test_from_env_defaults(self) -> None:
        config = AgentSystemConfig.from_env(environ={"OPENROUTER_API_KEY": "sk-test"})

        self.assertEqual(config.swap_adapter_address, DEFAULT_SWAP_ADAPTER_ADDRESS)
        self.assertIsNone(config.venice_api_key)
        self.assertEqual(config.llm_timeout_seconds, 30.0)
        self.assertEqual(config.log_level, "INFO")

    def test_from_env_overrides(self) -> None:
        config = AgentSystemConfig.from_env(
            environ={
                "OPENROUTER_API_KEY": "sk-test",
                "AGENT_MODEL": "custom-model",
                "VENICE_API_KEY": "vn-test",
                "LLM_TIMEOUT_SECONDS": "12.5",
                "SWAP_ADAPTER_ADDRESS": "0x00000000000000000000000000000000000000aa",
            }
        )

        self.assertEqual(config.model, "custom-model")
        self.assertEqual(config.venice_api_key, "vn-test")
        self.assertEqual(config.llm_timeout_seconds, 12.5)
        self.assertEqual(config.swap_adapter_address, "0x00000000000000000000000000000000000000aa")

    def test_invalid_settings(self) -> None:
        cases = (
            {},
            {"OPENROUTER_API_KEY": "sk", "LLM_TIMEOUT_SECONDS": "soon"},
            {"OPENROUTER_API_KEY": "sk", "LLM_TIMEOUT_SECONDS": "-1"},
            {"OPENROUTER_API_KEY": "sk", "STAKING_ADAPTER_ADDRESS": "0x1234"},
            {"OPENROUTER_API_KEY": "sk", "LOG_LEVEL": "LOUD"},
        )
        for environ in cases:
            with self.subTest(environ=environ):
                with self.assertRaises(ConfigError):
                    AgentSystemConfig.from_env(environ=environ)

    def test_env_file_does_not_override_environment(self) -> None:
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, ".env")
            with open(path, "w", encoding="utf-8") as handle:
                handle.write("OPENROUTER_API_KEY=from-file\nAGENT_MODEL=file-model\n")
            with mock.patch.dict(os.environ, {"OPENROUTER_API_KEY": "from-env"}, clear=True):
                config = AgentSystemConfig.from_env(env_file=path)

        self.assertEqual(config.openrouter_api_key, "from-env")
        self.assertEqual(config.model, "file-model")


class LoggingConfigTests(unittest.TestCase):
    def tearDown(self) -> None:
        logging.basicConfig(force=True)

    def test_single_handler(self) -> None:
        configure_logging("debug")
        configure_logging("warning")

        root = logging.getLogger()
        self.assertEqual(len(root.handlers), 1)
        self.assertEqual(root.level, logging.WARNING)


class AgentSystemTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.config = AgentSystemConfig(openrouter_api_key="sk-test")

    def _system(self, *classifications) -> AgentSystem:
        self.llm = _ScriptedLLM(classifications)
        return AgentSystem(self.config, router_client=self.llm, clock=lambda: NOW)

    async def test_wires_five_agents(self) -> None:
        system = self._system()

        self.assertEqual(len(system.get_registry().get_all()), 5)
        capabilities = system.get_capabilities()
        for capability in ("swap", "stake", "unstake", "portfolio_analysis", "market_research", "transaction_analysis"):
            self.assertIn(capability, capabilities)
        health = await system.health_check()
        self.assertEqual({entry["status"] for entry in health}, {"healthy"})

    async def test_swap_round_trip(self) -> None:
        system = self._system(
            {
                "intent": "swap_tokens",
                "confidence": 0.9,
                "parameters": {"tokenIn": "ETH", "tokenOut": "USDC", "amountIn": 1},
                "priority": "medium",
                "riskLevel": "low",
            }
        )

        plan = await system.process_message("swap 1 ETH for USDC", USER)
        simulations = await system.simulate_plan(plan)
        results = await system.execute_plan(plan)
        explanations = await system.explain_results(plan, results)

        self.assertEqual(plan.estimated_gas, 180_000)
        self.assertEqual(plan.explanation, "Here is what will happen.")
        self.assertTrue(simulations[0].success)
        self.assertTrue(results[0].success)
        self.assertEqual(system.router.plan_outcome(plan, results), PlanState.COMPLETED)
        self.assertIn("optimal routing", explanations[0])
        self.assertEqual(system.router.get_recent_intents(USER), ("swap_tokens",))

    async def test_research_without_key_is_degraded(self) -> None:
        system = self._system(
            {"intent": "get_news", "confidence": 0.8, "parameters": {"query": "somnia"}, "priority": "low"}
        )

        plan = await system.process_message("any news?", USER)
        (result,) = await system.execute_plan(plan)

        self.assertTrue(result.success)
        self.assertEqual(result.degraded_reason, "Research API key not configured")

    async def test_close_closes_clients(self) -> None:
        system = self._system()

        await system.close()

        self.assertTrue(self.llm.closed)

    async def test_factory(self) -> None:
        system = create_agent_system(self.config, router_client=_ScriptedLLM())

        self.assertIs(system.get_trade_agent(), system.trade_agent)
        self.assertIsNone(system.get_research_agent()._client)


if __name__ == "__main__":
    unittest.main()
