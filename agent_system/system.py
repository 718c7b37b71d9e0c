"""Composition root: one registry, five agents and a router."""

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from agent_engine.models import ExecutionResult, SimulationResult
from agent_engine.registry import AgentRegistry
from defi_agents import AnalyticsAgent, PortfolioAgent, ResearchAgent, StakeAgent, TradeAgent
from execution_adapter.ethereum import DryRunBoundary
from execution_controller import CoreRouter, InMemoryUserStore
from execution_engine.models import ExecutionPlan
from llm_adapter import ChatCompletionClient, IntentClassifier, PlanNarrator

from .config import AgentSystemConfig

logger = logging.getLogger(__name__)

RESEARCH_MODEL = "gpt-4"


class AgentSystem:
    """Front door for callers that only hold a config.

    The boundary is a dry-run one allowlisted to the two adapter contracts;
    nothing here signs or broadcasts.
    """

    def __init__(
        self,
        config: AgentSystemConfig,
        router_client: Optional[ChatCompletionClient] = None,
        research_client: Optional[ChatCompletionClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self._router_client = router_client or ChatCompletionClient(
            config.openrouter_api_key,
            base_url=config.openrouter_base_url,
            model=config.model,
            timeout_seconds=config.llm_timeout_seconds,
        )
        if research_client is None and config.venice_api_key:
            research_client = ChatCompletionClient(
                config.venice_api_key,
                base_url=config.venice_base_url,
                model=RESEARCH_MODEL,
                timeout_seconds=config.llm_timeout_seconds,
            )
        self._research_client = research_client

        self.boundary = DryRunBoundary(
            allowed_targets=(config.swap_adapter_address, config.staking_adapter_address)
        )
        self.registry = AgentRegistry()
        self.trade_agent = TradeAgent(
            config.swap_adapter_address, self.boundary, clock=clock, explorer_url=config.explorer_url
        )
        self.stake_agent = StakeAgent(
            config.staking_adapter_address, self.boundary, clock=clock, explorer_url=config.explorer_url
        )
        self.portfolio_agent = PortfolioAgent(clock=clock, explorer_url=config.explorer_url)
        self.research_agent = ResearchAgent(research_client, clock=clock, explorer_url=config.explorer_url)
        self.analytics_agent = AnalyticsAgent(clock=clock, explorer_url=config.explorer_url)
        for agent in (
            self.trade_agent,
            self.stake_agent,
            self.portfolio_agent,
            self.research_agent,
            self.analytics_agent,
        ):
            self.registry.register(agent)

        self.router = CoreRouter(
            self.registry,
            IntentClassifier(self._router_client),
            narrator=PlanNarrator(self._router_client),
            store=InMemoryUserStore(clock=clock),
            clock=clock,
        )
        logger.info("Agent system ready with %d agents", len(self.registry.get_all()))

    async def process_message(
        self,
        message: str,
        user_address: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionPlan:
        plan = await self.router.parse_intent(message, user_address, context)
        self.router.record_intent(user_address, plan.classification.intent)
        return plan

    async def simulate_plan(self, plan: ExecutionPlan) -> Tuple[SimulationResult, ...]:
        return await self.router.simulate_plan(plan)

    async def execute_plan(self, plan: ExecutionPlan) -> Tuple[ExecutionResult, ...]:
        return await self.router.execute_plan(plan)

    async def explain_results(
        self, plan: ExecutionPlan, results: Sequence[ExecutionResult]
    ) -> Tuple[str, ...]:
        return await self.router.explain_results(plan, results)

    def get_capabilities(self) -> Tuple[str, ...]:
        return self.router.get_available_capabilities()

    async def health_check(self) -> Tuple[Dict[str, str], ...]:
        return await self.router.health_check()

    def get_registry(self) -> AgentRegistry:
        return self.registry

    def get_trade_agent(self) -> TradeAgent:
        return self.trade_agent

    def get_stake_agent(self) -> StakeAgent:
        return self.stake_agent

    def get_portfolio_agent(self) -> PortfolioAgent:
        return self.portfolio_agent

    def get_research_agent(self) -> ResearchAgent:
        return self.research_agent

    def get_analytics_agent(self) -> AnalyticsAgent:
        return self.analytics_agent

    async def close(self) -> None:
        await self._router_client.close()
        if self._research_client is not None:
            await self._research_client.close()


def create_agent_system(config: Optional[AgentSystemConfig] = None, **kwargs) -> AgentSystem:
    return AgentSystem(config or AgentSystemConfig.from_env(), **kwargs)
