"""Capability registry for agent dispatch."""

import logging
from typing import Dict, Optional, Tuple

from .base import BaseAgent

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Holds agents by id and answers capability lookups in registration order.

    No ranking is applied; callers pick among multiple matches themselves.
    """

    def __init__(self) -> None:
        self._agents: Dict[str, BaseAgent] = {}

    def register(self, agent: BaseAgent) -> None:
        if agent.agent_id in self._agents:
            logger.warning("Replacing registered agent %s", agent.agent_id)
        self._agents[agent.agent_id] = agent

    def get(self, agent_id: str) -> Optional[BaseAgent]:
        return self._agents.get(agent_id)

    def get_by_capability(self, capability: str) -> Tuple[BaseAgent, ...]:
        return tuple(agent for agent in self._agents.values() if capability in agent.capabilities)

    def get_all(self) -> Tuple[BaseAgent, ...]:
        return tuple(self._agents.values())

    def unregister(self, agent_id: str) -> None:
        self._agents.pop(agent_id, None)
