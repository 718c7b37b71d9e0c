"""Short user-facing explanations of execution plans."""

import logging
from typing import Sequence

from agent_engine.errors import UpstreamError
from agent_engine.formatting import NATIVE_SYMBOL, format_amount
from agent_engine.models import AgentIntent
from execution_engine.models import Classification

from .client import ChatCompletionClient

logger = logging.getLogger(__name__)

FALLBACK_EXPLANATION = "Execution plan generated successfully."


def build_explanation_prompt(
    classification: Classification,
    steps: Sequence[AgentIntent],
    estimated_gas: float,
    estimated_value: float,
) -> str:
    return (
        "Generate a clear, concise explanation for the user about what will happen.\n\n"
        f"Intent: {classification.intent}\n"
        f"Steps: {len(steps)}\n"
        f"Estimated gas: {format_amount(estimated_gas)}\n"
        f"Estimated value: {format_amount(estimated_value)} {NATIVE_SYMBOL}\n"
        f"Risk level: {classification.risk_level.value}\n\n"
        "Provide a 2-3 sentence explanation of:\n"
        "1. What action will be performed\n"
        "2. Key parameters (amounts, validators, etc.)\n"
        "3. Expected outcomes and any important considerations\n\n"
        "Be friendly but precise. Don't include technical jargon."
    )


class PlanNarrator:
    def __init__(self, client: ChatCompletionClient) -> None:
        self._client = client

    async def narrate(
        self,
        classification: Classification,
        steps: Sequence[AgentIntent],
        estimated_gas: float,
        estimated_value: float,
    ) -> str:
        prompt = build_explanation_prompt(classification, steps, estimated_gas, estimated_value)
        try:
            content = await self._client.complete(
                [{"role": "user", "content": prompt}],
                temperature=0.3,
                max_tokens=200,
            )
        except UpstreamError as exc:
            logger.warning("Plan explanation unavailable, using default text: %s", exc)
            return FALLBACK_EXPLANATION
        return content or FALLBACK_EXPLANATION
