"""LLM-backed intent classification."""

import json
import logging
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from agent_engine.errors import UpstreamError
from execution_engine.models import Classification

from .client import ChatCompletionClient, sanitize_context, strip_code_fence

logger = logging.getLogger(__name__)

CLASSIFICATION_TEMPERATURE = 0.1
CLASSIFICATION_MAX_TOKENS = 1000
PREVIOUS_MESSAGE_LIMIT = 3

CLASSIFICATION_PROMPT = """You are an expert DeFi intent classifier for a multi-agent AI system on Somnia blockchain.

Your task is to analyze user messages and classify them into structured intents with high accuracy.

Available agent capabilities:
- swap: Token swapping and DEX operations
- stake: Validator staking operations
- unstake: Token unstaking and position management
- portfolio_analysis: Portfolio tracking and analytics
- market_research: Market data and analysis
- transaction_analysis: Transaction decoding and explanation

Common intent types:
- swap_tokens: User wants to swap one token for another
- stake_tokens: User wants to stake tokens with validators
- unstake_tokens: User wants to unstake tokens
- claim_rewards: User wants to claim staking rewards
- portfolio_analysis: User wants to see portfolio overview
- get_balances: User wants to see current token balances
- market_research: User wants market data or analysis
- get_news: User wants recent crypto news
- transaction_analysis: User wants to understand a transaction
- risk_assessment: User wants a risk review of their portfolio
- complex_operation: User asks for several dependent operations at once

Output format (JSON only):
{
  "intent": "swap_tokens|stake_tokens|unstake_tokens|claim_rewards|portfolio_analysis|get_balances|market_research|get_news|transaction_analysis|risk_assessment|complex_operation",
  "confidence": 0.0-1.0,
  "requiredAgents": ["agent1", "agent2"],
  "parameters": {
    // Intent-specific parameters
    // For swap: tokenIn, tokenOut, amountIn, amountOutMin, slippage
    // For stake: amount, validatorId (optional)
    // For unstake: amount, positionId
    // For portfolio: timeframe, includeStaking
    // For research: operation, tokens, protocols, query
    // For transaction analysis: transactionHash
  },
  "priority": "low|medium|high",
  "riskLevel": "low|medium|high"
}

Rules:
- Always extract numeric amounts and addresses accurately
- Default slippage for swaps: 1%
- High priority for large amounts or time-sensitive operations
- Higher risk for larger amounts or complex operations
- Be conservative with confidence scores
- If unclear, ask for clarification by setting confidence < 0.5"""


class ClassificationError(UpstreamError):
    """Raised when the LLM answer cannot be read as a classification."""


def build_user_prompt(user_message: str, context: Optional[Mapping[str, Any]] = None) -> str:
    prompt = f'User message: "{user_message}"'
    if not context:
        return prompt

    context = sanitize_context(context)
    balance = context.get("user_balance")
    if balance:
        prompt += f"\nUser balance: {balance} STT"
    positions = context.get("current_positions")
    if positions:
        prompt += f"\nCurrent positions: {json.dumps(positions, default=str)}"
    previous = context.get("previous_messages")
    if previous:
        prompt += f"\nPrevious context: {'; '.join(previous[-PREVIOUS_MESSAGE_LIMIT:])}"
    return prompt


class IntentClassifier:
    """Turns one user message into a :class:`Classification`.

    ``context`` may carry ``user_balance``, ``current_positions`` and
    ``previous_messages``; anything resembling key material is dropped before
    it reaches the prompt.
    """

    def __init__(self, client: ChatCompletionClient) -> None:
        self._client = client

    async def classify(
        self, user_message: str, context: Optional[Mapping[str, Any]] = None
    ) -> Classification:
        content = await self._client.complete(
            [
                {"role": "system", "content": CLASSIFICATION_PROMPT},
                {"role": "user", "content": build_user_prompt(user_message, context)},
            ],
            temperature=CLASSIFICATION_TEMPERATURE,
            max_tokens=CLASSIFICATION_MAX_TOKENS,
        )
        if not content:
            raise ClassificationError("No response from LLM")

        try:
            classification = Classification.model_validate_json(strip_code_fence(content))
        except ValidationError as exc:
            if any(error["type"] == "json_invalid" for error in exc.errors()):
                raise ClassificationError("Invalid JSON response from LLM") from exc
            logger.warning("Classifier answer failed validation: %s", exc.error_count())
            raise ClassificationError(f"Invalid classification from LLM: {_first_error(exc)}") from exc

        logger.debug("Classified message as %s (confidence %.2f)", classification.intent, classification.confidence)
        return classification


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error["loc"]) or "payload"
    return f"{location}: {error['msg']}"
