from .classifier import CLASSIFICATION_PROMPT, ClassificationError, IntentClassifier, build_user_prompt
from .client import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    ChatCompletionClient,
    LLMAdapterError,
    sanitize_context,
    strip_code_fence,
)
from .narrator import FALLBACK_EXPLANATION, PlanNarrator, build_explanation_prompt

__all__ = [
    "CLASSIFICATION_PROMPT",
    "ChatCompletionClient",
    "ClassificationError",
    "DEFAULT_BASE_URL",
    "DEFAULT_MODEL",
    "FALLBACK_EXPLANATION",
    "IntentClassifier",
    "LLMAdapterError",
    "PlanNarrator",
    "build_explanation_prompt",
    "build_user_prompt",
    "sanitize_context",
    "strip_code_fence",
]
