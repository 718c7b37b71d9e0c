from .controller import (
    DEFAULT_EXPLANATION,
    UNKNOWN_CAPABILITY,
    CoreRouter,
    IntentClassifier,
    IntentParseError,
    PlanNarrator,
    infer_capability_from_step,
)
from .memory import InMemoryUserStore, UserMemory, UserPreferences, UserStore
from .modes import PlanState, execution_outcome
from .policy import PlanCheck, PreferencePolicy

__all__ = [
    "CoreRouter",
    "DEFAULT_EXPLANATION",
    "InMemoryUserStore",
    "IntentClassifier",
    "IntentParseError",
    "PlanCheck",
    "PlanNarrator",
    "PlanState",
    "PreferencePolicy",
    "UNKNOWN_CAPABILITY",
    "UserMemory",
    "UserPreferences",
    "UserStore",
    "execution_outcome",
    "infer_capability_from_step",
]
