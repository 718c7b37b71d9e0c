"""Per-user preferences and intent history."""

import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field, fields, replace
from typing import Callable, Deque, Dict, Optional, Protocol, Tuple

RECENT_INTENT_LIMIT = 50


@dataclass(frozen=True)
class UserPreferences:
    max_spend_per_intent: float = 10_000
    default_slippage: float = 1.0
    allowed_protocols: Tuple[str, ...] = ()
    allowed_contracts: Tuple[str, ...] = ()
    default_currency: str = "STT"
    risk_tolerance: str = "medium"
    auto_2fa: bool = True
    auto_2fa_threshold: float = 1_000

    def updated(self, **changes) -> "UserPreferences":
        known = {item.name for item in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"Unknown preference(s): {', '.join(unknown)}")
        for key in ("allowed_protocols", "allowed_contracts"):
            if key in changes:
                changes[key] = tuple(changes[key])
        return replace(self, **changes)


@dataclass
class UserMemory:
    address: str
    preferences: UserPreferences = field(default_factory=UserPreferences)
    recent_intents: Deque[str] = field(default_factory=lambda: deque(maxlen=RECENT_INTENT_LIMIT))
    frequent_operations: Counter = field(default_factory=Counter)
    last_updated: float = 0.0


class UserStore(Protocol):
    def get_preferences(self, user_address: str) -> UserPreferences:
        ...

    def set_preferences(self, user_address: str, **changes) -> UserPreferences:
        ...

    def record_intent(self, user_address: str, intent: str) -> None:
        ...

    def frequent_operations(self, user_address: str, limit: int = 5) -> Tuple[Tuple[str, int], ...]:
        ...

    def recent_intents(self, user_address: str) -> Tuple[str, ...]:
        ...

    def clear(self, user_address: str) -> None:
        ...


class InMemoryUserStore:
    """Process-local store; every read and write holds one lock."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._memories: Dict[str, UserMemory] = {}

    def get_preferences(self, user_address: str) -> UserPreferences:
        with self._lock:
            memory = self._memories.get(user_address)
            return memory.preferences if memory else UserPreferences()

    def set_preferences(self, user_address: str, **changes) -> UserPreferences:
        with self._lock:
            memory = self._memory_for(user_address)
            memory.preferences = memory.preferences.updated(**changes)
            memory.last_updated = self._clock()
            return memory.preferences

    def record_intent(self, user_address: str, intent: str) -> None:
        with self._lock:
            memory = self._memory_for(user_address)
            memory.recent_intents.append(intent)
            memory.frequent_operations[intent] += 1
            memory.last_updated = self._clock()

    def frequent_operations(self, user_address: str, limit: int = 5) -> Tuple[Tuple[str, int], ...]:
        with self._lock:
            memory = self._memories.get(user_address)
            if memory is None:
                return ()
            return tuple(memory.frequent_operations.most_common(limit))

    def recent_intents(self, user_address: str) -> Tuple[str, ...]:
        with self._lock:
            memory = self._memories.get(user_address)
            return tuple(memory.recent_intents) if memory else ()

    def clear(self, user_address: str) -> None:
        with self._lock:
            self._memories.pop(user_address, None)

    def _memory_for(self, user_address: str) -> UserMemory:
        memory: Optional[UserMemory] = self._memories.get(user_address)
        if memory is None:
            memory = UserMemory(address=user_address, last_updated=self._clock())
            self._memories[user_address] = memory
        return memory
