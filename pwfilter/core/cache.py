"""
Process-wide caches for the rule set and per-UA classifications.

Neither cache locks. Concurrent refreshes may both write; last writer wins.

Classification cache key is the raw user-agent string. Unbounded by default:
cardinality of distinct UAs is the only thing limiting its growth between
rule set refreshes (each refresh clears it). Pass max_entries to bound it
with LRU eviction instead.
"""

import time
from collections import OrderedDict
from typing import Callable

import structlog

from pwfilter.core.models import AgentClassification, RuleSet

logger = structlog.get_logger()

DEFAULT_RULESET_TTL_SECONDS = 3600.0


class RuleSetCache:
    """Singleton slot holding the current RuleSet for ttl_seconds."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_RULESET_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: RuleSet | None = None
        self._stored_at: float = 0.0

    def get(self) -> RuleSet | None:
        """Current RuleSet, or None when empty or expired."""
        if self._value is None:
            return None
        if self._clock() - self._stored_at >= self.ttl_seconds:
            return None
        return self._value

    def set(self, value: RuleSet) -> None:
        self._value = value
        self._stored_at = self._clock()

    def invalidate(self) -> None:
        self._value = None
        self._stored_at = 0.0


class ClassificationCache:
    def __init__(self, max_entries: int | None = None):
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive or None")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, AgentClassification] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, user_agent: str) -> AgentClassification | None:
        result = self._entries.get(user_agent)
        if result is not None and self.max_entries is not None:
            self._entries.move_to_end(user_agent)
        return result

    def set(self, user_agent: str, classification: AgentClassification) -> None:
        self._entries[user_agent] = classification
        if self.max_entries is None:
            return
        self._entries.move_to_end(user_agent)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self) -> None:
        if self._entries:
            logger.debug("classification_cache_cleared", entries=len(self._entries))
        self._entries.clear()
