"""
Process-scoped state: both caches, the background task set, and how to reach
the network. One default instance serves every handler in a process; tests
build their own.
"""

from functools import lru_cache

import httpx

from pwfilter.config import Settings, get_settings, sdk_user_agent
from pwfilter.core.cache import ClassificationCache, RuleSetCache
from pwfilter.core.tasks import BackgroundTasks


class FilterContext:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        rule_cache: RuleSetCache | None = None,
        classification_cache: ClassificationCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.rule_cache = rule_cache or RuleSetCache(ttl_seconds=self.settings.pattern_cache_ttl_seconds)
        self.classification_cache = classification_cache or ClassificationCache(
            max_entries=self.settings.classification_cache_max_entries,
        )
        self.tasks = BackgroundTasks()
        self.transport = transport

    def http_client(self, timeout: float | None = None) -> httpx.AsyncClient:
        """A short-lived client; callers use it as an async context manager."""
        return httpx.AsyncClient(
            transport=self.transport,
            timeout=timeout if timeout is not None else self.settings.request_timeout_seconds,
            headers={"User-Agent": sdk_user_agent()},
        )


@lru_cache
def get_default_context() -> FilterContext:
    return FilterContext()
