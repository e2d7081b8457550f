"""Tests for the rule set and classification caches."""

import pytest

from pwfilter.core.cache import ClassificationCache, RuleSetCache
from pwfilter.core.models import AgentClassification, RuleSet


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestRuleSetCache:
    def test_empty_returns_none(self):
        assert RuleSetCache().get() is None

    def test_fresh_value_returned(self):
        clock = FakeClock()
        cache = RuleSetCache(ttl_seconds=3600, clock=clock)
        rs = RuleSet(rules=(), fetched_at=0)
        cache.set(rs)
        clock.now += 3599
        assert cache.get() is rs

    def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = RuleSetCache(ttl_seconds=3600, clock=clock)
        cache.set(RuleSet(rules=(), fetched_at=0))
        clock.now += 3600
        assert cache.get() is None

    def test_set_replaces_wholesale(self):
        cache = RuleSetCache()
        first = RuleSet(rules=(), fetched_at=1)
        second = RuleSet(rules=(), fetched_at=2)
        cache.set(first)
        cache.set(second)
        assert cache.get() is second

    def test_invalidate(self):
        cache = RuleSetCache()
        cache.set(RuleSet(rules=(), fetched_at=0))
        cache.invalidate()
        assert cache.get() is None


class TestClassificationCache:
    def test_unbounded_by_default(self):
        cache = ClassificationCache()
        for i in range(5000):
            cache.set(f"ua-{i}", AgentClassification())
        assert len(cache) == 5000
        assert cache.get("ua-0") is not None

    def test_miss_returns_none(self):
        assert ClassificationCache().get("nope") is None

    def test_invalidate_clears_everything(self):
        cache = ClassificationCache()
        cache.set("a", AgentClassification())
        cache.set("b", AgentClassification())
        cache.invalidate()
        assert len(cache) == 0
        assert cache.get("a") is None

    def test_bounded_evicts_least_recently_used(self):
        cache = ClassificationCache(max_entries=2)
        cache.set("a", AgentClassification(browser="A"))
        cache.set("b", AgentClassification(browser="B"))
        cache.get("a")  # a is now most recent
        cache.set("c", AgentClassification(browser="C"))
        assert cache.get("b") is None
        assert cache.get("a").browser == "A"
        assert cache.get("c").browser == "C"
        assert len(cache) == 2

    def test_invalid_bound_rejected(self):
        with pytest.raises(ValueError):
            ClassificationCache(max_entries=0)
