"""Tests for the pattern store: fetch, TTL, invalidation, failure modes."""

import httpx
import pytest

from pwfilter.core.cache import RuleSetCache
from pwfilter.core.context import FilterContext
from pwfilter.core.models import AgentClassification, UserInitiated
from pwfilter.core.pattern_store import METADATA_PATH, PatternStore, parse_rule
from pwfilter.errors import DeserializationError, FetchError

from conftest import AGENT_RULES


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestParseRule:
    def test_full_rule(self):
        rule = parse_rule(AGENT_RULES[2])
        assert rule.operator == "Anthropic"
        assert rule.agent == "ClaudeBot"
        assert rule.usage == ("ai_training",)
        assert rule.user_initiated is UserInitiated.NO
        assert len(rule.patterns) == 2
        assert rule.usage_prefs_only is False

    def test_missing_patterns_is_empty(self):
        rule = parse_rule({"operator": "X", "agent": "Y"})
        assert rule.patterns == ()

    def test_unknown_user_initiated_dropped(self):
        rule = parse_rule({"operator": "X", "agent": "Y", "user_initiated": "sometimes", "patterns": []})
        assert rule.user_initiated is None

    def test_usage_deduplicated_in_order(self):
        rule = parse_rule({"operator": "X", "usage": ["b", "a", "b"], "patterns": []})
        assert rule.usage == ("b", "a")

    def test_bad_pattern_raises(self):
        with pytest.raises(DeserializationError):
            parse_rule({"operator": "X", "patterns": ["not-an-envelope"]})


class TestGetRuleSet:
    @pytest.mark.asyncio
    async def test_fetches_and_parses(self, context, cfg, fake_api):
        rule_set = await PatternStore(context).get_rule_set(cfg)
        assert [r.agent for r in rule_set.rules] == ["GPTBot", "ChatGPT-User", "ClaudeBot"]

        call = fake_api.calls_to(METADATA_PATH)[0]
        assert call.method == "POST"
        assert call.headers["Authorization"] == "Bearer test-key"
        assert call.headers["User-Agent"].startswith("pw-filter-sdk/")

    @pytest.mark.asyncio
    async def test_cached_within_ttl(self, context, cfg, fake_api):
        store = PatternStore(context)
        first = await store.get_rule_set(cfg)
        second = await store.get_rule_set(cfg)
        assert first is second
        assert len(fake_api.calls_to(METADATA_PATH)) == 1

    @pytest.mark.asyncio
    async def test_refetched_after_ttl(self, settings, cfg, fake_api):
        clock = FakeClock()
        context = FilterContext(
            settings,
            rule_cache=RuleSetCache(ttl_seconds=settings.pattern_cache_ttl_seconds, clock=clock),
            transport=fake_api.transport,
        )
        store = PatternStore(context)

        await store.get_rule_set(cfg)
        clock.now += settings.pattern_cache_ttl_seconds
        await store.get_rule_set(cfg)
        assert len(fake_api.calls_to(METADATA_PATH)) == 2

    @pytest.mark.asyncio
    async def test_refresh_clears_classification_cache(self, context, cfg):
        context.classification_cache.set("GPTBot/1.0", AgentClassification(browser="stale"))
        await PatternStore(context).get_rule_set(cfg)
        assert context.classification_cache.get("GPTBot/1.0") is None

    @pytest.mark.asyncio
    async def test_non_success_raises_fetch_error(self, context, cfg, fake_api):
        fake_api.set("POST", METADATA_PATH, httpx.Response(503))
        with pytest.raises(FetchError) as exc:
            await PatternStore(context).get_rule_set(cfg)
        assert exc.value.status_code == 503
        assert context.rule_cache.get() is None

    @pytest.mark.asyncio
    async def test_transport_error_raises_fetch_error(self, context, cfg, fake_api):
        fake_api.set("POST", METADATA_PATH, httpx.ConnectError("refused"))
        with pytest.raises(FetchError):
            await PatternStore(context).get_rule_set(cfg)

    @pytest.mark.asyncio
    async def test_timeout_raises_fetch_error(self, context, cfg, fake_api):
        fake_api.set("POST", METADATA_PATH, httpx.ReadTimeout("slow"))
        with pytest.raises(FetchError):
            await PatternStore(context).get_rule_set(cfg)

    @pytest.mark.asyncio
    async def test_failure_keeps_classification_cache(self, context, cfg, fake_api):
        fake_api.set("POST", METADATA_PATH, httpx.Response(500))
        context.classification_cache.set("ua", AgentClassification())
        with pytest.raises(FetchError):
            await PatternStore(context).get_rule_set(cfg)
        assert context.classification_cache.get("ua") is not None

    @pytest.mark.asyncio
    async def test_non_array_payload_rejected(self, context, cfg, fake_api):
        fake_api.set("POST", METADATA_PATH, httpx.Response(200, json={"rules": []}))
        with pytest.raises(DeserializationError):
            await PatternStore(context).get_rule_set(cfg)


class TestMalformedPatterns:
    RULES = [
        {"operator": "Bad", "agent": "Broken", "patterns": ["/(oops/"]},
        {"operator": "OpenAI", "agent": "GPTBot", "patterns": ["/GPTBot/"]},
    ]

    @pytest.mark.asyncio
    async def test_lenient_skips_bad_rule(self, context, cfg, fake_api):
        fake_api.set("POST", METADATA_PATH, httpx.Response(200, json=self.RULES))
        rule_set = await PatternStore(context).get_rule_set(cfg)
        assert [r.agent for r in rule_set.rules] == ["GPTBot"]

    @pytest.mark.asyncio
    async def test_strict_fails_whole_load(self, settings, cfg, fake_api):
        strict = settings.model_copy(update={"strict_patterns": True})
        context = FilterContext(strict, transport=fake_api.transport)
        fake_api.set("POST", METADATA_PATH, httpx.Response(200, json=self.RULES))
        with pytest.raises(DeserializationError):
            await PatternStore(context).get_rule_set(cfg)
        assert context.rule_cache.get() is None
