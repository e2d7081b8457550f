"""
Pattern store — the agent rule set, fetched from the cloud API and cached.

Flow:
  1. Cached and younger than the TTL → return it
  2. POST {api_host}/api/filter/agents/metadata
  3. Decode every rule's patterns (see patterns.py)
  4. Swap the cached RuleSet and clear the classification cache

Malformed patterns: lenient by default (the rule is skipped and logged),
strict mode fails the whole load with DeserializationError.
"""

import time

import httpx
import structlog

from pwfilter.config import ServiceConfig
from pwfilter.core import patterns
from pwfilter.core.context import FilterContext
from pwfilter.core.models import ClassificationRule, RuleSet, UserInitiated
from pwfilter.errors import DeserializationError, FetchError

logger = structlog.get_logger()

METADATA_PATH = "/api/filter/agents/metadata"


def _parse_user_initiated(value) -> UserInitiated | None:
    if value is None:
        return None
    try:
        return UserInitiated(str(value).lower())
    except ValueError:
        return None


def parse_rule(raw: dict) -> ClassificationRule:
    """Build one rule from its wire form. Raises DeserializationError."""
    if not isinstance(raw, dict):
        raise DeserializationError(f"rule must be an object, got {type(raw).__name__}")
    raw_patterns = raw.get("patterns") or []
    if not isinstance(raw_patterns, list):
        raise DeserializationError("rule patterns must be a list", pattern=repr(raw_patterns))

    usage = raw.get("usage") or []
    if isinstance(usage, str):
        usage = [usage]

    return ClassificationRule(
        operator=raw.get("operator"),
        agent=raw.get("agent"),
        usage=tuple(dict.fromkeys(usage)),
        user_initiated=_parse_user_initiated(raw.get("user_initiated")),
        patterns=tuple(patterns.decode(p) for p in raw_patterns),
        usage_prefs_only=bool(raw.get("usage_prefs_only", False)),
    )


class PatternStore:
    def __init__(self, context: FilterContext):
        self.context = context

    def current(self) -> RuleSet | None:
        """Cached rule set without triggering a fetch."""
        return self.context.rule_cache.get()

    async def get_rule_set(self, cfg: ServiceConfig) -> RuleSet:
        cached = self.context.rule_cache.get()
        if cached is not None:
            return cached

        payload = await self._fetch(cfg)
        rule_set = RuleSet(rules=self._parse_rules(payload), fetched_at=time.time())

        self.context.rule_cache.set(rule_set)
        self.context.classification_cache.invalidate()
        logger.info("agent_patterns_loaded", rules=len(rule_set.rules))
        return rule_set

    async def _fetch(self, cfg: ServiceConfig) -> list:
        url = f"{cfg.api_host}{METADATA_PATH}"
        async with self.context.http_client() as client:
            try:
                resp = await client.post(
                    url,
                    headers={
                        "Content-Type": "application/json",
                        "Authorization": f"Bearer {cfg.api_key}",
                    },
                )
            except httpx.HTTPError as e:
                logger.error("agent_patterns_fetch_error", url=url, error=repr(e))
                raise FetchError(f"Failed to fetch agent patterns: {e!r}") from e

        if not resp.is_success:
            logger.error("agent_patterns_fetch_failed", status_code=resp.status_code)
            raise FetchError(
                f"Failed to fetch agent patterns: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise DeserializationError(f"agent patterns response is not JSON: {e}") from e
        if not isinstance(payload, list):
            raise DeserializationError("agent patterns response must be a JSON array")
        return payload

    def _parse_rules(self, payload: list) -> tuple[ClassificationRule, ...]:
        strict = self.context.settings.strict_patterns
        rules = []
        for index, raw in enumerate(payload):
            try:
                rules.append(parse_rule(raw))
            except DeserializationError as e:
                if strict:
                    logger.error("agent_pattern_invalid", index=index, pattern=e.pattern, error=str(e))
                    raise
                logger.warning("agent_pattern_skipped", index=index, pattern=e.pattern, error=str(e))
        return tuple(rules)
