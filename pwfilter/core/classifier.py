"""
User-agent classification.

Two sources, merged:
  1. Generic browser / OS parsing (user-agents lib), never needs the network
  2. The cloud rule set: first rule whose pattern matches wins, rules and
     patterns in declared order

Results are cached per exact raw UA string until the next rule set refresh.
"""

from user_agents import parse as parse_ua

import structlog

from pwfilter.config import ServiceConfig
from pwfilter.core.context import FilterContext
from pwfilter.core.models import AgentClassification, RuleSet
from pwfilter.core.pattern_store import PatternStore

logger = structlog.get_logger()

UNKNOWN = "Unknown"
_UNRESOLVED_FAMILIES = {"", "Other"}


def parse_browser_os(user_agent: str) -> tuple[str, str]:
    """Best-effort (browser, os). Crawlers are not browsers."""
    parsed = parse_ua(user_agent or "")
    browser = parsed.browser.family or ""
    os_family = parsed.os.family or ""
    if parsed.is_bot or browser in _UNRESOLVED_FAMILIES:
        browser = UNKNOWN
    if os_family in _UNRESOLVED_FAMILIES:
        os_family = UNKNOWN
    return browser, os_family


def match_rules(user_agent: str, rule_set: RuleSet, browser: str, os_family: str) -> AgentClassification:
    """Pure function of (user_agent, rule_set)."""
    for rule in rule_set.rules:
        for pattern in rule.patterns:
            if pattern.search(user_agent):
                return AgentClassification(
                    browser=browser,
                    os=os_family,
                    operator=rule.operator,
                    agent=rule.agent or browser,
                    usage=rule.usage,
                    user_initiated=rule.user_initiated,
                )
    return AgentClassification(browser=browser, os=os_family)


class UserAgentClassifier:
    def __init__(self, context: FilterContext, store: PatternStore | None = None):
        self.context = context
        self.store = store or PatternStore(context)

    async def classify(self, user_agent: str, cfg: ServiceConfig) -> AgentClassification:
        # An expired rule set is refreshed first; the refresh clears the
        # classification cache, so nothing computed under old rules is served.
        rule_set = self.store.current()
        if rule_set is None:
            rule_set = await self.store.get_rule_set(cfg)

        cache = self.context.classification_cache
        cached = cache.get(user_agent)
        if cached is not None:
            logger.debug("ua_classification_cache_hit", user_agent=user_agent)
            return cached
        logger.debug("ua_classification_cache_miss", user_agent=user_agent)

        browser, os_family = parse_browser_os(user_agent)
        result = match_rules(user_agent, rule_set, browser, os_family)

        cache.set(user_agent, result)
        return result
