"""
Bot detection — is this request worth an authorization call?

Signals, cheapest first, short-circuiting on the first hit:
  1. Cloudflare bot management: score < threshold, or verified bot
  2. Fastly bot detection: same pair, relayed as X-Fastly-* headers
  3. Test override: ?user-agent=...bot... on the URL
  4. Cloud rule set: UA classifies to a known operator + agent

Only signal 4 can touch the network (rule set load), so it runs last.
Absent CDN signals count as "not a bot" for that check alone.
"""

import re
from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit

import structlog

from pwfilter.config import ServiceConfig
from pwfilter.core.classifier import UserAgentClassifier
from pwfilter.core.models import HostBotSignal, RequestContext
from pwfilter.errors import SignalError

logger = structlog.get_logger()

DEFAULT_BOT_SCORE_THRESHOLD = 30
TEST_OVERRIDE_PARAM = "user-agent"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass
class BotVerdict:
    is_bot: bool
    signal: str = ""  # which check fired: cloudflare, fastly, test_override, classifier


def fastly_header_signal(headers: dict[str, str]) -> HostBotSignal | None:
    """Fastly's verdict from X-Fastly-Bot-Score / X-Fastly-Known-Bot, if either is present."""
    lowered = {k.lower(): v for k, v in headers.items()}
    raw_score = lowered.get("x-fastly-bot-score")
    raw_known = lowered.get("x-fastly-known-bot")
    if raw_score is None and raw_known is None:
        return None

    score = None
    if raw_score:
        m = _LEADING_INT.match(raw_score)
        if m:
            score = int(m.group(1))
    return HostBotSignal(
        source="fastly",
        score=score,
        verified_bot=(raw_known == "true") if raw_known is not None else None,
    )


def host_signal_is_bot(signal: HostBotSignal, threshold: int = DEFAULT_BOT_SCORE_THRESHOLD) -> bool:
    if signal.verified_bot:
        return True
    return signal.score is not None and signal.score < threshold


def is_test_bot(url: str) -> bool:
    try:
        query = urlsplit(url).query
    except ValueError as e:
        raise SignalError(f"test bot failed: {url} | {e}") from e
    values = parse_qs(query, keep_blank_values=True).get(TEST_OVERRIDE_PARAM)
    return bool(values) and "bot" in values[0]


async def detect(
    context: RequestContext,
    classifier: UserAgentClassifier,
    cfg: ServiceConfig,
    threshold: int = DEFAULT_BOT_SCORE_THRESHOLD,
    use_rule_set: bool = True,
) -> BotVerdict:
    """Run the signals in order. Pattern store errors from signal 4 propagate.

    With use_rule_set=False signal 4 is skipped; callers use that once a rule
    set load has already failed for this request.
    """
    for source in ("cloudflare", "fastly"):
        for signal in context.signals:
            if signal.source == source and host_signal_is_bot(signal, threshold):
                return BotVerdict(is_bot=True, signal=source)

    if is_test_bot(context.url):
        return BotVerdict(is_bot=True, signal="test_override")

    user_agent = context.user_agent
    if user_agent and use_rule_set:
        classification = await classifier.classify(user_agent, cfg)
        if classification.is_known_agent:
            return BotVerdict(is_bot=True, signal="classifier")

    return BotVerdict(is_bot=False)


async def is_bot_like(
    context: RequestContext,
    classifier: UserAgentClassifier,
    cfg: ServiceConfig,
    threshold: int = DEFAULT_BOT_SCORE_THRESHOLD,
) -> bool:
    return (await detect(context, classifier, cfg, threshold)).is_bot
