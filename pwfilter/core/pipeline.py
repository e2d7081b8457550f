"""
The per-request decision pipeline, independent of any CDN.

    START → VAI_CHECK → PROXIED
                      → BOT_CHECK → PASS_THROUGH
                                  → AUTHORIZE → ALLOW | DENY

PROXIED and DENY produce a response; PASS_THROUGH and ALLOW hand the request
back to the host. Every authorized request gets an access log, scheduled in
the background.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum

import structlog

from pwfilter.config import ServiceConfig
from pwfilter.core.access_log import AccessLogger
from pwfilter.core.authorization import AuthorizationClient, bad_gateway
from pwfilter.core.bot_detection import detect
from pwfilter.core.classifier import UserAgentClassifier
from pwfilter.core.context import FilterContext
from pwfilter.core.models import AuthorizationDecision, RequestContext, UpstreamResponse
from pwfilter.core.pattern_store import PatternStore
from pwfilter.core.vai import VaiProxy, is_vai_request
from pwfilter.errors import FilterError, SignalError

logger = structlog.get_logger()


class FilterState(str, Enum):
    PROXIED = "proxied"
    PASS_THROUGH = "pass_through"
    ALLOW = "allow"
    DENY = "deny"


@dataclass
class PipelineResult:
    state: FilterState
    decision: AuthorizationDecision | None = None
    upstream: UpstreamResponse | None = None
    log_task: asyncio.Task | None = None
    signal: str = ""

    @property
    def intercepts(self) -> bool:
        return self.state in (FilterState.PROXIED, FilterState.DENY)


class FilterPipeline:
    def __init__(self, context: FilterContext):
        self.context = context
        self.store = PatternStore(context)
        self.classifier = UserAgentClassifier(context, self.store)
        self.authorizer = AuthorizationClient(context, self.classifier)
        self.access_logger = AccessLogger(context)
        self.vai = VaiProxy(context)

    async def warm(self, cfg: ServiceConfig) -> bool:
        """Load the rule set if it is missing or stale. Failures are logged, not raised."""
        try:
            await self.store.get_rule_set(cfg)
        except FilterError as e:
            logger.warning("agent_patterns_warm_failed", error=str(e))
            return False
        return True

    async def run(self, request: RequestContext, cfg: ServiceConfig) -> PipelineResult:
        if is_vai_request(request.url, cfg.vai_path):
            upstream = await self.vai.proxy(request, cfg)
            return PipelineResult(state=FilterState.PROXIED, upstream=upstream)

        rule_set_ready = await self.warm(cfg)

        try:
            verdict = await detect(
                request,
                self.classifier,
                cfg,
                self.context.settings.bot_score_threshold,
                use_rule_set=rule_set_ready,
            )
        except SignalError:
            raise
        except FilterError as e:
            # Rule set unavailable: fail closed.
            logger.error("bot_check_failed", error=str(e), resource=request.resource)
            return self._decided(request, cfg, bad_gateway(), signal="")

        if not rule_set_ready and (verdict.is_bot or request.user_agent):
            # Rule set unavailable, and either signal 4 or authorization needs it.
            logger.error("bot_check_failed", error="rule set unavailable", resource=request.resource)
            return self._decided(request, cfg, bad_gateway(), signal=verdict.signal)

        if not verdict.is_bot:
            return PipelineResult(state=FilterState.PASS_THROUGH)

        decision = await self.authorizer.authorize(request, cfg)
        return self._decided(request, cfg, decision, signal=verdict.signal)

    def _decided(
        self,
        request: RequestContext,
        cfg: ServiceConfig,
        decision: AuthorizationDecision,
        signal: str,
    ) -> PipelineResult:
        log_task = self.access_logger.schedule(request, decision, cfg)
        state = FilterState.DENY if decision.denied else FilterState.ALLOW
        logger.info(
            "agent_request_decided",
            access=decision.access,
            reason=decision.reason,
            signal=signal,
            hostname=request.hostname,
            resource=request.resource,
        )
        return PipelineResult(state=state, decision=decision, log_task=log_task, signal=signal)
