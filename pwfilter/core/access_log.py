"""
Access log — one record per authorized (bot-like) request, shipped to the
cloud API. Fire-and-forget: schedule() never blocks the response, and a
failed write is logged here and otherwise ignored.
"""

import httpx
import structlog

from pwfilter.config import ServiceConfig
from pwfilter.core.context import FilterContext
from pwfilter.core.models import AuthorizationDecision, RequestContext

logger = structlog.get_logger()

ACCESS_LOG_PATH = "/api/filter/access/logs"


def build_log_body(request: RequestContext, decision: AuthorizationDecision, cfg: ServiceConfig) -> dict:
    return {
        "account_id": cfg.publisher_id,
        "status": decision.status_payload(),
        "method": request.method,
        "hostname": request.hostname,
        "resource": request.resource,
        "user_agent": request.user_agent,
        "headers": request.headers,
    }


class AccessLogger:
    def __init__(self, context: FilterContext):
        self.context = context

    async def log_access(self, request: RequestContext, decision: AuthorizationDecision, cfg: ServiceConfig) -> None:
        url = f"{cfg.api_host}{ACCESS_LOG_PATH}"
        try:
            body = build_log_body(request, decision, cfg)
            async with self.context.http_client(timeout=self.context.settings.log_timeout_seconds) as client:
                resp = await client.post(url, json=body, headers={"Authorization": f"Bearer {cfg.api_key}"})
        except httpx.HTTPError as e:
            logger.error("access_log_request_error", url=url, error=repr(e))
            return

        if not resp.is_success:
            logger.error("access_log_failed", status_code=resp.status_code, reason=resp.reason_phrase)

    def schedule(self, request: RequestContext, decision: AuthorizationDecision, cfg: ServiceConfig):
        """Submit log_access to the background task set and return the task."""
        return self.context.tasks.submit(self.log_access(request, decision, cfg), name="pwfilter-access-log")
