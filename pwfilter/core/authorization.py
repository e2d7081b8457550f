"""
Authorization client — asks the cloud API whether a recognized agent may
read this resource.

The cloud API owns the policy; its decision is enforced as returned.
Anything that prevents getting a decision (no UA aside) is a 502 deny:
transport errors, timeouts, non-2xx, unreadable body, or a rule set that
cannot be loaded for classification.
"""

import httpx
import structlog
from pydantic import ValidationError

from pwfilter.config import ServiceConfig
from pwfilter.core.classifier import UserAgentClassifier
from pwfilter.core.context import FilterContext
from pwfilter.core.models import AuthorizationDecision, RequestContext, deny
from pwfilter.errors import FilterError

logger = structlog.get_logger()

AUTH_PATH = "/api/filter/agents/auth"

REASON_MISSING_USER_AGENT = "missing_user_agent"
REASON_UNKNOWN_ERROR = "unknown_error"


def missing_user_agent() -> AuthorizationDecision:
    return deny(REASON_MISSING_USER_AGENT, 401, "Unauthorized access.")


def bad_gateway() -> AuthorizationDecision:
    return deny(REASON_UNKNOWN_ERROR, 502, "Bad Gateway.")


def extract_access_token(authorization: str | None) -> str | None:
    """`Bearer abc` → `abc`: the word after the first space."""
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) < 2:
        return None
    return parts[1]


class AuthorizationClient:
    def __init__(self, context: FilterContext, classifier: UserAgentClassifier):
        self.context = context
        self.classifier = classifier

    async def authorize(self, request: RequestContext, cfg: ServiceConfig) -> AuthorizationDecision:
        user_agent = request.user_agent
        if not user_agent:
            logger.warning("agent_auth_missing_user_agent", resource=request.resource)
            return missing_user_agent()

        try:
            agent_info = await self.classifier.classify(user_agent, cfg)
        except FilterError as e:
            logger.error("agent_auth_classification_failed", error=str(e))
            return bad_gateway()

        body = {
            "account_id": cfg.publisher_id,
            "operator": agent_info.operator,
            "agent": agent_info.agent,
            "token": extract_access_token(request.header("authorization")),
            "headers": request.headers,
        }

        url = f"{cfg.api_host}{AUTH_PATH}"
        async with self.context.http_client() as client:
            try:
                resp = await client.post(
                    url,
                    json=body,
                    headers={"Authorization": f"Bearer {cfg.api_key}"},
                )
            except httpx.HTTPError as e:
                logger.error("agent_auth_request_error", url=url, error=repr(e))
                return bad_gateway()

        if not resp.is_success:
            logger.error("agent_auth_failed", status_code=resp.status_code, reason=resp.reason_phrase)
            return bad_gateway()

        try:
            return AuthorizationDecision.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            logger.error("agent_auth_invalid_response", error=str(e))
            return bad_gateway()
