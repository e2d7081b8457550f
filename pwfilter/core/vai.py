"""
VAI passthrough.

`{vai_path}/vai.json` and `{vai_path}/vai.js` on the publisher's site are
relayed as-is to the cloud API's `/pw/vai.json` and `/pw/vai.js`. No bot
detection, no authorization: these two paths are always proxied.
"""

from urllib.parse import urlsplit

import httpx
import structlog

from pwfilter.config import ServiceConfig, sdk_user_agent
from pwfilter.core.context import FilterContext
from pwfilter.core.models import RequestContext, UpstreamResponse

logger = structlog.get_logger()

CLOUD_VAI_JSON = "/pw/vai.json"
CLOUD_VAI_JS = "/pw/vai.js"


def is_vai_request(url: str, vai_path: str = "/pw") -> bool:
    try:
        path = urlsplit(url).path
    except ValueError:
        return False
    return path in (f"{vai_path}/vai.json", f"{vai_path}/vai.js")


def forward_headers(request: RequestContext, cfg: ServiceConfig) -> dict[str, str]:
    headers = {
        "User-Agent": request.header("user-agent") or sdk_user_agent(),
        "Authorization": f"Bearer {cfg.api_key}",
    }
    client_ip = request.header("x-forwarded-for") or request.header("cf-connecting-ip")
    if client_ip:
        headers["X-Forwarded-For"] = client_ip
    host = request.header("host")
    if host:
        headers["X-Original-Host"] = host
    return headers


class VaiProxy:
    def __init__(self, context: FilterContext):
        self.context = context

    async def proxy(self, request: RequestContext, cfg: ServiceConfig) -> UpstreamResponse:
        cloud_path = CLOUD_VAI_JSON if request.path.endswith("/vai.json") else CLOUD_VAI_JS
        url = f"{cfg.api_host}{cloud_path}"

        async with self.context.http_client() as client:
            try:
                resp = await client.get(url, headers=forward_headers(request, cfg))
            except httpx.HTTPError as e:
                logger.error("vai_proxy_error", url=url, error=repr(e))
                return UpstreamResponse(
                    status_code=500,
                    headers=[("Content-Type", "text/plain")],
                    content=b"Internal Server Error",
                    reason_phrase="Internal Server Error",
                )

        if not resp.is_success:
            logger.warning("vai_proxy_upstream_error", status_code=resp.status_code, reason=resp.reason_phrase)

        return UpstreamResponse(
            status_code=resp.status_code,
            headers=list(resp.headers.multi_items()),
            content=resp.content,
            reason_phrase=resp.reason_phrase,
        )
