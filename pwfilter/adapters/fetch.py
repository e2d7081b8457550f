"""
Fetch-style hosts: a request with `.url`, `.method` and a `.headers`
collection, answered with a Response object (Starlette's). Cloudflare and
Fastly both look like this; they differ in where bot signals and config
live.
"""

from typing import Any

from starlette.responses import Response

from pwfilter.adapters.base import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_DENY_BODY,
    DEFAULT_DENY_CODE,
    RequestAdapter,
    header_signals,
    relayable_headers,
)
from pwfilter.core.models import AuthorizationDecision, HostBotSignal, RequestContext, UpstreamResponse


def header_items(headers: Any) -> list[tuple[str, str]]:
    if headers is None:
        return []
    if hasattr(headers, "items"):
        return list(headers.items())
    if hasattr(headers, "entries"):  # JS Headers via a proxy
        return list(headers.entries())
    return list(headers)


class FetchStyleAdapter(RequestAdapter):
    def native_signals(self, native: Any) -> list[HostBotSignal]:
        return []

    def normalize(self, native: Any) -> RequestContext:
        headers = {k.lower(): v for k, v in header_items(native.headers)}
        return RequestContext(
            method=native.method,
            url=str(native.url),
            headers=headers,
            signals=tuple(self.native_signals(native) + header_signals(headers)),
            raw=native,
        )

    def build_response(self, decision: AuthorizationDecision) -> Response:
        spec = decision.response
        # lowercased name → (name as sent, value); decision headers override the default
        headers = {"content-type": ("Content-Type", DEFAULT_CONTENT_TYPE)}
        if spec is not None:
            for key, value in spec.headers.items():
                headers[key.lower()] = (key, str(value))
        return Response(
            content=(spec.body if spec and spec.body else DEFAULT_DENY_BODY),
            status_code=(spec.code if spec and spec.code else DEFAULT_DENY_CODE),
            headers=dict(headers.values()),
        )

    def build_proxy_response(self, upstream: UpstreamResponse) -> Response:
        response = Response(content=upstream.content, status_code=upstream.status_code)
        for key, value in relayable_headers(upstream):
            response.headers.append(key, value)
        return response
