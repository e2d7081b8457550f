"""
The adapter seam between CDN runtimes and the decision pipeline.

An adapter knows one host's request/response shape and nothing else:
  - normalize(native request)  → RequestContext
  - build_response(decision)   → host response for a deny
  - build_proxy_response(...)  → host response for a VAI passthrough
  - pass_through(native)       → the host's "continue to origin" value

handle_request() is the one algorithm every host runs.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable

import structlog

from pwfilter.config import ServiceConfig
from pwfilter.core.bot_detection import fastly_header_signal
from pwfilter.core.models import AuthorizationDecision, HostBotSignal, RequestContext, UpstreamResponse
from pwfilter.core.pipeline import FilterPipeline, FilterState

logger = structlog.get_logger()

DEFAULT_DENY_CODE = 402
DEFAULT_DENY_BODY = "Payment required."
DEFAULT_CONTENT_TYPE = "text/html"

# Not meaningful once the body has been read and decoded by httpx.
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "content-encoding",
    "content-length",
}


def config_value(source: Any, key: str) -> str | None:
    """Read a key from a mapping, a `.get()` store, or an attribute bag."""
    if source is None:
        return None
    if isinstance(source, Mapping) or hasattr(source, "get"):
        return source.get(key)
    return getattr(source, key, None)


def relayable_headers(upstream: UpstreamResponse) -> list[tuple[str, str]]:
    return [(k, v) for k, v in upstream.headers if k.lower() not in HOP_BY_HOP_HEADERS]


def header_signals(headers: dict[str, str]) -> list[HostBotSignal]:
    """Signals any host can see: bot verdicts relayed as request headers."""
    signal = fastly_header_signal(headers)
    return [signal] if signal is not None else []


class RequestAdapter(ABC):
    name: str = ""

    @abstractmethod
    def normalize(self, native: Any) -> RequestContext: ...

    @abstractmethod
    def build_response(self, decision: AuthorizationDecision) -> Any: ...

    @abstractmethod
    def build_proxy_response(self, upstream: UpstreamResponse) -> Any: ...

    def pass_through(self, native: Any) -> Any:
        return None


async def handle_request(
    pipeline: FilterPipeline,
    adapter: RequestAdapter,
    native: Any,
    cfg: ServiceConfig,
    keep_alive: Callable[[asyncio.Task], Any] | None = None,
) -> Any:
    """Normalize, decide, translate. keep_alive receives the access-log task
    on hosts that must be told to outlive the response."""
    request = adapter.normalize(native)
    result = await pipeline.run(request, cfg)
    logger.debug("edge_request_handled", host=adapter.name, state=result.state.value, resource=request.resource)

    if result.state is FilterState.PROXIED:
        return adapter.build_proxy_response(result.upstream)

    if result.log_task is not None and keep_alive is not None:
        keep_alive(result.log_task)

    if result.state is FilterState.DENY:
        return adapter.build_response(result.decision)
    return adapter.pass_through(native)
