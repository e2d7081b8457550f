"""
paywalls.net edge filter — entry point.

    handler = await init("cloudflare")               # handle(request, env, ctx)
    handler = await init("fastly")                   # handle(request, config, ctx=None)
    handler = await init("cloudfront", {...})        # handle(event, ctx=None)

Each handler returns the host's response object when it intercepts (deny or
VAI passthrough) and the host's "continue" value otherwise: None for
Cloudflare and Fastly, the unmodified request dict for CloudFront.
"""

from typing import Any

import structlog

from pwfilter.adapters import cloudflare, cloudfront, fastly
from pwfilter.adapters.base import handle_request
from pwfilter.core.context import FilterContext, get_default_context
from pwfilter.core.pipeline import FilterPipeline
from pwfilter.errors import UnsupportedHostError
from pwfilter.log import configure_logging

logger = structlog.get_logger()


async def _cloudflare(context: FilterContext, init_config: Any):
    pipeline = FilterPipeline(context)
    adapter = cloudflare.CloudflareAdapter()

    async def handle(request, env, ctx=None):
        cfg = cloudflare.service_config(env, context.settings)
        return await handle_request(pipeline, adapter, request, cfg, keep_alive=cloudflare.wait_until_hook(ctx))

    return handle


async def _fastly(context: FilterContext, init_config: Any):
    pipeline = FilterPipeline(context)
    adapter = fastly.FastlyAdapter()

    async def handle(request, config, ctx=None):
        cfg = fastly.service_config(config, context.settings)
        return await handle_request(pipeline, adapter, request, cfg)

    return handle


async def _cloudfront(context: FilterContext, init_config: Any):
    pipeline = FilterPipeline(context)
    adapter = cloudfront.CloudFrontAdapter()
    cfg = cloudfront.service_config(init_config, context.settings)
    await pipeline.warm(cfg)

    async def handle(event, ctx=None):
        request = cloudfront.event_request(event)
        return await handle_request(pipeline, adapter, request, cfg)

    return handle


_FACTORIES = {
    "cloudflare": _cloudflare,
    "fastly": _fastly,
    "cloudfront": _cloudfront,
}


async def init(cdn: str, config: Any = None, *, context: FilterContext | None = None):
    """Build the request handler for one CDN. Raises UnsupportedHostError."""
    factory = _FACTORIES.get(cdn.lower())
    if factory is None:
        raise UnsupportedHostError(cdn)

    context = context or get_default_context()
    configure_logging(context.settings.debug)
    logger.info("edge_filter_init", cdn=cdn.lower())
    return await factory(context, config)
