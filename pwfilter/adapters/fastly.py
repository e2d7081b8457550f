"""
Fastly Compute.

    handle(request, config, ctx=None) → Response | None

`config` is a config store: anything with `.get(name)`. Bot detection
arrives as X-Fastly-Bot-Score / X-Fastly-Known-Bot request headers, which
every adapter already reads.
"""

from typing import Any

from pwfilter.adapters.base import config_value
from pwfilter.adapters.fetch import FetchStyleAdapter
from pwfilter.config import ServiceConfig, Settings


def service_config(config: Any, settings: Settings | None = None) -> ServiceConfig:
    return ServiceConfig.build(
        api_host=config_value(config, "PAYWALLS_CLOUD_API_HOST"),
        api_key=config_value(config, "PAYWALLS_API_KEY"),
        publisher_id=config_value(config, "PAYWALLS_PUBLISHER_ID"),
        vai_path=config_value(config, "PAYWALLS_VAI_PATH"),
        settings=settings,
    )


class FastlyAdapter(FetchStyleAdapter):
    name = "fastly"
