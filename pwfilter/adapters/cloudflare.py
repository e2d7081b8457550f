"""
Cloudflare Workers.

    handle(request, env, ctx) → Response | None

Config is read per request from `env` (PAYWALLS_CLOUD_API_HOST,
PAYWALLS_CLOUD_API_KEY, PAYWALLS_PUBLISHER_ID, PAYWALLS_VAI_PATH). Bot
management lives on `request.cf.botManagement`. None means "continue to
origin". The access-log task is handed to ctx.waitUntil so the runtime keeps
it alive after the response is sent.
"""

from typing import Any

from pwfilter.adapters.base import config_value
from pwfilter.adapters.fetch import FetchStyleAdapter
from pwfilter.config import ServiceConfig, Settings
from pwfilter.core.models import HostBotSignal


def _field(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _score(raw: Any) -> float | None:
    """Numeric bot score, or None when the host sent something else."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def cloudflare_signal(cf: Any) -> HostBotSignal | None:
    bot_management = _field(cf, "botManagement")
    if bot_management is None:
        return None
    score = _field(bot_management, "score")
    verified = _field(bot_management, "verifiedBot")
    if score is None and verified is None:
        return None
    return HostBotSignal(
        source="cloudflare",
        score=_score(score),
        verified_bot=bool(verified) if verified is not None else None,
    )


def service_config(env: Any, settings: Settings | None = None) -> ServiceConfig:
    return ServiceConfig.build(
        api_host=config_value(env, "PAYWALLS_CLOUD_API_HOST"),
        api_key=config_value(env, "PAYWALLS_CLOUD_API_KEY"),
        publisher_id=config_value(env, "PAYWALLS_PUBLISHER_ID"),
        vai_path=config_value(env, "PAYWALLS_VAI_PATH"),
        settings=settings,
    )


def wait_until_hook(ctx: Any):
    if ctx is None:
        return None
    return getattr(ctx, "wait_until", None) or getattr(ctx, "waitUntil", None)


class CloudflareAdapter(FetchStyleAdapter):
    name = "cloudflare"

    def native_signals(self, native: Any) -> list[HostBotSignal]:
        signal = cloudflare_signal(getattr(native, "cf", None))
        return [signal] if signal is not None else []
