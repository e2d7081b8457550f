"""
CloudFront / Lambda@Edge viewer-request events.

    handle(event, ctx=None) → response dict | request dict

Requests and responses are plain dicts. Headers are keyed by lowercased name
with a list of {key, value} entries. Returning the request dict tells
CloudFront to continue to origin; returning a response dict answers the
viewer directly.

Event structure:
https://docs.aws.amazon.com/AmazonCloudFront/latest/DeveloperGuide/lambda-event-structure.html
"""

from http import HTTPStatus
from typing import Any

from pwfilter.adapters.base import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_DENY_BODY,
    DEFAULT_DENY_CODE,
    RequestAdapter,
    header_signals,
    relayable_headers,
)
from pwfilter.config import ServiceConfig, Settings
from pwfilter.core.models import AuthorizationDecision, RequestContext, UpstreamResponse


def service_config(config: dict | None, settings: Settings | None = None) -> ServiceConfig:
    config = config or {}
    return ServiceConfig.build(
        api_host=config.get("PAYWALLS_CLOUD_API_HOST"),
        api_key=config.get("PAYWALLS_API_KEY"),
        publisher_id=config.get("PAYWALLS_PUBLISHER_ID"),
        vai_path=config.get("PAYWALLS_VAI_PATH"),
        settings=settings,
    )


def event_request(event: dict) -> dict:
    return event["Records"][0]["cf"]["request"]


def flatten_headers(cf_headers: dict) -> dict[str, str]:
    """{name: [{key, value}, ...]} → {name: first value}."""
    out = {}
    for name, entries in (cf_headers or {}).items():
        out[name.lower()] = entries[0].get("value", "") if entries else ""
    return out


def request_url(cf_request: dict, headers: dict[str, str]) -> str:
    url = f"http://{headers.get('host', '')}{cf_request.get('uri', '')}"
    if cf_request.get("querystring"):
        url += f"?{cf_request['querystring']}"
    return url


def cloudfront_headers(pairs) -> dict[str, list[dict[str, str]]]:
    out: dict[str, list[dict[str, str]]] = {}
    for key, value in pairs:
        out.setdefault(key.lower(), []).append({"key": key, "value": str(value)})
    return out


class CloudFrontAdapter(RequestAdapter):
    name = "cloudfront"

    def normalize(self, native: dict) -> RequestContext:
        headers = flatten_headers(native.get("headers"))
        return RequestContext(
            method=native.get("method", "GET"),
            url=request_url(native, headers),
            headers=headers,
            signals=tuple(header_signals(headers)),
            raw=native,
        )

    def build_response(self, decision: AuthorizationDecision) -> dict:
        denial = decision.response
        code = denial.code if denial and denial.code else DEFAULT_DENY_CODE
        # One entry per header, last write wins on case-insensitive clashes.
        headers = {}
        if denial is not None:
            for key, value in denial.headers.items():
                headers[key.lower()] = [{"key": key, "value": str(value)}]
        if "content-type" not in headers:
            headers["content-type"] = [{"key": "Content-Type", "value": DEFAULT_CONTENT_TYPE}]
        return {
            "status": str(code),
            "statusDescription": "Payment Required" if code == 402 else "Error",
            "headers": headers,
            "body": denial.body if denial and denial.body else DEFAULT_DENY_BODY,
        }

    def build_proxy_response(self, upstream: UpstreamResponse) -> dict:
        try:
            default_reason = HTTPStatus(upstream.status_code).phrase
        except ValueError:
            default_reason = "OK"
        return {
            "status": str(upstream.status_code),
            "statusDescription": upstream.reason_phrase or default_reason,
            "headers": cloudfront_headers(relayable_headers(upstream)),
            "body": upstream.content.decode("utf-8", errors="replace"),
        }

    def pass_through(self, native: dict) -> dict:
        return native
