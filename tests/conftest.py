"""Pytest configuration and a fake cloud API."""

import json
import os

import httpx
import pytest

# Ensure test environment
os.environ.setdefault("PW_FILTER_DEBUG", "true")
os.environ.setdefault("PW_FILTER_DEFAULT_API_HOST", "https://cloud-api.test")

from pwfilter.config import ServiceConfig, Settings  # noqa: E402
from pwfilter.core.context import FilterContext  # noqa: E402

API_HOST = "https://cloud-api.test"

AGENT_RULES = [
    {
        "operator": "OpenAI",
        "agent": "GPTBot",
        "usage": ["ai_training"],
        "user_initiated": "no",
        "patterns": ["/GPTBot/"],
    },
    {
        "operator": "OpenAI",
        "agent": "ChatGPT-User",
        "usage": ["ai_input"],
        "user_initiated": "yes",
        "patterns": ["/ChatGPT-User/"],
    },
    {
        "operator": "Anthropic",
        "agent": "ClaudeBot",
        "usage": ["ai_training"],
        "user_initiated": "no",
        "patterns": ["/ClaudeBot/i", "/anthropic-ai/"],
    },
]

CHROME_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DENY_PAYMENT = {
    "access": "deny",
    "reason": "payment_required",
    "response": {
        "code": 402,
        "headers": {"X-PW-Price": "0.002"},
        "html": "<html>Pay to crawl</html>",
    },
}


class FakeCloudApi:
    """Records every call; routes are (method, path) → httpx.Response or exception."""

    def __init__(self, rules=None):
        self.calls: list[httpx.Request] = []
        self.routes = {
            ("POST", "/api/filter/agents/metadata"): httpx.Response(200, json=AGENT_RULES if rules is None else rules),
            ("POST", "/api/filter/agents/auth"): httpx.Response(200, json={"access": "allow"}),
            ("POST", "/api/filter/access/logs"): httpx.Response(200, json={}),
            ("GET", "/pw/vai.json"): httpx.Response(
                200, json={"vai": "ok"}, headers={"Cache-Control": "max-age=60"},
            ),
            ("GET", "/pw/vai.js"): httpx.Response(
                200, text="window.vai={};", headers={"Content-Type": "application/javascript"},
            ),
        }
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        # fresh copy per call; a Response object is single-use
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def set(self, method: str, path: str, response) -> None:
        self.routes[(method, path)] = response

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [c for c in self.calls if c.url.path == path]

    def json_of(self, path: str, index: int = -1) -> dict:
        return json.loads(self.calls_to(path)[index].content)


@pytest.fixture
def fake_api():
    return FakeCloudApi()


@pytest.fixture
def settings():
    return Settings(_env_file=None, default_api_host=API_HOST)


@pytest.fixture
def context(fake_api, settings):
    return FilterContext(settings, transport=fake_api.transport)


@pytest.fixture
def cfg():
    return ServiceConfig(api_host=API_HOST, api_key="test-key", publisher_id="pub-123", vai_path="/pw")
