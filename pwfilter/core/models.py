"""
Canonical types shared by every stage of the filter.

Adapters translate host objects into RequestContext; the pipeline produces an
AuthorizationDecision (or an UpstreamResponse for VAI passthrough) that the
adapter translates back.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal
from urllib.parse import urlsplit

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class UserInitiated(str, Enum):
    YES = "yes"
    NO = "no"
    MAYBE = "maybe"


# --- Rules ---

@dataclass(frozen=True)
class ClassificationRule:
    """One operator/agent signature. Patterns are tried in order."""
    operator: str | None
    agent: str | None
    usage: tuple[str, ...] = ()
    user_initiated: UserInitiated | None = None
    patterns: tuple[re.Pattern, ...] = ()
    usage_prefs_only: bool = False


@dataclass(frozen=True)
class RuleSet:
    rules: tuple[ClassificationRule, ...]
    fetched_at: float


@dataclass(frozen=True)
class AgentClassification:
    browser: str = "Unknown"
    os: str = "Unknown"
    operator: str | None = None
    agent: str | None = None
    usage: tuple[str, ...] | None = None
    user_initiated: UserInitiated | None = None

    @property
    def is_known_agent(self) -> bool:
        return bool(self.operator and self.agent)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"browser": self.browser, "os": self.os}
        if self.operator is not None:
            out["operator"] = self.operator
        if self.agent is not None:
            out["agent"] = self.agent
        if self.usage is not None:
            out["usage"] = list(self.usage)
        if self.user_initiated is not None:
            out["user_initiated"] = self.user_initiated.value
        return out


# --- Requests ---

@dataclass(frozen=True)
class HostBotSignal:
    """A CDN's own bot verdict. Either field may be missing."""
    source: str  # "cloudflare" | "fastly"
    score: float | None = None
    verified_bot: bool | None = None


@dataclass
class RequestContext:
    method: str
    url: str
    headers: dict[str, str]  # lowercased names
    signals: tuple[HostBotSignal, ...] = ()
    raw: Any = field(default=None, repr=False)

    def __post_init__(self):
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def user_agent(self) -> str | None:
        return self.header("user-agent") or None

    @property
    def hostname(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def resource(self) -> str:
        """Path plus query string, as logged."""
        parts = urlsplit(self.url)
        return parts.path + (f"?{parts.query}" if parts.query else "")


# --- Decisions ---

class DecisionResponse(BaseModel):
    """What a denied agent receives. The cloud API calls the body `html`."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    code: int | None = None
    headers: dict[str, Any] = Field(default_factory=dict)
    body: str | None = Field(default=None, validation_alias=AliasChoices("body", "html"))


class AuthorizationDecision(BaseModel):
    model_config = ConfigDict(extra="allow")

    access: Literal["allow", "deny"]
    reason: str | None = None
    response: DecisionResponse | None = None

    @property
    def denied(self) -> bool:
        return self.access == "deny"

    def status_payload(self) -> dict:
        """The decision as logged: everything but the response shown to the agent."""
        return self.model_dump(exclude={"response"}, exclude_none=True)


def deny(reason: str, code: int, body: str) -> AuthorizationDecision:
    return AuthorizationDecision(
        access="deny",
        reason=reason,
        response=DecisionResponse(code=code, body=body),
    )


@dataclass(frozen=True)
class UpstreamResponse:
    """A relayed cloud API response (VAI passthrough)."""
    status_code: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    content: bytes = b""
    reason_phrase: str = ""
