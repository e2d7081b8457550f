"""Edge filter exception hierarchy.

Everything raised by the filter derives from FilterError. Only
UnsupportedHostError is meant to reach the host runtime; the request path
converts the rest into a fail-closed decision.
"""


class FilterError(Exception):
    """Base exception for all edge filter errors."""


class FetchError(FilterError):
    """Remote call failed: transport error, timeout, or non-2xx status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DeserializationError(FilterError):
    """A rule pattern could not be decoded from its wire envelope."""

    def __init__(self, message: str, *, pattern: str = "") -> None:
        super().__init__(message)
        self.pattern = pattern


class UnsupportedHostError(FilterError):
    """init() was given a CDN name with no adapter."""

    def __init__(self, cdn: str) -> None:
        super().__init__(f"Unsupported CDN: {cdn}")
        self.cdn = cdn


class SignalError(FilterError):
    """The request URL could not be parsed while evaluating bot signals."""
