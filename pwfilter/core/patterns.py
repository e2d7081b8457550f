"""
Wire codec for rule patterns.

The cloud API ships regular expressions in JavaScript literal form:

    /GPTBot/i

i.e. `/<source>/<flags>`. Version 1 of the envelope allows the flags below;
i, m and s change matching, the rest do not affect a single search() and are
accepted but ignored. JavaScript named groups `(?<name>...)` are rewritten
to Python's `(?P<name>...)`.

Both directions take the envelope version; any other than
PATTERN_WIRE_VERSION is rejected.
"""

import re

from pwfilter.errors import DeserializationError

PATTERN_WIRE_VERSION = 1

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "u": 0,
    "g": 0,
    "y": 0,
    "d": 0,
}
_REVERSE_FLAGS = (("i", re.IGNORECASE), ("m", re.MULTILINE), ("s", re.DOTALL))

# (?<name> but not lookbehind (?<= / (?<!
_JS_NAMED_GROUP = re.compile(r"\(\?<(?![=!])")


def _check_version(version: int) -> None:
    if version != PATTERN_WIRE_VERSION:
        raise DeserializationError(f"unsupported pattern wire version: {version}")


def decode(envelope: str, *, version: int = PATTERN_WIRE_VERSION) -> re.Pattern:
    """Turn `/source/flags` into a compiled pattern."""
    _check_version(version)
    if not isinstance(envelope, str):
        raise DeserializationError(f"pattern must be a string, got {type(envelope).__name__}", pattern=repr(envelope))
    if len(envelope) < 2 or not envelope.startswith("/"):
        raise DeserializationError(f"pattern not in /source/flags form: {envelope!r}", pattern=envelope)

    end = envelope.rfind("/")
    if end == 0:
        raise DeserializationError(f"pattern missing closing slash: {envelope!r}", pattern=envelope)

    source, flag_chars = envelope[1:end], envelope[end + 1:]
    flags = 0
    for ch in flag_chars:
        if ch not in _FLAG_MAP:
            raise DeserializationError(f"unsupported flag {ch!r} in {envelope!r}", pattern=envelope)
        flags |= _FLAG_MAP[ch]

    try:
        return re.compile(_JS_NAMED_GROUP.sub("(?P<", source), flags)
    except re.error as e:
        raise DeserializationError(f"invalid pattern {envelope!r}: {e}", pattern=envelope) from e


def encode(pattern: re.Pattern, *, version: int = PATTERN_WIRE_VERSION) -> str:
    """Inverse of decode() for the flags the envelope can carry."""
    _check_version(version)
    flags = "".join(ch for ch, bit in _REVERSE_FLAGS if pattern.flags & bit)
    return f"/{pattern.pattern}/{flags}"
