"""Error types and user-facing error messages."""

import re
from typing import Optional

STATUS_429_RE = re.compile(r"(?<![\w.])429(?![\w.])")

RATE_LIMIT_MESSAGE = (
    "You have been rate limited by Bluesky. Please wait a moment before trying again."
)
NETWORK_MESSAGE = (
    "Network error when connecting to Bluesky. Please check your connection and try again."
)
UNKNOWN_MESSAGE = "An unknown error occurred"


class UnresolvedPostError(RuntimeError):
    """A freshly created post could not be fetched back to read its CID."""

    def __init__(self, uri: str, attempts: int):
        self.uri = uri
        self.attempts = attempts
        super().__init__(f"Could not resolve CID for {uri} after {attempts} attempts")


def _status_code(err: Exception) -> Optional[int]:
    # atproto request errors carry the HTTP response
    response = getattr(err, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def is_rate_limited(err: Exception) -> bool:
    if _status_code(err) == 429:
        return True
    msg = str(err)
    return (
        STATUS_429_RE.search(msg) is not None
        or "RateLimit" in msg
        or "rate limit" in msg.lower()
        or "TooManyRequests" in msg
        or "ratelimit" in msg.lower()
    )


def is_network_error(err: Exception) -> bool:
    if isinstance(err, (TimeoutError, ConnectionError)):
        return True
    msg = str(err).lower()
    return "timeout" in msg or "timed out" in msg or "network" in msg


def describe_error(err: Exception) -> str:
    """Return a readable message for a remote failure."""
    if is_rate_limited(err):
        return RATE_LIMIT_MESSAGE
    if is_network_error(err):
        return NETWORK_MESSAGE
    return str(err) or UNKNOWN_MESSAGE
