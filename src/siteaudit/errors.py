"""Failure taxonomy for page fetches.

Errors raised while rendering a page are classified by the lowercase text of
their message. Playwright, httpx and the OS resolver all surface the
interesting part (``net::ERR_NAME_NOT_RESOLVED``, ``getaddrinfo ENOTFOUND``,
``Timeout 30000ms exceeded``) in the message, so substring matching is the
most portable signal across drivers.
"""

from enum import Enum
from typing import FrozenSet, Tuple, Union


class ErrorKind(str, Enum):
    """Why a page could not be crawled."""
    TIMEOUT = "timeout"
    DNS = "dns"
    SSL = "ssl"
    CONNECTION_REFUSED = "connection_refused"
    BLOCKED = "blocked"
    ANTI_BOT = "anti_bot"
    HTTP_ERROR = "http_error"
    PARSE_ERROR = "parse_error"
    UNKNOWN = "unknown"


# Checked in order; the first kind with a matching substring wins
ERROR_PATTERNS: Tuple[Tuple[ErrorKind, Tuple[str, ...]], ...] = (
    (ErrorKind.TIMEOUT, ("timeout", "exceeded")),
    (ErrorKind.DNS, ("getaddrinfo", "dns", "enotfound", "err_name_not_resolved", "name resolution")),
    (ErrorKind.SSL, ("ssl", "cert", "tls", "err_cert")),
    (ErrorKind.CONNECTION_REFUSED, ("econnrefused", "connection refused", "err_connection_refused")),
    (ErrorKind.BLOCKED, ("403", "forbidden", "blocked")),
    (ErrorKind.ANTI_BOT, ("captcha", "cloudflare", "bot")),
)

# One failure of these kinds ends the URL without using the retry budget
NON_RETRYABLE_KINDS: FrozenSet[ErrorKind] = frozenset({
    ErrorKind.DNS,
    ErrorKind.SSL,
    ErrorKind.BLOCKED,
})


def classify_error(error: Union[BaseException, str]) -> ErrorKind:
    """Map an exception (or its message) to an ErrorKind.

    Args:
        error: The exception raised by a fetch, or its message

    Returns:
        The first matching ErrorKind, or ErrorKind.UNKNOWN
    """
    message = str(error).lower()
    if not message and isinstance(error, BaseException):
        message = type(error).__name__.lower()

    for kind, patterns in ERROR_PATTERNS:
        if any(pattern in message for pattern in patterns):
            return kind

    return ErrorKind.UNKNOWN


def is_retryable(kind: ErrorKind) -> bool:
    """Whether a failure of this kind may be retried."""
    return kind not in NON_RETRYABLE_KINDS
