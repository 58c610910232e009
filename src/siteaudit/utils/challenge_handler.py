"""
Anti-bot challenge detection.

Recognizes CAPTCHA, JS-challenge and WAF block pages from the rendered HTML,
the HTTP status and the ``Server`` response header.
"""
import logging
from typing import Mapping, Optional

from siteaudit.constants import ANTI_BOT_SIGNAL_THRESHOLD

logger = logging.getLogger(__name__)


# =============================================================================
# Challenge Signals
# =============================================================================

# Lowercase phrases that appear on challenge/block pages
ANTI_BOT_SIGNALS = [
    "checking your browser",
    "captcha",
    "cloudflare",
    "attention required",
    "just a moment",
    "verify you are human",
    "are you a robot",
    "ddos protection",
    "access denied",
    "security check",
    "unusual traffic",
    "cf-browser-verification",
    "challenge-platform",
    "please enable javascript and cookies",
    "bot detection",
    "request blocked",
    "incapsula incident",
    "perimeterx",
    "datadome",
]

# Status codes that make a single signal match conclusive
CHALLENGE_STATUS_CODES = {403, 503}


# =============================================================================
# Challenge Detection
# =============================================================================

def count_signals(html: Optional[str]) -> int:
    """Number of distinct challenge phrases present in the page content."""
    if not html:
        return 0
    content = html.lower()
    return sum(1 for signal in ANTI_BOT_SIGNALS if signal in content)


def _server_header(headers: Optional[Mapping[str, str]]) -> str:
    if not headers:
        return ""
    for name, value in headers.items():
        if name.lower() == "server":
            return (value or "").lower()
    return ""


def is_anti_bot_page(
    html: Optional[str],
    status_code: int,
    headers: Optional[Mapping[str, str]] = None,
) -> bool:
    """
    Decide whether a rendered page is an anti-bot challenge.

    A page is flagged when any of these hold:
    - at least two challenge phrases appear in the content
    - the status is 403/503 and at least one phrase appears
    - the Server header names Cloudflare and the status is 403

    Args:
        html: Rendered page HTML
        status_code: HTTP status of the navigation response (0 if unknown)
        headers: Navigation response headers

    Returns:
        True if the page looks like a challenge
    """
    matches = count_signals(html)

    if matches >= ANTI_BOT_SIGNAL_THRESHOLD:
        return True
    if status_code in CHALLENGE_STATUS_CODES and matches >= 1:
        return True
    if status_code == 403 and "cloudflare" in _server_header(headers):
        return True

    return False
