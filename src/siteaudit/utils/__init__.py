"""
Utilities Package.

Provides anti-bot challenge detection and cookie-consent dismissal used by
the crawler's page fetch.
"""

from .challenge_handler import (
    ANTI_BOT_SIGNALS,
    count_signals,
    is_anti_bot_page,
)

from .consent_handler import (
    ACCEPT_TEXT_PATTERN,
    CONSENT_SELECTORS,
    dismiss_cookie_consent,
)

__all__ = [
    # Challenge detection
    "ANTI_BOT_SIGNALS",
    "count_signals",
    "is_anti_bot_page",
    # Cookie consent
    "ACCEPT_TEXT_PATTERN",
    "CONSENT_SELECTORS",
    "dismiss_cookie_consent",
]
