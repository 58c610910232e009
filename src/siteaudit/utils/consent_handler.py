"""
Cookie-consent banner dismissal.

Best-effort: every failure is swallowed so the page fetch continues with
whatever DOM state the banner leaves behind.
"""
import logging
import re

from siteaudit.constants import CONSENT_TEXT_SCAN_LIMIT

logger = logging.getLogger(__name__)


# Known consent-manager accept buttons, tried in order
CONSENT_SELECTORS = [
    # OneTrust
    "#onetrust-accept-btn-handler",
    "#accept-recommended-btn-handler",
    # Cookiebot
    "#CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll",
    "#CybotCookiebotDialogBodyButtonAccept",
    # Didomi
    "#didomi-notice-agree-button",
    # TrustArc
    "#truste-consent-button",
    # Quantcast
    ".qc-cmp2-summary-buttons button[mode='primary']",
    # Google Funding Choices
    ".fc-cta-consent",
    # Cookie Consent (Osano)
    ".cc-allow",
    ".cc-accept",
    ".cc-btn.cc-dismiss",
    # Generic patterns
    "#cookie-accept",
    "#accept-cookies",
    ".cookie-accept",
    ".js-accept-cookies",
    "[data-testid='cookie-policy-banner-accept']",
    "[aria-label='Accept cookies']",
    "[id*='cookie'] button[id*='accept']",
    "[class*='cookie'] button[class*='accept']",
    "[id*='consent'] button[id*='accept']",
    "[class*='consent'] button[class*='accept']",
]

# Buttons only; anchors would navigate away from the page
CLICKABLE_SELECTOR = "button, [role='button']"

# The whole label must be a consent phrase ('Accept all', not 'Acceptable Use Policy')
ACCEPT_TEXT_PATTERN = re.compile(
    r"^\s*(accept|agree|i agree|ok|okay|got it|allow|i understand|continue|dismiss|close)\b"
    r"(\s+(all|cookies|all cookies|and close|and continue))?\s*[.!]?\s*$",
    re.IGNORECASE,
)


async def _click_known_selector(page) -> bool:
    for selector in CONSENT_SELECTORS:
        try:
            element = await page.query_selector(selector)
            if element and await element.is_visible():
                await element.click()
                logger.info(f"  → Dismissed cookie consent: {selector}")
                return True
        except Exception as e:
            logger.debug(f"Consent selector {selector} failed: {e}")
            continue
    return False


async def _click_accept_text(page) -> bool:
    elements = await page.query_selector_all(CLICKABLE_SELECTOR)
    for element in elements[:CONSENT_TEXT_SCAN_LIMIT]:
        try:
            text = (await element.inner_text() or "").strip()
            if not ACCEPT_TEXT_PATTERN.match(text):
                continue
            if await element.is_visible():
                await element.click()
                logger.info(f"  → Dismissed cookie consent by text: {text[:40]!r}")
                return True
        except Exception as e:
            logger.debug(f"Consent text candidate failed: {e}")
            continue
    return False


async def dismiss_cookie_consent(page) -> bool:
    """Click a cookie-consent accept button if one is visible.

    Known CMP selectors are tried first; otherwise the first clickable
    elements are scanned for accept/agree/dismiss text.

    Args:
        page: Playwright page instance

    Returns:
        True if a consent control was clicked
    """
    try:
        if await _click_known_selector(page):
            return True
        return await _click_accept_text(page)
    except Exception as e:
        logger.debug(f"Cookie consent handling failed: {e}")
        return False
