"""
Rendering engine provider for the crawl orchestrator.

Wraps Playwright's async API behind a small launcher (``launch``/``close``)
so the orchestrator can be driven by a test double. Also owns the browser
fingerprint: user-agent pool, realistic request headers and the init script
that hides automation markers.
"""

import logging
import random
from typing import List, Literal, Optional

from playwright.async_api import async_playwright
from pydantic import BaseModel, ConfigDict, Field

from siteaudit.constants import (
    DESKTOP_VIEWPORT_HEIGHT,
    DESKTOP_VIEWPORT_WIDTH,
    NAVIGATION_TIMEOUT_MS,
)

logger = logging.getLogger(__name__)


# Desktop user agents rotated per browsing context
USER_AGENTS = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    # Chrome on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    # Chrome on Linux
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    # Firefox on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    # Firefox on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:125.0) Gecko/20100101 Firefox/125.0",
    # Firefox on Linux
    "Mozilla/5.0 (X11; Linux x86_64; rv:125.0) Gecko/20100101 Firefox/125.0",
    # Edge on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0",
]

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "DNT": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}

# Runs before any page script in every new document
STEALTH_SCRIPT = """
    // Override webdriver property
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined,
    });

    // Override languages
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en'],
    });

    // Override plugins to look like a real browser
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5],
    });

    window.chrome = window.chrome || { runtime: {} };

    // Remove chromedriver markers
    for (const key of Object.keys(window)) {
        if (key.startsWith('cdc_')) {
            delete window[key];
        }
    }
"""


def get_random_user_agent(rng: Optional[random.Random] = None) -> str:
    """Get a random user agent from the pool."""
    return (rng or random).choice(USER_AGENTS)


class BrowserConfig(BaseModel):
    """
    Launch and context settings for the rendering engine.

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use for crawling"
    )

    timeout: int = Field(
        default=NAVIGATION_TIMEOUT_MS,
        description="Page load timeout in milliseconds",
        ge=1000,
        le=300000
    )

    viewport_width: int = Field(default=DESKTOP_VIEWPORT_WIDTH, gt=0)
    viewport_height: int = Field(default=DESKTOP_VIEWPORT_HEIGHT, gt=0)

    locale: str = Field(default="en-US")

    launch_args: List[str] = Field(
        default_factory=lambda: ["--disable-blink-features=AutomationControlled"],
        description="Additional browser launch arguments"
    )

    user_agent: Optional[str] = Field(
        default=None,
        description="Fixed user agent. If None, one is picked from the pool per context."
    )

    model_config = ConfigDict(validate_assignment=True)

    def context_options(self, rng: Optional[random.Random] = None) -> dict:
        """Options for ``browser.new_context`` with a rotated user agent."""
        return {
            "user_agent": self.user_agent or get_random_user_agent(rng),
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
            "locale": self.locale,
            "java_script_enabled": True,
            "extra_http_headers": dict(DEFAULT_HEADERS),
        }


class PlaywrightLauncher:
    """Starts and stops a Playwright browser for one crawl."""

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self._playwright = None
        self._browser = None

    async def launch(self):
        """Start Playwright and launch the configured browser."""
        self._playwright = await async_playwright().start()
        browser_type = getattr(self._playwright, self.config.browser_type)
        self._browser = await browser_type.launch(
            headless=self.config.headless,
            args=self.config.launch_args,
        )
        logger.info(f"Browser launched ({self.config.browser_type}, headless={self.config.headless})")
        return self._browser

    async def close(self) -> None:
        """Close the browser and stop Playwright. Errors are logged, not raised."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping Playwright: {e}")
            self._playwright = None
