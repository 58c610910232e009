"""Same-host site crawler with browser rendering, retries and anti-bot handling."""

import asyncio
import inspect
import logging
import math
import random
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, List, Optional, Set, Tuple

import httpx
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from siteaudit.browser import STEALTH_SCRIPT, BrowserConfig, PlaywrightLauncher
from siteaudit.config import CrawlConfig
from siteaudit.constants import (
    ANTI_BOT_RECHECK_SECONDS,
    BACKOFF_JITTER_MS,
    BACKOFF_UNIT_MS,
    EXPONENTIAL_BACKOFF_BASE,
    PROGRESS_CRAWL_END,
    PROGRESS_CRAWL_START,
    PROGRESS_ROBOTS,
    PROGRESS_SITEMAP,
    SEED_URL_MULTIPLIER,
)
from siteaudit.errors import ErrorKind, classify_error, is_retryable
from siteaudit.models import CrawlResult
from siteaudit.page_analyzer import PageAnalyzer
from siteaudit.robots import RobotsRules, fetch_rules, is_allowed
from siteaudit.sitemap import SitemapResolver
from siteaudit.urls import hostname_of, normalize_url, resolve_link, same_host
from siteaudit.utils import dismiss_cookie_consent, is_anti_bot_page

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], Any]
SleepFunc = Callable[[float], Awaitable[Any]]

LINK_EXTRACTION_SCRIPT = (
    "() => Array.from(document.querySelectorAll('a[href]'))"
    ".map(a => a.getAttribute('href'))"
)

# Span of the progress bar covered by page fetches (10% -> 80%)
CRAWL_PROGRESS_SPAN = PROGRESS_CRAWL_END - PROGRESS_CRAWL_START


@dataclass
class FrontierItem:
    """A URL waiting to be crawled and its link distance from the seeds."""
    url: str
    depth: int


async def report_progress(on_progress: Optional[ProgressCallback], percent: int, message: str) -> None:
    """Forward a progress milestone. Callback errors are logged, never raised."""
    if on_progress is None:
        return
    try:
        outcome = on_progress(percent, message)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception as e:
        logger.warning(f"Progress callback failed: {e}")


class SiteCrawler:
    """Sequential crawler for a single site.

    One page is fetched at a time. Each fetch gets its own browser context
    with a rotated user agent. robots.txt is honored and crawl-delay is
    applied between fetches.
    """

    def __init__(
        self,
        config: Optional[CrawlConfig] = None,
        launcher=None,
        browser_config: Optional[BrowserConfig] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[SleepFunc] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        analyzer: Optional[PageAnalyzer] = None,
    ):
        """Initialize the crawler.

        Args:
            config: Crawl limits and timeouts
            launcher: Object with ``async launch() -> browser`` and ``async close()``
            browser_config: Browser launch/context settings
            rng: Randomness source for user-agent rotation and backoff jitter
            sleep: Coroutine used for every delay (crawl-delay, backoff, recheck)
            http_client: httpx client for robots.txt and sitemap fetches
            analyzer: Page analyzer applied to rendered HTML
        """
        self.config = config or CrawlConfig()
        self.browser_config = browser_config or BrowserConfig(
            headless=self.config.headless,
            timeout=self.config.navigation_timeout_ms,
            user_agent=self.config.user_agent,
        )
        self.launcher = launcher or PlaywrightLauncher(self.browser_config)
        self.rng = rng or random.Random()
        self._sleep = sleep or asyncio.sleep
        self.http_client = http_client
        self.analyzer = analyzer or PageAnalyzer()

        self._browser = None
        self._base_host: Optional[str] = None
        self.visited_urls: Set[str] = set()
        self.results: List[CrawlResult] = []

    async def crawl(
        self,
        base_url: str,
        max_depth: Optional[int] = None,
        max_pages: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[CrawlResult]:
        """Crawl a site starting from ``base_url``.

        Individual page failures are captured as error results; the crawl
        itself does not raise for them.

        Args:
            base_url: Starting URL; its host bounds the crawl
            max_depth: Maximum link distance from the seeds
            max_pages: Maximum number of results to produce
            on_progress: Called with (percent, message) at milestones

        Returns:
            One CrawlResult per visited URL, in fetch order
        """
        max_depth = self.config.max_depth if max_depth is None else max_depth
        max_pages = self.config.max_pages if max_pages is None else max_pages

        self.visited_urls = set()
        self.results = []

        base = normalize_url(base_url)
        if base is None:
            logger.error(f"Invalid base URL: {base_url}")
            return [CrawlResult.failure(base_url, f"Invalid URL: {base_url}", ErrorKind.UNKNOWN)]

        if max_pages <= 0:
            return []

        self._base_host = hostname_of(base)
        logger.info(f"🕷️ Starting crawl of {base} (max_depth={max_depth}, max_pages={max_pages})")

        try:
            self._browser = await self.launcher.launch()
        except Exception as e:
            logger.error(f"Failed to launch browser: {e}")
            await self._cleanup()
            return [CrawlResult.failure(base, str(e) or type(e).__name__, classify_error(e))]

        try:
            await report_progress(on_progress, PROGRESS_ROBOTS, "Checking robots.txt...")
            rules = await fetch_rules(base, client=self.http_client)
            crawl_delay_ms = self.crawl_delay_ms(rules)

            await report_progress(on_progress, PROGRESS_SITEMAP, "Parsing sitemap...")
            resolver = SitemapResolver(client=self.http_client)
            seed_urls = await resolver.resolve_urls(base, rules.sitemap_urls)

            frontier, queued = self._seed_frontier(base, seed_urls, max_pages)
            await report_progress(on_progress, PROGRESS_CRAWL_START, f"Crawling {base}...")

            while frontier and len(self.results) < max_pages:
                item = frontier.popleft()

                if item.url in self.visited_urls:
                    continue
                if not same_host(item.url, self._base_host):
                    logger.debug(f"Skipping off-host URL: {item.url}")
                    continue
                if not is_allowed(rules, item.url):
                    logger.info(f"  🚫 Disallowed by robots.txt: {item.url}")
                    continue

                self.visited_urls.add(item.url)

                result, links = await self.fetch_and_render_with_retry(item.url)
                self.results.append(result)

                percent = PROGRESS_CRAWL_START + math.floor(len(self.results) / max_pages * CRAWL_PROGRESS_SPAN)
                await report_progress(on_progress, percent, f"Crawled {len(self.results)}/{max_pages}: {item.url}")

                if item.depth < max_depth and result.succeeded:
                    added = self._enqueue_links(frontier, queued, links, item.depth + 1)
                    logger.debug(f"  Queued {added} new links from {item.url}")

                if frontier and len(self.results) < max_pages:
                    await self._sleep(crawl_delay_ms / 1000)
        finally:
            await self._cleanup()

        await report_progress(on_progress, PROGRESS_CRAWL_END, f"Crawled {len(self.results)} pages")
        logger.info(f"✅ Crawl complete: {len(self.results)} pages")
        return self.results

    def crawl_delay_ms(self, rules: RobotsRules) -> float:
        """Delay between fetches: robots.txt Crawl-delay, floored at the default."""
        default = self.config.default_crawl_delay_ms
        if rules.crawl_delay_seconds is None:
            return default
        return max(rules.crawl_delay_seconds * 1000, default)

    def backoff_delay_ms(self, attempt: int) -> float:
        """Exponential backoff with jitter after failed attempt ``attempt`` (1-based)."""
        return (EXPONENTIAL_BACKOFF_BASE ** attempt) * BACKOFF_UNIT_MS + self.rng.uniform(0, BACKOFF_JITTER_MS)

    def _seed_frontier(
        self, base: str, seed_urls: List[str], max_pages: int
    ) -> Tuple[Deque[FrontierItem], Set[str]]:
        """Base URL first, then sitemap URLs on the same host, all at depth 0."""
        frontier: Deque[FrontierItem] = deque([FrontierItem(base, 0)])
        queued = {base}

        seed_cap = SEED_URL_MULTIPLIER * max_pages
        seeded = 0
        for raw in seed_urls:
            if seeded >= seed_cap:
                break
            url = normalize_url(raw)
            if url is None or url in queued or not same_host(url, self._base_host):
                continue
            frontier.append(FrontierItem(url, 0))
            queued.add(url)
            seeded += 1

        logger.info(f"Seeded frontier with {len(frontier)} URLs ({seeded} from sitemap)")
        return frontier, queued

    def _enqueue_links(
        self, frontier: Deque[FrontierItem], queued: Set[str], links: List[str], depth: int
    ) -> int:
        added = 0
        for link in links:
            if link in self.visited_urls or link in queued:
                continue
            if not same_host(link, self._base_host):
                continue
            frontier.append(FrontierItem(link, depth))
            queued.add(link)
            added += 1
        return added

    async def fetch_and_render_with_retry(self, url: str) -> Tuple[CrawlResult, List[str]]:
        """Fetch and render one URL, retrying transient failures.

        Non-retryable failures (dns, ssl, blocked) end immediately. Others are
        retried up to ``max_retries`` attempts with exponential backoff.

        Returns:
            Tuple of (result, same-host links found on the page)
        """
        start = time.monotonic()
        attempts = max(1, self.config.max_retries)
        last_error: Optional[BaseException] = None
        last_kind = ErrorKind.UNKNOWN

        for attempt in range(1, attempts + 1):
            try:
                return await self._fetch_once(url)
            except Exception as e:
                last_error = e
                last_kind = classify_error(e)

                if not is_retryable(last_kind):
                    logger.warning(f"  ❌ {url}: {last_kind.value} error, not retrying: {e}")
                    break

                if attempt < attempts:
                    delay_ms = self.backoff_delay_ms(attempt)
                    logger.info(
                        f"  🔄 Will retry ({attempt}/{attempts - 1}) "
                        f"after {delay_ms / 1000:.1f}s: {url} ({last_kind.value}: {e})"
                    )
                    await self._sleep(delay_ms / 1000)
                else:
                    logger.warning(f"  ❌ {url}: giving up after {attempts} attempts: {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        message = str(last_error) or type(last_error).__name__
        return CrawlResult.failure(url, message, last_kind, response_time_ms=elapsed_ms), []

    async def _fetch_once(self, url: str) -> Tuple[CrawlResult, List[str]]:
        """One rendering attempt in a fresh browser context.

        Raises on navigation or content-capture failure. The page and context
        are closed on every exit path.
        """
        start = time.monotonic()
        context = await self._browser.new_context(**self.browser_config.context_options(self.rng))
        page = None

        try:
            await context.add_init_script(STEALTH_SCRIPT)
            page = await context.new_page()

            response = await self._navigate(page, url)
            status_code = response.status if response else 0
            headers = response.headers if response else {}

            await self._wait_for_network_idle(page)

            html = await page.content()
            if is_anti_bot_page(html, status_code, headers):
                logger.warning(f"  🛡️ Anti-bot challenge on {url}, rechecking in {ANTI_BOT_RECHECK_SECONDS:.0f}s")
                await self._sleep(ANTI_BOT_RECHECK_SECONDS)
                html = await page.content()
                if is_anti_bot_page(html, status_code, headers):
                    elapsed_ms = int((time.monotonic() - start) * 1000)
                    return CrawlResult.failure(
                        url, "Anti-bot challenge detected", ErrorKind.ANTI_BOT, response_time_ms=elapsed_ms
                    ), []
                logger.info(f"  ✓ Challenge resolved on {url}")

            await dismiss_cookie_consent(page)

            html = await page.content()
            title = await page.title()
            final_url = page.url or url
            links = await self._extract_links(page, final_url)
        finally:
            await self._close_quietly(page, context)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        analysis = self.analyzer.analyze(html, final_url)

        error = None
        error_type = None
        if status_code >= 400:
            error = f"HTTP {status_code}"
            error_type = ErrorKind.HTTP_ERROR
        elif analysis.parse_failed:
            error = "HTML parsing failed"
            error_type = ErrorKind.PARSE_ERROR

        redirected = normalize_url(final_url) not in (None, url)
        logger.info(f"  ✓ {status_code} {url} ({elapsed_ms}ms)")

        return CrawlResult(
            url=url,
            status_code=status_code,
            title=title or "",
            analysis=analysis,
            final_url=final_url if redirected else None,
            error=error,
            error_type=error_type,
            response_time_ms=elapsed_ms,
        ), links

    async def _navigate(self, page, url: str):
        """Navigate, falling back to a commit-only wait if DOMContentLoaded times out."""
        timeout = self.config.navigation_timeout_ms
        try:
            return await page.goto(url, wait_until="domcontentloaded", timeout=timeout)
        except PlaywrightTimeoutError:
            logger.info(f"  ⏱️ DOMContentLoaded timed out, retrying with commit: {url}")
            return await page.goto(url, wait_until="commit", timeout=timeout)

    async def _wait_for_network_idle(self, page) -> None:
        """Best-effort wait for network idle."""
        try:
            await page.wait_for_load_state("networkidle", timeout=self.config.network_idle_timeout_ms)
        except Exception as e:
            logger.debug(f"Network idle wait ended early: {e}")

    async def _extract_links(self, page, page_url: str) -> List[str]:
        """Normalized same-host links from the rendered DOM."""
        hrefs = await page.evaluate(LINK_EXTRACTION_SCRIPT) or []

        links: List[str] = []
        seen: Set[str] = set()
        for href in hrefs:
            if not isinstance(href, str):
                continue
            link = resolve_link(href, page_url)
            if link is None or link in seen or not same_host(link, self._base_host):
                continue
            seen.add(link)
            links.append(link)
        return links

    async def _close_quietly(self, page, context) -> None:
        for resource, name in ((page, "page"), (context, "context")):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.warning(f"Error closing {name}: {e}")

    async def _cleanup(self) -> None:
        """Close the browser. Errors are logged, never raised."""
        try:
            await self.launcher.close()
        except Exception as e:
            logger.warning(f"Error during browser cleanup: {e}")
        finally:
            self._browser = None


async def crawl(
    base_url: str,
    max_depth: Optional[int] = None,
    max_pages: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
    **crawler_options,
) -> List[CrawlResult]:
    """
    Convenience function to crawl a site.

    Args:
        base_url: Starting URL
        max_depth: Maximum link depth
        max_pages: Maximum pages to crawl
        on_progress: Progress callback receiving (percent, message)
        **crawler_options: Passed to SiteCrawler

    Returns:
        List of CrawlResult in fetch order
    """
    crawler = SiteCrawler(**crawler_options)
    return await crawler.crawl(base_url, max_depth=max_depth, max_pages=max_pages, on_progress=on_progress)
