"""Tests for the site crawler."""

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import httpx
import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from siteaudit.config import CrawlConfig
from siteaudit.crawler import SiteCrawler, crawl, report_progress
from siteaudit.errors import ErrorKind

BASE = "https://site.test/"

CHALLENGE_HTML = "<html><body>Just a moment... Checking your browser before accessing</body></html>"


def page_html(title="Page", links=()):
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return f"<html lang='en'><head><title>{title}</title></head><body><h1>{title}</h1>{anchors}</body></html>"


@dataclass
class FakeSitePage:
    """What the fake browser serves for one URL."""
    links: List[str] = field(default_factory=list)
    status: int = 200
    title: str = "Page"
    contents: Optional[List[str]] = None  # successive page.content() results
    errors: List[Exception] = field(default_factory=list)  # raised by goto, one per attempt
    final_url: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)


class FakeResponse:
    def __init__(self, status, headers):
        self.status = status
        self.headers = headers


class FakeElement:
    def __init__(self, visible=True):
        self.visible = visible
        self.clicked = False

    async def is_visible(self):
        return self.visible

    async def click(self):
        self.clicked = True


class FakePage:
    def __init__(self, browser):
        self.browser = browser
        self.url = "about:blank"
        self.served: Optional[FakeSitePage] = None
        self.content_calls = 0
        self.closed = False

    async def goto(self, url, wait_until=None, timeout=None):
        self.browser.gotos.append((url, wait_until))
        if self.browser.goto_hook:
            self.browser.goto_hook(url, wait_until)
        served = self.browser.site.get(url)
        if served is None:
            raise Exception(f"net::ERR_CONNECTION_REFUSED at {url}")
        if served.errors:
            raise served.errors.pop(0)
        self.served = served
        self.url = served.final_url or url
        return FakeResponse(served.status, served.headers)

    async def wait_for_load_state(self, state, timeout=None):
        return None

    async def content(self):
        contents = self.served.contents or [page_html(self.served.title, self.served.links)]
        html = contents[min(self.content_calls, len(contents) - 1)]
        self.content_calls += 1
        return html

    async def title(self):
        return self.served.title

    async def evaluate(self, script):
        return list(self.served.links)

    async def query_selector(self, selector):
        return self.browser.consent_elements.get(selector)

    async def query_selector_all(self, selector):
        return []

    async def close(self):
        self.closed = True


class FakeContext:
    def __init__(self, browser, options):
        self.browser = browser
        self.options = options
        self.init_scripts = []
        self.closed = False

    async def add_init_script(self, script):
        self.init_scripts.append(script)

    async def new_page(self):
        page = FakePage(self.browser)
        self.browser.pages.append(page)
        return page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, site):
        self.site = site
        self.gotos = []
        self.contexts = []
        self.pages = []
        self.consent_elements = {}
        self.goto_hook = None

    async def new_context(self, **options):
        context = FakeContext(self, options)
        self.contexts.append(context)
        return context


class FakeLauncher:
    def __init__(self, browser=None, launch_error=None, close_error=None):
        self.browser = browser
        self.launch_error = launch_error
        self.close_error = close_error
        self.launch_calls = 0
        self.close_calls = 0

    async def launch(self):
        self.launch_calls += 1
        if self.launch_error:
            raise self.launch_error
        return self.browser

    async def close(self):
        self.close_calls += 1
        if self.close_error:
            raise self.close_error


def http_site(robots=None, sitemap=None):
    """httpx client serving robots.txt and /sitemap.xml, 404 for everything else."""
    def handler(request):
        if request.url.path == "/robots.txt" and robots is not None:
            return httpx.Response(200, text=robots, headers={"content-type": "text/plain"})
        if request.url.path == "/sitemap.xml" and sitemap is not None:
            return httpx.Response(
                200,
                headers={"content-type": "application/xml"},
                stream=httpx.ByteStream(sitemap.encode()),
            )
        return httpx.Response(404)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def urlset(*locs):
    entries = "".join(f"<url><loc>{loc}</loc></url>" for loc in locs)
    return f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>'


class Harness:
    """Builds a SiteCrawler wired to fakes and records every sleep."""

    def __init__(self, site, robots=None, sitemap=None, config=None, **launcher_options):
        self.browser = FakeBrowser(site)
        self.launcher = FakeLauncher(self.browser, **launcher_options)
        self.sleeps: List[float] = []
        self.client = http_site(robots, sitemap)
        self.crawler = SiteCrawler(
            config=config or CrawlConfig(),
            launcher=self.launcher,
            rng=random.Random(42),
            sleep=self._sleep,
            http_client=self.client,
        )

    async def _sleep(self, seconds):
        self.sleeps.append(seconds)

    async def crawl(self, base_url=BASE, **kwargs):
        async with self.client:
            return await self.crawler.crawl(base_url, **kwargs)


def urls_of(results):
    return [result.url for result in results]


class TestCrawlBounds:
    """Test cases for page budget, depth and host bounds."""

    @pytest.mark.asyncio
    async def test_page_budget(self):
        """Test the crawl stops at max_pages results."""
        links = [f"/p{i}" for i in range(10)]
        site = {BASE: FakeSitePage(links=links)}
        site.update({f"https://site.test/p{i}": FakeSitePage() for i in range(10)})

        results = await Harness(site).crawl(max_pages=3)

        assert urls_of(results) == [BASE, "https://site.test/p0", "https://site.test/p1"]
        assert all(result.succeeded for result in results)

    @pytest.mark.asyncio
    async def test_zero_pages(self):
        """Test max_pages=0 produces no results and never launches a browser."""
        harness = Harness({BASE: FakeSitePage()})

        results = await harness.crawl(max_pages=0)

        assert results == []
        assert harness.launcher.launch_calls == 0

    @pytest.mark.asyncio
    async def test_depth_bound(self):
        """Test links beyond max_depth are not followed."""
        site = {
            BASE: FakeSitePage(links=["/a"]),
            "https://site.test/a": FakeSitePage(links=["/b"]),
            "https://site.test/b": FakeSitePage(links=["/c"]),
            "https://site.test/c": FakeSitePage(),
        }

        results = await Harness(site).crawl(max_depth=1, max_pages=10)

        assert urls_of(results) == [BASE, "https://site.test/a"]

    @pytest.mark.asyncio
    async def test_depth_zero_only_base(self):
        """Test max_depth=0 crawls only the seeds."""
        site = {BASE: FakeSitePage(links=["/a"]), "https://site.test/a": FakeSitePage()}

        results = await Harness(site).crawl(max_depth=0, max_pages=10)

        assert urls_of(results) == [BASE]

    @pytest.mark.asyncio
    async def test_same_host_only(self):
        """Test off-host links and subdomains are never visited."""
        site = {
            BASE: FakeSitePage(links=[
                "https://elsewhere.test/x",
                "https://www.site.test/y",
                "/local",
                "/local#frag",
                "/local/",
            ]),
            "https://site.test/local": FakeSitePage(),
        }
        harness = Harness(site)

        results = await harness.crawl(max_pages=10)

        assert urls_of(results) == [BASE, "https://site.test/local"]
        assert [url for url, _ in harness.browser.gotos] == [BASE, "https://site.test/local"]

    @pytest.mark.asyncio
    async def test_no_duplicate_visits(self):
        """Test pages linking to each other are each visited once."""
        site = {
            BASE: FakeSitePage(links=["/a", "/b"]),
            "https://site.test/a": FakeSitePage(links=["/", "/b"]),
            "https://site.test/b": FakeSitePage(links=["/a", "/?"]),
        }

        results = await Harness(site).crawl(max_pages=10)

        assert sorted(urls_of(results)) == sorted([BASE, "https://site.test/a", "https://site.test/b"])
        assert len(results) == 3

    @pytest.mark.asyncio
    async def test_invalid_base_url(self):
        """Test an invalid base URL yields a single failure without launching."""
        harness = Harness({})

        results = await harness.crawl("ftp://site.test/")

        assert len(results) == 1
        assert results[0].url == "ftp://site.test/"
        assert results[0].error_type == ErrorKind.UNKNOWN
        assert results[0].status_code == 0
        assert harness.launcher.launch_calls == 0


class TestRobotsAndSitemap:
    """Test cases for robots.txt and sitemap seeding."""

    @pytest.mark.asyncio
    async def test_disallowed_paths_skipped(self):
        """Test robots.txt Disallow rules keep URLs out of the results."""
        site = {
            BASE: FakeSitePage(links=["/private/secret", "/public"]),
            "https://site.test/private/secret": FakeSitePage(),
            "https://site.test/public": FakeSitePage(),
        }
        harness = Harness(site, robots="User-agent: *\nDisallow: /private\n")

        results = await harness.crawl(max_pages=10)

        assert urls_of(results) == [BASE, "https://site.test/public"]

    @pytest.mark.asyncio
    async def test_sitemap_seeds_follow_base(self):
        """Test same-host sitemap URLs are crawled after the base URL."""
        site = {
            BASE: FakeSitePage(),
            "https://site.test/from-sitemap": FakeSitePage(),
        }
        sitemap = urlset("https://site.test/from-sitemap", "https://other.test/nope", "https://site.test/")
        harness = Harness(site, sitemap=sitemap)

        results = await harness.crawl(max_depth=0, max_pages=10)

        assert urls_of(results) == [BASE, "https://site.test/from-sitemap"]

    @pytest.mark.asyncio
    async def test_robots_sitemap_hint_used(self):
        """Test a sitemap named in robots.txt seeds the frontier."""
        site = {BASE: FakeSitePage(), "https://site.test/hinted": FakeSitePage()}
        robots = "User-agent: *\nAllow: /\nSitemap: https://site.test/sitemap.xml\n"
        harness = Harness(site, robots=robots, sitemap=urlset("https://site.test/hinted"))

        results = await harness.crawl(max_depth=0, max_pages=10)

        assert urls_of(results) == [BASE, "https://site.test/hinted"]

    @pytest.mark.asyncio
    async def test_crawl_delay_between_fetches(self):
        """Test robots.txt Crawl-delay is applied between fetches, not after the last."""
        site = {BASE: FakeSitePage(links=["/a"]), "https://site.test/a": FakeSitePage()}
        harness = Harness(site, robots="User-agent: *\nCrawl-delay: 2\n")

        await harness.crawl(max_pages=10)

        assert harness.sleeps == [2.0]

    @pytest.mark.asyncio
    async def test_default_delay_is_floor(self):
        """Test a Crawl-delay below the default does not shorten it."""
        site = {BASE: FakeSitePage(links=["/a"]), "https://site.test/a": FakeSitePage()}
        harness = Harness(site, robots="User-agent: *\nCrawl-delay: 0.1\n")

        await harness.crawl(max_pages=10)

        assert harness.sleeps == [0.5]


class TestRetries:
    """Test cases for retry and error classification."""

    @pytest.mark.asyncio
    async def test_retry_then_success(self):
        """Test two timeouts followed by success yield exactly one successful result."""
        site = {BASE: FakeSitePage(errors=[
            Exception("Timeout 30000ms exceeded."),
            Exception("Timeout 30000ms exceeded."),
        ])}
        harness = Harness(site)

        results = await harness.crawl(max_pages=5)

        assert len(results) == 1
        assert results[0].succeeded
        assert len(harness.browser.gotos) == 3
        assert len(harness.sleeps) == 2
        assert 2.0 <= harness.sleeps[0] <= 3.0
        assert 4.0 <= harness.sleeps[1] <= 5.0

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        """Test a persistently timing-out URL becomes a timeout failure after max_retries attempts."""
        site = {BASE: FakeSitePage(errors=[Exception("Timeout 30000ms exceeded.")] * 3)}
        harness = Harness(site)

        results = await harness.crawl(max_pages=5)

        assert len(results) == 1
        assert results[0].error_type == ErrorKind.TIMEOUT
        assert results[0].error == "Timeout 30000ms exceeded."
        assert results[0].status_code == 0
        assert results[0].analysis is None
        assert len(harness.browser.gotos) == 3

    @pytest.mark.asyncio
    async def test_dns_failure_not_retried(self):
        """Test DNS failures end the URL after one attempt."""
        site = {BASE: FakeSitePage(errors=[Exception("net::ERR_NAME_NOT_RESOLVED at https://site.test/")])}
        harness = Harness(site)

        results = await harness.crawl(max_pages=5)

        assert results[0].error_type == ErrorKind.DNS
        assert len(harness.browser.gotos) == 1
        assert harness.sleeps == []

    @pytest.mark.asyncio
    async def test_configured_retry_count(self):
        """Test max_retries bounds the number of attempts."""
        site = {BASE: FakeSitePage(errors=[Exception("connection refused")] * 5)}
        harness = Harness(site, config=CrawlConfig(max_retries=1))

        results = await harness.crawl(max_pages=5)

        assert results[0].error_type == ErrorKind.CONNECTION_REFUSED
        assert len(harness.browser.gotos) == 1

    @pytest.mark.asyncio
    async def test_failed_page_does_not_stop_crawl(self):
        """Test a failing linked page is recorded and the crawl continues."""
        site = {
            BASE: FakeSitePage(links=["/bad", "/good"]),
            "https://site.test/bad": FakeSitePage(errors=[Exception("SSL certificate problem")]),
            "https://site.test/good": FakeSitePage(),
        }

        results = await Harness(site).crawl(max_pages=10)

        assert urls_of(results) == [BASE, "https://site.test/bad", "https://site.test/good"]
        assert results[1].error_type == ErrorKind.SSL
        assert results[2].succeeded

    @pytest.mark.asyncio
    async def test_domcontentloaded_timeout_falls_back_to_commit(self):
        """Test a navigation timeout is retried once with a commit wait."""
        site = {BASE: FakeSitePage()}
        harness = Harness(site)

        def hook(url, wait_until):
            if wait_until == "domcontentloaded":
                raise PlaywrightTimeoutError("Timeout 30000ms exceeded.")

        harness.browser.goto_hook = hook

        results = await harness.crawl(max_pages=1)

        assert results[0].succeeded
        assert harness.browser.gotos == [(BASE, "domcontentloaded"), (BASE, "commit")]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        """Test 4xx pages are analyzed but marked as HTTP errors and not expanded."""
        site = {
            BASE: FakeSitePage(status=404, title="Not Found", links=["/a"]),
            "https://site.test/a": FakeSitePage(),
        }

        results = await Harness(site).crawl(max_pages=10)

        assert len(results) == 1
        assert results[0].status_code == 404
        assert results[0].error == "HTTP 404"
        assert results[0].error_type == ErrorKind.HTTP_ERROR
        assert results[0].analysis is not None
        assert results[0].title == "Not Found"

    @pytest.mark.asyncio
    async def test_redirect_sets_final_url(self):
        """Test final_url is recorded only when the page redirected."""
        site = {
            BASE: FakeSitePage(links=["/old"]),
            "https://site.test/old": FakeSitePage(final_url="https://site.test/new"),
        }

        results = await Harness(site).crawl(max_pages=10)

        assert results[0].final_url is None
        assert results[1].final_url == "https://site.test/new"


class TestAntiBot:
    """Test cases for challenge detection during fetch."""

    @pytest.mark.asyncio
    async def test_persistent_challenge_is_anti_bot_failure(self):
        """Test a challenge that survives the recheck becomes an anti_bot result."""
        site = {BASE: FakeSitePage(contents=[CHALLENGE_HTML], links=["/a"])}
        harness = Harness(site)

        results = await harness.crawl(max_pages=5)

        assert len(results) == 1
        assert results[0].error_type == ErrorKind.ANTI_BOT
        assert results[0].status_code == 0
        assert 3.0 in harness.sleeps

    @pytest.mark.asyncio
    async def test_challenge_resolved_on_recheck(self):
        """Test a challenge that clears after the wait yields a normal result."""
        real = page_html("Welcome home page")
        site = {BASE: FakeSitePage(title="Welcome home page", contents=[CHALLENGE_HTML, real, real])}
        harness = Harness(site)

        results = await harness.crawl(max_pages=5)

        assert results[0].succeeded
        assert results[0].title == "Welcome home page"
        assert harness.sleeps == [3.0]


class TestBrowserLifecycle:
    """Test cases for browser, context and page cleanup."""

    @pytest.mark.asyncio
    async def test_contexts_and_pages_closed(self):
        """Test every fetch closes its page and context and the browser is closed once."""
        site = {BASE: FakeSitePage(links=["/a"]), "https://site.test/a": FakeSitePage()}
        harness = Harness(site)

        await harness.crawl(max_pages=10)

        assert len(harness.browser.contexts) == 2
        assert all(context.closed for context in harness.browser.contexts)
        assert all(page.closed for page in harness.browser.pages)
        assert harness.launcher.close_calls == 1

    @pytest.mark.asyncio
    async def test_each_context_gets_stealth_and_user_agent(self):
        """Test contexts are created with a user agent and the stealth init script."""
        harness = Harness({BASE: FakeSitePage()})

        await harness.crawl(max_pages=1)

        context = harness.browser.contexts[0]
        assert context.options["user_agent"].startswith("Mozilla/5.0")
        assert len(context.init_scripts) == 1

    @pytest.mark.asyncio
    async def test_pages_closed_after_failures(self):
        """Test pages are closed even when navigation raises."""
        site = {BASE: FakeSitePage(errors=[Exception("net::ERR_NAME_NOT_RESOLVED")])}
        harness = Harness(site)

        await harness.crawl(max_pages=1)

        assert all(context.closed for context in harness.browser.contexts)
        assert harness.launcher.close_calls == 1

    @pytest.mark.asyncio
    async def test_launch_failure(self):
        """Test a browser that fails to launch yields one failure and still cleans up."""
        harness = Harness({}, launch_error=Exception("Executable doesn't exist"))

        results = await harness.crawl(max_pages=5)

        assert len(results) == 1
        assert results[0].url == BASE
        assert results[0].error == "Executable doesn't exist"
        assert harness.launcher.close_calls == 1

    @pytest.mark.asyncio
    async def test_close_error_is_swallowed(self):
        """Test errors while closing the browser do not propagate."""
        harness = Harness({BASE: FakeSitePage()}, close_error=Exception("already closed"))

        results = await harness.crawl(max_pages=1)

        assert results[0].succeeded
        assert harness.launcher.close_calls == 1


class TestConsent:
    """Test cases for cookie consent handling during fetch."""

    @pytest.mark.asyncio
    async def test_consent_banner_clicked(self):
        """Test a visible OneTrust accept button is clicked before capture."""
        harness = Harness({BASE: FakeSitePage()})
        button = FakeElement(visible=True)
        harness.browser.consent_elements["#onetrust-accept-btn-handler"] = button

        results = await harness.crawl(max_pages=1)

        assert button.clicked is True
        assert results[0].succeeded

    @pytest.mark.asyncio
    async def test_hidden_consent_banner_ignored(self):
        """Test invisible consent buttons are not clicked."""
        harness = Harness({BASE: FakeSitePage()})
        button = FakeElement(visible=False)
        harness.browser.consent_elements["#onetrust-accept-btn-handler"] = button

        await harness.crawl(max_pages=1)

        assert button.clicked is False


class TestProgress:
    """Test cases for progress reporting."""

    @pytest.mark.asyncio
    async def test_progress_milestones(self):
        """Test progress runs 0, 5, 10, per page, then 80."""
        site = {BASE: FakeSitePage(links=["/a"]), "https://site.test/a": FakeSitePage()}
        calls = []

        await Harness(site).crawl(max_pages=2, on_progress=lambda pct, msg: calls.append(pct))

        assert calls == [0, 5, 10, 45, 80, 80]

    @pytest.mark.asyncio
    async def test_async_progress_callback(self):
        """Test coroutine callbacks are awaited."""
        callback = AsyncMock()

        await Harness({BASE: FakeSitePage()}).crawl(max_pages=1, on_progress=callback)

        percents = [call.args[0] for call in callback.await_args_list]
        assert percents[0] == 0
        assert percents[-1] == 80

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_abort(self):
        """Test a raising progress callback is ignored."""
        def explode(percent, message):
            raise RuntimeError("sink closed")

        results = await Harness({BASE: FakeSitePage()}).crawl(max_pages=1, on_progress=explode)

        assert results[0].succeeded

    @pytest.mark.asyncio
    async def test_report_progress_without_callback(self):
        """Test a missing callback is a no-op."""
        await report_progress(None, 50, "ignored")


class TestBackoff:
    """Test cases for delay calculations."""

    def test_backoff_grows_exponentially(self):
        """Test backoff doubles per attempt with bounded jitter."""
        crawler = SiteCrawler(launcher=FakeLauncher(), rng=random.Random(1))

        for attempt, floor in ((1, 2000), (2, 4000), (3, 8000)):
            delay = crawler.backoff_delay_ms(attempt)
            assert floor <= delay <= floor + 1000


class TestCrawlFunction:
    """Test cases for the module-level crawl helper."""

    @pytest.mark.asyncio
    async def test_crawl_passes_options(self):
        """Test crawl() builds a SiteCrawler from keyword options."""
        browser = FakeBrowser({BASE: FakeSitePage()})
        launcher = FakeLauncher(browser)

        async def no_sleep(seconds):
            return None

        async with http_site() as client:
            results = await crawl(
                BASE,
                max_pages=1,
                launcher=launcher,
                sleep=no_sleep,
                http_client=client,
            )

        assert urls_of(results) == [BASE]
        assert launcher.close_calls == 1
