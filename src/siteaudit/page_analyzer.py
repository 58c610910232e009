"""Static analysis of rendered page HTML.

Turns one page's HTML into a PageAnalysis: meta tags, heading inventory,
image alt coverage, link classification, structured data types, inline
resource weight, accessibility signals and an ordered issue list.
"""

import logging
from typing import List, Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

from siteaudit.accessibility import check_accessibility
from siteaudit.constants import (
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    INLINE_CSS_WARNING_BYTES,
    LAZY_LOAD_IMAGE_THRESHOLD,
    MAX_BROKEN_LINKS,
    MAX_HEADING_LENGTH,
    MAX_IMAGES_WITHOUT_ALT,
    RENDER_BLOCKING_SCRIPTS_THRESHOLD,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
)
from siteaudit.models import (
    HeadingInventory,
    ImageSummary,
    Issue,
    LinkSummary,
    MetaTags,
    PageAnalysis,
    PerformanceHints,
    SchemaSummary,
    Severity,
)
from siteaudit.structured_data import extract_schema_types
from siteaudit.urls import hostname_of, is_skippable_href

logger = logging.getLogger(__name__)

OPEN_GRAPH_FIELDS = (
    ("og:title", "og_title"),
    ("og:description", "og_description"),
    ("og:image", "og_image"),
)

# Script types that hold data rather than code
NON_EXECUTABLE_SCRIPT_TYPES = {"application/ld+json"}


def _text_bytes(text: Optional[str]) -> int:
    return len(text.encode("utf-8")) if text else 0


def _meta_content(soup: BeautifulSoup, *keys: str) -> Optional[str]:
    """Content of the first <meta> whose name or property matches a key."""
    wanted = {key.lower() for key in keys}
    for meta in soup.find_all("meta"):
        for attr in ("name", "property"):
            value = meta.get(attr)
            if value and value.strip().lower() in wanted:
                content = meta.get("content")
                if content and content.strip():
                    return content.strip()
    return None


def _rel_values(tag) -> List[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [value.lower() for value in rel]


class PageAnalyzer:
    """Analyze a single page's HTML for SEO, accessibility and performance signals."""

    def __init__(self, parser: str = "lxml"):
        """
        Args:
            parser: BeautifulSoup tree builder
        """
        self.parser = parser

    def analyze(self, html: str, url: str) -> PageAnalysis:
        """Analyze page HTML. Never raises.

        Args:
            html: Rendered page HTML
            url: URL the HTML was served from (used for link classification)

        Returns:
            PageAnalysis; on parse failure, an empty analysis carrying a single
            "HTML parsing failed" error and ``parse_failed=True``
        """
        try:
            if not isinstance(html, str):
                raise TypeError(f"expected HTML text, got {type(html).__name__}")
            soup = BeautifulSoup(html, self.parser)
            return self._analyze_soup(soup, url)
        except Exception as e:
            logger.warning(f"HTML parsing failed for {url}: {e}")
            return PageAnalysis(
                issues=[Issue(Severity.ERROR, "HTML parsing failed")],
                parse_failed=True,
            )

    def _analyze_soup(self, soup: BeautifulSoup, url: str) -> PageAnalysis:
        issues: List[Issue] = []

        meta = self._extract_meta(soup)
        issues.extend(self._check_meta(meta))

        headings = self._extract_headings(soup)
        issues.extend(self._check_headings(headings))

        images = self._analyze_images(soup)
        if images.without_alt_count:
            issues.append(Issue(
                Severity.WARNING,
                f"{images.without_alt_count} images missing alt text",
                element=images.without_alt[0] if images.without_alt else None,
            ))

        links = self._analyze_links(soup, url)
        schema = SchemaSummary(types=extract_schema_types(soup))

        performance = self._analyze_performance(soup)
        issues.extend(self._check_performance(performance, images.total))

        accessibility, accessibility_issues = check_accessibility(soup)
        issues.extend(accessibility_issues)

        html_tag = soup.find("html")
        lang = (html_tag.get("lang") or "").strip() if html_tag else ""
        if not lang:
            issues.append(Issue(Severity.WARNING, "Missing lang attribute on <html>"))

        has_viewport = _meta_content(soup, "viewport") is not None
        if not has_viewport:
            issues.append(Issue(Severity.ERROR, "Missing viewport meta tag"))

        has_favicon = any(
            "icon" in _rel_values(link) for link in soup.find_all("link")
        )
        if not has_favicon:
            issues.append(Issue(Severity.INFO, "Missing favicon"))

        return PageAnalysis(
            meta=meta,
            headings=headings,
            images=images,
            links=links,
            schema=schema,
            performance=performance,
            accessibility=accessibility,
            lang=lang or None,
            has_viewport=has_viewport,
            has_favicon=has_favicon,
            issues=issues,
        )

    # ------------------------------------------------------------------
    # Meta
    # ------------------------------------------------------------------

    def _extract_meta(self, soup: BeautifulSoup) -> MetaTags:
        title_tag = soup.find("title")
        title = title_tag.get_text(strip=True) if title_tag else ""

        canonical = None
        for link in soup.find_all("link", href=True):
            if "canonical" in _rel_values(link) and link["href"].strip():
                canonical = link["href"].strip()
                break

        return MetaTags(
            title=title or None,
            description=_meta_content(soup, "description"),
            keywords=_meta_content(soup, "keywords"),
            canonical=canonical,
            robots=_meta_content(soup, "robots"),
            og_title=_meta_content(soup, "og:title"),
            og_description=_meta_content(soup, "og:description"),
            og_image=_meta_content(soup, "og:image"),
            twitter_card=_meta_content(soup, "twitter:card"),
        )

    def _check_meta(self, meta: MetaTags) -> List[Issue]:
        issues = []

        if not meta.title:
            issues.append(Issue(Severity.ERROR, "Missing title tag", element="title"))
        elif len(meta.title) < TITLE_MIN_LENGTH:
            issues.append(Issue(Severity.WARNING, f"Title too short ({len(meta.title)} chars)", element="title"))
        elif len(meta.title) > TITLE_MAX_LENGTH:
            issues.append(Issue(Severity.WARNING, f"Title too long ({len(meta.title)} chars)", element="title"))

        if not meta.description:
            issues.append(Issue(Severity.WARNING, "Missing meta description", element="meta[name=description]"))
        elif len(meta.description) < DESCRIPTION_MIN_LENGTH:
            issues.append(Issue(
                Severity.WARNING,
                f"Meta description too short ({len(meta.description)} chars)",
                element="meta[name=description]",
            ))
        elif len(meta.description) > DESCRIPTION_MAX_LENGTH:
            issues.append(Issue(
                Severity.WARNING,
                f"Meta description too long ({len(meta.description)} chars)",
                element="meta[name=description]",
            ))

        missing_og = [name for name, attr in OPEN_GRAPH_FIELDS if not getattr(meta, attr)]
        if missing_og:
            issues.append(Issue(Severity.INFO, f"Missing Open Graph tags: {', '.join(missing_og)}"))

        if not meta.twitter_card:
            issues.append(Issue(Severity.INFO, "Missing twitter:card meta tag"))

        if not meta.canonical:
            issues.append(Issue(Severity.INFO, "Missing canonical link", element="link[rel=canonical]"))

        return issues

    # ------------------------------------------------------------------
    # Headings
    # ------------------------------------------------------------------

    def _extract_headings(self, soup: BeautifulSoup) -> HeadingInventory:
        def texts(tag: str) -> List[str]:
            return [
                heading.get_text(" ", strip=True)[:MAX_HEADING_LENGTH]
                for heading in soup.find_all(tag)
            ]

        return HeadingInventory(h1=texts("h1"), h2=texts("h2"), h3=texts("h3"))

    def _check_headings(self, headings: HeadingInventory) -> List[Issue]:
        issues = []
        h1_count = len(headings.h1)

        if h1_count == 0:
            issues.append(Issue(Severity.ERROR, "Missing H1 tag", element="h1"))
            if headings.h2:
                issues.append(Issue(Severity.WARNING, "H2 present without H1 (broken heading hierarchy)", element="h2"))
        elif h1_count > 1:
            issues.append(Issue(Severity.WARNING, f"Multiple H1 tags found ({h1_count})", element="h1"))

        return issues

    # ------------------------------------------------------------------
    # Images and links
    # ------------------------------------------------------------------

    def _analyze_images(self, soup: BeautifulSoup) -> ImageSummary:
        summary = ImageSummary()

        for img in soup.find_all("img"):
            summary.total += 1
            alt = img.get("alt")
            if alt is not None and alt.strip():
                summary.with_alt += 1
                continue

            summary.without_alt_count += 1
            if len(summary.without_alt) < MAX_IMAGES_WITHOUT_ALT:
                summary.without_alt.append(img.get("src") or img.get("data-src") or "")

        return summary

    def _analyze_links(self, soup: BeautifulSoup, url: str) -> LinkSummary:
        summary = LinkSummary()
        page_host = hostname_of(url)

        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if is_skippable_href(href):
                continue

            try:
                parts = urlsplit(urljoin(url, href))
                host = parts.hostname
                parts.port  # raises ValueError for an invalid port
            except ValueError:
                if len(summary.broken) < MAX_BROKEN_LINKS:
                    summary.broken.append(href)
                continue

            if parts.scheme in ("http", "https") and not host:
                if len(summary.broken) < MAX_BROKEN_LINKS:
                    summary.broken.append(href)
                continue

            if host and page_host and host == page_host:
                summary.internal += 1
            else:
                summary.external += 1

        return summary

    # ------------------------------------------------------------------
    # Performance
    # ------------------------------------------------------------------

    def _analyze_performance(self, soup: BeautifulSoup) -> PerformanceHints:
        hints = PerformanceHints()

        for style in soup.find_all("style"):
            hints.inline_css_bytes += _text_bytes(style.string or style.get_text())
        for element in soup.find_all(style=True):
            hints.inline_css_bytes += _text_bytes(element.get("style"))

        for script in soup.find_all("script"):
            if script.get("src"):
                continue
            script_type = (script.get("type") or "").strip().lower()
            if script_type in NON_EXECUTABLE_SCRIPT_TYPES:
                continue
            hints.inline_js_bytes += _text_bytes(script.string or script.get_text())

        head = soup.find("head")
        if head is not None:
            for script in head.find_all("script", src=True):
                script_type = (script.get("type") or "").strip().lower()
                if script.has_attr("async") or script.has_attr("defer") or script_type == "module":
                    continue
                hints.render_blocking_scripts += 1

        for img in soup.find_all("img"):
            loading = (img.get("loading") or "").strip().lower()
            if loading == "lazy" or img.has_attr("data-src") or img.has_attr("data-lazy"):
                hints.lazy_images += 1

        return hints

    def _check_performance(self, hints: PerformanceHints, image_count: int) -> List[Issue]:
        issues = []

        if hints.inline_css_bytes > INLINE_CSS_WARNING_BYTES:
            issues.append(Issue(
                Severity.WARNING,
                f"Inline CSS is {hints.inline_css_bytes} bytes (over {INLINE_CSS_WARNING_BYTES // 1024}KB)",
            ))

        if hints.render_blocking_scripts > RENDER_BLOCKING_SCRIPTS_THRESHOLD:
            issues.append(Issue(
                Severity.WARNING,
                f"{hints.render_blocking_scripts} render-blocking scripts in <head>",
                element="head script",
            ))

        if image_count > LAZY_LOAD_IMAGE_THRESHOLD and hints.lazy_images == 0:
            issues.append(Issue(Severity.INFO, f"No lazy-loaded images among {image_count} images"))

        return issues


def analyze_page(html: str, url: str) -> PageAnalysis:
    """Analyze page HTML with the default analyzer."""
    return PageAnalyzer().analyze(html, url)
