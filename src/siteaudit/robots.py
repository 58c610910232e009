"""
Robots.txt policy engine.

Fetches a site's robots.txt once per crawl and answers allow/deny queries
using longest-match precedence. Also surfaces Crawl-delay and Sitemap hints.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple
from urllib.parse import urljoin, urlsplit

import httpx

from siteaudit.constants import (
    ROBOTS_FETCH_TIMEOUT_SECONDS,
    ROBOTS_MAX_BYTES,
    ROBOTS_MAX_CRAWL_DELAY_SECONDS,
    ROBOTS_USER_AGENT,
)

logger = logging.getLogger(__name__)

# User-agent tokens whose groups apply to this crawler
RELEVANT_AGENT_KEYWORDS = ("bot", "crawler", "spider")


@dataclass(frozen=True)
class RobotsRules:
    """Parsed robots.txt directives relevant to this crawler."""
    allowed_paths: Tuple[str, ...] = ()
    disallowed_paths: Tuple[str, ...] = ()
    crawl_delay_seconds: Optional[float] = None
    sitemap_urls: Tuple[str, ...] = ()

    @classmethod
    def permissive(cls) -> "RobotsRules":
        """Rules that allow everything (used whenever robots.txt is unusable)."""
        return cls()


def _is_relevant_agent(agent: str) -> bool:
    agent = agent.lower()
    return agent == "*" or any(keyword in agent for keyword in RELEVANT_AGENT_KEYWORDS)


def _is_absolute_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


def parse_robots_txt(content: str) -> RobotsRules:
    """Parse robots.txt text into RobotsRules.

    Directives are grouped under the most recently seen User-agent line. Only
    groups for ``*`` or bot/crawler/spider agents are captured; Sitemap lines
    are global and captured regardless of group.

    Args:
        content: Raw robots.txt body

    Returns:
        RobotsRules built from the content
    """
    allowed = []
    disallowed = []
    sitemaps = []
    crawl_delay: Optional[float] = None
    relevant = False

    for line in content.splitlines():
        # Strip comments
        line = line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue

        directive, value = line.split(":", 1)
        directive = directive.strip().lower()
        value = value.strip()

        if directive == "user-agent":
            relevant = _is_relevant_agent(value)
        elif directive == "sitemap":
            if value and _is_absolute_url(value):
                sitemaps.append(value)
            elif value:
                logger.debug(f"Invalid sitemap URL in robots.txt: {value}")
        elif relevant:
            if directive == "allow" and value:
                allowed.append(value)
            elif directive == "disallow" and value:
                disallowed.append(value)
            elif directive == "crawl-delay":
                try:
                    delay = float(value)
                except ValueError:
                    continue
                if 0 <= delay <= ROBOTS_MAX_CRAWL_DELAY_SECONDS:
                    crawl_delay = delay

    return RobotsRules(
        allowed_paths=tuple(allowed),
        disallowed_paths=tuple(disallowed),
        crawl_delay_seconds=crawl_delay,
        sitemap_urls=tuple(sitemaps),
    )


def _is_text_content_type(content_type: str) -> bool:
    if not content_type:
        return True  # Many servers omit it for robots.txt
    content_type = content_type.lower()
    return "text/" in content_type or "application/octet-stream" in content_type


async def _read_capped(response: httpx.Response, limit: int) -> bytes:
    """Read at most ``limit`` bytes of a streamed response body."""
    chunks = []
    size = 0
    async for chunk in response.aiter_bytes():
        chunks.append(chunk)
        size += len(chunk)
        if size >= limit:
            break
    return b"".join(chunks)[:limit]


async def fetch_rules(
    base_url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = ROBOTS_FETCH_TIMEOUT_SECONDS,
) -> RobotsRules:
    """Fetch and parse robots.txt for a site. Never raises.

    Any fetch or parse failure (timeout, non-2xx, non-text content type)
    yields permissive empty rules. Bodies larger than the size cap are
    truncated rather than rejected.

    Args:
        base_url: Any URL on the site
        client: Optional httpx client to reuse (tests inject a mock transport)
        timeout: Hard timeout for the fetch in seconds

    Returns:
        RobotsRules for the site
    """
    try:
        robots_url = urljoin(base_url, "/robots.txt")
    except ValueError:
        return RobotsRules.permissive()

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    try:
        async with client.stream(
            "GET",
            robots_url,
            headers={"User-Agent": ROBOTS_USER_AGENT, "Accept": "text/plain,*/*"},
            timeout=timeout,
        ) as response:
            if not response.is_success:
                logger.debug(f"robots.txt returned {response.status_code} for {base_url}")
                return RobotsRules.permissive()

            content_type = response.headers.get("content-type", "")
            if not _is_text_content_type(content_type):
                logger.debug(f"robots.txt has unexpected content-type: {content_type}")
                return RobotsRules.permissive()

            body = await _read_capped(response, ROBOTS_MAX_BYTES + 1)
            if len(body) > ROBOTS_MAX_BYTES:
                logger.warning(f"robots.txt for {base_url} exceeds {ROBOTS_MAX_BYTES} bytes, truncating")
                body = body[:ROBOTS_MAX_BYTES]

            rules = parse_robots_txt(body.decode(response.encoding or "utf-8", errors="replace"))
            logger.info(
                f"Loaded robots.txt from {robots_url}: "
                f"{len(rules.disallowed_paths)} disallow, {len(rules.allowed_paths)} allow, "
                f"{len(rules.sitemap_urls)} sitemaps"
            )
            return rules
    except httpx.TimeoutException:
        logger.warning(f"robots.txt fetch timed out for {base_url}")
    except Exception as e:
        logger.warning(f"Failed to fetch robots.txt: {e}")
    finally:
        if owns_client:
            await client.aclose()

    return RobotsRules.permissive()


def path_matches(path: str, pattern: str) -> bool:
    """Match a URL path against a robots.txt path pattern.

    Supports ``*`` wildcards and a trailing ``$`` end anchor. Patterns without
    wildcards are prefix matches unless anchored.
    """
    if not pattern:
        return False

    anchored = pattern.endswith("$")
    clean = pattern[:-1] if anchored else pattern

    if "*" not in clean:
        return path == clean if anchored else path.startswith(clean)

    regex = ".*".join(re.escape(part) for part in clean.split("*"))
    try:
        return re.match("^" + regex + ("$" if anchored else ""), path) is not None
    except re.error:
        return path.startswith(clean.replace("*", ""))


def _longest_match(path: str, patterns: Iterable[str]) -> str:
    best = ""
    for pattern in patterns:
        if len(pattern) > len(best) and path_matches(path, pattern):
            best = pattern
    return best


def is_allowed(rules: RobotsRules, url: str) -> bool:
    """Check whether a URL may be crawled under the given rules.

    The longest matching pattern wins; on equal length, Allow wins. URLs that
    cannot be parsed are allowed.

    Args:
        rules: Parsed robots rules
        url: Absolute URL to check

    Returns:
        True if the URL may be crawled
    """
    try:
        path = urlsplit(url).path or "/"
    except ValueError:
        return True

    best_allow = _longest_match(path, rules.allowed_paths)
    best_disallow = _longest_match(path, rules.disallowed_paths)

    if not best_disallow:
        return True
    return len(best_allow) >= len(best_disallow)
