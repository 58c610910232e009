"""Sitemap resolver with gzip and sitemap-index support."""

import html
import logging
import re
import zlib
from typing import Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import urljoin, urlsplit
from xml.etree import ElementTree as ET

import httpx

from siteaudit.constants import (
    ROBOTS_USER_AGENT,
    SITEMAP_FALLBACK_PATHS,
    SITEMAP_FETCH_TIMEOUT_SECONDS,
    SITEMAP_MAX_BYTES,
    SITEMAP_MAX_DEPTH,
    SITEMAP_MAX_URLS,
)
from siteaudit.urls import normalize_url

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"

# Bodies are read raw, so only encodings decoded here may be negotiated
SITEMAP_REQUEST_HEADERS = {"Accept-Encoding": "gzip"}

# zlib window bits: gzip container, or auto-detect gzip/zlib headers
GZIP_WBITS = 16 + zlib.MAX_WBITS
AUTO_WBITS = 32 + zlib.MAX_WBITS

# <loc> entries inside a page sitemap that point at further sitemap files
NESTED_SITEMAP_PATTERN = re.compile(r"sitemap[^/]*\.xml(\.gz)?$", re.IGNORECASE)

# Fallback extraction for truncated or malformed XML
LOC_PATTERN = re.compile(
    rb"<loc>\s*(?:<!\[CDATA\[)?\s*(.*?)\s*(?:\]\]>)?\s*</loc>",
    re.IGNORECASE | re.DOTALL,
)
INDEX_PATTERN = re.compile(rb"<sitemapindex[\s>]|<sitemap[\s>]", re.IGNORECASE)


class SitemapTooLarge(Exception):
    """Raised when a decompressed sitemap would exceed the size cap."""


def _local_name(tag: str) -> str:
    return tag.split("}", 1)[-1] if "}" in tag else tag


def _decompress(data: bytes, limit: int, wbits: int = GZIP_WBITS) -> bytes:
    """Inflate ``data``, refusing to produce more than ``limit`` bytes.

    Truncated input yields whatever could be decoded.
    """
    decompressor = zlib.decompressobj(wbits)
    output = decompressor.decompress(data, limit)
    if decompressor.unconsumed_tail:
        raise SitemapTooLarge(f"decompressed sitemap exceeds {limit} bytes")
    return output


def parse_sitemap_xml(content: bytes) -> Tuple[bool, List[str]]:
    """Parse sitemap XML.

    Args:
        content: Raw (decompressed) sitemap bytes

    Returns:
        Tuple of (is_index, loc values in document order)
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        logger.debug(f"Sitemap XML did not parse cleanly ({e}), scanning for <loc> tags")
        is_index = INDEX_PATTERN.search(content) is not None
        locs = [
            html.unescape(match.group(1).decode("utf-8", errors="replace")).strip()
            for match in LOC_PATTERN.finditer(content)
        ]
        return is_index, [loc for loc in locs if loc]

    is_index = _local_name(root.tag) == "sitemapindex"
    if not is_index:
        is_index = any(_local_name(child.tag) == "sitemap" for child in root)

    entry_tag = "sitemap" if is_index else "url"
    locs = []
    for entry in root.iter():
        if _local_name(entry.tag) != entry_tag:
            continue
        for child in entry:
            if _local_name(child.tag) == "loc" and child.text and child.text.strip():
                locs.append(child.text.strip())
                break

    return is_index, locs


class SitemapResolver:
    """
    Discover page URLs from a site's sitemaps.

    Supports:
    - Sitemaps hinted by robots.txt, then well-known fallback locations
    - Gzip-compressed sitemaps (by extension, Content-Encoding or magic bytes)
    - Deflate-encoded responses from servers that ignore Accept-Encoding
    - Sitemap index files, recursing up to a fixed depth

    Resolution is best-effort and never raises.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = SITEMAP_FETCH_TIMEOUT_SECONDS,
        max_bytes: int = SITEMAP_MAX_BYTES,
        max_urls: int = SITEMAP_MAX_URLS,
        max_depth: int = SITEMAP_MAX_DEPTH,
    ):
        """
        Initialize the resolver.

        Args:
            client: Optional httpx client to reuse (tests inject a mock transport)
            timeout: Per-fetch timeout in seconds
            max_bytes: Size cap per sitemap, applied before and after decompression
            max_urls: Global cap on URLs returned
            max_depth: Maximum sitemap-index nesting depth
        """
        self._client = client
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.max_urls = max_urls
        self.max_depth = max_depth

    def candidate_urls(self, base_url: str, hinted_sitemap_urls: Iterable[str] = ()) -> List[str]:
        """Sitemap locations to try, hinted ones first."""
        candidates: List[str] = []
        for url in list(hinted_sitemap_urls) + [urljoin(base_url, path) for path in SITEMAP_FALLBACK_PATHS]:
            if url and url not in candidates:
                candidates.append(url)
        return candidates

    async def resolve_urls(self, base_url: str, hinted_sitemap_urls: Iterable[str] = ()) -> List[str]:
        """Resolve page URLs for a site.

        Candidates are tried in order; resolution stops at the first one that
        yields at least one URL.

        Args:
            base_url: Site base URL
            hinted_sitemap_urls: Sitemap URLs from robots.txt

        Returns:
            Deduplicated page URLs in discovery order (empty on failure)
        """
        try:
            candidates = self.candidate_urls(base_url, hinted_sitemap_urls)
        except ValueError as e:
            logger.warning(f"Cannot build sitemap candidates for {base_url}: {e}")
            return []

        owns_client = self._client is None
        client = self._client or httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": ROBOTS_USER_AGENT},
        )

        try:
            for candidate in candidates:
                urls: Dict[str, None] = {}
                try:
                    await self._collect(client, candidate, 0, urls, set())
                except Exception as e:
                    logger.warning(f"Failed to resolve sitemap {candidate}: {e}")
                    continue

                if urls:
                    logger.info(f"Found {len(urls)} URLs in sitemap {candidate}")
                    return list(urls)
        finally:
            if owns_client:
                await client.aclose()

        logger.info(f"No sitemap URLs found for {base_url}")
        return []

    async def _collect(
        self,
        client: httpx.AsyncClient,
        sitemap_url: str,
        depth: int,
        urls: Dict[str, None],
        seen_sitemaps: Set[str],
    ) -> None:
        """Recursively fetch a sitemap and add its page URLs to ``urls``."""
        if depth > self.max_depth:
            logger.warning(f"Sitemap nesting deeper than {self.max_depth}, skipping {sitemap_url}")
            return
        if sitemap_url in seen_sitemaps or len(urls) >= self.max_urls:
            return
        seen_sitemaps.add(sitemap_url)

        content = await self._fetch(client, sitemap_url)
        if not content:
            return

        is_index, locs = parse_sitemap_xml(content)

        if is_index:
            logger.debug(f"Sitemap index {sitemap_url} lists {len(locs)} sitemaps")
            for loc in locs:
                if len(urls) >= self.max_urls:
                    break
                if normalize_url(loc) is None:
                    continue
                await self._collect(client, loc, depth + 1, urls, seen_sitemaps)
            return

        for loc in locs:
            if len(urls) >= self.max_urls:
                logger.info(f"Reached max URLs limit ({self.max_urls})")
                break
            if normalize_url(loc) is None:
                continue
            if NESTED_SITEMAP_PATTERN.search(urlsplit(loc).path):
                continue
            urls.setdefault(loc, None)

    async def _fetch(self, client: httpx.AsyncClient, sitemap_url: str) -> Optional[bytes]:
        """Fetch one sitemap, returning decompressed bytes or None."""
        try:
            async with client.stream(
                "GET", sitemap_url, headers=SITEMAP_REQUEST_HEADERS, timeout=self.timeout
            ) as response:
                if not response.is_success:
                    logger.debug(f"Sitemap {sitemap_url} returned {response.status_code}")
                    return None

                content_encoding = response.headers.get("content-encoding", "").lower()
                chunks = []
                size = 0
                async for chunk in response.aiter_raw():
                    chunks.append(chunk)
                    size += len(chunk)
                    if size >= self.max_bytes:
                        logger.warning(f"Sitemap {sitemap_url} exceeds {self.max_bytes} bytes, truncating")
                        break
                data = b"".join(chunks)[:self.max_bytes]
        except httpx.TimeoutException:
            logger.warning(f"Sitemap fetch timed out: {sitemap_url}")
            return None
        except httpx.HTTPError as e:
            logger.debug(f"Sitemap fetch failed for {sitemap_url}: {e}")
            return None

        try:
            if "gzip" in content_encoding:
                data = _decompress(data, self.max_bytes)
            elif "deflate" in content_encoding:
                # Servers that ignore Accept-Encoding; zlib-wrapped per RFC 9110
                data = _decompress(data, self.max_bytes, AUTO_WBITS)
            # A .gz file may also be served with Content-Encoding: gzip
            if data.startswith(GZIP_MAGIC):
                data = _decompress(data, self.max_bytes)
        except SitemapTooLarge as e:
            logger.warning(f"Skipping sitemap {sitemap_url}: {e}")
            return None
        except zlib.error as e:
            logger.warning(f"Could not decompress sitemap {sitemap_url}: {e}")
            return None

        return data


async def resolve_sitemap_urls(
    base_url: str,
    hinted_sitemap_urls: Iterable[str] = (),
    client: Optional[httpx.AsyncClient] = None,
) -> List[str]:
    """
    Convenience function to resolve a site's sitemap URLs.

    Args:
        base_url: Site base URL
        hinted_sitemap_urls: Sitemap URLs from robots.txt
        client: Optional httpx client

    Returns:
        List of page URLs from the first productive sitemap
    """
    resolver = SitemapResolver(client=client)
    return await resolver.resolve_urls(base_url, hinted_sitemap_urls)
