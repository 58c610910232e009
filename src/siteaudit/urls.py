"""URL normalization used as the dedup key for the crawl frontier."""

from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

# hrefs that never lead to a crawlable page
SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "data:", "#")


def normalize_url(raw: str) -> Optional[str]:
    """Canonicalize an absolute http(s) URL.

    Strips the fragment, sorts query parameters by key then value, drops a
    trailing slash (except for the root path), drops the scheme's default
    port and lowercases scheme and host.

    Args:
        raw: URL to normalize

    Returns:
        The normalized URL, or None when the input is not a valid absolute
        http/https URL
    """
    if not isinstance(raw, str):
        return None

    try:
        parts = urlsplit(raw.strip())
        scheme = parts.scheme.lower()
        host = parts.hostname
        port = parts.port  # raises ValueError for out-of-range ports
    except ValueError:
        return None

    if scheme not in ALLOWED_SCHEMES or not host:
        return None

    if ":" in host:
        host = f"[{host}]"  # IPv6 literal

    netloc = host
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{host}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = parts.path.rstrip("/") or "/"

    return urlunsplit((scheme, netloc, path, _sort_query(parts.query), ""))


def _sort_query(query: str) -> str:
    """Sort query pairs lexicographically by key, then value.

    Pairs are compared as written, so percent-encoding is preserved and the
    result is stable under repeated normalization.
    """
    if not query:
        return ""

    pairs = []
    for pair in query.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        pairs.append((key, value, pair))

    pairs.sort(key=lambda item: (item[0], item[1]))
    return "&".join(item[2] for item in pairs)


def is_skippable_href(href: Optional[str]) -> bool:
    """True for empty, fragment-only and non-navigational hrefs."""
    if not href:
        return True
    return href.strip().lower().startswith(SKIP_HREF_PREFIXES)


def resolve_link(href: str, page_url: str) -> Optional[str]:
    """Resolve an href against the page it appeared on and normalize it.

    Args:
        href: Raw href attribute value
        page_url: URL of the page containing the link

    Returns:
        Normalized absolute URL, or None if the href is skippable or invalid
    """
    if is_skippable_href(href):
        return None
    try:
        absolute = urljoin(page_url, href.strip())
    except ValueError:
        return None
    return normalize_url(absolute)


def hostname_of(url: str) -> Optional[str]:
    """Lowercase hostname of a URL, or None if it cannot be parsed."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host or None


def same_host(url: str, host: str) -> bool:
    """Whether a URL's hostname equals the given host (case-insensitive)."""
    url_host = hostname_of(url)
    return url_host is not None and url_host == host.lower()
