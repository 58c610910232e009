"""Website audit crawler with browser rendering and static page analysis."""

__version__ = "0.1.0"

from siteaudit.crawler import SiteCrawler, crawl
from siteaudit.page_analyzer import PageAnalyzer, analyze_page
from siteaudit.robots import RobotsRules, fetch_rules, is_allowed, parse_robots_txt
from siteaudit.sitemap import SitemapResolver, resolve_sitemap_urls
from siteaudit.urls import normalize_url
from siteaudit.errors import ErrorKind, classify_error
from siteaudit.models import (
    AuditResults,
    CrawlResult,
    Insight,
    Issue,
    LighthouseResult,
    PageAnalysis,
    Severity,
)
from siteaudit.audit import run_audit
from siteaudit.config import CrawlConfig, settings

__all__ = [
    "SiteCrawler",
    "crawl",
    "PageAnalyzer",
    "analyze_page",
    "RobotsRules",
    "fetch_rules",
    "is_allowed",
    "parse_robots_txt",
    "SitemapResolver",
    "resolve_sitemap_urls",
    "normalize_url",
    "ErrorKind",
    "classify_error",
    "AuditResults",
    "CrawlResult",
    "Insight",
    "Issue",
    "LighthouseResult",
    "PageAnalysis",
    "Severity",
    "run_audit",
    "CrawlConfig",
    "settings",
]
