# src/siteaudit/constants.py
"""Centralized constants for the site auditor.

This module contains magic numbers and configuration values that are used
across multiple modules. For user-configurable crawl settings, see config.py
and CrawlConfig.
"""

# =============================================================================
# Crawler Constants
# =============================================================================

# Default crawl budgets
DEFAULT_MAX_DEPTH = 3
DEFAULT_MAX_PAGES_TO_CRAWL = 50

# Seed URLs taken from sitemaps, as a multiple of max_pages
SEED_URL_MULTIPLIER = 2

# Navigation timeouts (milliseconds, Playwright units)
NAVIGATION_TIMEOUT_MS = 30000
NETWORK_IDLE_TIMEOUT_MS = 10000

# Minimum delay between page fetches (milliseconds)
DEFAULT_CRAWL_DELAY_MS = 500

# Attempts per URL for retryable failures
DEFAULT_MAX_RETRIES = 3

# Exponential backoff: BASE ** attempt * UNIT + random(0, JITTER)
EXPONENTIAL_BACKOFF_BASE = 2
BACKOFF_UNIT_MS = 1000
BACKOFF_JITTER_MS = 1000

# Seconds to wait before re-checking a suspected anti-bot challenge
ANTI_BOT_RECHECK_SECONDS = 3.0

# Signal phrases required to flag a page as a challenge page on their own
ANTI_BOT_SIGNAL_THRESHOLD = 2

# Clickable elements scanned by the text-based consent fallback
CONSENT_TEXT_SCAN_LIMIT = 20

# Progress milestones (percent)
PROGRESS_ROBOTS = 0
PROGRESS_SITEMAP = 5
PROGRESS_CRAWL_START = 10
PROGRESS_CRAWL_END = 80
PROGRESS_LIGHTHOUSE = 85
PROGRESS_INSIGHTS = 92
PROGRESS_COMPLETE = 100


# =============================================================================
# Robots.txt Constants
# =============================================================================

ROBOTS_FETCH_TIMEOUT_SECONDS = 10.0
ROBOTS_MAX_BYTES = 512 * 1024
ROBOTS_MAX_CRAWL_DELAY_SECONDS = 120
ROBOTS_USER_AGENT = "SiteAuditBot/1.0"


# =============================================================================
# Sitemap Constants
# =============================================================================

SITEMAP_FETCH_TIMEOUT_SECONDS = 15.0
SITEMAP_MAX_BYTES = 10 * 1024 * 1024
SITEMAP_MAX_URLS = 50000
SITEMAP_MAX_DEPTH = 3

# Tried in order after any sitemap hinted by robots.txt
SITEMAP_FALLBACK_PATHS = [
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/sitemap/sitemap.xml",
    "/wp-sitemap.xml",
    "/sitemap.xml.gz",
]


# =============================================================================
# Viewport and Display Constants
# =============================================================================

DESKTOP_VIEWPORT_WIDTH = 1920
DESKTOP_VIEWPORT_HEIGHT = 1080


# =============================================================================
# Page Analysis Constants
# =============================================================================

# Title and meta description length bounds (characters)
TITLE_MIN_LENGTH = 10
TITLE_MAX_LENGTH = 60
DESCRIPTION_MIN_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 160

# Heading text is truncated to this many characters
MAX_HEADING_LENGTH = 200

# List caps in the analysis output
MAX_IMAGES_WITHOUT_ALT = 50
MAX_BROKEN_LINKS = 20

# Performance hints
INLINE_CSS_WARNING_BYTES = 50 * 1024
RENDER_BLOCKING_SCRIPTS_THRESHOLD = 3
LAZY_LOAD_IMAGE_THRESHOLD = 10

# Skip links must appear among the first N anchors
SKIP_LINK_SCAN_LIMIT = 5


# =============================================================================
# Scoring Constants
# =============================================================================

SCORE_ERROR_PENALTY = 5
SCORE_WARNING_PENALTY = 1

# Insight priority cut-offs (affected page counts)
INSIGHT_HIGH_PRIORITY_PAGES = 5
INSIGHT_MEDIUM_PRIORITY_PAGES = 2
MAX_INSIGHTS = 5
MAX_INSIGHT_SAMPLE_PAGES = 5
