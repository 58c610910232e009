"""Data models for crawl results and page analysis.

Every record serializes through ``to_dict()`` into the JSON wire shape consumed
by scoring, reporting and export (camelCase keys).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from siteaudit.errors import ErrorKind


class Severity(str, Enum):
    """Issue severity levels."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Issue:
    """A single finding raised by the page analyzer."""
    severity: Severity
    message: str
    element: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"severity": self.severity.value, "message": self.message}
        if self.element is not None:
            data["element"] = self.element
        return data


@dataclass
class MetaTags:
    """Head metadata relevant to search and social previews."""
    title: Optional[str] = None
    description: Optional[str] = None
    keywords: Optional[str] = None
    canonical: Optional[str] = None
    robots: Optional[str] = None
    og_title: Optional[str] = None
    og_description: Optional[str] = None
    og_image: Optional[str] = None
    twitter_card: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "keywords": self.keywords,
            "canonical": self.canonical,
            "robots": self.robots,
            "ogTitle": self.og_title,
            "ogDescription": self.og_description,
            "ogImage": self.og_image,
            "twitterCard": self.twitter_card,
        }


@dataclass
class HeadingInventory:
    """Text of h1/h2/h3 elements in document order."""
    h1: List[str] = field(default_factory=list)
    h2: List[str] = field(default_factory=list)
    h3: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"h1": list(self.h1), "h2": list(self.h2), "h3": list(self.h3)}


@dataclass
class ImageSummary:
    """Alt-text coverage for <img> elements."""
    total: int = 0
    with_alt: int = 0
    without_alt_count: int = 0
    without_alt: List[str] = field(default_factory=list)  # src values, capped

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "withAlt": self.with_alt,
            "withoutAltCount": self.without_alt_count,
            "withoutAlt": list(self.without_alt),
        }


@dataclass
class LinkSummary:
    """Anchor classification relative to the page host."""
    internal: int = 0
    external: int = 0
    broken: List[str] = field(default_factory=list)  # unparseable hrefs, capped

    def to_dict(self) -> dict:
        return {
            "internal": self.internal,
            "external": self.external,
            "broken": list(self.broken),
        }


@dataclass
class SchemaSummary:
    """Structured data types found on the page."""
    types: List[str] = field(default_factory=list)

    @property
    def has_structured_data(self) -> bool:
        return bool(self.types)

    def to_dict(self) -> dict:
        return {
            "hasStructuredData": self.has_structured_data,
            "types": list(self.types),
        }


@dataclass
class PerformanceHints:
    """Static performance signals derived from markup."""
    inline_css_bytes: int = 0
    inline_js_bytes: int = 0
    render_blocking_scripts: int = 0
    lazy_images: int = 0

    def to_dict(self) -> dict:
        return {
            "inlineCssBytes": self.inline_css_bytes,
            "inlineJsBytes": self.inline_js_bytes,
            "renderBlockingScripts": self.render_blocking_scripts,
            "lazyImages": self.lazy_images,
        }


@dataclass
class AccessibilitySignals:
    """Form labelling, landmarks, skip links and tabindex usage."""
    labeled_inputs: int = 0
    unlabeled_inputs: int = 0
    unlabeled_elements: List[str] = field(default_factory=list)
    landmarks: List[str] = field(default_factory=list)
    has_skip_link: bool = False
    tabindex_count: int = 0
    negative_tabindex_count: int = 0

    def to_dict(self) -> dict:
        return {
            "labeledInputs": self.labeled_inputs,
            "unlabeledInputs": self.unlabeled_inputs,
            "unlabeledElements": list(self.unlabeled_elements),
            "landmarks": list(self.landmarks),
            "hasSkipLink": self.has_skip_link,
            "tabindexCount": self.tabindex_count,
            "negativeTabindexCount": self.negative_tabindex_count,
        }


@dataclass(frozen=True)
class PageAnalysis:
    """Structured SEO/accessibility/performance signals for one page."""
    meta: MetaTags = field(default_factory=MetaTags)
    headings: HeadingInventory = field(default_factory=HeadingInventory)
    images: ImageSummary = field(default_factory=ImageSummary)
    links: LinkSummary = field(default_factory=LinkSummary)
    schema: SchemaSummary = field(default_factory=SchemaSummary)
    performance: PerformanceHints = field(default_factory=PerformanceHints)
    accessibility: AccessibilitySignals = field(default_factory=AccessibilitySignals)
    lang: Optional[str] = None
    has_viewport: bool = False
    has_favicon: bool = False
    issues: List[Issue] = field(default_factory=list)
    parse_failed: bool = False

    def issues_by_severity(self, severity: Severity) -> List[Issue]:
        return [issue for issue in self.issues if issue.severity == severity]

    def to_dict(self) -> dict:
        return {
            "meta": self.meta.to_dict(),
            "headings": self.headings.to_dict(),
            "images": self.images.to_dict(),
            "links": self.links.to_dict(),
            "schema": self.schema.to_dict(),
            "performance": self.performance.to_dict(),
            "accessibility": self.accessibility.to_dict(),
            "lang": self.lang,
            "hasViewport": self.has_viewport,
            "hasFavicon": self.has_favicon,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass(frozen=True)
class CrawlResult:
    """Outcome of visiting one URL. Terminal once created."""
    url: str
    status_code: int = 0
    title: str = ""
    analysis: Optional[PageAnalysis] = None
    final_url: Optional[str] = None  # Set only when the page redirected
    error: Optional[str] = None
    error_type: Optional[ErrorKind] = None
    response_time_ms: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        """True for an error-free 2xx/3xx response."""
        return self.error is None and 200 <= self.status_code < 400

    @classmethod
    def failure(
        cls,
        url: str,
        error: str,
        error_type: ErrorKind,
        response_time_ms: Optional[int] = None,
    ) -> "CrawlResult":
        """Build a terminal error result (status 0, no title or analysis)."""
        return cls(
            url=url,
            status_code=0,
            title="",
            analysis=None,
            error=error,
            error_type=error_type,
            response_time_ms=response_time_ms,
        )

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "finalUrl": self.final_url,
            "statusCode": self.status_code,
            "title": self.title,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "error": self.error,
            "errorType": self.error_type.value if self.error_type else None,
            "responseTimeMs": self.response_time_ms,
        }


@dataclass
class LighthouseResult:
    """Category scores (0-100) and lab metrics from a Lighthouse run."""
    performance: int = 0
    accessibility: int = 0
    best_practices: int = 0
    seo: int = 0
    fcp: float = 0.0
    lcp: float = 0.0
    cls: float = 0.0
    tbt: float = 0.0
    speed_index: float = 0.0

    def to_dict(self) -> dict:
        return {
            "performance": self.performance,
            "accessibility": self.accessibility,
            "bestPractices": self.best_practices,
            "seo": self.seo,
            "metrics": {
                "fcp": self.fcp,
                "lcp": self.lcp,
                "cls": self.cls,
                "tbt": self.tbt,
                "speedIndex": self.speed_index,
            },
        }


@dataclass
class Insight:
    """A prioritized recommendation derived from aggregated issues."""
    type: str  # suggestion, fix, warning
    title: str
    description: str
    priority: str  # high, medium, low
    affected_pages: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "affectedPages": list(self.affected_pages),
        }


@dataclass
class AuditResults:
    """Everything an audit run produces."""
    score: int
    pages: List[CrawlResult] = field(default_factory=list)
    errors: int = 0
    warnings: int = 0
    lighthouse: Optional[LighthouseResult] = None
    insights: List[Insight] = field(default_factory=list)

    @property
    def pages_analyzed(self) -> int:
        return len(self.pages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "pagesAnalyzed": self.pages_analyzed,
            "errors": self.errors,
            "warnings": self.warnings,
            "pages": [page.to_dict() for page in self.pages],
            "lighthouse": self.lighthouse.to_dict() if self.lighthouse else None,
            "insights": [insight.to_dict() for insight in self.insights],
        }
