"""Site health score and issue counts over a crawl result set."""

import math
from typing import Dict, List, Optional

from siteaudit.constants import SCORE_ERROR_PENALTY, SCORE_WARNING_PENALTY
from siteaudit.models import CrawlResult, LighthouseResult, Severity


def count_issues(results: List[CrawlResult]) -> Dict[str, int]:
    """Total issues per severity across all analysed pages."""
    counts = {severity.value: 0 for severity in Severity}
    for result in results:
        if result.analysis is None:
            continue
        for issue in result.analysis.issues:
            counts[issue.severity.value] += 1
    return counts


def calculate_health_score(
    results: List[CrawlResult],
    lighthouse: Optional[LighthouseResult] = None,
) -> int:
    """Score a crawl from 0 to 100.

    Starts at 100, loses 5 points per error issue and 1 per warning issue,
    then is averaged with the mean Lighthouse performance/accessibility/SEO
    score when available. A result set without a single successful page
    scores 0.

    Args:
        results: Crawl results
        lighthouse: Optional Lighthouse result for the home page

    Returns:
        Integer score clamped to 0-100
    """
    if not any(result.succeeded for result in results):
        return 0

    counts = count_issues(results)
    score = (
        100
        - counts[Severity.ERROR.value] * SCORE_ERROR_PENALTY
        - counts[Severity.WARNING.value] * SCORE_WARNING_PENALTY
    )

    if lighthouse is not None:
        lighthouse_average = (lighthouse.performance + lighthouse.accessibility + lighthouse.seo) / 3
        score = math.floor((score + lighthouse_average) / 2 + 0.5)

    return max(0, min(100, score))
