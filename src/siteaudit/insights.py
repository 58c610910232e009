"""
Rule-based recommendations.

Groups the issues found across a crawl and turns the most widespread ones
into prioritized insights.
"""

import logging
from typing import Any, Dict, List

from siteaudit.constants import (
    INSIGHT_HIGH_PRIORITY_PAGES,
    INSIGHT_MEDIUM_PRIORITY_PAGES,
    MAX_INSIGHT_SAMPLE_PAGES,
    MAX_INSIGHTS,
)
from siteaudit.models import CrawlResult, Insight, Severity

logger = logging.getLogger(__name__)

SEVERITY_RANK = {Severity.ERROR.value: 0, Severity.WARNING.value: 1, Severity.INFO.value: 2}


def aggregate_issues(results: List[CrawlResult]) -> Dict[str, Any]:
    """
    Group issues by message across all pages.

    Failed fetches are grouped by their error type.

    Args:
        results: Crawl results

    Returns:
        Dict with ``totalPages`` and ``issues``: a list of
        {message, severity, count, affectedPages} sorted by count descending
    """
    groups: Dict[str, Dict[str, Any]] = {}

    def add(message: str, severity: str, url: str) -> None:
        group = groups.setdefault(message, {"severity": severity, "count": 0, "pages": []})
        group["count"] += 1
        group["pages"].append(url)

    for result in results:
        if result.analysis is not None:
            for issue in result.analysis.issues:
                add(issue.message, issue.severity.value, result.url)
        if result.error and result.error_type is not None:
            add(f"Crawl error: {result.error_type.value}", Severity.ERROR.value, result.url)

    issues = [
        {
            "message": message,
            "severity": data["severity"],
            "count": data["count"],
            "affectedPages": data["pages"][:MAX_INSIGHT_SAMPLE_PAGES],
        }
        for message, data in groups.items()
    ]
    issues.sort(key=lambda item: (-item["count"], SEVERITY_RANK.get(item["severity"], 3), item["message"]))

    return {"totalPages": len(results), "issues": issues}


def _priority(count: int) -> str:
    if count > INSIGHT_HIGH_PRIORITY_PAGES:
        return "high"
    if count > INSIGHT_MEDIUM_PRIORITY_PAGES:
        return "medium"
    return "low"


def generate_insights(results: List[CrawlResult]) -> List[Insight]:
    """
    Turn the most common issues into recommendations.

    Args:
        results: Crawl results

    Returns:
        Up to five insights, most widespread issue first
    """
    summary = aggregate_issues(results)
    insights = []

    for issue in summary["issues"][:MAX_INSIGHTS]:
        count = issue["count"]
        insights.append(Insight(
            type="suggestion",
            title=f"Fix: {issue['message']}",
            description=(
                f"This issue affects {count} page{'s' if count != 1 else ''}. "
                "Consider reviewing and fixing this across your site."
            ),
            priority=_priority(count),
            affected_pages=list(issue["affectedPages"]),
        ))

    logger.info(f"Generated {len(insights)} insights from {len(summary['issues'])} issue groups")
    return insights
