"""Full audit pipeline: crawl, Lighthouse, insights and scoring."""

import asyncio
import logging
from typing import Optional

from siteaudit.config import CrawlConfig
from siteaudit.constants import PROGRESS_COMPLETE, PROGRESS_INSIGHTS, PROGRESS_LIGHTHOUSE
from siteaudit.crawler import ProgressCallback, SiteCrawler, report_progress
from siteaudit.insights import generate_insights
from siteaudit.lighthouse_runner import LighthouseRunner
from siteaudit.models import AuditResults, Severity
from siteaudit.scoring import calculate_health_score, count_issues
from siteaudit.urls import normalize_url

logger = logging.getLogger(__name__)


async def run_audit(
    url: str,
    max_depth: Optional[int] = None,
    max_pages: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
    lighthouse: bool = True,
    config: Optional[CrawlConfig] = None,
    crawler: Optional[SiteCrawler] = None,
    lighthouse_runner: Optional[LighthouseRunner] = None,
) -> AuditResults:
    """
    Audit a site.

    Progress runs 0-80% during the crawl, 85% before Lighthouse, 92% before
    insights and 100% when done.

    Args:
        url: Site URL
        max_depth: Maximum link depth
        max_pages: Maximum pages to crawl
        on_progress: Callback receiving (percent, message)
        lighthouse: Run Lighthouse on the base URL
        config: Crawl configuration (ignored when ``crawler`` is given)
        crawler: Pre-built crawler
        lighthouse_runner: Pre-built Lighthouse runner

    Returns:
        AuditResults for the site
    """
    crawler = crawler or SiteCrawler(config=config)
    pages = await crawler.crawl(url, max_depth=max_depth, max_pages=max_pages, on_progress=on_progress)

    lighthouse_result = None
    target = normalize_url(url)
    if lighthouse and target is not None and any(page.succeeded for page in pages):
        await report_progress(on_progress, PROGRESS_LIGHTHOUSE, "Running Lighthouse audit...")
        runner = lighthouse_runner or LighthouseRunner()
        lighthouse_result = await asyncio.to_thread(runner.run, target)

    await report_progress(on_progress, PROGRESS_INSIGHTS, "Generating insights...")
    insights = generate_insights(pages)

    score = calculate_health_score(pages, lighthouse_result)
    counts = count_issues(pages)

    await report_progress(on_progress, PROGRESS_COMPLETE, "Complete!")
    logger.info(f"Audit of {url} complete: score {score}, {len(pages)} pages")

    return AuditResults(
        score=score,
        pages=pages,
        errors=counts[Severity.ERROR.value],
        warnings=counts[Severity.WARNING.value],
        lighthouse=lighthouse_result,
        insights=insights,
    )
