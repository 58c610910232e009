"""Example usage of the site auditor - Audit a small site."""

import asyncio

from siteaudit import CrawlConfig, run_audit
from siteaudit.logging_config import setup_logging


def show_progress(percent, message):
    print(f"[{percent:3d}%] {message}")


async def main():
    """Run an example audit."""
    setup_logging(level="WARNING")

    # Limits come from SITEAUDIT_* variables / .env
    config = CrawlConfig.from_env()

    url = "https://example.com"
    print(f"Auditing {url}...")

    results = await run_audit(url, max_depth=1, max_pages=5, on_progress=show_progress, config=config)

    if not any(page.succeeded for page in results.pages):
        print(f"Failed to crawl: {results.pages[0].error}")
        return

    print(f"\nHealth Score: {results.score}/100")
    print(f"Errors: {results.errors}  Warnings: {results.warnings}")

    if results.lighthouse:
        print(f"Lighthouse performance: {results.lighthouse.performance}/100")

    print("\nPages:")
    for page in results.pages:
        print(f"  • {page.status_code} {page.url} - {page.title}")

    print("\nRecommendations:")
    for insight in results.insights:
        print(f"  • [{insight.priority}] {insight.title}")


if __name__ == "__main__":
    asyncio.run(main())
