"""Command-line interface for the site auditor."""

import asyncio
import json
import sys
from typing import List, Optional

from siteaudit.audit import run_audit
from siteaudit.config import CrawlConfig
from siteaudit.lighthouse_runner import get_metrics_status
from siteaudit.logging_config import setup_logging
from siteaudit.models import AuditResults, Severity

SEVERITY_ICONS = {
    Severity.ERROR: "❌",
    Severity.WARNING: "⚠️ ",
    Severity.INFO: "ℹ️ ",
}


def print_progress(percent: int, message: str) -> None:
    """Progress sink for interactive runs (stderr, so JSON output stays clean)."""
    print(f"[{percent:3d}%] {message}", file=sys.stderr)


def print_audit(url: str, results: AuditResults) -> None:
    """Print audit results in a formatted way.

    Args:
        url: The audited URL
        results: AuditResults from run_audit
    """
    print(f"\n{'=' * 60}")
    print(f"Site Audit for: {url}")
    print(f"{'=' * 60}")
    print(f"\n📊 Health Score: {results.score}/100")
    print(f"  • Pages analyzed: {results.pages_analyzed}")
    print(f"  • Errors: {results.errors}")
    print(f"  • Warnings: {results.warnings}")

    if results.lighthouse:
        lh = results.lighthouse
        statuses = get_metrics_status(lh)
        print(f"\n🚦 Lighthouse:")
        print(f"  • Performance: {lh.performance}  Accessibility: {lh.accessibility}  "
              f"Best practices: {lh.best_practices}  SEO: {lh.seo}")
        print(f"  • LCP: {lh.lcp:.0f}ms ({statuses['lcp']})  CLS: {lh.cls:.3f} ({statuses['cls']})  "
              f"TBT: {lh.tbt:.0f}ms ({statuses['tbt']})")

    print(f"\n📄 Pages:")
    for page in results.pages:
        if page.error and page.analysis is None:
            print(f"  ✗ {page.url} [{page.error_type.value if page.error_type else 'unknown'}] {page.error}")
            continue

        print(f"  ✓ {page.status_code} {page.url} - {page.title or '(no title)'}")
        if page.final_url:
            print(f"      → redirected to {page.final_url}")
        if page.analysis:
            for issue in page.analysis.issues:
                if issue.severity == Severity.INFO:
                    continue
                print(f"      {SEVERITY_ICONS[issue.severity]} {issue.message}")

    if results.insights:
        print(f"\n💡 Recommendations:")
        for insight in results.insights:
            print(f"  • [{insight.priority}] {insight.title}")
            print(f"    {insight.description}")

    print(f"\n{'=' * 60}\n")


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        prog="siteaudit",
        description="Site Auditor - Crawl a website and audit its SEO, accessibility and performance",
    )
    parser.add_argument("url", help="Site URL to audit")
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Maximum link depth from the start page (default: 3)",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Maximum pages to crawl (default: 50)",
    )
    parser.add_argument(
        "--no-lighthouse",
        action="store_true",
        help="Skip the Lighthouse performance audit",
    )
    parser.add_argument(
        "--config",
        help="JSON file with crawl settings (default: SITEAUDIT_* environment variables)",
    )
    parser.add_argument(
        "--output",
        "-o",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--output-file",
        "-f",
        help="Write output to file (only for json format)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set logging verbosity (default: SITEAUDIT_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Write logs to file in addition to console (default: SITEAUDIT_LOG_FILE)",
    )
    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point.

    Exits 0 when the audit completes with at least one successful page,
    1 when no page could be crawled, 2 on invalid arguments.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    for name in ("max_depth", "max_pages"):
        value = getattr(args, name)
        if value is not None and value < 0:
            parser.error(f"--{name.replace('_', '-')} must not be negative")

    setup_logging(level=args.log_level, log_file=args.log_file)

    config = CrawlConfig.from_file(args.config) if args.config else CrawlConfig.from_env()

    results = asyncio.run(run_audit(
        args.url,
        max_depth=args.max_depth,
        max_pages=args.max_pages,
        on_progress=print_progress if args.output == "text" else None,
        lighthouse=not args.no_lighthouse,
        config=config,
    ))

    if args.output == "json":
        output = json.dumps(results.to_dict(), indent=2, default=str)
        if args.output_file:
            with open(args.output_file, "w") as f:
                f.write(output)
            print(f"Results written to {args.output_file}")
        else:
            print(output)
    else:
        print_audit(args.url, results)

    succeeded = any(page.succeeded for page in results.pages)
    sys.exit(0 if succeeded else 1)


if __name__ == "__main__":
    main()
