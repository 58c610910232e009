"""
Lighthouse Performance Auditor

Runs Google Lighthouse via CLI on a site's home page and reduces the report
to category scores and Core Web Vitals lab metrics.
"""

import json
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from siteaudit.config import settings
from siteaudit.models import LighthouseResult

logger = logging.getLogger(__name__)

CATEGORIES = ["performance", "accessibility", "best-practices", "seo"]

# Google's lab thresholds (milliseconds unless noted)
METRIC_THRESHOLDS = {
    "lcp": {"good": 2500, "poor": 4000},
    "fcp": {"good": 1800, "poor": 3000},
    "tbt": {"good": 200, "poor": 600},
    "cls": {"good": 0.1, "poor": 0.25},  # unitless
    "speed_index": {"good": 3400, "poor": 5800},
}


class LighthouseRunner:
    """Runs Lighthouse audits and parses results."""

    def __init__(
        self,
        binary: Optional[str] = None,
        chrome_flags: Optional[list[str]] = None,
        timeout: int = 120,
    ):
        """
        Initialize the Lighthouse runner.

        Args:
            binary: Lighthouse executable (defaults to SITEAUDIT_LIGHTHOUSE_BINARY)
            chrome_flags: Chrome flags passed through to Lighthouse
            timeout: Timeout for Lighthouse execution in seconds
        """
        self.binary = binary or settings.LIGHTHOUSE_BINARY
        self.chrome_flags = chrome_flags or ["--headless", "--no-sandbox"]
        self.timeout = timeout

    def build_command(self, url: str, output_path: str) -> list[str]:
        cmd = [
            self.binary,
            url,
            "--output=json",
            f"--output-path={output_path}",
            "--quiet",
            "--chrome-flags=" + " ".join(self.chrome_flags),
        ]
        for category in CATEGORIES:
            cmd.append(f"--only-categories={category}")
        return cmd

    def run(self, url: str) -> Optional[LighthouseResult]:
        """
        Run Lighthouse on a URL.

        Args:
            url: The URL to audit

        Returns:
            LighthouseResult, or None if Lighthouse is missing, times out,
            exits non-zero or writes an unreadable report
        """
        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as tmp_file:
            output_path = tmp_file.name

        try:
            logger.info(f"Running Lighthouse on {url}")
            result = subprocess.run(
                self.build_command(url, output_path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )

            if result.returncode != 0:
                logger.error(f"Lighthouse failed for {url}: {result.stderr.strip()[:500]}")
                return None

            with open(output_path, "r") as f:
                lhr = json.load(f)

            logger.info(f"Lighthouse completed successfully for {url}")
            return self.parse_report(lhr)

        except FileNotFoundError:
            logger.warning(f"Lighthouse binary not found: {self.binary}")
            return None
        except subprocess.TimeoutExpired:
            logger.error(f"Lighthouse timeout for {url} after {self.timeout}s")
            return None
        except (OSError, ValueError) as e:
            logger.error(f"Error running Lighthouse on {url}: {e}")
            return None
        finally:
            Path(output_path).unlink(missing_ok=True)

    def parse_report(self, lhr: Dict[str, Any]) -> LighthouseResult:
        """
        Reduce a Lighthouse report to scores and metrics.

        Args:
            lhr: Lighthouse report JSON (lhr = Lighthouse Result)

        Returns:
            LighthouseResult with 0-100 scores
        """
        categories = lhr.get("categories") or {}
        audits = lhr.get("audits") or {}

        return LighthouseResult(
            performance=self._get_score(categories.get("performance")),
            accessibility=self._get_score(categories.get("accessibility")),
            best_practices=self._get_score(categories.get("best-practices")),
            seo=self._get_score(categories.get("seo")),
            fcp=self._get_metric_value(audits.get("first-contentful-paint")),
            lcp=self._get_metric_value(audits.get("largest-contentful-paint")),
            cls=self._get_metric_value(audits.get("cumulative-layout-shift")),
            tbt=self._get_metric_value(audits.get("total-blocking-time")),
            speed_index=self._get_metric_value(audits.get("speed-index")),
        )

    def _get_score(self, category: Optional[Dict]) -> int:
        """Extract score from category (0-1) and convert to 0-100."""
        if not category or category.get("score") is None:
            return 0
        return max(0, min(100, round(category["score"] * 100)))

    def _get_metric_value(self, audit: Optional[Dict]) -> float:
        """Extract numeric value from audit."""
        if not audit or audit.get("numericValue") is None:
            return 0.0
        return float(audit["numericValue"])


def get_metrics_status(result: LighthouseResult) -> Dict[str, str]:
    """
    Categorize metrics into good/needs-improvement/poor.

    Args:
        result: Lighthouse result

    Returns:
        Dictionary with status for each metric
    """
    statuses = {}
    for metric, threshold in METRIC_THRESHOLDS.items():
        value = getattr(result, metric)
        if value <= threshold["good"]:
            statuses[metric] = "good"
        elif value <= threshold["poor"]:
            statuses[metric] = "needs-improvement"
        else:
            statuses[metric] = "poor"
    return statuses


def run_lighthouse_for_url(url: str) -> Optional[LighthouseResult]:
    """
    Convenience function to run Lighthouse on a single URL.

    Args:
        url: URL to audit

    Returns:
        Parsed Lighthouse results or None if failed
    """
    runner = LighthouseRunner()
    return runner.run(url)
