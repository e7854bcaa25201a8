"""Checks collected coverage against the configured thresholds."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from browser_coverage.config import Granularity, Metric, Thresholds
from browser_coverage.core.collector import CoverageCollector
from browser_coverage.models.coverage import MetricSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdCheck:
    """Outcome of one (granularity, metric) check."""

    granularity: Granularity
    metric: Metric
    threshold: Optional[float]
    actual: Optional[float] = None
    failures: List[str] = field(default_factory=list)
    failed: bool = False
    # Actual value of each failing file, for per-file checks
    file_actuals: Dict[str, float] = field(default_factory=dict)

    @property
    def skipped(self) -> bool:
        return not self.threshold

    @property
    def message(self) -> str:
        if self.granularity == Granularity.GLOBAL:
            if self.threshold is not None and self.threshold < 0:
                return (
                    f"Uncovered {self.metric.value} ({-self.actual:g}) exceeds "
                    f"the configured maximum ({-self.threshold:g})"
                )
            return (
                f"Coverage for {self.metric.value} ({self.actual:g}%) does not "
                f"meet configured threshold ({self.threshold:g}%)"
            )
        negative = self.threshold is not None and self.threshold < 0
        files = "\n  ".join(
            self._describe_file(path, negative) for path in self.failures
        )
        if negative:
            return (
                f"Uncovered {self.metric.value} exceed the configured maximum "
                f"({-self.threshold:g}) in files: \n  {files}"
            )
        return (
            f"Coverage threshold ({self.threshold:g}%) not met for "
            f"{self.metric.value} in files: \n  {files}"
        )

    def _describe_file(self, path: str, negative: bool) -> str:
        actual = self.file_actuals.get(path)
        if actual is None:
            return path
        if negative:
            return f"{path} ({-actual:g} uncovered)"
        return f"{path} ({actual:g}%)"


def check_threshold(threshold: Optional[float], summary: MetricSummary):
    """Compare one metric summary against one threshold.

    A positive threshold is a minimum percentage. A negative threshold is the
    maximum number of uncovered items, compared as ``covered - total``.

    Returns:
        (actual value, failed) pair; actual is None when the check is skipped
    """
    if not threshold:
        return None, False
    if threshold > 0:
        return summary.pct, summary.pct < threshold
    actual = summary.covered - summary.total
    return actual, actual < threshold


class ThresholdValidator:
    """Evaluates global and per-file thresholds for every metric."""

    def __init__(self, thresholds: Optional[Thresholds] = None):
        self.thresholds = thresholds or Thresholds()

    def check(self, collector: CoverageCollector) -> List[ThresholdCheck]:
        checks = []
        global_summary = collector.summary()
        file_summaries = collector.file_summaries()

        for metric in Metric:
            threshold = self.thresholds.threshold_for(Granularity.GLOBAL, metric)
            actual, failed = check_threshold(threshold, global_summary[metric])
            checks.append(
                ThresholdCheck(
                    granularity=Granularity.GLOBAL,
                    metric=metric,
                    threshold=threshold,
                    actual=actual,
                    failed=failed,
                )
            )

            threshold = self.thresholds.threshold_for(Granularity.EACH, metric)
            file_actuals = {}
            for path, file_summary in file_summaries.items():
                actual, failed = check_threshold(threshold, file_summary[metric])
                if failed:
                    file_actuals[path] = actual
            checks.append(
                ThresholdCheck(
                    granularity=Granularity.EACH,
                    metric=metric,
                    threshold=threshold,
                    failures=list(file_actuals),
                    failed=bool(file_actuals),
                    file_actuals=file_actuals,
                )
            )

        return checks

    def validate(self, collector: CoverageCollector) -> List[ThresholdCheck]:
        """Log and return every failed check; an empty list means coverage passed."""
        failed = [check for check in self.check(collector) if check.failed]
        for check in failed:
            logger.error(check.message)
        return failed
