from browser_coverage.models.coverage import (
    CoverageSummary,
    FileCoverage,
    MetricSummary,
)

__all__ = ["CoverageSummary", "FileCoverage", "MetricSummary"]
