"""Coverage instrumentation, aggregation and threshold checks for browser test runs."""

from browser_coverage.config import CoverageSettings
from browser_coverage.errors import (
    CoverageError,
    CoverageThresholdError,
    InstrumentationError,
)
from browser_coverage.plugin import CoveragePlugin

__all__ = [
    "CoverageError",
    "CoveragePlugin",
    "CoverageSettings",
    "CoverageThresholdError",
    "InstrumentationError",
]
