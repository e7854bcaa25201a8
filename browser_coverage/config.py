"""Configuration settings for browser-coverage."""

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class Metric(str, Enum):
    """Coverage metric types, in the order reports list them."""

    LINES = "lines"
    STATEMENTS = "statements"
    FUNCTIONS = "functions"
    BRANCHES = "branches"


class Granularity(str, Enum):
    """Scope a threshold is evaluated at."""

    GLOBAL = "global"
    EACH = "each"


# A scalar applies to every metric, a mapping only to the metrics it names
ThresholdValue = Union[float, Dict[Metric, float]]


class Thresholds(BaseModel):
    """Minimum coverage percentages, globally and per file."""

    global_: Optional[ThresholdValue] = Field(
        default=None,
        alias="global",
        description="Threshold for the aggregate across all files",
    )
    each: Optional[ThresholdValue] = Field(
        default=None, description="Threshold every single file must meet"
    )

    model_config = {"populate_by_name": True}

    def for_granularity(self, granularity: Granularity) -> Optional[ThresholdValue]:
        if granularity == Granularity.GLOBAL:
            return self.global_
        return self.each

    def threshold_for(
        self, granularity: Granularity, metric: Metric
    ) -> Optional[float]:
        """Resolve the threshold for one metric.

        A per-type mapping that omits ``metric`` yields ``None``: the check is
        skipped rather than falling back to another value.
        """
        value = self.for_granularity(granularity)
        if value is None:
            return None
        if isinstance(value, dict):
            return value.get(metric)
        return value


REPORTER_NAMES = ("json", "json-summary", "lcovonly", "text", "text-summary")


class CoverageSettings(BaseSettings):  # type: ignore[misc]
    """Plugin options loaded from keyword arguments, environment or .env files."""

    # Asset selection
    include: List[str] = Field(
        default_factory=list, description="Glob patterns of assets to instrument"
    )
    exclude: List[str] = Field(
        default_factory=list, description="Glob patterns never instrumented"
    )

    # Reporting
    dir: str = Field(
        default="coverage", description="Report output directory, relative to root"
    )
    reporters: List[str] = Field(
        default_factory=lambda: ["text-summary"], description="Reporter names"
    )
    thresholds: Thresholds = Field(default_factory=Thresholds)

    # Instrumentation engine
    coverage_variable: str = Field(
        default="WCT.share.__coverage__",
        description="Global the instrumented code records counters into",
    )
    node_path: str = Field(
        default="node", description="Node.js executable running the engine"
    )

    log_level: str = Field(default="INFO", description="Logging level for the CLI")

    @field_validator("reporters")
    @classmethod
    def validate_reporters(cls, v):
        """Reject reporter names nobody can write."""
        unknown = [name for name in v if name not in REPORTER_NAMES]
        if unknown:
            raise ValueError(
                f"Unknown reporter(s): {', '.join(unknown)}. "
                f"Available: {', '.join(REPORTER_NAMES)}"
            )
        return v

    model_config = {
        # ↳ Load from .env files and environment variables
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_prefix": "COVERAGE_",
        # ↳ Runner option blocks carry keys meant for other plugins
        "extra": "ignore",
    }
