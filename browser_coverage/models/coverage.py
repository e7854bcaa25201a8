"""Istanbul-format coverage records and their summaries."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from browser_coverage.config import Metric


class Position(BaseModel):
    line: int
    column: Optional[int] = None


class Location(BaseModel):
    start: Position
    end: Position

    model_config = {"extra": "allow"}


class FunctionMapping(BaseModel):
    name: str
    loc: Location
    line: Optional[int] = None
    decl: Optional[Location] = None

    model_config = {"extra": "allow"}


class BranchMapping(BaseModel):
    type: str
    locations: List[Location]
    line: Optional[int] = None
    loc: Optional[Location] = None

    model_config = {"extra": "allow"}


class FileCoverage(BaseModel):
    """Per-file coverage counters keyed by statement, function and branch id."""

    path: str
    statement_map: Dict[str, Location] = Field(
        default_factory=dict, alias="statementMap"
    )
    fn_map: Dict[str, FunctionMapping] = Field(default_factory=dict, alias="fnMap")
    branch_map: Dict[str, BranchMapping] = Field(
        default_factory=dict, alias="branchMap"
    )
    s: Dict[str, int] = Field(default_factory=dict)
    f: Dict[str, int] = Field(default_factory=dict)
    b: Dict[str, List[int]] = Field(default_factory=dict)

    model_config = {"populate_by_name": True, "extra": "allow"}

    def to_istanbul(self) -> Dict[str, Any]:
        """Dump in the JSON layout istanbul tooling reads."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def zeroed(self) -> "FileCoverage":
        """Copy with every counter reset, as if nothing had executed."""
        return self.model_copy(
            update={
                "s": {key: 0 for key in self.statement_map},
                "f": {key: 0 for key in self.fn_map},
                "b": {
                    key: [0] * len(branch.locations)
                    for key, branch in self.branch_map.items()
                },
            }
        )

    def merge(self, other: "FileCoverage") -> "FileCoverage":
        """Sum the counters of two records for the same file.

        Maps are unioned, so records produced by different browsers that
        only saw part of a file still combine.
        """
        if other.path != self.path:
            raise ValueError(f"Cannot merge coverage for {other.path} into {self.path}")

        s = dict(self.s)
        for key, hits in other.s.items():
            s[key] = s.get(key, 0) + hits

        f = dict(self.f)
        for key, hits in other.f.items():
            f[key] = f.get(key, 0) + hits

        b = {key: list(hits) for key, hits in self.b.items()}
        for key, hits in other.b.items():
            mine = b.get(key, [])
            size = max(len(mine), len(hits))
            b[key] = [
                (mine[i] if i < len(mine) else 0) + (hits[i] if i < len(hits) else 0)
                for i in range(size)
            ]

        return self.model_copy(
            update={
                "statement_map": {**other.statement_map, **self.statement_map},
                "fn_map": {**other.fn_map, **self.fn_map},
                "branch_map": {**other.branch_map, **self.branch_map},
                "s": s,
                "f": f,
                "b": b,
            }
        )

    def line_hits(self) -> Dict[int, int]:
        """Hit count per line: the busiest statement starting on that line."""
        lines: Dict[int, int] = {}
        for key, location in self.statement_map.items():
            line = location.start.line
            hits = self.s.get(key, 0)
            if lines.get(line, -1) < hits:
                lines[line] = hits
        return lines

    def summary(self) -> "CoverageSummary":
        lines = self.line_hits()
        branch_hits = [hit for hits in self.b.values() for hit in hits]
        return CoverageSummary(
            metrics={
                Metric.LINES: MetricSummary.of(
                    len(lines), sum(1 for hits in lines.values() if hits > 0)
                ),
                Metric.STATEMENTS: MetricSummary.of(
                    len(self.statement_map),
                    sum(1 for key in self.statement_map if self.s.get(key, 0) > 0),
                ),
                Metric.FUNCTIONS: MetricSummary.of(
                    len(self.fn_map),
                    sum(1 for key in self.fn_map if self.f.get(key, 0) > 0),
                ),
                Metric.BRANCHES: MetricSummary.of(
                    len(branch_hits), sum(1 for hit in branch_hits if hit > 0)
                ),
            }
        )


def percent(covered: int, total: int) -> float:
    """Coverage percentage rounded half up to two decimals; empty is 100."""
    if total > 0:
        scaled = (1000 * 100 * covered) / total + 5
        return (scaled // 10) / 100
    return 100.0


@dataclass(frozen=True)
class MetricSummary:
    total: int
    covered: int
    pct: float

    @classmethod
    def of(cls, total: int, covered: int) -> "MetricSummary":
        return cls(total=total, covered=covered, pct=percent(covered, total))

    def __add__(self, other: "MetricSummary") -> "MetricSummary":
        return MetricSummary.of(self.total + other.total, self.covered + other.covered)

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "covered": self.covered, "pct": self.pct}


@dataclass(frozen=True)
class CoverageSummary:
    """Totals for every metric over one file or a whole run."""

    metrics: Dict[Metric, MetricSummary] = field(
        default_factory=lambda: {metric: MetricSummary.of(0, 0) for metric in Metric}
    )

    def __getitem__(self, metric: Metric) -> MetricSummary:
        return self.metrics[metric]

    def __add__(self, other: "CoverageSummary") -> "CoverageSummary":
        return CoverageSummary(
            metrics={metric: self[metric] + other[metric] for metric in Metric}
        )

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {metric.value: self[metric].to_dict() for metric in Metric}
