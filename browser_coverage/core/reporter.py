"""Writes merged coverage to the output directory and the console."""

import json
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, TextIO

from browser_coverage.config import REPORTER_NAMES, Metric
from browser_coverage.core.collector import CoverageCollector
from browser_coverage.models.coverage import CoverageSummary, FileCoverage

logger = logging.getLogger(__name__)

_LABELS = {
    Metric.STATEMENTS: "Statements",
    Metric.BRANCHES: "Branches",
    Metric.FUNCTIONS: "Functions",
    Metric.LINES: "Lines",
}

RULE_WIDTH = 80


def _display_path(path: str, root: Optional[Path]) -> str:
    if root is None:
        return path
    try:
        return Path(path).relative_to(root).as_posix()
    except ValueError:
        return path


def lcov_record(record: FileCoverage) -> str:
    """Render one file as an lcov tracefile record."""
    out = ["TN:", f"SF:{record.path}"]

    for fn in record.fn_map.values():
        line = fn.line or (fn.decl or fn.loc).start.line
        out.append(f"FN:{line},{fn.name}")
    for key, fn in record.fn_map.items():
        out.append(f"FNDA:{record.f.get(key, 0)},{fn.name}")
    out.append(f"FNF:{len(record.fn_map)}")
    out.append(f"FNH:{sum(1 for key in record.fn_map if record.f.get(key, 0) > 0)}")

    lines = record.line_hits()
    for line in sorted(lines):
        out.append(f"DA:{line},{lines[line]}")
    out.append(f"LF:{len(lines)}")
    out.append(f"LH:{sum(1 for hits in lines.values() if hits > 0)}")

    found = hit = 0
    for key, branch in record.branch_map.items():
        line = branch.line or (branch.loc or branch.locations[0]).start.line
        for index, taken in enumerate(record.b.get(key, [])):
            out.append(f"BRDA:{line},{key},{index},{taken}")
            found += 1
            hit += taken > 0
    out.append(f"BRF:{found}")
    out.append(f"BRH:{hit}")
    out.append("end_of_record")
    return "\n".join(out) + "\n"


class CoverageReporter:
    """Runs the configured reporters over a collector."""

    def __init__(
        self,
        output_dir: Path,
        reporters: Sequence[str],
        root: Optional[Path] = None,
        stream: Optional[TextIO] = None,
    ):
        unknown = [name for name in reporters if name not in REPORTER_NAMES]
        if unknown:
            raise ValueError(f"Unknown reporter(s): {', '.join(unknown)}")
        self.output_dir = Path(output_dir)
        self.reporters = list(reporters)
        self.root = root
        self.stream = stream

    def _writers(self) -> Dict[str, Callable[[CoverageCollector], Optional[Path]]]:
        return {
            "json": self._write_json,
            "json-summary": self._write_json_summary,
            "lcovonly": self._write_lcov,
            "text": self._write_text,
            "text-summary": self._write_text_summary,
        }

    def write(self, collector: CoverageCollector) -> List[Path]:
        """Write every configured report.

        Returns:
            Files written to the output directory
        """
        writers = self._writers()
        written = []
        for name in self.reporters:
            path = writers[name](collector)
            if path is not None:
                logger.info(f"Wrote {name} coverage report to {path}")
                written.append(path)
        return written

    def _print(self, text: str = "") -> None:
        print(text, file=self.stream or sys.stdout)

    def _output_file(self, name: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir / name

    def _write_json(self, collector: CoverageCollector) -> Path:
        path = self._output_file("coverage-final.json")
        data = {
            file_path: record.to_istanbul()
            for file_path, record in collector.final_coverage().items()
        }
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    def _write_json_summary(self, collector: CoverageCollector) -> Path:
        path = self._output_file("coverage-summary.json")
        data = {"total": collector.summary().to_dict()}
        for file_path, file_summary in collector.file_summaries().items():
            data[file_path] = file_summary.to_dict()
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    def _write_lcov(self, collector: CoverageCollector) -> Path:
        path = self._output_file("lcov.info")
        records = collector.final_coverage().values()
        path.write_text("".join(lcov_record(record) for record in records), encoding="utf-8")
        return path

    def _write_text_summary(self, collector: CoverageCollector) -> None:
        summary = collector.summary()
        # ↳ keep the runner's own test output above the report
        self._print()
        self._print(" Coverage summary ".center(RULE_WIDTH, "="))
        for metric in (Metric.STATEMENTS, Metric.BRANCHES, Metric.FUNCTIONS, Metric.LINES):
            item = summary[metric]
            self._print(
                f"{_LABELS[metric]:<12} : {item.pct:g}% ( {item.covered}/{item.total} )"
            )
        self._print("=" * RULE_WIDTH)

    def _write_text(self, collector: CoverageCollector) -> None:
        rows = [("All files", collector.summary())]
        for file_path, file_summary in collector.file_summaries().items():
            rows.append((_display_path(file_path, self.root), file_summary))

        width = max(len(name) for name, _ in rows)
        header = f"{'File':<{width}} | % Stmts | % Branch | % Funcs | % Lines"
        self._print()
        self._print("-" * len(header))
        self._print(header)
        self._print("-" * len(header))
        for name, file_summary in rows:
            self._print(f"{name:<{width}} | " + _format_row(file_summary))
        self._print("-" * len(header))


def _format_row(summary: CoverageSummary) -> str:
    return (
        f"{summary[Metric.STATEMENTS].pct:>7g} | "
        f"{summary[Metric.BRANCHES].pct:>8g} | "
        f"{summary[Metric.FUNCTIONS].pct:>7g} | "
        f"{summary[Metric.LINES].pct:>7g}"
    )
