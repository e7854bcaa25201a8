"""Merges coverage reported by many browsers into one coverage model."""

import logging
import threading
from typing import Any, Dict, Mapping, Union

from browser_coverage.models.coverage import CoverageSummary, FileCoverage

logger = logging.getLogger(__name__)

CoveragePayload = Mapping[str, Union[FileCoverage, Mapping[str, Any]]]


class CoverageCollector:
    """Accumulates coverage records; arrival order never changes the totals."""

    def __init__(self):
        self._files: Dict[str, FileCoverage] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)

    def add(self, payload: Union[CoveragePayload, FileCoverage]) -> None:
        """Add a browser payload mapping file paths to coverage records."""
        if isinstance(payload, FileCoverage):
            self.add_file(payload)
            return
        records = [
            record
            if isinstance(record, FileCoverage)
            else FileCoverage.model_validate(record)
            for record in payload.values()
        ]
        with self._lock:
            for record in records:
                self._merge(record)
        logger.debug(f"Collected coverage for {len(records)} files")

    def add_file(self, record: FileCoverage) -> None:
        with self._lock:
            self._merge(record)

    def _merge(self, record: FileCoverage) -> None:
        existing = self._files.get(record.path)
        self._files[record.path] = (
            record if existing is None else existing.merge(record)
        )

    def final_coverage(self) -> Dict[str, FileCoverage]:
        """Merged records keyed by file path, sorted by path."""
        with self._lock:
            return dict(sorted(self._files.items()))

    def file_summaries(self) -> Dict[str, CoverageSummary]:
        return {path: record.summary() for path, record in self.final_coverage().items()}

    def summary(self) -> CoverageSummary:
        """Totals across every collected file."""
        total = CoverageSummary()
        for file_summary in self.file_summaries().values():
            total = total + file_summary
        return total
