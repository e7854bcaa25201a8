"""Zero-coverage records for eligible files no test ever requested."""

import logging
import os
from pathlib import Path
from typing import Collection, Iterator, List, Tuple

from browser_coverage.core.context import RunContext
from browser_coverage.models.coverage import FileCoverage

logger = logging.getLogger(__name__)


def walk_files(root: Path) -> Iterator[Path]:
    """Yield every regular file below ``root``, depth first in sorted order."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if path.is_file():
                yield path


def sweep_uncovered(
    context: RunContext, known: Collection[str] = ()
) -> List[Tuple[str, FileCoverage]]:
    """Find eligible files that were never served and report them as unexecuted.

    Files the engine cannot instrument are left out without error. Paths in
    ``known`` already have coverage from elsewhere and are skipped as well.

    Returns:
        (asset path, zero-count coverage record) pairs
    """
    served = set(context.cache.keys()).union(known)
    uncovered = []

    for path in walk_files(context.root):
        asset_path = str(path.resolve())
        if asset_path in served:
            continue
        if not context.is_eligible(path.relative_to(context.root).as_posix()):
            continue

        entry = context.cache.get_instrumented(asset_path)
        if entry is None:
            continue

        uncovered.append((asset_path, entry.coverage.zeroed()))

    logger.info(f"Found {len(uncovered)} eligible files never requested")
    return uncovered
