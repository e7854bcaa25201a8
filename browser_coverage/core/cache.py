"""Run-scoped cache of instrumented assets, keyed by absolute file path."""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from browser_coverage.core.extract import InstrumentedEntry, strategy_for
from browser_coverage.core.instrumenter import Instrumenter
from browser_coverage.errors import InstrumentationError

logger = logging.getLogger(__name__)


def asset_key(asset_path: Union[str, Path]) -> str:
    """Cache identity of an asset: its resolved location on disk."""
    return str(Path(asset_path).resolve())


class InstrumentationCache:
    """Memoizes instrumentation per asset for the duration of one run.

    Entries are never refreshed within a run: the first stored result for a
    path is returned to every later caller, even if the file changes on disk.
    """

    def __init__(self, instrumenter: Instrumenter):
        self.instrumenter = instrumenter
        self._entries: Dict[str, InstrumentedEntry] = {}
        self._lock = threading.Lock()

    def __contains__(self, asset_path: Union[str, Path]) -> bool:
        with self._lock:
            return asset_key(asset_path) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_instrumented(
        self, asset_path: Union[str, Path]
    ) -> Optional[InstrumentedEntry]:
        """Return the instrumented entry for an asset, instrumenting on first use.

        Args:
            asset_path: Filesystem path of the asset

        Returns:
            The cached entry, or None when the file does not exist or holds
            nothing the engine can instrument (nothing is cached then)

        Raises:
            OSError: If an existing file cannot be read
        """
        key = asset_key(asset_path)
        with self._lock:
            entry = self._entries.get(key)
        if entry is not None:
            return entry

        path = Path(key)
        if not path.is_file():
            return None

        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Not instrumentable, not UTF-8 text: {key}")
            return None

        try:
            entry = strategy_for(path).instrument(path, text, self.instrumenter)
        except InstrumentationError as e:
            logger.debug(f"Not instrumentable: {e}")
            return None

        if entry is None:
            logger.debug(f"Nothing to instrument in {key}")
            return None

        # ↳ a racing request may have stored its own result meanwhile; first wins
        with self._lock:
            return self._entries.setdefault(key, entry)
