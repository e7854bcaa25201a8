"""State shared by the middleware, the sweep and the plugin during one run."""

import posixpath
from pathlib import Path
from typing import Optional, Union

from browser_coverage.config import CoverageSettings
from browser_coverage.core.cache import InstrumentationCache
from browser_coverage.core.instrumenter import Instrumenter, IstanbulInstrumenter
from browser_coverage.core.matcher import RuleSet, path_is_eligible


class RunContext:
    """Served root, compiled rules and instrumentation cache of a test run."""

    def __init__(
        self,
        root: Union[str, Path],
        rules: RuleSet,
        instrumenter: Instrumenter,
    ):
        self.root = Path(root).resolve()
        self.rules = rules
        self.cache = InstrumentationCache(instrumenter)

    @classmethod
    def from_settings(
        cls,
        root: Union[str, Path],
        settings: CoverageSettings,
        instrumenter: Optional[Instrumenter] = None,
    ) -> "RunContext":
        if instrumenter is None:
            instrumenter = IstanbulInstrumenter(
                node_path=settings.node_path,
                coverage_variable=settings.coverage_variable,
            )
        rules = RuleSet(include=settings.include, exclude=settings.exclude)
        return cls(root, rules, instrumenter)

    def is_eligible(self, relative_path: str) -> bool:
        return path_is_eligible(relative_path, self.rules)

    def resolve(self, relative_path: str) -> Optional[Path]:
        """Absolute path of a root-relative asset, None if it escapes the root."""
        normalized = posixpath.normpath(relative_path.replace("\\", "/"))
        if normalized.startswith("../") or normalized == ".." or posixpath.isabs(
            normalized
        ):
            return None
        absolute = (self.root / normalized).resolve()
        if absolute != self.root and self.root not in absolute.parents:
            return None
        return absolute

    def reset(self) -> None:
        """Forget everything instrumented so the next run starts clean."""
        self.cache.clear()
