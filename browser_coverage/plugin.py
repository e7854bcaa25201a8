"""Test runner plugin tracking coverage across a browser test run.

The runner calls into the plugin at three points:
- ``define:webserver``: the plugin wraps the runner's web application with the
  coverage middleware
- ``sub-suite-end``: a browser finished a suite and reports its counters
- ``run-end``: unserved files are swept, reports written, thresholds checked
"""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Protocol, Union

from browser_coverage.api.middleware import CoverageMiddleware, DiagnosticSink, log_event
from browser_coverage.config import CoverageSettings
from browser_coverage.core.collector import CoverageCollector
from browser_coverage.core.context import RunContext
from browser_coverage.core.instrumenter import Instrumenter
from browser_coverage.core.reporter import CoverageReporter
from browser_coverage.core.sweep import sweep_uncovered
from browser_coverage.core.validator import ThresholdValidator
from browser_coverage.errors import CoverageThresholdError

logger = logging.getLogger(__name__)


class Emitter(Protocol):
    """The parts of the runner's event emitter the plugin relies on."""

    options: Any

    def on(self, event: str, handler: Callable[..., Any]) -> Any: ...

    def hook(self, name: str, handler: Callable[..., Any]) -> Any: ...

    def emit(self, event: str, *args: Any) -> Any: ...


class CoveragePlugin:
    """Owns the coverage state of a test run and its run-end sequence."""

    def __init__(
        self,
        settings: CoverageSettings,
        root: Union[str, Path],
        client_root: str = "/",
        package_name: str = "",
        sink: Optional[DiagnosticSink] = None,
        instrumenter: Optional[Instrumenter] = None,
    ):
        self.settings = settings
        self.context = RunContext.from_settings(root, settings, instrumenter)
        self.client_root = client_root
        self.package_name = package_name
        self.sink = sink or log_event
        self.collector = CoverageCollector()
        self.reporter = CoverageReporter(
            self.context.root / settings.dir, settings.reporters, root=self.context.root
        )
        self.validator = ThresholdValidator(settings.thresholds)
        self._run_end_lock = threading.Lock()

    @classmethod
    def from_emitter(
        cls,
        emitter: Emitter,
        options: Mapping[str, Any],
        instrumenter: Optional[Instrumenter] = None,
    ) -> "CoveragePlugin":
        """Create the plugin for a runner and subscribe it to the runner's events.

        Args:
            emitter: The runner's event emitter; ``emitter.options`` provides
                ``root`` and ``client_options.root``
            options: This plugin's block of the runner configuration
            instrumenter: Engine override, istanbul through Node.js by default

        Raises:
            pydantic.ValidationError: If the plugin options are malformed
        """
        runner_options = emitter.options
        root = getattr(runner_options, "root", None) or Path.cwd()
        client_options = getattr(runner_options, "client_options", None)
        client_root = getattr(client_options, "root", None) or "/"

        plugin = cls(
            CoverageSettings(**options),
            root,
            client_root=client_root,
            instrumenter=instrumenter,
        )
        plugin.register(emitter)
        return plugin

    def register(self, emitter: Emitter) -> None:
        """Subscribe to the runner's events and route diagnostics to it."""

        def emit_diagnostic(level: str, component: str, action: str, detail: str):
            emitter.emit(f"log:{level}", component, action, detail)

        self.sink = emit_diagnostic
        emitter.on("sub-suite-end", self.on_sub_suite_end)
        emitter.on("run-end", self.on_run_end)
        emitter.hook("define:webserver", self.define_webserver)

    def middleware(self, app) -> CoverageMiddleware:
        return CoverageMiddleware(
            app,
            self.context,
            client_root=self.client_root,
            package_name=self.package_name,
            sink=self.sink,
        )

    def define_webserver(
        self,
        app,
        replace: Callable[[Any], Any],
        runner_options: Any = None,
        done: Optional[Callable[[], Any]] = None,
    ) -> None:
        """Replace the runner's web application with an instrumenting one."""
        package_name = getattr(runner_options, "package_name", None)
        if package_name:
            self.package_name = package_name
        replace(self.middleware(app))
        if done is not None:
            done()

    def on_sub_suite_end(self, browser: Any, data: Optional[Mapping[str, Any]]) -> None:
        coverage = data.get("__coverage__") if data else None
        if coverage:
            self.collector.add(coverage)
            logger.debug(f"Collected coverage of {len(coverage)} files from {browser}")

    def on_run_end(self, error: Optional[BaseException] = None) -> None:
        """Finish the run: sweep, report, reset, then enforce thresholds.

        Raises:
            CoverageThresholdError: If coverage misses a configured threshold;
                raised only after the reports are written
        """
        with self._run_end_lock:
            collector, self.collector = self.collector, CoverageCollector()

            for _asset_path, record in sweep_uncovered(self.context):
                collector.add_file(record)

            self.context.reset()

            if error is not None:
                logger.info("Test run failed, coverage not reported")
                return

            self.reporter.write(collector)

            failures = self.validator.validate(collector)
            if failures:
                raise CoverageThresholdError(failures)
