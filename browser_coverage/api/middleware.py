"""ASGI middleware serving instrumented assets in place of the originals.

Requests for assets of the package under test that match the include rules
are answered with instrumented content. Everything else falls through to the
wrapped application, which serves the original files.
"""

import logging
import posixpath
from typing import Callable, Optional

from prometheus_client import Counter
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from browser_coverage.core.context import RunContext
from browser_coverage.core.extract import InstrumentedEntry

logger = logging.getLogger(__name__)

# (level, component, action, detail)
DiagnosticSink = Callable[[str, str, str, str], None]

# Prometheus counters (module-level singletons)
assets_instrumented_total = Counter(
    "coverage_assets_instrumented_total", "Asset requests served instrumented"
)
assets_skipped_total = Counter(
    "coverage_assets_skipped_total", "Asset requests passed through untouched"
)

INSTRUMENTED_METHODS = ("GET", "HEAD")


def log_event(level: str, component: str, action: str, detail: str) -> None:
    """Default diagnostic sink: forward events to the logging module."""
    logger.log(
        logging.getLevelName(level.upper()), f"{component} {action:<10} {detail}"
    )


def _normalize(path: str) -> str:
    path = path.replace("\\", "/")
    if not path.startswith("/"):
        path = "/" + path
    return posixpath.normpath(path)


def package_relative_path(
    request_path: str, client_root: str, package_name: str
) -> Optional[str]:
    """Path of a request inside the package under test.

    Args:
        request_path: URL path of the request
        client_root: URL prefix the runner serves packages under
        package_name: First path segment naming the package under test

    Returns:
        The path relative to the package root, or None when the request is
        for something outside the package
    """
    path = _normalize(request_path)
    prefix = _normalize(client_root)

    if prefix != "/":
        if path == prefix:
            path = "/"
        elif path.startswith(prefix + "/"):
            path = path[len(prefix) :]
    relative = path.lstrip("/")

    package = package_name.replace("\\", "/").strip("/")
    if not package:
        return relative
    if relative == package:
        return ""
    if not relative.startswith(package + "/"):
        return None
    return relative[len(package) + 1 :]


class CoverageMiddleware:
    """Intercepts asset requests and answers them with instrumented code."""

    def __init__(
        self,
        app: ASGIApp,
        context: RunContext,
        client_root: str = "/",
        package_name: str = "",
        sink: Optional[DiagnosticSink] = None,
    ) -> None:
        self.app = app
        self.context = context
        self.client_root = client_root
        self.package_name = package_name
        self.sink = sink or log_event

    def instrumented_entry(self, request_path: str) -> Optional[InstrumentedEntry]:
        """Decide whether a request is served instrumented, and with what.

        Blocks on file I/O and the engine on a cache miss; call it off the
        event loop.
        """
        relative = package_relative_path(
            request_path, self.client_root, self.package_name
        )
        if relative is None:
            self._skip(request_path)
            return None

        absolute = self.context.resolve(relative)
        if absolute is not None and self.context.is_eligible(relative):
            entry = self.context.cache.get_instrumented(absolute)
            if entry is not None:
                self.sink("debug", "coverage", "instrument", str(absolute))
                assets_instrumented_total.inc()
                return entry

        self._skip(relative)
        return None

    def _skip(self, detail: str) -> None:
        self.sink("debug", "coverage", "skip", detail)
        assets_skipped_total.inc()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in INSTRUMENTED_METHODS:
            await self.app(scope, receive, send)
            return

        entry = await run_in_threadpool(self.instrumented_entry, scope["path"])
        if entry is None:
            await self.app(scope, receive, send)
            return

        response = Response(entry.content, media_type=entry.media_type)
        await response(scope, receive, send)
