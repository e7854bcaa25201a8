"""Standalone instrumenting web server.

Serves a package directory statically, instruments its assets through the
coverage middleware and accepts coverage payloads from the browsers under
test. Used when no test runner provides the web server.
"""

import posixpath

from fastapi import FastAPI
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp


def mount_path(client_root: str, package_name: str) -> str:
    """URL prefix the package directory is served under."""
    path = posixpath.join("/", client_root.strip("/"), package_name.strip("/"))
    return path.rstrip("/")


def create_app(plugin) -> ASGIApp:
    """Create the instrumenting application for a plugin's run.

    Args:
        plugin: CoveragePlugin providing served root, package scoping and the
            middleware

    Returns:
        The FastAPI application wrapped with the coverage middleware
    """
    app = FastAPI(title="browser-coverage", docs_url=None, redoc_url=None)

    # Lazy import routes, mirroring how runners attach them
    from .routes import create_router

    app.include_router(create_router(plugin), prefix="/__coverage__")
    app.mount(
        mount_path(plugin.client_root, plugin.package_name) or "/",
        StaticFiles(directory=str(plugin.context.root), html=True),
        name="package",
    )

    return plugin.middleware(app)
