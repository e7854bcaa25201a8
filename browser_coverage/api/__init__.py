"""Web layer: coverage middleware and the standalone instrumenting server."""

from .main import create_app
from .middleware import CoverageMiddleware

__all__ = ["CoverageMiddleware", "create_app"]
