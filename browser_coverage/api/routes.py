"""Coverage ingest routes for the standalone server.

Browsers post the counters of their instrumented code here at the end of each
suite, the same payload a runner delivers through ``sub-suite-end``.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, HTTPException
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.status import HTTP_400_BAD_REQUEST

logger = logging.getLogger(__name__)


def create_router(plugin) -> APIRouter:
    """Create the router feeding ``plugin`` with browser coverage.

    Args:
        plugin: CoveragePlugin collecting the run's coverage

    Returns:
        Configured APIRouter
    """
    router = APIRouter()

    @router.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "ok", "instrumented": len(plugin.context.cache)}

    @router.post("/{browser}")
    async def ingest(
        browser: str, payload: Dict[str, Any] = Body(...)
    ) -> Dict[str, Any]:
        """Merge one browser's coverage payload into the run.

        Args:
            browser: Name of the reporting browser, used for logging only
            payload: Coverage records keyed by file path

        Returns:
            Number of files the payload covered
        """
        try:
            await run_in_threadpool(
                plugin.on_sub_suite_end, browser, {"__coverage__": payload}
            )
        except ValidationError as e:
            logger.warning(f"Rejected coverage payload from {browser}: {e}")
            raise HTTPException(
                status_code=HTTP_400_BAD_REQUEST,
                detail="Malformed coverage payload",
            ) from None
        return {"files": len(payload)}

    return router
