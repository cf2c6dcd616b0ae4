"""
Miscellaneous routes: health check.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from .. import __version__
from ..dependencies import Dependencies, get_deps
from ..schemas import success

router = APIRouter(tags=["misc"])


@router.get("/status")
async def health_check(deps: Annotated[Dependencies, Depends(get_deps)]) -> dict:
    """API health check."""
    return success({
        "status": "ok",
        "version": __version__,
        "queueDepth": deps.job_queue.depth,
        "renderingEnabled": deps.browser_pool is not None,
    })
