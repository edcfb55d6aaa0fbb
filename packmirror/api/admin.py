"""
Admin endpoints for triggering and inspecting builds.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from packmirror.core.dependencies import get_build_runner
from packmirror.domain.errors import BuildInProgressError, InputError, MirrorError, SerializationError
from packmirror.domain.models import BuildResult
from packmirror.services.build_runner import BuildRunner

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/admin/build", response_model=BuildResult)
async def admin_run_build(runner: BuildRunner = Depends(get_build_runner)) -> BuildResult:
    """
    Run a build now and return its summary.

    Returns 409 if another build is running against the same output directory,
    422 if the package records are invalid and 500 for any other build failure.
    """
    try:
        return await runner.run()
    except BuildInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (InputError, SerializationError) as e:
        logger.error(f"Build rejected: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    except MirrorError as e:
        logger.error(f"Build failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/admin/build")
async def admin_build_status(runner: BuildRunner = Depends(get_build_runner)) -> dict:
    """
    Whether a build is running, and the summary of the last finished one.
    """
    last = runner.last_result
    return {
        "running": runner.running,
        "last_result": last.model_dump(mode="json") if last is not None else None,
    }
