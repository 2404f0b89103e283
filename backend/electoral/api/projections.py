"""Projection API router"""
from __future__ import annotations

import asyncio
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException

from ..schemas.projection import (
    CompareRequest,
    ComparisonResult,
    JobStatusResponse,
    JobSubmitResponse,
    ProjectionRequest,
    SimulationOutcome,
)
from ..services.job_manager import ProjectionJobManager
from ..services.projection.comparator import compare_projections
from ..services.projection.engine import ProjectionEngine
from ..services.projection.errors import ProjectionError

router = APIRouter(prefix="/projections", tags=["projections"])

ERROR_STATUS = {
    "validation": 422,
    "mismatch": 409,
    "cancelled": 409,
    "apportionment": 500,
    "internal": 500,
}


@lru_cache
def get_job_manager() -> ProjectionJobManager:
    return ProjectionJobManager()


def _http_error(error: ProjectionError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(error.kind, 500),
        detail={"kind": error.kind, "detail": error.message},
    )


@router.post("/run", response_model=SimulationOutcome)
async def run_projection(request: ProjectionRequest):
    """Run a projection synchronously and return its outcome"""
    engine = ProjectionEngine()
    try:
        return await asyncio.to_thread(engine.run, request)
    except ProjectionError as e:
        raise _http_error(e)


@router.post("/compare", response_model=ComparisonResult)
async def compare(request: CompareRequest):
    """Compare two already computed projections"""
    try:
        return compare_projections(
            request.before,
            request.after,
            trend_epsilon=request.trend_epsilon,
            label_before=request.label_before,
            label_after=request.label_after,
        )
    except ProjectionError as e:
        raise _http_error(e)


# ─── Background jobs ───


@router.post("/jobs", response_model=JobSubmitResponse, status_code=202)
async def submit_job(
    request: ProjectionRequest,
    manager: ProjectionJobManager = Depends(get_job_manager),
):
    job = manager.submit(request)
    return JobSubmitResponse(job_id=job.job_id, status=job.status)


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job(job_id: str, manager: ProjectionJobManager = Depends(get_job_manager)):
    job = manager.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.snapshot()


@router.delete("/jobs/{job_id}", response_model=JobStatusResponse)
async def cancel_job(job_id: str, manager: ProjectionJobManager = Depends(get_job_manager)):
    job = manager.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    manager.cancel(job_id)
    return job.snapshot()
