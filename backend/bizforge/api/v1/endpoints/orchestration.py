"""
Orchestration API - start generation runs and poll their status
"""

from fastapi import APIRouter, Depends, Request, status

from bizforge.core.logging_config import logger
from bizforge.schemas.orchestration import (
    GenerationPlan,
    OrchestrationJobResponse,
    StartOrchestrationRequest,
)
from bizforge.core.exceptions import ResourceNotFoundError
from bizforge.services.orchestration_jobs import OrchestrationJob, OrchestrationJobManager

router = APIRouter()


def get_job_manager(request: Request) -> OrchestrationJobManager:
    return request.app.state.job_manager


def progress_url(job_id: str) -> str:
    return f"/ws/generation-progress/{job_id}"


def job_response(job: OrchestrationJob) -> OrchestrationJobResponse:
    return OrchestrationJobResponse(
        job_id=job.job_id,
        status=job.status,
        progress_url=progress_url(job.job_id),
        created_at=job.created_at,
        started_at=job.started_at,
        finished_at=job.finished_at,
        result=job.result,
    )


@router.post("", response_model=OrchestrationJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_orchestration(
    body: StartOrchestrationRequest,
    jobs: OrchestrationJobManager = Depends(get_job_manager),
):
    """
    Start generating an application in the background.

    Subscribe to `progress_url` for live progress, poll GET /orchestrations/{job_id}
    for the final result.
    """
    job = await jobs.start_job(body.requirement, body.application, body.options)
    logger.info(f"[OrchestrationAPI] Accepted job {job.job_id}")
    return job_response(job)


@router.get("/{job_id}", response_model=OrchestrationJobResponse)
async def get_orchestration(job_id: str, jobs: OrchestrationJobManager = Depends(get_job_manager)):
    """Job status, and the OrchestrationResult once finished"""
    return job_response(jobs.get_job(job_id))


@router.get("/{job_id}/plan", response_model=GenerationPlan)
async def get_orchestration_plan(job_id: str, jobs: OrchestrationJobManager = Depends(get_job_manager)):
    """The generation plan built for the job (available once the run has started)"""
    job = jobs.get_job(job_id)
    if job.plan is None:
        raise ResourceNotFoundError("Plan", job_id)
    return job.plan
