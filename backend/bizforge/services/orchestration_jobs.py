"""
Orchestration Job Manager

Runs orchestration jobs as background asyncio tasks:
- job id = application id, one active job per id
- at most MAX_CONCURRENT_JOBS run at once, the rest wait in `queued`
- finished jobs are kept for JOB_RETENTION_SECONDS for status polling
"""

from typing import Dict, List, Optional, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import asyncio

from bizforge.core.config import settings
from bizforge.core.exceptions import JobAlreadyExistsError, JobNotFoundError
from bizforge.core.logging_config import logger
from bizforge.modules.orchestrator.generation_orchestrator import GenerationOrchestrator
from bizforge.schemas.orchestration import (
    BusinessRequirement,
    GeneratedApplicationRef,
    GenerationPlan,
    GenerationProgress,
    JobStatus,
    OrchestrationOptions,
    OrchestrationResult,
)


@dataclass
class OrchestrationJob:
    job_id: str
    requirement: BusinessRequirement
    application: GeneratedApplicationRef
    options: OrchestrationOptions
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    plan: Optional[GenerationPlan] = None
    latest_progress: Optional[GenerationProgress] = None
    result: Optional[OrchestrationResult] = None
    error: Optional[str] = None
    task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self.status in (JobStatus.QUEUED, JobStatus.RUNNING)


class OrchestrationJobManager:
    """Owns the background tasks of every orchestration job in this process"""

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        max_concurrent_jobs: Optional[int] = None,
        retention_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.orchestrator = orchestrator
        self.max_concurrent_jobs = max_concurrent_jobs or settings.MAX_CONCURRENT_JOBS
        self.retention = timedelta(
            seconds=retention_seconds if retention_seconds is not None else settings.JOB_RETENTION_SECONDS
        )
        self._clock = clock
        self._semaphore = asyncio.Semaphore(self.max_concurrent_jobs)
        self._jobs: Dict[str, OrchestrationJob] = {}

    async def start_job(
        self,
        requirement: BusinessRequirement,
        application: GeneratedApplicationRef,
        options: Optional[OrchestrationOptions] = None,
    ) -> OrchestrationJob:
        """
        Queue a job and return immediately.

        Raises:
            JobAlreadyExistsError: a job for this application is queued or running
        """
        self.purge_expired()

        job_id = application.id
        existing = self._jobs.get(job_id)
        if existing is not None and existing.is_active:
            raise JobAlreadyExistsError(job_id)

        job = OrchestrationJob(
            job_id=job_id,
            requirement=requirement,
            application=application,
            options=options or OrchestrationOptions(),
            created_at=self._clock(),
        )
        self._jobs[job_id] = job
        job.task = asyncio.create_task(self._run(job), name=f"orchestration-{job_id}")

        logger.info(f"[Jobs] Queued {job_id} ({self.active_count()} active)")
        return job

    def get_job(self, job_id: str) -> OrchestrationJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_jobs(self) -> List[OrchestrationJob]:
        return list(self._jobs.values())

    def active_count(self) -> int:
        return sum(1 for job in self._jobs.values() if job.is_active)

    async def wait_for(self, job_id: str) -> OrchestrationJob:
        """Wait until a job has finished"""
        job = self.get_job(job_id)
        if job.task is not None:
            await asyncio.shield(job.task)
        return job

    def purge_expired(self) -> int:
        """Drop finished jobs older than the retention window"""
        cutoff = self._clock() - self.retention
        expired = [
            job_id for job_id, job in self._jobs.items()
            if not job.is_active and job.finished_at is not None and job.finished_at <= cutoff
        ]
        for job_id in expired:
            del self._jobs[job_id]
        if expired:
            logger.debug(f"[Jobs] Purged {len(expired)} expired job(s)")
        return len(expired)

    async def shutdown(self) -> None:
        """Cancel running jobs (server shutdown)"""
        tasks = [job.task for job in self._jobs.values() if job.task is not None and not job.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"[Jobs] Shutdown complete ({len(tasks)} job(s) cancelled)")

    async def _run(self, job: OrchestrationJob) -> None:
        def track_progress(job_id: str, event: GenerationProgress) -> None:
            job.latest_progress = event

        def track_plan(plan: GenerationPlan) -> None:
            job.plan = plan

        try:
            async with self._semaphore:
                job.status = JobStatus.RUNNING
                job.started_at = self._clock()

                result = await self.orchestrator.start_orchestration(
                    job.requirement,
                    job.application,
                    job.options,
                    on_progress=track_progress,
                    on_plan=track_plan,
                )
                job.result = result
                job.status = JobStatus.COMPLETED if result.success else JobStatus.FAILED
                if not result.success:
                    job.error = "; ".join(result.errors)
        except asyncio.CancelledError:
            job.status = JobStatus.FAILED
            job.error = "Job cancelled"
            raise
        except Exception as e:
            logger.log_error_with_context(e, context=f"job {job.job_id}")
            job.status = JobStatus.FAILED
            job.error = f"{type(e).__name__}: {e}"
        finally:
            job.finished_at = self._clock()
            logger.info(f"[Jobs] {job.job_id} finished with status {job.status.value}")
