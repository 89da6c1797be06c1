"""
Generation Orchestrator - entry point of one orchestration run.

startOrchestration(requirement, application, options):
    plan = build_plan(requirement)
    result = StageExecutor(...).execute(plan, ...)
    notify webhook (optional)
"""

from typing import Any, Awaitable, Callable, Optional
import asyncio

import httpx

from bizforge.core.logging_config import logger, set_job_id
from bizforge.modules.generators import default_collaborators
from bizforge.modules.generators.base import CollaboratorSuite
from bizforge.modules.orchestrator.plan_builder import build_plan
from bizforge.modules.orchestrator.progress_broadcaster import ProgressBroadcaster
from bizforge.modules.orchestrator.result_assembler import summarize_result
from bizforge.modules.orchestrator.stage_executor import ProgressListener, StageExecutor
from bizforge.schemas.orchestration import (
    BusinessRequirement,
    GeneratedApplicationRef,
    GenerationPlan,
    OrchestrationOptions,
    OrchestrationResult,
)


WEBHOOK_TIMEOUT_SECONDS = 10.0


class GenerationOrchestrator:
    """
    Plans and executes generation runs.

    Holds no per-run state, so one instance serves every job of the process.
    """

    def __init__(
        self,
        collaborators: Optional[CollaboratorSuite] = None,
        broadcaster: Optional[ProgressBroadcaster] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.collaborators = collaborators or default_collaborators()
        self.broadcaster = broadcaster
        self._sleep = sleep

    async def start_orchestration(
        self,
        requirement: BusinessRequirement,
        application: GeneratedApplicationRef,
        options: Optional[OrchestrationOptions] = None,
        on_progress: Optional[ProgressListener] = None,
        on_plan: Optional[Callable[[GenerationPlan], None]] = None,
    ) -> OrchestrationResult:
        """Run the whole pipeline for one application. The job id is the application id."""
        options = options or OrchestrationOptions()
        job_id = application.id
        set_job_id(job_id)

        logger.info(
            f"[Orchestrator] Starting generation for {job_id}",
            extra={
                "parallel": options.parallel,
                "max_concurrency": options.max_concurrency,
                "max_retries": options.max_retries,
                "deployment_target": options.deployment_target.value,
            }
        )

        plan = build_plan(requirement)
        if on_plan is not None:
            on_plan(plan)

        executor = StageExecutor(
            self.collaborators,
            broadcaster=self.broadcaster,
            on_progress=on_progress,
            sleep=self._sleep,
        )
        result = await executor.execute(job_id, plan, requirement, application, options)

        if result.success:
            logger.info(
                f"[Orchestrator] {job_id} completed: {result.metrics.component_count} components, "
                f"{result.metrics.api_endpoint_count} endpoints, {result.metrics.code_line_count} lines "
                f"in {result.metrics.total_duration}ms"
            )
        else:
            logger.error(f"[Orchestrator] {job_id} failed: {'; '.join(result.errors)}")

        if options.notification_webhook:
            await self.notify_webhook(options.notification_webhook, result)

        return result

    async def notify_webhook(self, url: str, result: OrchestrationResult) -> bool:
        """POST a result summary to the caller's webhook. Failures are logged, not raised."""
        try:
            async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS) as client:
                response = await client.post(url, json={
                    "type": "generation_finished",
                    **summarize_result(result),
                })
                response.raise_for_status()
            logger.info(f"[Orchestrator] Notified webhook for {result.application_id}")
            return True
        except httpx.HTTPError as e:
            logger.warning(f"[Orchestrator] Webhook notification to {url} failed: {e}")
            return False
