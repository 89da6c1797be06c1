"""
Stage Executor - walks a GenerationPlan through the fixed pipeline sequence.

Per stage:
1. record stage start
2. emit a progress event (static percent, step counters)
3. invoke the stage's collaborator once per plan item, fanned out up to
   max_concurrency when options.parallel is set (dependency waves inside
   the stage, join barrier per wave)
4. retry failed calls with a fixed delay; exhaustion fails the whole run
5. record stage end

Exactly one of `completed` / `failed` is reached and nothing is emitted after it.
"""

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
import asyncio

from bizforge.core.exceptions import (
    BizForgeError,
    ArtifactConflictError,
    CollaboratorError,
    CollaboratorTimeoutError,
    DeploymentError,
    MalformedArtifactError,
    StageFailedError,
)
from bizforge.core.logging_config import logger
from bizforge.modules.generators.base import CollaboratorSuite, GenerationContext, collaborator_name
from bizforge.modules.orchestrator.metrics import StageTimingRecorder
from bizforge.modules.orchestrator.plan_builder import describe_plan, find_forward_references
from bizforge.modules.orchestrator.progress_broadcaster import ProgressBroadcaster
from bizforge.modules.orchestrator.result_assembler import assemble_result, merge_artifacts
from bizforge.modules.orchestrator.stage_machine import (
    STAGE_WEIGHTS,
    STEP_ANALYZE,
    STEP_API,
    STEP_CHATBOTS,
    STEP_COMPONENTS,
    STEP_DATABASE,
    STEP_DEPLOYING,
    STEP_DOCUMENTING,
    STEP_INITIALIZE,
    STEP_INTEGRATING,
    STEP_TESTING,
    STEP_VISUAL_ASSETS,
    STEP_WORKFLOWS,
    TOTAL_STEPS,
    PipelineStep,
    StageMachine,
)
from bizforge.schemas.orchestration import (
    ARTIFACT_CATEGORIES,
    BusinessRequirement,
    DeploymentResult,
    GeneratedApplicationRef,
    GenerationPlan,
    GenerationProgress,
    GenerationStage,
    OrchestrationOptions,
    OrchestrationResult,
    PlanItem,
    ProgressDetails,
    ValidationReport,
)


ProgressListener = Callable[[str, GenerationProgress], None]


@dataclass(frozen=True)
class WorkUnit:
    """One step's batch of collaborator calls. items=[None] means once per run."""
    step: PipelineStep
    category: str
    collaborator: Any
    items: Sequence[Optional[PlanItem]]


@dataclass
class _RunState:
    job_id: str
    plan: GenerationPlan
    requirement: BusinessRequirement
    application: GeneratedApplicationRef
    options: OrchestrationOptions
    machine: StageMachine
    recorder: StageTimingRecorder
    started_at: datetime
    generated: Dict[str, Dict[str, str]] = field(
        default_factory=lambda: {category: {} for category in ARTIFACT_CATEGORIES}
    )
    errors: List[str] = field(default_factory=list)
    last_progress: int = 0
    validation_report: Optional[ValidationReport] = None
    deployment_url: Optional[str] = None

    def artifact_view(self) -> Mapping[str, Mapping[str, str]]:
        """Read-only snapshot of everything generated so far"""
        return MappingProxyType({
            category: MappingProxyType(dict(files))
            for category, files in self.generated.items()
        })


def plan_waves(items: Sequence[Optional[PlanItem]]) -> List[List[Optional[PlanItem]]]:
    """
    Group one stage's items into dependency waves (topological levels).

    Only dependencies naming another item of the same batch are considered;
    earlier stages are already complete. A cycle is broken by releasing the
    first remaining item in declared order.
    """
    names = {item.name for item in items if item is not None}
    remaining = list(range(len(items)))
    done: set = set()
    waves: List[List[Optional[PlanItem]]] = []

    while remaining:
        ready = [
            index for index in remaining
            if items[index] is None
            or all(dep in done or dep not in names for dep in items[index].dependencies)
        ]
        if not ready:
            logger.warning(
                f"[Executor] Dependency cycle among {[items[i].name for i in remaining]}, "
                f"releasing '{items[remaining[0]].name}'"
            )
            ready = [remaining[0]]

        waves.append([items[index] for index in ready])
        done.update(items[index].name for index in ready if items[index] is not None)
        remaining = [index for index in remaining if index not in ready]

    return waves


def check_artifacts(collaborator: str, item: Optional[str], result: Any) -> Dict[str, str]:
    """A collaborator result must be a {filename: content} map of strings"""
    if not isinstance(result, Mapping):
        raise MalformedArtifactError(
            collaborator, f"expected a filename -> content map, got {type(result).__name__}", item
        )
    for filename, content in result.items():
        if not isinstance(filename, str) or not filename.strip():
            raise MalformedArtifactError(collaborator, f"invalid filename {filename!r}", item)
        if not isinstance(content, str):
            raise MalformedArtifactError(
                collaborator, f"content of '{filename}' is {type(content).__name__}, not str", item
            )
    return dict(result)


class StageExecutor:
    """
    Executes one plan for one job id.

    The broadcaster is injected so the executor runs the same with zero,
    one or many subscribers (or with no broadcaster at all in tests).
    """

    def __init__(
        self,
        collaborators: CollaboratorSuite,
        broadcaster: Optional[ProgressBroadcaster] = None,
        on_progress: Optional[ProgressListener] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.collaborators = collaborators
        self.broadcaster = broadcaster
        self.on_progress = on_progress
        self._sleep = sleep
        self._clock = clock

    async def execute(
        self,
        job_id: str,
        plan: GenerationPlan,
        requirement: BusinessRequirement,
        application: GeneratedApplicationRef,
        options: OrchestrationOptions,
    ) -> OrchestrationResult:
        """
        Run the pipeline to completion or failure.

        Never raises for pipeline failures; they end up in result.errors.
        Task cancellation is propagated.
        """
        run = _RunState(
            job_id=job_id,
            plan=plan,
            requirement=requirement,
            application=application,
            options=options,
            machine=StageMachine(job_id),
            recorder=StageTimingRecorder(clock=self._clock),
            started_at=self._clock(),
        )

        try:
            await self._run_pipeline(run)
        except asyncio.CancelledError:
            logger.warning(f"[Executor] {job_id}: run cancelled during {run.machine.stage.value}")
            raise
        except StageFailedError as e:
            self._fail(run, e.errors)
        except BizForgeError as e:
            self._fail(run, [e.message])
        except Exception as e:
            logger.log_error_with_context(e, context=f"pipeline {job_id}", stage=run.machine.stage.value)
            self._fail(run, [f"Unexpected error during {run.machine.stage.value}: {type(e).__name__}: {e}"])

        result = assemble_result(
            application_id=application.id,
            stage=run.machine.stage,
            generated=run.generated,
            timings=run.recorder.timings,
            started_at=run.started_at,
            finished_at=self._clock(),
            errors=run.errors,
            validation_report=run.validation_report,
            deployment_url=run.deployment_url,
        )
        logger.log_performance(f"orchestration {job_id}", result.metrics.total_duration, threshold_ms=15 * 60 * 1000)
        return result

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run_pipeline(self, run: _RunState) -> None:
        plan, options, suite = run.plan, run.options, self.collaborators

        self._begin_stage(run, STEP_INITIALIZE, "Initializing generation process...")
        self._end_stage(run, GenerationStage.INITIALIZING)

        self._begin_stage(
            run, STEP_ANALYZE, "Analyzing business requirements and creating generation strategy...",
            description=describe_plan(plan),
        )
        forward_refs = find_forward_references(plan)
        if forward_refs:
            logger.warning(f"[Executor] {run.job_id}: plan has unresolved dependencies: {forward_refs}")
        self._end_stage(run, GenerationStage.ANALYZING)

        await self._run_stage(run, GenerationStage.GENERATING_DATABASE, [
            WorkUnit(STEP_DATABASE, "database_schema", suite.database, plan.database_schemas),
        ])
        await self._run_stage(run, GenerationStage.GENERATING_API, [
            WorkUnit(STEP_API, "api_endpoints", suite.api, plan.api_endpoints),
        ])

        component_units = [
            WorkUnit(STEP_COMPONENTS, "components", suite.components, plan.components),
            WorkUnit(STEP_WORKFLOWS, "workflows", suite.workflows, plan.workflows),
            WorkUnit(STEP_CHATBOTS, "chatbots", suite.chatbots, plan.chatbots),
        ]
        if suite.visual_assets is not None:
            component_units.append(WorkUnit(STEP_VISUAL_ASSETS, "visual_assets", suite.visual_assets, [None]))
        await self._run_stage(run, GenerationStage.GENERATING_COMPONENTS, component_units)

        await self._run_stage(run, GenerationStage.INTEGRATING, [
            WorkUnit(STEP_INTEGRATING, "integrations", suite.integrations, plan.integrations),
        ])

        if options.validate_output or options.generate_tests:
            await self._run_testing(run)

        if options.generate_documentation:
            await self._run_stage(run, GenerationStage.DOCUMENTING, [
                WorkUnit(STEP_DOCUMENTING, "documentation", suite.documentation, [None]),
            ])

        await self._run_deployment(run)

        run.machine.complete()
        logger.log_stage_event(run.job_id, GenerationStage.COMPLETED.value, "reached", progress=100)
        self._emit(
            run, GenerationStage.COMPLETED, STAGE_WEIGHTS[GenerationStage.COMPLETED],
            "Application generated successfully!",
            details=ProgressDetails(total_steps=TOTAL_STEPS, current_step=TOTAL_STEPS,
                                    step_description="Generation complete"),
        )

    async def _run_stage(self, run: _RunState, stage: GenerationStage, units: List[WorkUnit]) -> None:
        """Run a stage's work units in order; the first unit's step event always fires"""
        for index, unit in enumerate(units):
            if index == 0:
                self._begin_stage(run, unit.step, f"{unit.step.description}...",
                                  description=self._step_description(unit))
            elif unit.items:
                self._emit_step(run, unit.step, f"{unit.step.description}...",
                                description=self._step_description(unit))
            if unit.items:
                await self._run_unit(run, unit)
        self._end_stage(run, stage)

    async def _run_testing(self, run: _RunState) -> None:
        suite, options = self.collaborators, run.options
        self._begin_stage(run, STEP_TESTING, "Validating generated code and checking patterns...")

        if options.generate_tests and suite.tests is not None and run.plan.components:
            await self._run_unit(run, WorkUnit(STEP_TESTING, "tests", suite.tests, run.plan.components))

        if options.validate_output and suite.validator is not None:
            validator = suite.validator
            snapshot = merge_artifacts(run.generated)
            report = await self._call_with_retry(
                run, collaborator_name(validator), None,
                lambda attempt: self._validate_once(validator, snapshot),
            )
            run.validation_report = report
            if not report.passed:
                logger.warning(
                    f"[Executor] {run.job_id}: validation reported {len(report.errors)} error(s), continuing"
                )

        self._end_stage(run, GenerationStage.TESTING)

    async def _run_deployment(self, run: _RunState) -> None:
        deployer = self.collaborators.deployer
        self._begin_stage(run, STEP_DEPLOYING, "Deploying application to target environment...",
                          description=f"Deploying to {run.options.deployment_target.value}")

        config = {
            "target": run.options.deployment_target.value,
            "environment": run.plan.deployment.environment,
            "auto_scaling": run.plan.deployment.auto_scaling,
            "monitoring": run.plan.deployment.monitoring,
            "backup": run.plan.deployment.backup,
        }
        snapshot = merge_artifacts(run.generated)
        result = await self._call_with_retry(
            run, collaborator_name(deployer), None,
            lambda attempt: self._deploy_once(deployer, run, config, snapshot),
        )
        run.deployment_url = result.deployment_url
        self._end_stage(run, GenerationStage.DEPLOYING)

    # ------------------------------------------------------------------
    # Collaborator invocation
    # ------------------------------------------------------------------

    async def _run_unit(self, run: _RunState, unit: WorkUnit) -> None:
        """
        Invoke unit.collaborator for every item; merge after each wave's barrier.

        Raises:
            StageFailedError: any item exhausted its retries
            ArtifactConflictError: two items produced the same filename
        """
        options = run.options
        name = collaborator_name(unit.collaborator)
        waves = plan_waves(unit.items)
        if not options.parallel:
            waves = [[item] for wave in waves for item in wave]

        semaphore = asyncio.Semaphore(options.max_concurrency)

        async def invoke(item: Optional[PlanItem]) -> Dict[str, str]:
            async with semaphore:
                files = await self._call_with_retry(
                    run, name, item.name if item else None,
                    lambda attempt: self._generate_once(run, unit.collaborator, item, artifacts, attempt),
                )
            if item is not None:
                self._emit_step(run, unit.step, f"Generated {item.name}", current_component=item.name)
            return files

        for wave in waves:
            artifacts = run.artifact_view()
            if len(wave) > 1:
                outcomes = await asyncio.gather(*(invoke(item) for item in wave), return_exceptions=True)
            else:
                outcomes = []
                for item in wave:
                    try:
                        outcomes.append(await invoke(item))
                    except CollaboratorError as e:
                        outcomes.append(e)

            errors: List[str] = []
            for outcome in outcomes:
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                if isinstance(outcome, CollaboratorError):
                    errors.append(outcome.message)
                elif isinstance(outcome, BaseException):
                    errors.append(f"{name}: {type(outcome).__name__}: {outcome}")
                else:
                    self._merge(run, unit.category, outcome)

            if errors:
                raise StageFailedError(run.machine.stage.value, errors)

    async def _generate_once(
        self,
        run: _RunState,
        collaborator: Any,
        item: Optional[PlanItem],
        artifacts: Mapping[str, Mapping[str, str]],
        attempt: int,
    ) -> Dict[str, str]:
        context = GenerationContext(
            job_id=run.job_id,
            plan=run.plan,
            options=run.options,
            item=item,
            artifacts=artifacts,
            application=run.application,
            attempt=attempt,
        )
        result = await collaborator.generate(run.requirement, context)
        return check_artifacts(collaborator_name(collaborator), item.name if item else None, result)

    async def _validate_once(self, validator: Any, snapshot) -> ValidationReport:
        report = await validator.validate(snapshot)
        if not isinstance(report, ValidationReport):
            raise MalformedArtifactError(collaborator_name(validator), "validator did not return a ValidationReport")
        return report

    async def _deploy_once(self, deployer: Any, run: _RunState, config: Dict[str, Any], snapshot) -> DeploymentResult:
        result = await deployer.deploy(run.requirement, run.application, config, snapshot)
        if isinstance(result, Mapping) and isinstance(result.get("deployment_url"), str):
            result = DeploymentResult(**result)
        if not isinstance(result, DeploymentResult):
            raise MalformedArtifactError(collaborator_name(deployer), "deployer did not return a deployment URL")
        return result

    async def _call_with_retry(
        self,
        run: _RunState,
        collaborator: str,
        item: Optional[str],
        call: Callable[[int], Awaitable[Any]],
    ) -> Any:
        """
        Fixed-delay retry around one collaborator call with a per-call timeout.

        Attempts = 1 + max_retries when retry_on_failure is set, else 1.
        A DeploymentError is deterministic and ends the loop at once.
        """
        options = run.options
        attempts = options.max_attempts
        last_error: Optional[CollaboratorError] = None

        for attempt in range(1, attempts + 1):
            logger.log_collaborator_event(collaborator, "started", attempt=attempt, item=item)
            try:
                result = await asyncio.wait_for(call(attempt), timeout=options.collaborator_timeout)
                logger.log_collaborator_event(collaborator, "succeeded", attempt=attempt, item=item)
                return result
            except asyncio.TimeoutError:
                last_error = CollaboratorTimeoutError(collaborator, options.collaborator_timeout, item)
            except CollaboratorError as e:
                last_error = e
            except DeploymentError as e:
                last_error = CollaboratorError(collaborator, e.message, item)
                attempts = attempt
                break
            except BizForgeError as e:
                last_error = CollaboratorError(collaborator, e.message, item)
            except Exception as e:
                last_error = CollaboratorError(collaborator, f"{type(e).__name__}: {e}", item)

            if attempt < attempts:
                logger.log_collaborator_event(
                    collaborator, "retrying", attempt=attempt, item=item, error=last_error.message
                )
                await self._sleep(options.retry_delay)

        logger.log_collaborator_event(collaborator, "failed", attempt=attempts, item=item, error=last_error.message)
        target = f"{collaborator} ({item})" if item else collaborator
        raise CollaboratorError(
            collaborator,
            f"{target} failed after {attempts} attempt(s): {last_error.message}",
            item=item,
            attempts=attempts,
        )

    def _merge(self, run: _RunState, category: str, files: Dict[str, str]) -> None:
        target = run.generated[category]
        for filename in files:
            if filename in target:
                raise ArtifactConflictError(category, filename)
        target.update(files)

    # ------------------------------------------------------------------
    # Stages and progress
    # ------------------------------------------------------------------

    def _begin_stage(
        self,
        run: _RunState,
        step: PipelineStep,
        message: str,
        description: Optional[str] = None,
    ) -> None:
        run.machine.transition(step.stage, reason=step.description)
        run.recorder.record_start(step.stage)
        logger.log_stage_event(run.job_id, step.stage.value, "started", progress=step.progress)
        self._emit_step(run, step, message, description=description)

    def _end_stage(self, run: _RunState, stage: GenerationStage) -> None:
        run.recorder.record_end(stage)
        logger.debug(f"[Executor] {run.job_id}: {stage.value} finished")

    def _emit_step(
        self,
        run: _RunState,
        step: PipelineStep,
        message: str,
        description: Optional[str] = None,
        current_component: Optional[str] = None,
    ) -> None:
        self._emit(
            run, step.stage, step.progress, message,
            current_component=current_component,
            details=ProgressDetails(
                total_steps=TOTAL_STEPS,
                current_step=step.number,
                step_description=description or step.description,
            ),
        )

    def _emit(
        self,
        run: _RunState,
        stage: GenerationStage,
        progress: int,
        message: str,
        current_component: Optional[str] = None,
        errors: Optional[List[str]] = None,
        details: Optional[ProgressDetails] = None,
    ) -> None:
        """Build and publish one event. Percent never goes backwards."""
        progress = max(progress, run.last_progress)
        run.last_progress = progress

        event = GenerationProgress(
            stage=stage,
            progress=progress,
            message=message,
            current_component=current_component,
            errors=errors,
            details=details,
            estimated_time_remaining=round(run.plan.estimated_duration * (100 - progress) / 100),
        )

        if self.broadcaster is not None:
            try:
                self.broadcaster.publish(run.job_id, event)
            except Exception as e:
                logger.warning(f"[Executor] {run.job_id}: progress publish failed: {e}")

        if self.on_progress is not None:
            try:
                self.on_progress(run.job_id, event)
            except Exception as e:
                logger.warning(f"[Executor] {run.job_id}: progress listener failed: {e}")

    def _fail(self, run: _RunState, errors: List[str]) -> None:
        """Terminal failure: one `failed` event carrying the accumulated errors"""
        run.errors.extend(errors)
        if run.machine.is_terminal:
            return

        failed_stage = run.machine.stage
        run.machine.fail("; ".join(errors))
        logger.error(
            f"[Pipeline] {run.job_id}: failed during {failed_stage.value}: {'; '.join(errors)}",
            extra={"event_type": "stage", "stage": failed_stage.value, "stage_event": "failed"},
        )
        self._emit(
            run, GenerationStage.FAILED, run.last_progress,
            f"Generation failed during {failed_stage.value}",
            errors=list(run.errors),
        )

    @staticmethod
    def _step_description(unit: WorkUnit) -> str:
        if not unit.items or unit.items[0] is None:
            return unit.step.description
        return f"{unit.step.description} ({len(unit.items)} items)"
