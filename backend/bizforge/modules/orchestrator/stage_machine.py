"""
Stage Machine for Orchestration Runs

Keeps the current GenerationStage of one run and enforces the pipeline order:

    initializing → analyzing → generating_database → generating_api →
    generating_components → integrating → testing → documenting →
    deploying → completed

Forward skips are allowed (optional stages), backward moves are not.
`failed` is reachable from every non-terminal stage. `completed` and
`failed` are terminal. Every transition is recorded for debugging.
"""

from typing import Dict, Any, Optional, Callable, List
from dataclasses import dataclass, field
from datetime import datetime

from bizforge.core.exceptions import InvalidStageTransitionError
from bizforge.core.logging_config import logger
from bizforge.schemas.orchestration import GenerationStage


# Execution order. Stage ordinals for monotonic progress come from here,
# not from the enum declaration order.
STAGE_SEQUENCE: List[GenerationStage] = [
    GenerationStage.INITIALIZING,
    GenerationStage.ANALYZING,
    GenerationStage.GENERATING_DATABASE,
    GenerationStage.GENERATING_API,
    GenerationStage.GENERATING_COMPONENTS,
    GenerationStage.INTEGRATING,
    GenerationStage.TESTING,
    GenerationStage.DOCUMENTING,
    GenerationStage.DEPLOYING,
    GenerationStage.COMPLETED,
]

TERMINAL_STAGES = {GenerationStage.COMPLETED, GenerationStage.FAILED}

# Cumulative percent reported when a stage starts
STAGE_WEIGHTS: Dict[GenerationStage, int] = {
    GenerationStage.INITIALIZING: 0,
    GenerationStage.ANALYZING: 8,
    GenerationStage.GENERATING_DATABASE: 20,
    GenerationStage.GENERATING_API: 35,
    GenerationStage.GENERATING_COMPONENTS: 50,
    GenerationStage.INTEGRATING: 75,
    GenerationStage.TESTING: 80,
    GenerationStage.DOCUMENTING: 85,
    GenerationStage.DEPLOYING: 90,
    GenerationStage.COMPLETED: 100,
}


@dataclass(frozen=True)
class PipelineStep:
    """A numbered, observable step of a run"""
    number: int
    stage: GenerationStage
    progress: int
    description: str


TOTAL_STEPS = 12

STEP_INITIALIZE = PipelineStep(1, GenerationStage.INITIALIZING, 0, "Initializing generation process")
STEP_ANALYZE = PipelineStep(2, GenerationStage.ANALYZING, 8, "Analyzing business requirements")
STEP_DATABASE = PipelineStep(3, GenerationStage.GENERATING_DATABASE, 20, "Generating database schemas")
STEP_API = PipelineStep(4, GenerationStage.GENERATING_API, 35, "Generating API endpoints")
STEP_COMPONENTS = PipelineStep(5, GenerationStage.GENERATING_COMPONENTS, 50, "Generating UI components")
STEP_WORKFLOWS = PipelineStep(6, GenerationStage.GENERATING_COMPONENTS, 60, "Generating workflows")
STEP_CHATBOTS = PipelineStep(7, GenerationStage.GENERATING_COMPONENTS, 70, "Generating chatbots")
STEP_VISUAL_ASSETS = PipelineStep(8, GenerationStage.GENERATING_COMPONENTS, 72, "Generating visual assets")
STEP_INTEGRATING = PipelineStep(9, GenerationStage.INTEGRATING, 75, "Integrating components")
STEP_TESTING = PipelineStep(10, GenerationStage.TESTING, 80, "Testing and validating")
STEP_DOCUMENTING = PipelineStep(11, GenerationStage.DOCUMENTING, 85, "Generating documentation")
STEP_DEPLOYING = PipelineStep(12, GenerationStage.DEPLOYING, 90, "Deploying application")


def stage_ordinal(stage: GenerationStage) -> int:
    """Position in the execution order. `failed` sorts after everything."""
    if stage == GenerationStage.FAILED:
        return len(STAGE_SEQUENCE)
    return STAGE_SEQUENCE.index(stage)


@dataclass
class StageTransition:
    """Record of a stage transition"""
    from_stage: str
    to_stage: str
    timestamp: datetime = field(default_factory=datetime.utcnow)
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_stage,
            "to": self.to_stage,
            "timestamp": self.timestamp.isoformat(),
            "reason": self.reason,
        }


class StageMachine:
    """
    Forward-only stage tracker for one run.

    Runs live on a single asyncio task, so no locking is needed.
    """

    def __init__(self, job_id: str, initial_stage: GenerationStage = GenerationStage.INITIALIZING):
        self.job_id = job_id
        self._stage = initial_stage
        self._history: List[StageTransition] = []
        self._callbacks: List[Callable[[GenerationStage, GenerationStage, StageTransition], None]] = []

    @property
    def stage(self) -> GenerationStage:
        return self._stage

    @property
    def is_terminal(self) -> bool:
        return self._stage in TERMINAL_STAGES

    def can_transition(self, to_stage: GenerationStage) -> bool:
        """Check if transition is valid"""
        if self.is_terminal:
            return False
        if to_stage == GenerationStage.FAILED:
            return True
        return stage_ordinal(to_stage) >= stage_ordinal(self._stage)

    def transition(self, to_stage: GenerationStage, reason: Optional[str] = None) -> StageTransition:
        """
        Move to a new stage.

        Re-entering the current stage is a no-op transition that is still recorded.

        Raises:
            InvalidStageTransitionError: backward move or move out of a terminal stage
        """
        if not self.can_transition(to_stage):
            logger.warning(
                f"[Stages:{self.job_id}] Invalid transition: {self._stage.value} -> {to_stage.value}"
            )
            raise InvalidStageTransitionError(self._stage.value, to_stage.value)

        record = StageTransition(
            from_stage=self._stage.value,
            to_stage=to_stage.value,
            reason=reason,
        )
        self._history.append(record)

        old_stage = self._stage
        self._stage = to_stage

        if old_stage != to_stage:
            logger.debug(
                f"[Stages:{self.job_id}] {old_stage.value} -> {to_stage.value}"
                + (f" ({reason})" if reason else "")
            )

        for callback in self._callbacks:
            callback(old_stage, to_stage, record)

        return record

    def fail(self, reason: str) -> StageTransition:
        return self.transition(GenerationStage.FAILED, reason=reason)

    def complete(self) -> StageTransition:
        return self.transition(GenerationStage.COMPLETED, reason="Run complete")

    def on_transition(self, callback: Callable):
        """Register callback for stage transitions"""
        self._callbacks.append(callback)

    def get_history(self, limit: Optional[int] = None) -> List[StageTransition]:
        if limit is None:
            return list(self._history)
        return self._history[-limit:]
