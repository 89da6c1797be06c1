"""
Stage timing and derived run metrics
"""

from typing import Callable, Dict, List, Mapping, Optional
from dataclasses import dataclass
from datetime import datetime

from bizforge.schemas.orchestration import (
    ARTIFACT_CATEGORIES,
    GeneratedCode,
    GenerationStage,
    OrchestrationMetrics,
)


@dataclass
class StageTiming:
    start: datetime
    end: Optional[datetime] = None

    @property
    def duration_ms(self) -> Optional[int]:
        if self.end is None:
            return None
        return int((self.end - self.start).total_seconds() * 1000)


class StageTimingRecorder:
    """
    Wall-clock start/end per stage for one run.

    Used only for the final metrics, never exposed mid-run.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.utcnow):
        self._clock = clock
        self._timings: Dict[str, StageTiming] = {}

    def record_start(self, stage: GenerationStage) -> None:
        self._timings[stage.value] = StageTiming(start=self._clock())

    def record_end(self, stage: GenerationStage) -> None:
        timing = self._timings.get(stage.value)
        if timing is not None and timing.end is None:
            timing.end = self._clock()

    def open_stages(self) -> List[str]:
        """Stages that started but never ended (aborted mid-flight)"""
        return [name for name, timing in self._timings.items() if timing.end is None]

    @property
    def timings(self) -> Dict[str, StageTiming]:
        return dict(self._timings)


def count_lines(content: str) -> int:
    return content.count("\n")


def assemble_metrics(
    generated_code: GeneratedCode,
    timings: Mapping[str, StageTiming],
    started_at: datetime,
    finished_at: datetime,
) -> OrchestrationMetrics:
    """
    Derive run metrics. Reads the artifacts, never mutates them.

    - total_duration: finished_at - started_at (ms)
    - stage_durations: only stages that both started and ended
    - *_count: files per category
    - code_line_count: newline count summed over every produced file
    """
    stage_durations = {
        stage: timing.duration_ms
        for stage, timing in timings.items()
        if timing.duration_ms is not None
    }

    artifact_counts = {
        category: len(generated_code.category(category))
        for category in ARTIFACT_CATEGORIES
    }

    return OrchestrationMetrics(
        total_duration=max(0, int((finished_at - started_at).total_seconds() * 1000)),
        stage_durations=stage_durations,
        component_count=artifact_counts["components"],
        api_endpoint_count=artifact_counts["api_endpoints"],
        schema_table_count=artifact_counts["database_schema"],
        code_line_count=sum(count_lines(content) for content in generated_code.all_files().values()),
        artifact_counts=artifact_counts,
    )
