"""
Unit Tests for stage timing, metrics and result assembly
"""
from datetime import datetime, timedelta

import pytest

from bizforge.modules.orchestrator.metrics import (
    StageTimingRecorder,
    assemble_metrics,
    count_lines,
)
from bizforge.modules.orchestrator.result_assembler import (
    assemble_result,
    merge_artifacts,
    summarize_result,
)
from bizforge.schemas.orchestration import GeneratedCode, GenerationStage, ValidationReport


class StepClock:
    """Clock advancing a fixed step per reading"""

    def __init__(self, step_ms: int = 100):
        self.now = datetime(2024, 1, 1, 12, 0, 0)
        self.step = timedelta(milliseconds=step_ms)

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


class TestStageTimingRecorder:

    def test_duration_of_closed_stage(self):
        recorder = StageTimingRecorder(clock=StepClock(250))
        recorder.record_start(GenerationStage.ANALYZING)
        recorder.record_end(GenerationStage.ANALYZING)

        assert recorder.timings['analyzing'].duration_ms == 250
        assert recorder.open_stages() == []

    def test_open_stage_has_no_duration(self):
        recorder = StageTimingRecorder(clock=StepClock())
        recorder.record_start(GenerationStage.GENERATING_API)

        assert recorder.timings['generating_api'].duration_ms is None
        assert recorder.open_stages() == ['generating_api']

    def test_end_without_start_is_ignored(self):
        recorder = StageTimingRecorder(clock=StepClock())
        recorder.record_end(GenerationStage.TESTING)
        assert recorder.timings == {}

    def test_second_end_keeps_first(self):
        recorder = StageTimingRecorder(clock=StepClock(100))
        recorder.record_start(GenerationStage.TESTING)
        recorder.record_end(GenerationStage.TESTING)
        recorder.record_end(GenerationStage.TESTING)
        assert recorder.timings['testing'].duration_ms == 100


class TestAssembleMetrics:

    @pytest.fixture
    def code(self):
        return GeneratedCode(
            components={'A.tsx': 'a\nb\n', 'B.tsx': 'c\n'},
            api_endpoints={'a.get.ts': 'x\n'},
            database_schema={'a.sql': 'create\n', 'b.sql': 'create\n', 'c.sql': 'create\n'},
            documentation={'README.md': '# hi\n\ntext\n'},
        )

    def test_counts(self, code):
        start = datetime(2024, 1, 1)
        metrics = assemble_metrics(code, {}, start, start + timedelta(seconds=2))

        assert metrics.total_duration == 2000
        assert metrics.component_count == 2
        assert metrics.api_endpoint_count == 1
        assert metrics.schema_table_count == 3
        assert metrics.code_line_count == 2 + 1 + 1 + 3 + 3
        assert metrics.artifact_counts['documentation'] == 1
        assert metrics.artifact_counts['tests'] == 0

    def test_only_closed_stages_have_durations(self, code):
        recorder = StageTimingRecorder(clock=StepClock(50))
        recorder.record_start(GenerationStage.ANALYZING)
        recorder.record_end(GenerationStage.ANALYZING)
        recorder.record_start(GenerationStage.GENERATING_DATABASE)

        start = datetime(2024, 1, 1)
        metrics = assemble_metrics(code, recorder.timings, start, start)
        assert metrics.stage_durations == {'analyzing': 50}

    def test_count_lines(self):
        assert count_lines('') == 0
        assert count_lines('one line, no newline') == 0
        assert count_lines('a\nb\nc\n') == 3


class TestResultAssembler:

    def test_merge_ignores_unknown_categories(self):
        code = merge_artifacts({'components': {'A.tsx': 'a\n'}, 'bogus': {'x': 'y'}})
        assert code.components == {'A.tsx': 'a\n'}
        assert 'bogus/x' not in code.all_files()

    def test_merge_copies(self):
        source = {'components': {'A.tsx': 'a\n'}}
        code = merge_artifacts(source)
        source['components']['B.tsx'] = 'b\n'
        assert list(code.components) == ['A.tsx']

    def test_success_needs_completed_and_no_errors(self):
        start = datetime(2024, 1, 1)
        common = dict(application_id='app', generated={}, timings={}, started_at=start, finished_at=start)

        assert assemble_result(stage=GenerationStage.COMPLETED, errors=[], **common).success
        assert not assemble_result(stage=GenerationStage.FAILED, errors=['x'], **common).success
        assert not assemble_result(stage=GenerationStage.COMPLETED, errors=['x'], **common).success

    def test_summary(self):
        start = datetime(2024, 1, 1)
        result = assemble_result(
            application_id='app',
            stage=GenerationStage.COMPLETED,
            generated={'components': {'A.tsx': 'a\n'}},
            timings={},
            started_at=start,
            finished_at=start + timedelta(milliseconds=1500),
            errors=[],
            validation_report=ValidationReport(passed=True),
            deployment_url='http://x/app',
        )
        summary = summarize_result(result)
        assert summary['stage'] == 'completed'
        assert summary['deployment_url'] == 'http://x/app'
        assert summary['metrics']['total_duration'] == 1500
        assert summary['metrics']['component_count'] == 1
