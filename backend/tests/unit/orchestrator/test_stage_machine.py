"""
Unit Tests for the Stage Machine
Tests for: forward-only transitions, terminal stages, history
"""
import pytest

from bizforge.core.exceptions import InvalidStageTransitionError
from bizforge.modules.orchestrator.stage_machine import (
    STAGE_SEQUENCE,
    STAGE_WEIGHTS,
    StageMachine,
    stage_ordinal,
)
from bizforge.schemas.orchestration import GenerationStage


class TestStageOrder:

    def test_sequence_starts_and_ends(self):
        assert STAGE_SEQUENCE[0] == GenerationStage.INITIALIZING
        assert STAGE_SEQUENCE[-1] == GenerationStage.COMPLETED

    def test_ordinal_is_execution_order_not_declaration_order(self):
        # The enum declares generating_components before generating_database
        assert stage_ordinal(GenerationStage.GENERATING_DATABASE) < stage_ordinal(GenerationStage.GENERATING_API)
        assert stage_ordinal(GenerationStage.GENERATING_API) < stage_ordinal(GenerationStage.GENERATING_COMPONENTS)
        assert stage_ordinal(GenerationStage.DOCUMENTING) < stage_ordinal(GenerationStage.DEPLOYING)

    def test_failed_sorts_last(self):
        assert stage_ordinal(GenerationStage.FAILED) > stage_ordinal(GenerationStage.COMPLETED)

    def test_weights_increase_along_sequence(self):
        weights = [STAGE_WEIGHTS[stage] for stage in STAGE_SEQUENCE]
        assert weights == sorted(weights)
        assert weights[0] == 0
        assert weights[-1] == 100


class TestTransitions:

    @pytest.fixture
    def machine(self):
        return StageMachine('job-1')

    def test_initial_stage(self, machine):
        assert machine.stage == GenerationStage.INITIALIZING
        assert not machine.is_terminal

    def test_walk_full_sequence(self, machine):
        for stage in STAGE_SEQUENCE[1:]:
            machine.transition(stage)
        assert machine.stage == GenerationStage.COMPLETED
        assert machine.is_terminal

    def test_forward_skip_allowed(self, machine):
        machine.transition(GenerationStage.INTEGRATING)
        machine.transition(GenerationStage.DEPLOYING)
        assert machine.stage == GenerationStage.DEPLOYING

    def test_backward_move_rejected(self, machine):
        machine.transition(GenerationStage.GENERATING_API)
        with pytest.raises(InvalidStageTransitionError):
            machine.transition(GenerationStage.ANALYZING)
        assert machine.stage == GenerationStage.GENERATING_API

    def test_fail_from_any_stage(self, machine):
        machine.transition(GenerationStage.TESTING)
        machine.fail('boom')
        assert machine.stage == GenerationStage.FAILED
        assert machine.is_terminal

    @pytest.mark.parametrize('terminal', [GenerationStage.COMPLETED, GenerationStage.FAILED])
    def test_nothing_leaves_a_terminal_stage(self, machine, terminal):
        machine.transition(terminal)
        for stage in list(GenerationStage):
            assert not machine.can_transition(stage)
        with pytest.raises(InvalidStageTransitionError):
            machine.transition(GenerationStage.FAILED)

    def test_history_and_callbacks(self, machine):
        seen = []
        machine.on_transition(lambda old, new, record: seen.append((old, new)))

        machine.transition(GenerationStage.ANALYZING, reason='plan built')
        machine.complete()

        history = machine.get_history()
        assert [h.to_stage for h in history] == ['analyzing', 'completed']
        assert history[0].reason == 'plan built'
        assert history[0].to_dict()['from'] == 'initializing'
        assert seen == [
            (GenerationStage.INITIALIZING, GenerationStage.ANALYZING),
            (GenerationStage.ANALYZING, GenerationStage.COMPLETED),
        ]
        assert machine.get_history(limit=1)[0].to_stage == 'completed'
