"""
Unit Tests for the Progress Broadcaster
Tests for: subscription registry, fan-out, failure isolation, back-pressure
"""
import asyncio

import pytest
import pytest_asyncio

from bizforge.modules.orchestrator.progress_broadcaster import ProgressBroadcaster
from bizforge.schemas.orchestration import GenerationProgress, GenerationStage, ProgressDetails

from tests.mocks.connections import FakeConnection


def progress_event(percent: int, stage: GenerationStage = GenerationStage.GENERATING_API) -> GenerationProgress:
    return GenerationProgress(
        stage=stage,
        progress=percent,
        message=f"{percent}%",
        details=ProgressDetails(total_steps=12, current_step=4),
    )


@pytest_asyncio.fixture
async def broadcaster():
    broadcaster = ProgressBroadcaster(queue_size=16)
    yield broadcaster
    await broadcaster.close()


class TestSubscriptions:

    @pytest.mark.asyncio
    async def test_subscribe_is_idempotent(self, broadcaster):
        connection = FakeConnection()
        assert broadcaster.subscribe('job-1', connection) is True
        assert broadcaster.subscribe('job-1', connection) is False
        assert broadcaster.subscriber_count('job-1') == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_job_entry(self, broadcaster):
        connection = FakeConnection()
        broadcaster.subscribe('job-1', connection)

        assert broadcaster.unsubscribe('job-1', connection) is True
        assert broadcaster.unsubscribe('job-1', connection) is False
        assert broadcaster.active_jobs() == []
        assert broadcaster.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_counts_across_jobs(self, broadcaster):
        broadcaster.subscribe('job-1', FakeConnection())
        broadcaster.subscribe('job-1', FakeConnection())
        broadcaster.subscribe('job-2', FakeConnection())

        assert broadcaster.subscriber_count() == 3
        assert sorted(broadcaster.active_jobs()) == ['job-1', 'job-2']
        stats = broadcaster.get_stats()
        assert stats['jobs'] == 2
        assert stats['connections'] == 3


class TestPublish:

    @pytest.mark.asyncio
    async def test_no_subscribers_is_a_no_op(self, broadcaster):
        assert broadcaster.publish('nobody-listens', progress_event(10)) == 0
        await broadcaster.drain()

    @pytest.mark.asyncio
    async def test_no_backlog_for_late_subscribers(self, broadcaster):
        broadcaster.publish('job-1', progress_event(10))

        late = FakeConnection()
        broadcaster.subscribe('job-1', late)
        broadcaster.publish('job-1', progress_event(20))
        await broadcaster.drain('job-1')

        assert late.progress() == [20]

    @pytest.mark.asyncio
    async def test_fan_out_preserves_order(self, broadcaster):
        connections = [FakeConnection() for _ in range(3)]
        for connection in connections:
            broadcaster.subscribe('job-1', connection)

        for percent in (8, 20, 35, 50):
            assert broadcaster.publish('job-1', progress_event(percent)) == 3
        await broadcaster.drain('job-1')

        for connection in connections:
            assert connection.progress() == [8, 20, 35, 50]

    @pytest.mark.asyncio
    async def test_envelope(self, broadcaster):
        connection = FakeConnection()
        broadcaster.subscribe('job-1', connection)
        broadcaster.publish('job-1', progress_event(35))
        await broadcaster.drain()

        message = connection.sent[0]
        assert message['type'] == 'generation_progress'
        assert message['job_id'] == 'job-1'
        assert message['data']['stage'] == 'generating_api'
        assert message['data']['details'] == {'totalSteps': 12, 'currentStep': 4}
        assert 'currentComponent' not in message['data']

    @pytest.mark.asyncio
    async def test_ready_made_messages_pass_through(self, broadcaster):
        connection = FakeConnection()
        broadcaster.subscribe('job-1', connection)
        broadcaster.publish('job-1', {'type': 'error', 'message': 'boom'})
        await broadcaster.drain()
        assert connection.sent == [{'type': 'error', 'message': 'boom'}]

    @pytest.mark.asyncio
    async def test_events_only_reach_their_job(self, broadcaster):
        mine, other = FakeConnection(), FakeConnection()
        broadcaster.subscribe('job-1', mine)
        broadcaster.subscribe('job-2', other)

        broadcaster.publish('job-1', progress_event(50))
        await broadcaster.drain()

        assert len(mine.sent) == 1
        assert other.sent == []


class TestFailureIsolation:

    @pytest.mark.asyncio
    async def test_failed_write_removes_only_that_connection(self, broadcaster):
        healthy, broken = FakeConnection(), FakeConnection(fail=True)
        broadcaster.subscribe('job-1', healthy)
        broadcaster.subscribe('job-1', broken)

        broadcaster.publish('job-1', progress_event(20))
        await broadcaster.drain('job-1')

        assert broadcaster.subscriber_count('job-1') == 1
        assert broadcaster.get_stats()['failed_writes'] == 1

        broadcaster.publish('job-1', progress_event(35))
        await broadcaster.drain('job-1')
        assert healthy.progress() == [20, 35]

    @pytest.mark.asyncio
    async def test_slow_subscriber_does_not_block_others(self, broadcaster):
        gate = asyncio.Event()
        slow, fast = FakeConnection(gate=gate), FakeConnection()
        broadcaster.subscribe('job-1', slow)
        broadcaster.subscribe('job-1', fast)

        broadcaster.publish('job-1', progress_event(50))
        for _ in range(5):
            await asyncio.sleep(0)

        assert fast.progress() == [50]
        assert slow.sent == []

        gate.set()
        await broadcaster.drain('job-1')
        assert slow.progress() == [50]

    @pytest.mark.asyncio
    async def test_full_outbox_drops_events(self):
        broadcaster = ProgressBroadcaster(queue_size=1)
        gate = asyncio.Event()
        connection = FakeConnection(gate=gate)
        broadcaster.subscribe('job-1', connection)

        assert broadcaster.publish('job-1', progress_event(8)) == 1
        assert broadcaster.publish('job-1', progress_event(20)) == 0
        assert broadcaster.get_stats()['dropped'] == 1

        gate.set()
        await broadcaster.drain('job-1')
        assert connection.progress() == [8]
        await broadcaster.close()


class TestClose:

    @pytest.mark.asyncio
    async def test_close_clears_registry(self):
        broadcaster = ProgressBroadcaster()
        broadcaster.subscribe('job-1', FakeConnection(gate=asyncio.Event()))

        await broadcaster.close()

        assert broadcaster.subscriber_count() == 0
        assert broadcaster.publish('job-1', progress_event(10)) == 0
