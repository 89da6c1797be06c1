"""
Unit Tests for the Generation Orchestrator
Tests for: plan + execute wiring, webhook notification
"""
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from bizforge.modules.orchestrator.generation_orchestrator import GenerationOrchestrator
from bizforge.schemas.orchestration import GenerationStage

from tests.mocks.collaborators import FlakyCollaborator, RecordingSleep, make_suite

HTTPX_CLIENT = 'bizforge.modules.orchestrator.generation_orchestrator.httpx.AsyncClient'


@pytest.fixture
def webhook_client():
    """Patched httpx.AsyncClient; yields the client used inside `async with`"""
    client = AsyncMock()
    client.post.return_value = MagicMock(raise_for_status=MagicMock())
    with patch(HTTPX_CLIENT) as client_cls:
        client_cls.return_value.__aenter__.return_value = client
        yield client


class TestStartOrchestration:

    @pytest.mark.asyncio
    async def test_plans_then_executes(self, requirement, application, options):
        plans, events = [], []
        orchestrator = GenerationOrchestrator(collaborators=make_suite(), sleep=RecordingSleep())

        result = await orchestrator.start_orchestration(
            requirement, application, options,
            on_progress=lambda job_id, event: events.append((job_id, event)),
            on_plan=plans.append,
        )

        assert result.success
        assert result.application_id == application.id
        assert len(plans) == 1
        assert len(plans[0].components) == 4
        assert {job_id for job_id, _ in events} == {application.id}
        assert events[-1][1].stage == GenerationStage.COMPLETED

    @pytest.mark.asyncio
    async def test_default_options(self, requirement, application):
        orchestrator = GenerationOrchestrator(collaborators=make_suite(), sleep=RecordingSleep())
        result = await orchestrator.start_orchestration(requirement, application)
        assert result.success

    @pytest.mark.asyncio
    async def test_webhook_is_notified(self, requirement, application, options, webhook_client):
        orchestrator = GenerationOrchestrator(collaborators=make_suite(), sleep=RecordingSleep())
        opts = options.model_copy(update={'notification_webhook': 'https://hooks.example.test/done'})

        result = await orchestrator.start_orchestration(requirement, application, opts)

        webhook_client.post.assert_awaited_once()
        url = webhook_client.post.call_args.args[0]
        payload = webhook_client.post.call_args.kwargs['json']
        assert url == 'https://hooks.example.test/done'
        assert payload['type'] == 'generation_finished'
        assert payload['application_id'] == application.id
        assert payload['success'] is result.success

    @pytest.mark.asyncio
    async def test_failed_runs_are_notified_too(self, requirement, application, options, webhook_client):
        suite = make_suite(api=FlakyCollaborator('api', failures=99))
        orchestrator = GenerationOrchestrator(collaborators=suite, sleep=RecordingSleep())
        opts = options.model_copy(update={'notification_webhook': 'https://hooks.example.test/done'})

        result = await orchestrator.start_orchestration(requirement, application, opts)

        assert not result.success
        assert webhook_client.post.call_args.kwargs['json']['errors'] == result.errors

    @pytest.mark.asyncio
    async def test_webhook_failure_is_not_raised(self, requirement, application, options, webhook_client):
        webhook_client.post.side_effect = httpx.ConnectError('refused')
        orchestrator = GenerationOrchestrator(collaborators=make_suite(), sleep=RecordingSleep())
        result = await orchestrator.start_orchestration(requirement, application, options)

        assert await orchestrator.notify_webhook('https://hooks.example.test/done', result) is False
