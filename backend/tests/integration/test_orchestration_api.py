"""
Integration Tests for the orchestration HTTP API
"""
import asyncio

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from bizforge.main import create_app

from tests.mocks.collaborators import HangingCollaborator, make_suite


@pytest_asyncio.fixture
async def slow_client():
    """Client for an app whose database collaborator never answers"""
    application = create_app(collaborators=make_suite(database=HangingCollaborator('database')))
    async with application.router.lifespan_context(application):
        transport = ASGITransport(app=application)
        async with AsyncClient(transport=transport, base_url='http://test') as ac:
            yield ac


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get('/api/v1/health')
        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'healthy'
        assert data['active_jobs'] == 0
        assert data['subscribers'] == 0

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get('/')
        assert response.status_code == 200
        assert response.json()['health'] == '/api/v1/health'

    @pytest.mark.asyncio
    async def test_request_id_header(self, client):
        response = await client.get('/api/v1/health', headers={'X-Request-ID': 'abc123'})
        assert response.headers['X-Request-ID'] == 'abc123'
        assert response.headers['X-Response-Time'].endswith('ms')


class TestStartOrchestration:

    @pytest.mark.asyncio
    async def test_start_and_poll(self, app, client, start_payload):
        response = await client.post('/api/v1/orchestrations', json=start_payload)

        assert response.status_code == 202
        job = response.json()
        job_id = start_payload['application']['id']
        assert job['job_id'] == job_id
        assert job['status'] == 'queued'
        assert job['progress_url'] == f'/ws/generation-progress/{job_id}'

        await app.state.job_manager.wait_for(job_id)

        response = await client.get(f'/api/v1/orchestrations/{job_id}')
        assert response.status_code == 200
        job = response.json()
        assert job['status'] == 'completed'
        assert job['result']['success'] is True
        assert job['result']['stage'] == 'completed'
        assert job['result']['metrics']['component_count'] == 4
        assert job['result']['metrics']['api_endpoint_count'] == 8
        assert 'CustomerIntake.tsx' in job['result']['generated_code']['components']

        response = await client.get(f'/api/v1/orchestrations/{job_id}/plan')
        assert response.status_code == 200
        plan = response.json()
        assert len(plan['components']) == 4
        assert plan['priority_order'][0] == 'database'

    @pytest.mark.asyncio
    async def test_invalid_body(self, client):
        response = await client.post('/api/v1/orchestrations', json={'application': {'id': 'crm-app'}})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_undeployable_application_id(self, app, client, start_payload):
        start_payload['application']['id'] = 'ab'
        response = await client.post('/api/v1/orchestrations', json=start_payload)

        assert response.status_code == 422
        assert app.state.job_manager.list_jobs() == []

    @pytest.mark.asyncio
    async def test_invalid_options(self, client, start_payload):
        start_payload['options'] = {'max_concurrency': 0}
        response = await client.post('/api/v1/orchestrations', json=start_payload)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_job(self, client):
        response = await client.get('/api/v1/orchestrations/does-not-exist')
        assert response.status_code == 404
        body = response.json()
        assert body['success'] is False
        assert body['error']['code'] == 'JOB_NOT_FOUND'

    @pytest.mark.asyncio
    async def test_duplicate_running_job(self, slow_client, start_payload):
        first = await slow_client.post('/api/v1/orchestrations', json=start_payload)
        assert first.status_code == 202

        second = await slow_client.post('/api/v1/orchestrations', json=start_payload)
        assert second.status_code == 409
        assert second.json()['error']['code'] == 'JOB_ALREADY_EXISTS'

    @pytest.mark.asyncio
    async def test_running_job_exposes_plan(self, slow_client, start_payload):
        job_id = start_payload['application']['id']
        await slow_client.post('/api/v1/orchestrations', json=start_payload)
        await asyncio.sleep(0.05)

        status = (await slow_client.get(f'/api/v1/orchestrations/{job_id}')).json()
        assert status['status'] == 'running'
        assert status['result'] is None

        plan = await slow_client.get(f'/api/v1/orchestrations/{job_id}/plan')
        assert plan.status_code == 200
        assert len(plan.json()['database_schemas']) == 2

        health = (await slow_client.get('/api/v1/health')).json()
        assert health['active_jobs'] == 1
