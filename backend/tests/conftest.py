"""
BizForge - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator, Callable, List, Optional

import pytest
import pytest_asyncio
from faker import Faker
from httpx import AsyncClient, ASGITransport

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['USE_AI_GENERATORS'] = 'false'
os.environ['ANTHROPIC_API_KEY'] = 'test-api-key'
os.environ['ORCHESTRATION_RETRY_DELAY_SECONDS'] = '0'
os.environ['LOG_LEVEL'] = 'WARNING'

from bizforge.main import create_app
from bizforge.modules.generators import default_collaborators
from bizforge.schemas.orchestration import (
    BusinessRequirement,
    GeneratedApplicationRef,
    OrchestrationOptions,
)

fake = Faker()


@pytest.fixture
def make_requirement() -> Callable[..., BusinessRequirement]:
    """Factory for requirements with the given entity lists"""
    def factory(
        forms: Optional[List] = None,
        processes: Optional[List] = None,
        integrations: Optional[List] = None,
        approvals: Optional[List] = None,
        **extra,
    ) -> BusinessRequirement:
        entities = {}
        if forms is not None:
            entities['forms'] = forms
        if processes is not None:
            entities['processes'] = processes
        if integrations is not None:
            entities['integrations'] = integrations
        if approvals is not None:
            entities['approvals'] = approvals
        return BusinessRequirement(
            id=f"req-{fake.uuid4()[:8]}",
            original_description=fake.paragraph(),
            application_name=fake.company(),
            extracted_entities=entities,
            **extra,
        )
    return factory


@pytest.fixture
def requirement(make_requirement) -> BusinessRequirement:
    """Two forms, one process, no integrations"""
    return make_requirement(
        forms=['Customer Intake', 'Order Form'],
        processes=['Order Approval'],
        approvals=['Manager sign-off'],
    )


@pytest.fixture
def application() -> GeneratedApplicationRef:
    return GeneratedApplicationRef(
        id=f"app-{fake.uuid4()[:8]}",
        name=fake.company(),
    )


@pytest.fixture
def options() -> OrchestrationOptions:
    """Fast options: parallel, two retries, no delay, short timeout"""
    return OrchestrationOptions(
        parallel=True,
        max_concurrency=3,
        retry_on_failure=True,
        max_retries=2,
        retry_delay=0.5,
        collaborator_timeout=5,
    )


@pytest.fixture
def template_suite(tmp_path):
    """The real template collaborators, deploying under tmp_path"""
    return default_collaborators(use_ai=False, workspace_root=str(tmp_path / 'generated'))


@pytest_asyncio.fixture
async def app(template_suite):
    """App with its lifespan running (broadcaster, orchestrator, job manager)"""
    application = create_app(collaborators=template_suite)
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac


@pytest.fixture
def start_payload(application) -> dict:
    """POST /orchestrations body"""
    return {
        'requirement': {
            'id': 'req-1',
            'application_name': 'CRM',
            'extracted_entities': {
                'forms': ['Customer Intake', 'Order Form'],
                'processes': ['Order Approval'],
            },
        },
        'application': {'id': application.id, 'name': application.name},
        'options': {'retry_delay': 0, 'generate_documentation': True},
    }
