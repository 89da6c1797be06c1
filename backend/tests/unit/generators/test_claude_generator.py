"""
Unit Tests for the Claude-backed generator and the default collaborator suite
"""
from types import MappingProxyType
from unittest.mock import patch

import pytest

from bizforge.core.exceptions import CollaboratorError
from bizforge.modules.generators import default_collaborators
from bizforge.modules.generators.base import GenerationContext
from bizforge.modules.generators.claude_generator import ClaudeGenerator
from bizforge.modules.generators.templates import SchemaTemplateGenerator
from bizforge.modules.generators.validation import CodeValidator
from bizforge.modules.orchestrator.plan_builder import build_plan
from bizforge.schemas.orchestration import OrchestrationOptions
from bizforge.utils.response_parser import PlainTextParser

from tests.mocks.mock_claude import MockClaudeClient


@pytest.fixture
def context(requirement):
    plan = build_plan(requirement)
    return GenerationContext(
        job_id='crm-app',
        plan=plan,
        options=OrchestrationOptions(),
        item=plan.components[0],
        artifacts=MappingProxyType({'api_endpoints': {'customer_intake.get.ts': '...'}, 'tests': {}}),
    )


class TestClaudeGenerator:

    @pytest.mark.asyncio
    async def test_parses_file_blocks(self, requirement, context):
        client = MockClaudeClient([
            '<file path="CustomerIntake.tsx">\n```tsx\nexport default function CustomerIntake() {}\n```\n</file>'
        ])
        files = await ClaudeGenerator('components', client=client).generate(requirement, context)

        assert files == {'CustomerIntake.tsx': 'export default function CustomerIntake() {}\n'}
        assert client.call_count == 1

    @pytest.mark.asyncio
    async def test_prompt_carries_item_and_upstream_files(self, requirement, context):
        client = MockClaudeClient()
        await ClaudeGenerator('components', client=client).generate(requirement, context)

        assert 'React + TypeScript component' in client.last_prompt
        assert '"name": "Customer Intake"' in client.last_prompt
        assert 'customer_intake.get.ts' in client.last_prompt
        assert '"tests"' not in client.last_prompt
        assert '<file path=' in client.last_system

    @pytest.mark.asyncio
    async def test_answer_without_files_is_a_failure(self, requirement, context):
        client = MockClaudeClient(['Sorry, I cannot help with that.'])
        with pytest.raises(CollaboratorError):
            await ClaudeGenerator('components', client=client).generate(requirement, context)

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            ClaudeGenerator('visual_assets')

    def test_name(self):
        assert ClaudeGenerator('database_schema', client=MockClaudeClient()).name == 'claude-database-schema'


class TestResponseParser:

    def test_blocks_without_path_are_skipped(self):
        files = PlainTextParser.parse_file_blocks('<file>orphan</file><file path="a.sql">create</file>')
        assert files == {'a.sql': 'create\n'}

    def test_last_block_wins(self):
        files = PlainTextParser.parse_file_blocks('<file path="a.sql">one</file><file path="a.sql">two</file>')
        assert files == {'a.sql': 'two\n'}


class TestDefaultCollaborators:

    def test_template_suite(self, tmp_path):
        suite = default_collaborators(use_ai=False, workspace_root=str(tmp_path))

        assert isinstance(suite.database, SchemaTemplateGenerator)
        assert isinstance(suite.validator, CodeValidator)
        assert suite.tests is not None
        assert suite.visual_assets is None
        assert suite.deployer.workspace_root == tmp_path

    def test_ai_suite(self, tmp_path):
        with patch('bizforge.modules.generators.claude_generator.ClaudeClient'):
            suite = default_collaborators(use_ai=True, workspace_root=str(tmp_path))

        assert isinstance(suite.components, ClaudeGenerator)
        assert suite.components.category == 'components'
        assert suite.documentation.name == 'documentation'
