"""
Unit Tests for the code validator and the local deployer
"""
import json

import pytest

from bizforge.core.exceptions import DeploymentError
from bizforge.modules.generators.deployment import LocalDeployer, application_slug, safe_relative_path
from bizforge.modules.generators.validation import CodeValidator
from bizforge.schemas.orchestration import GeneratedApplicationRef, GeneratedCode


class TestCodeValidator:

    @pytest.mark.asyncio
    async def test_clean_code_passes(self):
        code = GeneratedCode(
            components={'A.tsx': 'export default function A() {}\n'},
            tests={'A.test.tsx': "it('renders', () => {});\n"},
        )
        report = await CodeValidator().validate(code)
        assert report.passed
        assert report.errors == []
        assert report.suggestions == []

    @pytest.mark.asyncio
    async def test_errors(self):
        code = GeneratedCode(
            components={'A.tsx': 'function A() {}\n', 'B.tsx': '   \n'},
        )
        report = await CodeValidator().validate(code)

        assert not report.passed
        assert 'components/A.tsx: component has no default export' in report.errors
        assert 'components/B.tsx: file is empty' in report.errors

    @pytest.mark.asyncio
    async def test_warnings_do_not_fail(self):
        code = GeneratedCode(
            api_endpoints={'a.get.ts': "console.log('debug');\n"},
            documentation={'README.md': 'line\n' * 20},
        )
        report = await CodeValidator(max_file_lines=10).validate(code)

        assert report.passed
        assert 'api_endpoints/a.get.ts: leftover debug statement' in report.warnings
        assert 'documentation/README.md: 20 lines (over 10)' in report.warnings

    @pytest.mark.asyncio
    async def test_suggests_tests(self):
        report = await CodeValidator().validate(GeneratedCode(components={'A.tsx': 'export default 1\n'}))
        assert report.suggestions == ['Enable generate_tests to add component tests']


class TestApplicationSlug:

    @pytest.mark.parametrize('application_id, slug', [
        ('crm-app', 'crm-app'),
        ('My CRM App', 'my-crm-app'),
        ('  Acme__Portal!! ', 'acme-portal'),
    ])
    def test_sanitises(self, application_id, slug):
        assert application_slug(application_id) == slug

    @pytest.mark.parametrize('application_id', ['ab', '!!!', 'x' * 51])
    def test_rejects_bad_lengths(self, application_id):
        with pytest.raises(DeploymentError):
            application_slug(application_id)

    @pytest.mark.parametrize('filename', ['../etc/passwd', 'a/../../b', ''])
    def test_unsafe_paths(self, filename):
        with pytest.raises(DeploymentError):
            safe_relative_path(filename)

    def test_absolute_path_is_made_relative(self):
        assert safe_relative_path('/components/A.tsx').as_posix() == 'components/A.tsx'


class TestLocalDeployer:

    @pytest.mark.asyncio
    async def test_writes_files_and_manifest(self, tmp_path, requirement):
        deployer = LocalDeployer(workspace_root=str(tmp_path), base_url='http://apps.test/')
        code = GeneratedCode(
            components={'A.tsx': 'export default 1\n'},
            documentation={'README.md': '# CRM\n'},
        )
        application = GeneratedApplicationRef(id='CRM App', name='CRM')

        result = await deployer.deploy(requirement, application, {'target': 'docker'}, code)

        assert result.deployment_url == 'http://apps.test/crm-app'
        assert (tmp_path / 'crm-app' / 'components' / 'A.tsx').read_text() == 'export default 1\n'
        assert (tmp_path / 'crm-app' / 'documentation' / 'README.md').exists()

        manifest = json.loads((tmp_path / 'crm-app' / 'deployment.json').read_text())
        assert manifest['application_id'] == 'CRM App'
        assert manifest['files'] == 2
        assert manifest['config'] == {'target': 'docker'}
        assert result.details['files'] == 2

    @pytest.mark.asyncio
    async def test_invalid_application_id(self, tmp_path, requirement):
        deployer = LocalDeployer(workspace_root=str(tmp_path))
        with pytest.raises(DeploymentError):
            await deployer.deploy(requirement, GeneratedApplicationRef.model_construct(id='x'), {}, GeneratedCode())
