"""
Unit Tests for exceptions, logging helpers and middleware helpers
"""
import json
import logging

import pytest

from bizforge.core.exceptions import (
    CollaboratorTimeoutError,
    JobAlreadyExistsError,
    JobNotFoundError,
    StageFailedError,
    error_response,
)
from bizforge.core.logging_config import (
    JSONFormatter,
    get_job_id,
    logger,
    set_job_id,
    set_request_id,
)
from bizforge.core.middleware import job_id_from_path, should_skip_logging


class TestExceptions:

    def test_not_found(self):
        error = JobNotFoundError('crm-app')
        assert error.status_code == 404
        assert error.code == 'JOB_NOT_FOUND'
        assert error_response(error) == {
            'success': False,
            'error': {
                'code': 'JOB_NOT_FOUND',
                'message': "Job with ID 'crm-app' not found",
                'details': {'resource_type': 'Job', 'resource_id': 'crm-app'},
            },
        }

    def test_conflict(self):
        assert JobAlreadyExistsError('crm-app').status_code == 409

    def test_timeout_details(self):
        error = CollaboratorTimeoutError('api', 1.5, item='GET /api/a')
        assert error.code == 'COLLABORATOR_TIMEOUT'
        assert error.details == {'collaborator': 'api', 'item': 'GET /api/a', 'attempts': 1, 'timeout_seconds': 1.5}
        assert error.message == 'api timed out after 1.5s'

    def test_stage_failed_keeps_errors(self):
        error = StageFailedError('generating_api', ['a', 'b'])
        assert error.errors == ['a', 'b']
        assert error.message == "Stage 'generating_api' failed: a; b"


class TestLogging:

    def test_structured_helpers(self, caplog):
        with caplog.at_level(logging.DEBUG, logger='bizforge'):
            logger.log_stage_event('crm-app', 'generating_api', 'started', progress=35)
            logger.log_collaborator_event('api', 'retrying', attempt=2, item='GET /api/a')

        stage_record, collaborator_record = caplog.records[-2:]
        assert stage_record.getMessage() == '[Pipeline] crm-app: generating_api started (35%)'
        assert stage_record.stage == 'generating_api'
        assert collaborator_record.levelno == logging.WARNING
        assert "for 'GET /api/a'" in collaborator_record.getMessage()

    def test_json_formatter_includes_context(self):
        set_request_id('req-1')
        set_job_id('crm-app')
        try:
            record = logging.LogRecord('bizforge', logging.INFO, __file__, 1, 'hello', None, None)
            record.stage = 'analyzing'
            data = json.loads(JSONFormatter().format(record))
        finally:
            set_request_id('')
            set_job_id('')

        assert data['message'] == 'hello'
        assert data['request_id'] == 'req-1'
        assert data['job_id'] == 'crm-app'
        assert data['stage'] == 'analyzing'
        assert get_job_id() == ''


class TestMiddlewareHelpers:

    @pytest.mark.parametrize('path, job_id', [
        ('/api/v1/orchestrations/crm-app', 'crm-app'),
        ('/api/v1/orchestrations/crm-app/plan', 'crm-app'),
        ('/api/v1/orchestrations', ''),
        ('/api/v1/health', ''),
    ])
    def test_job_id_from_path(self, path, job_id):
        assert job_id_from_path(path) == job_id

    def test_health_is_not_logged(self):
        assert should_skip_logging('/api/v1/health')
        assert not should_skip_logging('/api/v1/orchestrations')
