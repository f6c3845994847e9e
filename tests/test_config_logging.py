"""
Tests for Configuration & Logging
=================================
"""

import json
import logging

import pytest

from config_logging import (
    AppConfig,
    AuditReviewError,
    StructuredLogger,
    ValidationError,
    ProcessingError,
    get_config,
    reset_config,
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove PAR_* overrides and reset the cached config."""
    for key in ('PAR_HOST', 'PAR_PORT', 'PAR_DEBUG', 'PAR_MAX_DOCUMENT', 'PAR_DIFF_STRATEGY',
                'PAR_LOG_LEVEL', 'PAR_LOG_FORMAT', 'PAR_LOG_TO_FILE', 'PAR_LOG_DIR', 'PAR_ENV'):
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield monkeypatch
    reset_config()


class TestAppConfig:

    def test_defaults(self, clean_env):
        config = AppConfig.from_env()
        assert config.host == '127.0.0.1'
        assert config.port == 5060
        assert config.debug is False
        assert config.diff_strategy == 'lookahead'
        assert config.log_to_file is False
        assert config.validate() == (True, [])

    def test_env_overrides(self, clean_env):
        clean_env.setenv('PAR_PORT', '8080')
        clean_env.setenv('PAR_DEBUG', 'true')
        clean_env.setenv('PAR_DIFF_STRATEGY', 'Optimal')
        clean_env.setenv('PAR_LOG_FORMAT', 'text')
        config = get_config()
        assert config.port == 8080
        assert config.debug is True
        assert config.diff_strategy == 'optimal'
        assert config.log_format == 'text'

    def test_get_config_is_cached(self, clean_env):
        assert get_config() is get_config()

    def test_production_disables_debug(self, clean_env):
        clean_env.setenv('PAR_ENV', 'production')
        clean_env.setenv('PAR_DEBUG', 'true')
        config = AppConfig.from_env()
        assert config.debug is False
        assert config.log_level == 'WARNING'

    def test_validate_reports_errors(self, clean_env):
        config = AppConfig(port=0, diff_strategy='myers', log_format='xml',
                           log_level='LOUD', max_content_length=-1)
        is_valid, errors = config.validate()
        assert is_valid is False
        assert len(errors) == 5


class TestStructuredLogger:

    def test_json_file_output(self, clean_env, tmp_path):
        config = AppConfig(log_to_file=True, log_to_console=False, log_dir=tmp_path)
        logger = StructuredLogger('par.test', config)
        StructuredLogger.set_correlation_id('abc123')
        try:
            logger.info('diff computed', parts=7)
        finally:
            for handler in logger.logger.handlers:
                handler.close()

        record = json.loads((tmp_path / 'par.test.log').read_text(encoding='utf-8').splitlines()[-1])
        assert record['message'] == 'diff computed'
        assert record['level'] == 'INFO'
        assert record['parts'] == 7
        assert record['correlation_id'] == 'abc123'

    def test_log_operation_reraises(self, clean_env, caplog):
        logger = StructuredLogger('par.ops', AppConfig(log_to_console=False))
        with caplog.at_level(logging.ERROR, logger='par.ops'):
            with pytest.raises(RuntimeError):
                with logger.log_operation('annotate'):
                    raise RuntimeError('boom')
        assert 'annotate failed: boom' in caplog.text

    def test_new_correlation_id(self):
        correlation_id = StructuredLogger.new_correlation_id()
        assert StructuredLogger.get_correlation_id() == correlation_id


class TestErrors:

    def test_validation_error(self):
        error = ValidationError('bad input', field='document')
        assert isinstance(error, AuditReviewError)
        assert error.status_code == 400
        assert error.to_dict() == {
            'success': False,
            'error': {'code': 'VALIDATION_ERROR', 'message': 'bad input', 'details': {'field': 'document'}},
        }

    def test_processing_error(self):
        error = ProcessingError('failed', stage='optimal_diff')
        assert error.status_code == 500
        assert error.details == {'stage': 'optimal_diff'}
