"""
Tests for configuration, errors and rate limiting
=================================================
wordwise.config (engine tunables) and config_logging (process config,
structured logging, error types, request limiter).
"""

import json
import logging

import pytest

import config_logging
from config_logging import (
    AppConfig,
    MalformedResponseError,
    RateLimiter,
    RateLimitError,
    RemoteServiceError,
    StructuredLogger,
    ValidationError,
    WordWiseError,
    handle_errors,
)
from wordwise import config


class TestEngineConfig:
    """Tests for wordwise.config."""

    def test_defaults(self):
        """Test defaults need no file."""
        cfg = config.get_config()
        assert cfg.extractor.block_separator == ""
        assert cfg.scheduler.instant_delay == 0.0
        assert cfg.languagetool.enabled is False
        assert cfg.ai.max_batch_size == 10
        assert cfg.dedup.ai_priority > cfg.dedup.server_priority > cfg.dedup.client_priority

    def test_dot_get_and_set(self):
        """Test dot-notation access."""
        config.set('scheduler.fast_delay', 0.4)
        assert config.get('scheduler.fast_delay') == 0.4
        assert config.get('scheduler.missing', 'fallback') == 'fallback'

    def test_set_unknown_key(self):
        """Test unknown sections and keys raise."""
        with pytest.raises(ValueError):
            config.set('scheduler.nope', 1)
        with pytest.raises(ValueError):
            config.set('nowhere.fast_delay', 1)
        with pytest.raises(ValueError):
            config.set('scheduler', 1)

    def test_is_enabled(self):
        """Test section switches."""
        assert config.is_enabled('spelling')
        assert not config.is_enabled('languagetool')
        assert not config.is_enabled('unknown')

    def test_load_from_file(self, tmp_path):
        """Test a JSON file overrides defaults and unknown keys are ignored."""
        path = tmp_path / 'wordwise_config.json'
        path.write_text(json.dumps({
            'seo': {'title_min': 20, 'bogus': True},
            'scheduler': {'deep_delay': 5.0},
        }))
        cfg = config.load_config(path)
        assert cfg.seo.title_min == 20
        assert cfg.scheduler.deep_delay == 5.0
        assert config.get_config() is cfg

    def test_env_overrides(self, tmp_path, monkeypatch):
        """Test environment variables win over the file."""
        path = tmp_path / 'wordwise_config.json'
        path.write_text(json.dumps({'ai': {'daily_limit': 10}}))
        monkeypatch.setenv('WW_AI_DAILY_LIMIT', '25')
        monkeypatch.setenv('WW_STYLE_USE_PROSELINT', 'no')
        monkeypatch.setenv('WW_CACHE_MAX_SIZE', 'lots')
        monkeypatch.setenv('WW_AI_DETECT_ENABLED', 'true')

        cfg = config.load_config(path)
        assert cfg.ai.daily_limit == 25
        assert cfg.style.use_proselint is False
        assert cfg.cache.max_size == 1000
        assert cfg.ai.detect_enabled is True

    def test_to_dict_hides_api_key(self):
        """Test secrets are left out of serialized config."""
        config.set('llm.api_key', 'secret')
        data = config.to_dict()
        assert 'api_key' not in data['llm']
        assert data['llm']['model'] == 'gpt-4o-mini'

    def test_conflicting_pairs(self):
        """Test the conflict table is exposed as tuples."""
        assert ('spelling', 'grammar') in config.conflicting_pairs()


class TestAppConfig:
    """Tests for process configuration."""

    def test_from_env(self, monkeypatch):
        """Test environment parsing."""
        monkeypatch.setenv('WW_MAX_TEXT_CHARS', '500')
        monkeypatch.setenv('WW_RATE_LIMIT', 'false')
        cfg = AppConfig.from_env()
        assert cfg.max_text_chars == 500
        assert cfg.rate_limit_enabled is False

    def test_validate(self):
        """Test invalid settings are reported."""
        valid, errors = AppConfig().validate()
        assert valid and errors == []

        valid, errors = AppConfig(log_format='xml', max_text_chars=0).validate()
        assert not valid
        assert len(errors) == 2


class TestErrors:
    """Tests for the error hierarchy."""

    def test_to_dict(self):
        """Test the API error envelope."""
        error = ValidationError("bad text", field='text')
        data = error.to_dict()
        assert data['success'] is False
        assert data['error']['code'] == 'VALIDATION_ERROR'
        assert data['error']['details']['field'] == 'text'
        assert error.status_code == 400

    def test_remote_errors(self):
        """Test remote failures carry their service and status."""
        error = RemoteServiceError("down", service='llm', http_status=503)
        assert error.http_status == 503
        assert error.status_code == 502
        assert isinstance(MalformedResponseError("bad"), WordWiseError)

    def test_rate_limit(self):
        """Test retry_after is kept on the exception and in details."""
        error = RateLimitError(retry_after=30)
        assert error.retry_after == 30
        assert error.details['retry_after'] == 30
        assert error.status_code == 429

    def test_handle_errors(self):
        """Test unexpected exceptions are converted and ours pass through."""
        @handle_errors()
        def broken(kind):
            if kind == 'value':
                raise ValueError("nope")
            if kind == 'ours':
                raise RateLimitError()
            raise RuntimeError("boom")

        with pytest.raises(ValidationError):
            broken('value')
        with pytest.raises(RateLimitError):
            broken('ours')
        with pytest.raises(WordWiseError) as info:
            broken('runtime')
        assert info.value.code == 'ANALYZER_ERROR'


class TestRateLimiter:
    """Tests for the sliding-window request limiter."""

    def test_limit(self):
        """Test requests beyond the window allowance are refused."""
        limiter = RateLimiter(max_requests=2, window_seconds=60)
        assert limiter.is_allowed('client')
        assert limiter.is_allowed('client')
        assert not limiter.is_allowed('client')
        assert limiter.is_allowed('other')
        assert 0 < limiter.get_retry_after('client') <= 60

    def test_reset(self):
        """Test reset clears one key or all keys."""
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.is_allowed('a')
        limiter.is_allowed('b')
        limiter.reset('a')
        assert limiter.is_allowed('a')
        assert not limiter.is_allowed('b')
        limiter.reset()
        assert limiter.is_allowed('b')
        assert limiter.get_retry_after('unknown') == 0

    def test_global_limiter(self):
        """Test the shared limiter is built once from process config."""
        assert config_logging.get_rate_limiter() is config_logging.get_rate_limiter()


class TestStructuredLogger:
    """Tests for structured logging."""

    def test_reserved_keys_renamed(self, caplog):
        """Test context keys that collide with LogRecord fields are prefixed."""
        logger = config_logging.get_logger('wordwise.test')
        with caplog.at_level(logging.INFO, logger='wordwise.test'):
            logger.info("hello", module='spelling', tier='fast')
        record = caplog.records[-1]
        assert record.ctx_module == 'spelling'
        assert record.tier == 'fast'
        assert record.correlation_id

    def test_correlation_id(self):
        """Test ids are per thread and replaceable."""
        StructuredLogger.set_correlation_id('abc123')
        assert StructuredLogger.get_correlation_id() == 'abc123'
        new_id = StructuredLogger.new_correlation_id()
        assert StructuredLogger.get_correlation_id() == new_id

    def test_json_formatter(self):
        """Test records render as JSON with extra fields."""
        record = logging.LogRecord('wordwise', logging.INFO, __file__, 1, 'msg', None, None)
        record.tier = 'deep'
        data = json.loads(config_logging.JsonFormatter().format(record))
        assert data['message'] == 'msg'
        assert data['tier'] == 'deep'
        assert data['level'] == 'INFO'
