"""Tests for configuration settings."""
import pytest
from pydantic import ValidationError

from node_registry import Readiness
from workflow_runtime.config.settings import Settings, get_settings, reset_settings


class TestSettings:
    """Test Settings configuration."""

    def test_settings_default_values(self, monkeypatch):
        monkeypatch.delenv("WORKFLOW_REDIS_URL", raising=False)

        settings = Settings()

        # Note: env is set to 'test' in conftest.py
        assert settings.env in ("development", "test")
        assert settings.log_level == "INFO"
        assert settings.default_readiness == Readiness.ANY_INPUT
        assert settings.max_node_executions == 1000
        assert settings.propagate_empty_batches is False
        assert settings.http_timeout_s == 30.0
        assert settings.run_store_backend == "memory"
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.run_history_limit == 50
        assert settings.retained_runs == 100

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("WORKFLOW_DEFAULT_READINESS", "all_inputs")
        monkeypatch.setenv("WORKFLOW_MAX_NODE_EXECUTIONS", "25")
        monkeypatch.setenv("WORKFLOW_PROPAGATE_EMPTY_BATCHES", "true")
        monkeypatch.setenv("WORKFLOW_RUN_STORE_BACKEND", "REDIS")
        monkeypatch.setenv("WORKFLOW_RETAINED_RUNS", "10")

        settings = Settings()

        assert settings.default_readiness == Readiness.ALL_INPUTS
        assert settings.max_node_executions == 25
        assert settings.propagate_empty_batches is True
        assert settings.run_store_backend == "redis"
        assert settings.retained_runs == 10

    @pytest.mark.parametrize(
        "field,value",
        [
            ("max_node_executions", 0),
            ("run_history_limit", -1),
            ("retained_runs", 0),
            ("http_timeout_s", 0),
            ("run_store_backend", "postgres"),
            ("default_readiness", "some_inputs"),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})

    def test_get_settings_is_cached(self):
        first = get_settings()

        assert get_settings() is first

        reset_settings()
        assert get_settings() is not first
