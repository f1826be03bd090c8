import pytest
from askql.config import Settings, WorkflowConfig, get_settings
from askql.config_constants import CONFIDENCE_THRESHOLD, MAX_RETRY_COUNT, LogLevel


## test for import and loading settings
def test_get_settings():
    settings = get_settings()
    assert settings is not None
    assert settings.workflow.max_result_rows > 0
    assert settings.workflow.execution_timeout_seconds > 0
    assert settings.llm.temperature >= 0.0
    assert settings.app.log_level in LogLevel

## test for singleton
def test_get_settings_singleton():
    settings1 = get_settings()
    settings2 = get_settings()
    assert settings1 is settings2

## test for nested env overrides
def test_nested_env_override(monkeypatch):
    monkeypatch.setenv("WORKFLOW__MAX_RESULT_ROWS", "25")
    monkeypatch.setenv("DATABASE__DEFAULT_SCHEMA", "sales")
    settings = Settings()
    assert settings.workflow.max_result_rows == 25
    assert settings.database.default_schema == "sales"

## routing policy is fixed, not configurable
def test_routing_constants():
    assert CONFIDENCE_THRESHOLD == 70
    assert MAX_RETRY_COUNT == 2
    assert not hasattr(WorkflowConfig(), "confidence_threshold")
