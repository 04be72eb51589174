"""Unit tests for environment-driven settings"""
import pytest

from brokerage.config import WorkflowConfig, load_settings
from shared.enums import NotificationChannel, UnknownFieldPolicy


@pytest.mark.unit
def test_defaults(monkeypatch) -> None:
    for name in ("DATABASE_URL", "REDIS_URL", "LOG_LEVEL",
                 "AUTO_TRANSITION_RULES", "RUN_WORKFLOW_WORKER",
                 "WORKFLOW_MAX_RETRIES", "WORKFLOW_NOTIFICATION_CHANNELS"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.database_url is None
    assert settings.log_level == "INFO"
    assert settings.run_worker
    assert settings.workflow == WorkflowConfig()
    assert settings.workflow.max_retries == 3
    assert settings.workflow.retry_delay_ms == 5000
    assert settings.workflow.timeout_ms == 300000


@pytest.mark.unit
def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg://u:p@db/orders")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("RUN_WORKFLOW_WORKER", "false")
    monkeypatch.setenv("WORKFLOW_MAX_RETRIES", "5")
    monkeypatch.setenv("WORKFLOW_RETRY_DELAY_MS", "250")
    monkeypatch.setenv("WORKFLOW_ENABLE_AUTO_TRANSITIONS", "no")
    monkeypatch.setenv("WORKFLOW_NOTIFICATIONS_ENABLED", "0")
    monkeypatch.setenv("WORKFLOW_NOTIFICATION_CHANNELS", "in-app, email")
    monkeypatch.setenv("WORKFLOW_UNKNOWN_CONDITION_FIELDS", "fail")

    settings = load_settings()

    assert settings.database_url == "postgresql+psycopg://u:p@db/orders"
    assert settings.log_level == "DEBUG"
    assert not settings.run_worker
    workflow = settings.workflow
    assert workflow.max_retries == 5
    assert workflow.retry_delay_ms == 250
    assert not workflow.enable_auto_transitions
    assert not workflow.notifications.enabled
    assert workflow.notifications.channels == [
        NotificationChannel.IN_APP, NotificationChannel.EMAIL
    ]
    assert workflow.unknown_condition_fields == UnknownFieldPolicy.FAIL


@pytest.mark.unit
def test_invalid_values_are_rejected(monkeypatch) -> None:
    monkeypatch.setenv("WORKFLOW_MAX_RETRIES", "-1")
    with pytest.raises(ValueError):
        load_settings()
