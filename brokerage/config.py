"""Service and workflow engine configuration"""
import os
from typing import List, Optional

from pydantic import BaseModel, Field

from shared.enums import NotificationChannel, UnknownFieldPolicy


class NotificationSettings(BaseModel):
    enabled: bool = True
    channels: List[NotificationChannel] = [NotificationChannel.IN_APP]


class WorkflowConfig(BaseModel):
    """Tunables of the workflow engine"""
    max_retries: int = Field(default=3, ge=0)
    retry_delay_ms: int = Field(default=5000, ge=0)
    timeout_ms: int = Field(default=300000, gt=0)
    enable_auto_transitions: bool = True
    enable_real_time_updates: bool = True
    notifications: NotificationSettings = NotificationSettings()
    unknown_condition_fields: UnknownFieldPolicy = UnknownFieldPolicy.PASS
    # Upper bound on how long the worker sleeps between queue scans
    poll_interval_ms: int = Field(default=1000, gt=0)
    # Recipient of system alerts about permanently failed tasks
    admin_channel: str = "admin"


class Settings(BaseModel):
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    log_level: str = "INFO"
    auto_transition_rules: Optional[str] = None  # path to a YAML rule file
    run_worker: bool = True
    workflow: WorkflowConfig = WorkflowConfig()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def load_settings() -> Settings:
    """Build settings from environment variables"""
    defaults = WorkflowConfig()
    channels = os.getenv("WORKFLOW_NOTIFICATION_CHANNELS")
    notifications = NotificationSettings(
        enabled=_env_bool("WORKFLOW_NOTIFICATIONS_ENABLED",
                          defaults.notifications.enabled),
        channels=[c.strip() for c in channels.split(",") if c.strip()]
        if channels else defaults.notifications.channels,
    )
    workflow = WorkflowConfig(
        max_retries=_env_int("WORKFLOW_MAX_RETRIES", defaults.max_retries),
        retry_delay_ms=_env_int("WORKFLOW_RETRY_DELAY_MS",
                                defaults.retry_delay_ms),
        timeout_ms=_env_int("WORKFLOW_TIMEOUT_MS", defaults.timeout_ms),
        enable_auto_transitions=_env_bool("WORKFLOW_ENABLE_AUTO_TRANSITIONS",
                                          defaults.enable_auto_transitions),
        enable_real_time_updates=_env_bool(
            "WORKFLOW_ENABLE_REAL_TIME_UPDATES",
            defaults.enable_real_time_updates),
        notifications=notifications,
        unknown_condition_fields=os.getenv("WORKFLOW_UNKNOWN_CONDITION_FIELDS",
                                           defaults.unknown_condition_fields),
        poll_interval_ms=_env_int("WORKFLOW_POLL_INTERVAL_MS",
                                  defaults.poll_interval_ms),
        admin_channel=os.getenv("WORKFLOW_ADMIN_CHANNEL",
                                defaults.admin_channel),
    )
    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        redis_url=os.getenv("REDIS_URL"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        auto_transition_rules=os.getenv("AUTO_TRANSITION_RULES"),
        run_worker=_env_bool("RUN_WORKFLOW_WORKER", True),
        workflow=workflow,
    )
