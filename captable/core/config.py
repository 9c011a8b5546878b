"""Configuration management for the cap table engine."""
from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

NotificationBackend = Literal["memory", "kafka", "webhook"]
TaskRunnerKind = Literal["inline", "thread"]


class Settings(BaseSettings):
    app_name: str = Field(default="Cap Table Engine")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")

    database_url: str = Field(default="postgresql+psycopg://captable:captable@db:5432/captable")
    database_echo: bool = Field(default=False)

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    task_runner: TaskRunnerKind = Field(default="thread")
    side_effect_workers: int = Field(default=4, ge=1)
    side_effect_max_attempts: int = Field(default=3, ge=1)
    side_effect_retry_delay_seconds: float = Field(default=0.5, ge=0)

    notification_backend: NotificationBackend = Field(default="memory")
    kafka_bootstrap_servers: str = Field(default="kafka:9092")
    transaction_events_topic: str = Field(default="cap-table-transaction-events")
    notification_webhook_url: str = Field(default="http://localhost:9020/notifications")
    notification_webhook_timeout_seconds: float = Field(default=5.0)

    audit_sink: Literal["database", "logging"] = Field(default="database")

    ownership_tolerance_pct: Decimal = Field(default=Decimal("0.02"))
    dilution_default_lookback_days: int = Field(default=365, ge=1)
    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["NotificationBackend", "Settings", "TaskRunnerKind", "get_settings"]
