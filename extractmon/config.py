"""Runtime settings loaded from the environment."""

from datetime import timedelta
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MonitoringSettings(BaseSettings):
    """Schedule cadence, retention horizons and store location."""

    database_url: str = Field(default="sqlite:///extractmon.db")
    window_minutes: int = Field(default=5, ge=1, le=1440)
    raw_retention_days: int = Field(default=30, ge=1)
    rollup_retention_days: int = Field(default=90, ge=1)
    aggregation_timeout_seconds: float = Field(default=60.0, gt=0)
    retention_timeout_seconds: float = Field(default=300.0, gt=0)
    recent_alert_limit: int = Field(default=10, ge=1, le=100)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_json: bool = Field(default=False)

    model_config = SettingsConfigDict(env_prefix="EXTRACTMON_", env_file=".env", extra="ignore")

    @property
    def window_size(self) -> timedelta:
        return timedelta(minutes=self.window_minutes)

    @property
    def raw_retention(self) -> timedelta:
        return timedelta(days=self.raw_retention_days)

    @property
    def rollup_retention(self) -> timedelta:
        return timedelta(days=self.rollup_retention_days)
