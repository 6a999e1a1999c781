import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="ADAPTIVE_DATABASE_URL")
    database_pool_size: int = Field(10, alias="ADAPTIVE_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="ADAPTIVE_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="ADAPTIVE_DATABASE_ECHO")
    processing_interval_minutes: int = Field(60, ge=1, alias="ADAPTIVE_PROCESSING_INTERVAL_MINUTES")
    daily_processing_hour: int = Field(2, ge=0, le=23, alias="ADAPTIVE_DAILY_PROCESSING_HOUR")
    scheduler_timezone: Optional[str] = Field(None, alias="ADAPTIVE_SCHEDULER_TIMEZONE")
    activity_window_hours: int = Field(24, ge=1, alias="ADAPTIVE_ACTIVITY_WINDOW_HOURS")
    analytics_retention_days: int = Field(365, ge=1, alias="ADAPTIVE_ANALYTICS_RETENTION_DAYS")
    recommendation_refill_threshold: int = Field(3, ge=0, alias="ADAPTIVE_RECOMMENDATION_REFILL_THRESHOLD")
    recommendation_target_count: int = Field(5, ge=0, alias="ADAPTIVE_RECOMMENDATION_TARGET_COUNT")
    adaptation_rule_category: str = Field("General", alias="ADAPTIVE_RULE_CATEGORY")
    sweep_max_workers: int = Field(1, ge=1, alias="ADAPTIVE_SWEEP_MAX_WORKERS")
    catch_up_missed_windows: bool = Field(False, alias="ADAPTIVE_CATCH_UP_MISSED_WINDOWS")
    run_on_startup: bool = Field(True, alias="ADAPTIVE_RUN_ON_STARTUP")
    seed_default_rules: bool = Field(True, alias="ADAPTIVE_SEED_DEFAULT_RULES")
    debug_endpoints: bool = Field(False, alias="ADAPTIVE_DEBUG_ENDPOINTS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid engine configuration: {exc}") from exc
