from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "JobFunnel"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8788
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/jobfunnel.db"
    data_dir: Path = Path("./data")

    transition_max_retries: int = 3

    analytics_min_group_size: int = 2
    analytics_top_groups: int = 10
    analytics_series_months: int = 6
    analytics_top_companies: int = 5

    insight_low_response_rate: int = 20
    insight_slow_response_days: int = 14
    insight_planned_backlog: int = 5
    insight_success_rate: int = 10
    insight_company_success_rate: int = 30
    insight_method_gap: int = 10

    alert_min_applications: int = 5
    alert_response_gap: float = 20.0
    alert_interview_gap: float = 15.0
    alert_slow_factor: float = 1.5

    cors_origins: str = "http://127.0.0.1:8788"

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("transition_max_retries")
    @classmethod
    def validate_retries(cls, value: int) -> int:
        if value < 1:
            raise ValueError("transition_max_retries must be at least 1")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
