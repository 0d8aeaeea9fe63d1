from functools import lru_cache
import json
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


def _split_list(value: str) -> list[str]:
    stripped = value.strip()
    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        except json.JSONDecodeError:
            pass
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    # Resolve to backend/.env so `uvicorn --app-dir backend` works from any cwd.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8")

    project_name: str = "TimeGrid API"
    api_prefix: str = "/api"
    log_level: str = "INFO"

    database_url: str = "sqlite+pysqlite:///./timegrid.db"

    default_days: list[str] = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
    default_periods_per_day: int = 8
    default_break_periods: list[int] = [3]
    default_lunch_period: int | None = 5
    default_lab_contiguous_periods: int = 1
    default_lab_station_count: int = 4

    search_node_budget: int = 250_000
    search_time_limit_seconds: float = 30.0
    serialize_generation_runs: bool = True

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("cors_origins", "default_days", mode="before")
    @classmethod
    def split_string_lists(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return _split_list(value)
        return value

    @field_validator("default_break_periods", mode="before")
    @classmethod
    def split_break_periods(cls, value: str | list[int]) -> list[int]:
        if isinstance(value, str):
            return [int(item) for item in _split_list(value)]
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
