from functools import lru_cache
import json
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"

LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _parse_origin_list(raw: str) -> list[str]:
    text = raw.strip()
    if text.startswith("["):
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, list):
            return [str(item).strip() for item in decoded if str(item).strip()]
    return [item.strip() for item in text.split(",") if item.strip()]


class Settings(BaseSettings):
    # backend/.env regardless of the working directory uvicorn is started from.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8")

    project_name: str = "Lecture Portal API"
    api_prefix: str = "/api"
    log_level: str = "INFO"
    database_url: str = "sqlite:///./lecture_portal.db"

    # Access tokens and password hashing.
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 12
    bcrypt_rounds: int = 12

    # In-memory limits for the public auth routes.
    auth_rate_limit_window_seconds: int = 300
    auth_rate_limit_register_max_requests: int = 8
    auth_rate_limit_login_max_requests: int = 12

    # Outbound mail for leave and substitution notices.
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_from_email: str | None = None
    smtp_from_name: str = "Lecture Portal"
    smtp_use_tls: bool = True
    smtp_use_ssl: bool = False
    smtp_retry_attempts: int = 2
    smtp_retry_backoff_seconds: float = 1.0
    smtp_timeout_seconds: int = 15

    sse_retry_ms: int = 3000
    sse_heartbeat_seconds: float = 25.0

    # Lectures a substitute may hold on one day, own timetable included.
    substitute_max_daily_load: int = 4

    max_request_size_bytes: int = 1_000_000
    security_enable_hsts: bool = False
    security_hsts_max_age_seconds: int = 31536000
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(LOG_LEVELS)}")
        return level

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: str | list[str]) -> list[str]:
        return _parse_origin_list(value) if isinstance(value, str) else value


@lru_cache
def get_settings() -> Settings:
    return Settings()
