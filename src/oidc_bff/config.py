"""Configuration management for the BFF session broker process."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class ServerSettings(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3000, ge=1, le=65535)
    environment: str = Field(
        default="development",
        description="Deployment environment; 'production' turns on Secure cookies.",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"


class CookieSettings(BaseModel):
    secure: bool = Field(
        default=False,
        description="Only send session cookies over HTTPS.",
    )
    auth_path: str = Field(
        default="/api/auth",
        description="Path the refresh-token cookie is scoped to.",
    )

    @field_validator("auth_path")
    @classmethod
    def _validate_auth_path(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith("/"):
            raise ValueError("cookie auth_path must start with '/'")
        return value.rstrip("/") or "/"


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cookies: CookieSettings = Field(default_factory=CookieSettings)


ENV_KEYS = {
    "host": "BFF_HOST",
    "port": "BFF_PORT",
    "environment": "APP_ENV",
    "cookie_secure": "COOKIE_SECURE",
    "cookie_auth_path": "COOKIE_AUTH_PATH",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    if candidate.is_absolute():
        return str(candidate.resolve())
    return str((_project_root() / candidate).resolve())


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])
    environment = os.getenv(ENV_KEYS["environment"], ServerSettings().environment)

    settings_data: dict[str, object] = {
        "server": {
            "host": os.getenv(ENV_KEYS["host"], ServerSettings().host),
            "port": _env_int(ENV_KEYS["port"], ServerSettings().port),
            "environment": environment,
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "cookies": {
            "secure": _env_bool(
                ENV_KEYS["cookie_secure"],
                environment.strip().lower() == "production",
            ),
            "auth_path": os.getenv(ENV_KEYS["cookie_auth_path"], CookieSettings().auth_path),
        },
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc
