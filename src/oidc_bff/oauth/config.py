"""OAuth client configuration for the session broker."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from oidc_bff.cookies.encryption import decode_key
from oidc_bff.utils.http import is_absolute_http_url

DEFAULT_SCOPES: tuple[str, ...] = ("openid", "profile", "email")
DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0

# Field name -> environment variable. Order is the order errors are reported in.
_REQUIRED_FIELDS: dict[str, str] = {
    "issuer": "AUTH_ISSUER",
    "client_id": "AUTH_CLIENT_ID",
    "client_secret": "AUTH_CLIENT_SECRET",
    "redirect_uri": "AUTH_REDIRECT_URI",
    "cookie_encryption_key": "COOKIE_ENCRYPTION_KEY",
}
_SCOPES_ENV = "AUTH_SCOPES"
_TIMEOUT_ENV = "AUTH_HTTP_TIMEOUT_SECONDS"
_CONFIG_PATH_ENV = "AUTH_CONFIG_PATH"


class ConfigError(RuntimeError):
    """A required setting is missing or invalid."""

    def __init__(self, message: str, field: str) -> None:
        super().__init__(message)
        self.field = field


@dataclass(frozen=True)
class OAuthConfig:
    """Immutable client registration for the single upstream identity provider."""

    issuer: str
    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str
    cookie_encryption_key: str = field(repr=False)
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS

    def get_normalized_issuer(self) -> str:
        """Return issuer with trailing slash removed."""
        return self.issuer.rstrip("/")


def _substitute_env_vars(value: str) -> str:
    """Substitute ${VAR} and $VAR patterns with environment variables."""

    def replace(match: re.Match[str]) -> str:
        var_name = match.group(1) or match.group(2)
        return os.environ.get(var_name, match.group(0))

    pattern = r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)"
    return re.sub(pattern, replace, value)


def _project_root() -> Path:
    """Resolve project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").exists():
            return parent
    return current.parents[3]


def _load_file_block(config_path: str | Path) -> dict[str, Any]:
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"OAuth config file not found: {path}", field=_CONFIG_PATH_ENV)

    with open(path, "r", encoding="utf-8") as f:
        raw_data = yaml.safe_load(f) or {}

    block = raw_data.get("oauth", {}) if isinstance(raw_data, dict) else None
    if not isinstance(block, dict):
        raise ConfigError(f"{path}: 'oauth' must be a mapping", field=_CONFIG_PATH_ENV)

    processed: dict[str, Any] = {}
    for key, value in block.items():
        if isinstance(value, str):
            processed[key] = _substitute_env_vars(value)
        elif isinstance(value, list):
            processed[key] = [
                _substitute_env_vars(v) if isinstance(v, str) else v for v in value
            ]
        else:
            processed[key] = value
    return processed


def _lookup(env_key: str, file_data: dict[str, Any], file_key: str) -> Any:
    env_value = os.getenv(env_key)
    if env_value is not None and env_value.strip():
        return env_value
    return file_data.get(file_key)


def _normalize_scopes(raw_scopes: Any) -> tuple[str, ...]:
    if raw_scopes is None:
        return DEFAULT_SCOPES
    if isinstance(raw_scopes, str):
        items = raw_scopes.split()
    elif isinstance(raw_scopes, list):
        items = []
        for raw_scope in raw_scopes:
            if not isinstance(raw_scope, str):
                raise ConfigError("scopes must contain only strings", field=_SCOPES_ENV)
            items.extend(raw_scope.split())
    else:
        raise ConfigError("scopes must be a string or list of strings", field=_SCOPES_ENV)
    return tuple(items) or DEFAULT_SCOPES


def _parse_timeout(raw: Any) -> float:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return DEFAULT_HTTP_TIMEOUT_SECONDS
    try:
        timeout = float(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{_TIMEOUT_ENV} must be a number, got {raw!r}", field=_TIMEOUT_ENV)
    if timeout <= 0:
        raise ConfigError(f"{_TIMEOUT_ENV} must be positive", field=_TIMEOUT_ENV)
    return timeout


def load_oauth_config(config_path: str | Path | None = None) -> OAuthConfig:
    """Build the OAuth client configuration from the environment.

    Values come from environment variables (``.env`` is loaded first), falling
    back to the ``oauth:`` block of an optional YAML file given by
    ``config_path`` or ``AUTH_CONFIG_PATH``. Raises :class:`ConfigError`
    naming the first missing or invalid setting.
    """
    load_dotenv(dotenv_path=_project_root() / ".env")
    path = config_path or os.getenv(_CONFIG_PATH_ENV)
    file_data = _load_file_block(path) if path else {}

    values: dict[str, str] = {}
    for field_name, env_key in _REQUIRED_FIELDS.items():
        raw = _lookup(env_key, file_data, field_name)
        value = str(raw).strip() if raw is not None else ""
        if not value:
            raise ConfigError(f"{env_key} is required", field=env_key)
        values[field_name] = value

    for field_name in ("issuer", "redirect_uri"):
        if not is_absolute_http_url(values[field_name]):
            env_key = _REQUIRED_FIELDS[field_name]
            raise ConfigError(
                f"{env_key} must be an absolute http(s) URL", field=env_key
            )

    try:
        decode_key(values["cookie_encryption_key"])
    except ValueError as exc:
        raise ConfigError(
            f"COOKIE_ENCRYPTION_KEY is invalid: {exc}", field="COOKIE_ENCRYPTION_KEY"
        ) from exc

    return OAuthConfig(
        issuer=values["issuer"],
        client_id=values["client_id"],
        client_secret=values["client_secret"],
        redirect_uri=values["redirect_uri"],
        cookie_encryption_key=values["cookie_encryption_key"],
        scopes=_normalize_scopes(_lookup(_SCOPES_ENV, file_data, "scopes")),
        http_timeout_seconds=_parse_timeout(
            _lookup(_TIMEOUT_ENV, file_data, "http_timeout_seconds")
        ),
    )
