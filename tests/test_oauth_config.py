from __future__ import annotations

from pathlib import Path

import pytest

from oidc_bff.cookies.encryption import generate_key
from oidc_bff.oauth import config as oauth_config_module
from oidc_bff.oauth.config import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_SCOPES,
    ConfigError,
    load_oauth_config,
)


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(oauth_config_module, "load_dotenv", lambda **_: None)


@pytest.fixture
def full_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    values = {
        "AUTH_ISSUER": "https://idp.example.com/",
        "AUTH_CLIENT_ID": "bff-client",
        "AUTH_CLIENT_SECRET": "bff-secret",
        "AUTH_REDIRECT_URI": "https://app.example.com/auth/callback",
        "COOKIE_ENCRYPTION_KEY": generate_key(),
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return values


def test_load_from_environment(full_env: dict[str, str]) -> None:
    config = load_oauth_config()

    assert config.issuer == "https://idp.example.com/"
    assert config.get_normalized_issuer() == "https://idp.example.com"
    assert config.client_id == "bff-client"
    assert config.scopes == DEFAULT_SCOPES
    assert config.http_timeout_seconds == DEFAULT_HTTP_TIMEOUT_SECONDS


def test_repr_hides_secrets(full_env: dict[str, str]) -> None:
    text = repr(load_oauth_config())
    assert "bff-secret" not in text
    assert full_env["COOKIE_ENCRYPTION_KEY"] not in text


@pytest.mark.parametrize(
    "missing",
    [
        "AUTH_ISSUER",
        "AUTH_CLIENT_ID",
        "AUTH_CLIENT_SECRET",
        "AUTH_REDIRECT_URI",
        "COOKIE_ENCRYPTION_KEY",
    ],
)
def test_missing_required_field_is_named(
    full_env: dict[str, str], monkeypatch: pytest.MonkeyPatch, missing: str
) -> None:
    monkeypatch.delenv(missing)
    with pytest.raises(ConfigError, match=f"{missing} is required") as exc_info:
        load_oauth_config()
    assert exc_info.value.field == missing


def test_blank_required_field_counts_as_missing(
    full_env: dict[str, str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("AUTH_CLIENT_ID", "   ")
    with pytest.raises(ConfigError, match="AUTH_CLIENT_ID is required"):
        load_oauth_config()


def test_scopes_and_timeout_overrides(
    full_env: dict[str, str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("AUTH_SCOPES", "openid  offline_access")
    monkeypatch.setenv("AUTH_HTTP_TIMEOUT_SECONDS", "2.5")
    config = load_oauth_config()
    assert config.scopes == ("openid", "offline_access")
    assert config.http_timeout_seconds == 2.5


@pytest.mark.parametrize("timeout", ["soon", "0", "-1"])
def test_invalid_timeout(
    full_env: dict[str, str], monkeypatch: pytest.MonkeyPatch, timeout: str
) -> None:
    monkeypatch.setenv("AUTH_HTTP_TIMEOUT_SECONDS", timeout)
    with pytest.raises(ConfigError) as exc_info:
        load_oauth_config()
    assert exc_info.value.field == "AUTH_HTTP_TIMEOUT_SECONDS"


def test_invalid_cookie_key(full_env: dict[str, str], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COOKIE_ENCRYPTION_KEY", "too-short")
    with pytest.raises(ConfigError, match="COOKIE_ENCRYPTION_KEY is invalid"):
        load_oauth_config()


@pytest.mark.parametrize("variable", ["AUTH_ISSUER", "AUTH_REDIRECT_URI"])
def test_relative_urls_rejected(
    full_env: dict[str, str], monkeypatch: pytest.MonkeyPatch, variable: str
) -> None:
    monkeypatch.setenv(variable, "/not/absolute")
    with pytest.raises(ConfigError, match="absolute http"):
        load_oauth_config()


def test_load_from_yaml_file_with_substitution(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    key = generate_key()
    monkeypatch.setenv("TEST_BFF_SECRET", "from-env")
    monkeypatch.setenv("COOKIE_ENCRYPTION_KEY", key)
    config_file = tmp_path / "oauth.yaml"
    config_file.write_text(
        "oauth:\n"
        "  issuer: https://idp.example.com\n"
        "  client_id: yaml-client\n"
        "  client_secret: ${TEST_BFF_SECRET}\n"
        "  redirect_uri: https://app.example.com/cb\n"
        "  cookie_encryption_key: ignored-because-env-wins\n"
        "  scopes: [openid, email]\n"
        "  http_timeout_seconds: 5\n",
        encoding="utf-8",
    )

    config = load_oauth_config(config_file)

    assert config.client_id == "yaml-client"
    assert config.client_secret == "from-env"
    assert config.cookie_encryption_key == key
    assert config.scopes == ("openid", "email")
    assert config.http_timeout_seconds == 5.0


def test_config_path_from_environment(
    full_env: dict[str, str], tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_file = tmp_path / "oauth.yaml"
    config_file.write_text("oauth:\n  scopes: openid\n", encoding="utf-8")
    monkeypatch.setenv("AUTH_CONFIG_PATH", str(config_file))
    assert load_oauth_config().scopes == ("openid",)


def test_missing_config_file(full_env: dict[str, str], tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_oauth_config(tmp_path / "absent.yaml")


def test_oauth_block_must_be_mapping(full_env: dict[str, str], tmp_path: Path) -> None:
    config_file = tmp_path / "oauth.yaml"
    config_file.write_text("oauth:\n  - issuer\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="must be a mapping"):
        load_oauth_config(config_file)
