from __future__ import annotations

import asyncio
import contextlib
import os
from typing import Any

import jwt
import pytest

from oidc_bff.cookies.encryption import generate_key
from oidc_bff.oauth.config import OAuthConfig
from oidc_bff.oauth.discovery import DiscoveryCache, DiscoveryDocument, clear_discovery_cache

ISSUER = "https://idp.example.com"
TEST_SIGNING_SECRET = "test-signing-secret-with-enough-entropy-0123456789"

_AUTH_ENV_KEYS = (
    "AUTH_ISSUER",
    "AUTH_CLIENT_ID",
    "AUTH_CLIENT_SECRET",
    "AUTH_REDIRECT_URI",
    "AUTH_SCOPES",
    "AUTH_HTTP_TIMEOUT_SECONDS",
    "AUTH_CONFIG_PATH",
    "COOKIE_ENCRYPTION_KEY",
    "COOKIE_SECURE",
    "COOKIE_AUTH_PATH",
    "APP_ENV",
    "BFF_HOST",
    "BFF_PORT",
    "LOG_LEVEL",
    "LOG_FILE",
)


def pytest_sessionstart(session: pytest.Session) -> None:
    # Keep a developer's shell configuration out of the unit tests.
    for key in _AUTH_ENV_KEYS:
        os.environ.pop(key, None)


@pytest.fixture(autouse=True)
def _reset_discovery_cache() -> None:
    clear_discovery_cache()
    yield
    clear_discovery_cache()


@pytest.fixture(autouse=True)
def _close_default_event_loop() -> None:
    yield
    policy = asyncio.get_event_loop_policy()
    local = getattr(policy, "_local", None)
    loop = getattr(local, "_loop", None) if local is not None else None
    if loop is not None and not loop.is_running() and not loop.is_closed():
        with contextlib.suppress(Exception):
            loop.close()
    if loop is not None:
        with contextlib.suppress(Exception):
            policy.set_event_loop(None)


def make_id_token(claims: dict[str, Any]) -> str:
    return jwt.encode(claims, TEST_SIGNING_SECRET, algorithm="HS256")


def discovery_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "issuer": ISSUER,
        "authorization_endpoint": f"{ISSUER}/authorize",
        "token_endpoint": f"{ISSUER}/token",
        "end_session_endpoint": f"{ISSUER}/logout",
        "jwks_uri": f"{ISSUER}/jwks",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def cookie_key() -> str:
    return generate_key()


@pytest.fixture
def oauth_config(cookie_key: str) -> OAuthConfig:
    return OAuthConfig(
        issuer=ISSUER,
        client_id="bff-client",
        client_secret="bff-secret",
        redirect_uri="https://app.example.com/auth/callback",
        cookie_encryption_key=cookie_key,
    )


@pytest.fixture
def discovery_cache() -> DiscoveryCache:
    """A cache already holding the test provider's metadata."""
    cache = DiscoveryCache()
    cache._document = DiscoveryDocument(
        issuer=ISSUER,
        authorization_endpoint=f"{ISSUER}/authorize",
        token_endpoint=f"{ISSUER}/token",
        end_session_endpoint=f"{ISSUER}/logout",
    )
    return cache
