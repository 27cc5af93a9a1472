"""Authorization Code + PKCE and Refresh Token grants against the provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from oidc_bff.oauth.config import OAuthConfig
from oidc_bff.oauth.discovery import DiscoveryCache, get_authorization_server
from oidc_bff.oauth.pkce import AuthState, calculate_code_challenge
from oidc_bff.utils.http import origin_of
from oidc_bff.utils.masking import redact_sensitive_fields
from oidc_bff.utils.time import epoch_seconds

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600
_MAX_LOGGED_BODY = 500


class TokenExchangeError(Exception):
    """A grant request to the token endpoint failed.

    ``provider_reported`` is True when the provider answered with an OAuth
    ``error`` (e.g. ``invalid_grant``); such errors are actionable by the
    caller and are forwarded rather than masked.
    """

    def __init__(
        self,
        error: str,
        description: str | None = None,
        *,
        provider_reported: bool = False,
        status_code: int | None = None,
    ) -> None:
        message = f"Token exchange failed: {error}"
        if description:
            message = f"{message} - {description}"
        super().__init__(message)
        self.error = error
        self.description = description
        self.provider_reported = provider_reported
        self.status_code = status_code


@dataclass(frozen=True)
class TokenSet:
    access_token: str
    refresh_token: str | None
    id_token: str | None
    expires_at: int

    def __repr__(self) -> str:
        return (
            "TokenSet(access_token=***, "
            f"refresh_token={'***' if self.refresh_token else None}, "
            f"id_token={'***' if self.id_token else None}, "
            f"expires_at={self.expires_at})"
        )


def _expires_in(payload: dict[str, Any]) -> int:
    raw = payload.get("expires_in")
    if raw is None or isinstance(raw, bool):
        return DEFAULT_EXPIRES_IN
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric expires_in %r", raw)
        return DEFAULT_EXPIRES_IN


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) and value else None


def _token_set_from(payload: dict[str, Any], fallback_refresh_token: str | None) -> TokenSet:
    access_token = _optional_str(payload, "access_token")
    if access_token is None:
        raise TokenExchangeError("invalid_response", "access_token missing from token response")
    return TokenSet(
        access_token=access_token,
        refresh_token=_optional_str(payload, "refresh_token") or fallback_refresh_token,
        id_token=_optional_str(payload, "id_token"),
        expires_at=epoch_seconds() + _expires_in(payload),
    )


async def _token_request(
    config: OAuthConfig,
    form: dict[str, str],
    *,
    operation: str,
    cache: DiscoveryCache | None,
) -> dict[str, Any]:
    document = await get_authorization_server(config, cache=cache)
    form = {**form, "client_id": config.client_id, "client_secret": config.client_secret}

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                document.token_endpoint,
                data=form,
                headers={"Accept": "application/json"},
                timeout=config.http_timeout_seconds,
            )
    except httpx.HTTPError as exc:
        logger.warning("%s request failed: %s", operation, exc)
        raise TokenExchangeError("request_failed", str(exc)) from exc

    try:
        payload = resp.json()
    except ValueError as exc:
        logger.warning(
            "%s returned non-JSON response: status=%s length=%s",
            operation,
            resp.status_code,
            len(resp.text or ""),
        )
        raise TokenExchangeError(
            "invalid_response",
            f"token endpoint returned non-JSON (HTTP {resp.status_code})",
            status_code=resp.status_code,
        ) from exc

    if not isinstance(payload, dict):
        raise TokenExchangeError(
            "invalid_response", "token response is not a JSON object", status_code=resp.status_code
        )

    if payload.get("error"):
        logger.warning(
            "%s rejected by provider: status=%s body=%s",
            operation,
            resp.status_code,
            str(redact_sensitive_fields(payload))[:_MAX_LOGGED_BODY],
        )
        description = payload.get("error_description")
        raise TokenExchangeError(
            str(payload["error"]),
            str(description) if description else None,
            provider_reported=True,
            status_code=resp.status_code,
        )

    if not 200 <= resp.status_code < 300:
        logger.warning("%s returned HTTP %s without an OAuth error", operation, resp.status_code)
        raise TokenExchangeError(
            "invalid_response",
            f"token endpoint returned HTTP {resp.status_code}",
            status_code=resp.status_code,
        )

    return payload


async def exchange_code_for_tokens(
    config: OAuthConfig,
    code: str,
    code_verifier: str,
    *,
    cache: DiscoveryCache | None = None,
) -> TokenSet:
    payload = await _token_request(
        config,
        {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": config.redirect_uri,
            "code_verifier": code_verifier,
        },
        operation="Authorization code exchange",
        cache=cache,
    )
    return _token_set_from(payload, fallback_refresh_token=None)


async def refresh_tokens(
    config: OAuthConfig,
    refresh_token: str,
    *,
    cache: DiscoveryCache | None = None,
) -> TokenSet:
    """Run the refresh grant; keeps ``refresh_token`` if the provider does not rotate it."""
    payload = await _token_request(
        config,
        {"grant_type": "refresh_token", "refresh_token": refresh_token},
        operation="Token refresh",
        cache=cache,
    )
    return _token_set_from(payload, fallback_refresh_token=refresh_token)


def _with_query(url: str, params: dict[str, str]) -> str:
    parts = urlsplit(url)
    existing = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in params
    ]
    return urlunsplit(parts._replace(query=urlencode(existing + list(params.items()))))


async def build_authorization_url(
    config: OAuthConfig,
    auth_state: AuthState,
    *,
    cache: DiscoveryCache | None = None,
) -> str:
    document = await get_authorization_server(config, cache=cache)
    params = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "response_type": "code",
        "scope": " ".join(config.scopes),
        "state": auth_state.state,
        "code_challenge": calculate_code_challenge(auth_state.code_verifier),
        "code_challenge_method": "S256",
    }
    return _with_query(document.authorization_endpoint, params)


async def build_logout_url(
    config: OAuthConfig,
    id_token: str | None,
    *,
    cache: DiscoveryCache | None = None,
) -> str | None:
    """RP-initiated logout URL, or None if the provider has no end-session endpoint."""
    document = await get_authorization_server(config, cache=cache)
    if not document.end_session_endpoint:
        return None

    params = {"client_id": config.client_id}
    if id_token:
        params["id_token_hint"] = id_token
    params["post_logout_redirect_uri"] = origin_of(config.redirect_uri)
    return _with_query(document.end_session_endpoint, params)
