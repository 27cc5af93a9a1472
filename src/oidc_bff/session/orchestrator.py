"""The five broker operations exposed to the HTTP layer.

Each operation works on a request-scoped :class:`SessionStore`, never raises,
and returns an :class:`OperationResult` carrying an HTTP status and a JSON
body. Cookie writes only happen once every upstream call has succeeded,
except logout, which always forgets the local session.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Any

from oidc_bff.cookies.tokens import SessionStore
from oidc_bff.oauth.claims import parse_id_token_claims
from oidc_bff.oauth.client import (
    TokenExchangeError,
    build_authorization_url,
    build_logout_url,
    exchange_code_for_tokens,
    refresh_tokens,
)
from oidc_bff.oauth.config import OAuthConfig
from oidc_bff.oauth.discovery import DiscoveryCache, DiscoveryError
from oidc_bff.oauth.pkce import generate_auth_state
from oidc_bff.utils.http import is_safe_relative_path
from oidc_bff.utils.time import epoch_seconds

logger = logging.getLogger(__name__)

MISSING_PARAMETER = "Missing code or state parameter"
NO_AUTH_STATE = "No auth state found - session may have expired"
STATE_MISMATCH = "State mismatch - possible CSRF attack"
INVALID_RETURN_TO = "Invalid returnTo - must be a relative path"
NO_REFRESH_TOKEN = "No refresh token found"


class ValidationError(Exception):
    """Bad or missing login-callback input (HTTP 400)."""


@dataclass(frozen=True)
class OperationResult:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


def _error(status_code: int, message: str) -> OperationResult:
    return OperationResult(status_code, {"error": message})


def _token_error(exc: TokenExchangeError, provider_status: int) -> OperationResult:
    if exc.provider_reported:
        return OperationResult(
            provider_status,
            {
                "error": "Token exchange failed",
                "provider_error": exc.error,
                "provider_error_description": exc.description,
            },
        )
    return _error(502, "Identity provider request failed")


_LOGGED_OUT: dict[str, Any] = {"isLoggedIn": False, "claims": None}


class SessionBroker:
    """Stateless request handlers; holds only the config and the discovery cache."""

    def __init__(
        self,
        config: OAuthConfig,
        *,
        discovery_cache: DiscoveryCache | None = None,
    ) -> None:
        self.config = config
        self._discovery_cache = discovery_cache

    async def start_login(
        self, store: SessionStore, return_to: str | None = None
    ) -> OperationResult:
        if return_to is not None and not is_safe_relative_path(return_to):
            return _error(400, INVALID_RETURN_TO)
        try:
            auth_state = generate_auth_state(return_to)
            authorization_url = await build_authorization_url(
                self.config, auth_state, cache=self._discovery_cache
            )
            store.set_auth_state(auth_state)
        except DiscoveryError as exc:
            logger.error("Login start failed: provider discovery error: %s", exc)
            return _error(500, "Failed to start login")
        except Exception:
            logger.exception("Login start failed")
            return _error(500, "Failed to start login")
        return OperationResult(200, {"authorizationUrl": authorization_url})

    async def end_login(
        self, store: SessionStore, code: str | None, state: str | None
    ) -> OperationResult:
        try:
            return await self._end_login(store, code, state)
        except ValidationError as exc:
            return _error(400, str(exc))
        except TokenExchangeError as exc:
            return _token_error(exc, provider_status=400)
        except DiscoveryError as exc:
            logger.error("Login end failed: provider discovery error: %s", exc)
            return _error(500, "Failed to complete login")
        except Exception:
            logger.exception("Login end failed")
            return _error(500, "Failed to complete login")

    async def _end_login(
        self, store: SessionStore, code: str | None, state: str | None
    ) -> OperationResult:
        if not code or not state:
            raise ValidationError(MISSING_PARAMETER)

        auth_state = store.get_auth_state()
        if auth_state is None:
            raise ValidationError(NO_AUTH_STATE)

        if not secrets.compare_digest(auth_state.state.encode(), state.encode()):
            logger.warning("Login callback state mismatch")
            raise ValidationError(STATE_MISMATCH)

        tokens = await exchange_code_for_tokens(
            self.config, code, auth_state.code_verifier, cache=self._discovery_cache
        )
        store.set_token_cookies(tokens)
        store.clear_auth_state()

        return OperationResult(
            200,
            {
                "success": True,
                "claims": parse_id_token_claims(tokens.id_token),
                "returnTo": auth_state.return_to,
            },
        )

    async def refresh(self, store: SessionStore) -> OperationResult:
        try:
            refresh_token = store.get_refresh_token()
            if not refresh_token:
                return _error(401, NO_REFRESH_TOKEN)
            tokens = await refresh_tokens(
                self.config, refresh_token, cache=self._discovery_cache
            )
            store.set_token_cookies(tokens)
        except TokenExchangeError as exc:
            return _token_error(exc, provider_status=401)
        except DiscoveryError as exc:
            logger.error("Token refresh failed: provider discovery error: %s", exc)
            return _error(500, "Failed to refresh tokens")
        except Exception:
            logger.exception("Token refresh failed")
            return _error(500, "Failed to refresh tokens")
        return OperationResult(200, {"success": True})

    async def get_session(self, store: SessionStore) -> OperationResult:
        try:
            token_data = store.get_access_token()
            if token_data is None or token_data.is_expired(epoch_seconds()):
                return OperationResult(200, dict(_LOGGED_OUT))
            claims = parse_id_token_claims(token_data.id_token)
        except Exception:
            logger.exception("Session lookup failed")
            return OperationResult(200, dict(_LOGGED_OUT))
        return OperationResult(200, {"isLoggedIn": True, "claims": claims})

    async def logout(self, store: SessionStore) -> OperationResult:
        logout_url: str | None = None
        try:
            token_data = store.get_access_token()
            if token_data and token_data.id_token:
                if parse_id_token_claims(token_data.id_token) is not None:
                    logout_url = await build_logout_url(
                        self.config, token_data.id_token, cache=self._discovery_cache
                    )
        except Exception as exc:
            logger.warning("Could not build provider logout URL: %s", exc)
            logout_url = None
        finally:
            store.clear_token_cookies()
        return OperationResult(200, {"logoutUrl": logout_url})
