"""Cookie-backed session store.

Three entities are persisted, each as its own encrypted cookie:

* ``at`` – access token, ID token and expiry, scoped to the whole app and
  living exactly as long as the access token;
* ``rt`` – the refresh token, scoped to the auth endpoints only, 7 days;
* ``auth_state`` – the PKCE verifier and anti-CSRF state of an in-flight
  login, 10 minutes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from oidc_bff.cookies.encryption import decrypt, encrypt
from oidc_bff.cookies.jar import CookieJar
from oidc_bff.oauth.pkce import AuthState
from oidc_bff.utils.time import epoch_seconds

if TYPE_CHECKING:
    from oidc_bff.oauth.client import TokenSet

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "at"
REFRESH_TOKEN_COOKIE = "rt"
AUTH_STATE_COOKIE = "auth_state"

ROOT_PATH = "/"
DEFAULT_AUTH_PATH = "/api/auth"
REFRESH_TOKEN_MAX_AGE = 7 * 24 * 60 * 60
AUTH_STATE_MAX_AGE = 10 * 60


@dataclass(frozen=True)
class AccessTokenData:
    access_token: str
    id_token: str | None
    expires_at: int

    def is_expired(self, now: int | None = None) -> bool:
        current = epoch_seconds() if now is None else now
        return self.expires_at < current


class SessionStore:
    """Typed accessors for the session cookies of one request."""

    def __init__(
        self,
        jar: CookieJar,
        encryption_key: str,
        *,
        auth_path: str = DEFAULT_AUTH_PATH,
    ) -> None:
        self._jar = jar
        self._key = encryption_key
        self._auth_path = auth_path

    # -- generic entity persistence -------------------------------------------------

    def load_entity(self, name: str) -> dict[str, Any] | None:
        raw = self._jar.get(name)
        if not raw:
            return None
        payload = decrypt(raw, self._key)
        if payload is None:
            logger.debug("Ignoring unreadable %s cookie", name)
        return payload

    def save_entity(
        self,
        name: str,
        payload: dict[str, Any],
        *,
        max_age: int,
        path: str = ROOT_PATH,
    ) -> None:
        self._jar.set(name, encrypt(payload, self._key), max_age=max(0, max_age), path=path)

    def delete_entity(self, name: str, *, path: str = ROOT_PATH) -> None:
        self._jar.delete(name, path=path)

    # -- tokens ---------------------------------------------------------------------

    def set_token_cookies(self, tokens: TokenSet) -> None:
        self.save_entity(
            ACCESS_TOKEN_COOKIE,
            {
                "accessToken": tokens.access_token,
                "idToken": tokens.id_token,
                "expiresAt": tokens.expires_at,
            },
            max_age=tokens.expires_at - epoch_seconds(),
        )
        if tokens.refresh_token:
            self.save_entity(
                REFRESH_TOKEN_COOKIE,
                {"refreshToken": tokens.refresh_token},
                max_age=REFRESH_TOKEN_MAX_AGE,
                path=self._auth_path,
            )

    def get_access_token(self) -> AccessTokenData | None:
        payload = self.load_entity(ACCESS_TOKEN_COOKIE)
        if payload is None:
            return None
        access_token = payload.get("accessToken")
        expires_at = payload.get("expiresAt")
        if not isinstance(access_token, str) or not access_token:
            return None
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            return None
        id_token = payload.get("idToken")
        return AccessTokenData(
            access_token=access_token,
            id_token=id_token if isinstance(id_token, str) and id_token else None,
            expires_at=int(expires_at),
        )

    def get_refresh_token(self) -> str | None:
        payload = self.load_entity(REFRESH_TOKEN_COOKIE)
        if payload is None:
            return None
        refresh_token = payload.get("refreshToken")
        return refresh_token if isinstance(refresh_token, str) and refresh_token else None

    def clear_token_cookies(self) -> None:
        self.delete_entity(ACCESS_TOKEN_COOKIE)
        self.delete_entity(REFRESH_TOKEN_COOKIE, path=self._auth_path)
        self.delete_entity(AUTH_STATE_COOKIE)

    # -- auth state -----------------------------------------------------------------

    def set_auth_state(self, state: AuthState) -> None:
        self.save_entity(AUTH_STATE_COOKIE, state.to_payload(), max_age=AUTH_STATE_MAX_AGE)

    def get_auth_state(self) -> AuthState | None:
        payload = self.load_entity(AUTH_STATE_COOKIE)
        if payload is None:
            return None
        return AuthState.from_payload(payload)

    def clear_auth_state(self) -> None:
        self.delete_entity(AUTH_STATE_COOKIE)
