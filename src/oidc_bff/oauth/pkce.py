"""PKCE code verifier / anti-CSRF state generation (RFC 7636, S256)."""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass
from typing import Any

# 32 random bytes -> 43 base64url characters, the RFC 7636 minimum length.
_RANDOM_BYTES = 32


@dataclass(frozen=True)
class AuthState:
    """Single-use state of one login attempt, persisted in the auth-state cookie."""

    code_verifier: str
    state: str
    return_to: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"codeVerifier": self.code_verifier, "state": self.state}
        if self.return_to:
            payload["returnTo"] = self.return_to
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AuthState | None:
        code_verifier = payload.get("codeVerifier")
        state = payload.get("state")
        if not isinstance(code_verifier, str) or not code_verifier:
            return None
        if not isinstance(state, str) or not state:
            return None
        return_to = payload.get("returnTo")
        return cls(
            code_verifier=code_verifier,
            state=state,
            return_to=return_to if isinstance(return_to, str) and return_to else None,
        )

    def __repr__(self) -> str:
        return f"AuthState(state={self.state!r}, return_to={self.return_to!r})"


def generate_auth_state(return_to: str | None = None) -> AuthState:
    """Create a fresh verifier and an independent state value."""
    return AuthState(
        code_verifier=secrets.token_urlsafe(_RANDOM_BYTES),
        state=secrets.token_urlsafe(_RANDOM_BYTES),
        return_to=return_to,
    )


def calculate_code_challenge(code_verifier: str) -> str:
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
