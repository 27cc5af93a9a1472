"""Authenticated encryption of cookie payloads.

Payloads are JSON objects serialized as compact JWE
(``alg=dir``, ``enc=A256GCM``) under a 256-bit key supplied out-of-band.
An ``iat``/``exp`` pair is embedded inside the ciphertext so a stolen cookie
stops decrypting after seven days regardless of its transport max-age.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import secrets
from typing import Any

# TODO: port to joserfc; authlib.jose is deprecated upstream (pinned to authlib<2).
from authlib.jose import JsonWebEncryption

from oidc_bff.utils.time import epoch_seconds

logger = logging.getLogger(__name__)

KEY_SIZE_BYTES = 32
TOKEN_LIFETIME_SECONDS = 7 * 24 * 60 * 60

_PROTECTED_HEADER = {"alg": "dir", "enc": "A256GCM"}
_RESERVED_CLAIMS = ("iat", "exp")

_jwe = JsonWebEncryption(algorithms=["dir", "A256GCM"])


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode_key(key: str) -> bytes:
    """Decode a base64url cookie key into raw key bytes.

    Raises ``ValueError`` if the key is not base64url or not 256 bits.
    """
    try:
        padded = key.strip() + "=" * (-len(key.strip()) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError("key is not valid base64url") from exc
    if len(raw) != KEY_SIZE_BYTES:
        raise ValueError(f"key must decode to {KEY_SIZE_BYTES} bytes, got {len(raw)}")
    return raw


def generate_key() -> str:
    """Return a fresh random cookie key (base64url, no padding).

    Generate once per deployment; rotating it invalidates every session.
    """
    return _b64url_encode(secrets.token_bytes(KEY_SIZE_BYTES))


def encrypt(payload: dict[str, Any], key: str) -> str:
    """Encrypt ``payload`` into a five-segment compact JWE string.

    ``iat`` and ``exp`` are reserved for the codec; a payload carrying
    either raises ``ValueError``.
    """
    reserved = sorted(k for k in _RESERVED_CLAIMS if k in payload)
    if reserved:
        raise ValueError(f"payload uses reserved keys: {', '.join(reserved)}")
    now = epoch_seconds()
    claims = dict(payload)
    claims["iat"] = now
    claims["exp"] = now + TOKEN_LIFETIME_SECONDS
    plaintext = json.dumps(claims, separators=(",", ":")).encode("utf-8")
    token = _jwe.serialize_compact(dict(_PROTECTED_HEADER), plaintext, decode_key(key))
    return token.decode("ascii") if isinstance(token, bytes) else token


def decrypt(token: str, key: str) -> dict[str, Any] | None:
    """Decrypt a token produced by :func:`encrypt`.

    Returns ``None`` for every failure (malformed input, wrong key, tampered
    ciphertext, expired payload) without saying which.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        data = _jwe.deserialize_compact(token, decode_key(key))
        claims = json.loads(data["payload"])
    except Exception as exc:  # noqa: BLE001 - all failures collapse to "no session"
        logger.debug("Discarding undecryptable cookie (%s)", type(exc).__name__)
        return None

    if not isinstance(claims, dict):
        return None

    exp = claims.pop("exp", None)
    claims.pop("iat", None)
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    if exp <= epoch_seconds():
        return None
    return claims
