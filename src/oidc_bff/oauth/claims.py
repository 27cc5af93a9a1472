"""ID token claims extraction.

Claims are read WITHOUT signature verification. They are trusted only because
the ID token was received directly from the provider's token endpoint over
TLS during the code exchange, and they are used for display/session state
only. Anything making authorization decisions from them must verify the
signature against the provider's JWKS first.
"""

from __future__ import annotations

import binascii
import json
import logging
from typing import Any

from jwt.utils import base64url_decode

logger = logging.getLogger(__name__)


def parse_id_token_claims(id_token: str | None) -> dict[str, Any] | None:
    """Decode the payload segment of ``id_token``.

    Only the middle segment is read; the header and signature are not
    inspected. Returns ``None`` when the token is absent, not three
    segments, or its payload is not a base64url-encoded JSON object.
    """
    if not id_token:
        return None
    parts = id_token.split(".")
    if len(parts) != 3:
        return None
    try:
        claims = json.loads(base64url_decode(parts[1]))
    except (ValueError, binascii.Error, UnicodeDecodeError) as exc:
        logger.debug("Unparseable ID token payload: %s", type(exc).__name__)
        return None
    if not isinstance(claims, dict):
        return None
    return claims
