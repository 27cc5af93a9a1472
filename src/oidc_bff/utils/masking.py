"""Sensitive-field masking for log output.

``redact_sensitive_fields`` walks dicts/lists and replaces values whose keys
look like credentials, so provider responses can be logged without leaking
tokens or client secrets.
"""

from __future__ import annotations

_MAX_REDACT_DEPTH = 20

# Substring match, case-insensitive.
SENSITIVE_KEY_MARKERS: list[str] = [
    "password",
    "secret",
    "token",
    "verifier",
    "code",
    "assertion",
    "credential",
    "authorization",
    "cookie",
]

# Keys that contain a marker but carry no secret (OAuth error codes).
_SAFE_KEYS = frozenset({"error", "error_description", "error_uri"})


def redact_sensitive_fields(
    value: object,
    *,
    mask: str = "***",
    depth: int = 0,
    max_depth: int = _MAX_REDACT_DEPTH,
) -> object:
    """Recursively replace sensitive values in dicts/lists.

    When ``max_depth`` is exceeded the entire sub-tree is replaced with *mask*.
    """
    if depth >= max_depth:
        return mask
    if isinstance(value, dict):
        redacted: dict[str, object] = {}
        for key, val in value.items():
            lowered = str(key).lower()
            if lowered not in _SAFE_KEYS and any(
                marker in lowered for marker in SENSITIVE_KEY_MARKERS
            ):
                redacted[key] = mask
            else:
                redacted[key] = redact_sensitive_fields(
                    val, mask=mask, depth=depth + 1, max_depth=max_depth,
                )
        return redacted
    if isinstance(value, list):
        return [
            redact_sensitive_fields(
                item, mask=mask, depth=depth + 1, max_depth=max_depth,
            )
            for item in value
        ]
    return value
