"""Shared URL helpers."""

from __future__ import annotations

from urllib.parse import urlparse

_ALLOWED_SCHEMES = frozenset({"http", "https"})


def is_absolute_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme.lower() in _ALLOWED_SCHEMES and bool(parsed.netloc)


def allows_insecure_http(issuer: str) -> bool:
    """Plain-http endpoints are only tolerated for a plain-http issuer (local dev)."""
    return urlparse(issuer).scheme.lower() == "http"


def validate_endpoint_url(url: str, *, label: str = "URL", allow_http: bool = False) -> str:
    """Validate an endpoint URL taken from a discovery document.

    Returns the URL unchanged. Raises ``ValueError`` on validation failure.
    """
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    if scheme not in _ALLOWED_SCHEMES:
        raise ValueError(f"{label} must be an http(s) URL: {url}")
    if scheme == "http" and not allow_http:
        raise ValueError(f"{label} must use HTTPS: {url}")
    if not parsed.hostname:
        raise ValueError(f"{label} has no hostname: {url}")
    return url


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for an absolute URL."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Not an absolute URL: {url}")
    return f"{parsed.scheme.lower()}://{parsed.netloc}"


def is_safe_relative_path(value: str) -> bool:
    """True for same-origin paths like ``/dashboard?tab=1``.

    Rejects scheme-relative (``//host``) and backslash tricks browsers
    normalise into absolute URLs.
    """
    if not value.startswith("/") or value.startswith("//"):
        return False
    if "\\" in value:
        return False
    parsed = urlparse(value)
    return not parsed.scheme and not parsed.netloc
