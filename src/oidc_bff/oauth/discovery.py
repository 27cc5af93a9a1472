"""OpenID Connect discovery with a process-lifetime cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from oidc_bff.oauth.config import OAuthConfig
from oidc_bff.utils.http import allows_insecure_http, validate_endpoint_url

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/openid-configuration"


class DiscoveryError(Exception):
    """The provider's discovery document could not be fetched or is unusable."""

    def __init__(self, message: str, code: str = "discovery_failed") -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class DiscoveryDocument:
    """The subset of provider metadata the broker relies on."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    end_session_endpoint: str | None = None


def _parse_document(data: Any, config: OAuthConfig) -> DiscoveryDocument:
    if not isinstance(data, dict):
        raise DiscoveryError("Discovery document must be a JSON object", "invalid_document")

    expected_issuer = config.get_normalized_issuer()
    issuer = data.get("issuer")
    if not isinstance(issuer, str) or issuer.rstrip("/") != expected_issuer:
        raise DiscoveryError(
            f"Discovery issuer mismatch: expected {expected_issuer}, got {issuer!r}",
            "issuer_mismatch",
        )

    allow_http = allows_insecure_http(config.issuer)
    endpoints: dict[str, str | None] = {}
    for key in ("authorization_endpoint", "token_endpoint", "end_session_endpoint"):
        endpoint = data.get(key)
        if endpoint is None or endpoint == "":
            endpoints[key] = None
            continue
        if not isinstance(endpoint, str):
            raise DiscoveryError(f"{key} must be a string", "invalid_document")
        try:
            endpoints[key] = validate_endpoint_url(endpoint, label=key, allow_http=allow_http)
        except ValueError as exc:
            raise DiscoveryError(str(exc), "invalid_document") from exc

    authorization_endpoint = endpoints["authorization_endpoint"]
    token_endpoint = endpoints["token_endpoint"]
    if not authorization_endpoint:
        raise DiscoveryError("authorization_endpoint missing from discovery", "invalid_document")
    if not token_endpoint:
        raise DiscoveryError("token_endpoint missing from discovery", "invalid_document")

    return DiscoveryDocument(
        issuer=issuer,
        authorization_endpoint=authorization_endpoint,
        token_endpoint=token_endpoint,
        end_session_endpoint=endpoints["end_session_endpoint"],
    )


async def fetch_discovery_document(config: OAuthConfig) -> DiscoveryDocument:
    """GET ``{issuer}/.well-known/openid-configuration`` and validate it."""
    url = f"{config.get_normalized_issuer()}{WELL_KNOWN_PATH}"
    logger.info("Fetching OIDC discovery document from %s", url)
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                url,
                headers={"Accept": "application/json"},
                timeout=config.http_timeout_seconds,
            )
    except httpx.HTTPError as exc:
        logger.warning("Discovery request to %s failed: %s", url, exc)
        raise DiscoveryError(f"Discovery request failed: {exc}", "request_failed") from exc

    if not 200 <= resp.status_code < 300:
        logger.warning("Discovery request to %s returned HTTP %s", url, resp.status_code)
        raise DiscoveryError(
            f"Discovery request returned HTTP {resp.status_code}", "request_failed"
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise DiscoveryError("Discovery response is not JSON", "invalid_document") from exc

    return _parse_document(data, config)


class DiscoveryCache:
    """Lazily filled, read-mostly cell holding one discovery document.

    Concurrent first callers may each fetch; the last successful fetch wins.
    Failures are never cached.
    """

    def __init__(self) -> None:
        self._document: DiscoveryDocument | None = None

    @property
    def document(self) -> DiscoveryDocument | None:
        return self._document

    async def get(self, config: OAuthConfig) -> DiscoveryDocument:
        document = self._document
        if document is not None:
            return document
        document = await fetch_discovery_document(config)
        self._document = document
        return document

    def clear(self) -> None:
        self._document = None


_default_cache = DiscoveryCache()


async def get_authorization_server(
    config: OAuthConfig,
    *,
    cache: DiscoveryCache | None = None,
) -> DiscoveryDocument:
    """Return the provider metadata, fetching it on first use."""
    return await (cache or _default_cache).get(config)


def clear_discovery_cache() -> None:
    """Forget the memoized document (tests, suspected provider rotation)."""
    _default_cache.clear()
