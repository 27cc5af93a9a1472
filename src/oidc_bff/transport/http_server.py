"""Starlette HTTP server assembly for the session broker routes."""

from __future__ import annotations

import json
import logging
from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from oidc_bff.config import Settings, load_settings
from oidc_bff.cookies.jar import RequestCookieJar
from oidc_bff.cookies.tokens import SessionStore
from oidc_bff.oauth.config import OAuthConfig, load_oauth_config
from oidc_bff.oauth.discovery import DiscoveryCache
from oidc_bff.session.orchestrator import OperationResult, SessionBroker

logger = logging.getLogger(__name__)


async def _read_json_body(request: Request) -> dict[str, Any]:
    """Return the JSON object body, or an empty dict for anything else."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        logger.debug("Ignoring non-JSON request body on %s", request.url.path)
        return {}
    return data if isinstance(data, dict) else {}


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) and value else None


def create_http_app(
    config: OAuthConfig | None = None,
    settings: Settings | None = None,
    *,
    discovery_cache: DiscoveryCache | None = None,
) -> Starlette:
    """Create the BFF application.

    ``config`` and ``settings`` default to the environment-derived values;
    configuration errors surface here, before the server starts listening.
    """
    settings = settings or load_settings()
    config = config or load_oauth_config()
    broker = SessionBroker(config, discovery_cache=discovery_cache)
    auth_path = settings.cookies.auth_path
    prefix = "" if auth_path == "/" else auth_path
    secure = settings.cookies.secure

    if not secure and settings.server.is_production:
        logger.warning("Session cookies are not marked Secure in production")

    def _store_for(request: Request) -> tuple[RequestCookieJar, SessionStore]:
        jar = RequestCookieJar(request.cookies, secure=secure)
        store = SessionStore(jar, config.cookie_encryption_key, auth_path=auth_path)
        return jar, store

    def _respond(result: OperationResult, jar: RequestCookieJar) -> Response:
        response = JSONResponse(
            result.body,
            status_code=result.status_code,
            headers={"Cache-Control": "no-store"},
        )
        return jar.apply(response)

    async def start_login_handler(request: Request) -> Response:
        body = await _read_json_body(request)
        jar, store = _store_for(request)
        result = await broker.start_login(store, _optional_str(body, "returnTo"))
        return _respond(result, jar)

    async def end_login_handler(request: Request) -> Response:
        body = await _read_json_body(request)
        jar, store = _store_for(request)
        result = await broker.end_login(
            store, _optional_str(body, "code"), _optional_str(body, "state")
        )
        return _respond(result, jar)

    async def refresh_handler(request: Request) -> Response:
        jar, store = _store_for(request)
        return _respond(await broker.refresh(store), jar)

    async def session_handler(request: Request) -> Response:
        jar, store = _store_for(request)
        return _respond(await broker.get_session(store), jar)

    async def logout_handler(request: Request) -> Response:
        jar, store = _store_for(request)
        return _respond(await broker.logout(store), jar)

    async def health_handler(request: Request) -> Response:
        return JSONResponse({"status": "ok"})

    routes = [
        Route(f"{prefix}/login/start", endpoint=start_login_handler, methods=["POST"]),
        Route(f"{prefix}/login/end", endpoint=end_login_handler, methods=["POST"]),
        Route(f"{prefix}/refresh", endpoint=refresh_handler, methods=["POST"]),
        Route(f"{prefix}/session", endpoint=session_handler, methods=["GET"]),
        Route(f"{prefix}/logout", endpoint=logout_handler, methods=["POST"]),
        Route("/health", endpoint=health_handler, methods=["GET"]),
    ]

    logger.info(
        "Session broker routes mounted under %s (issuer=%s)",
        auth_path,
        config.get_normalized_issuer(),
    )
    return Starlette(routes=routes)
