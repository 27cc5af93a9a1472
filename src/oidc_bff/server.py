"""Entrypoint for the OIDC BFF session broker."""

from __future__ import annotations

import sys
from pathlib import Path

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # pragma: no cover

from oidc_bff import __version__
from oidc_bff.config import load_settings
from oidc_bff.cookies.encryption import generate_key
from oidc_bff.logging_utils import get_logger

GENERATE_KEY_COMMAND = "generate-key"


def generate_key_entrypoint() -> None:
    """Print a fresh COOKIE_ENCRYPTION_KEY value."""
    print(generate_key())


def run_entrypoint(argv: list[str] | None = None) -> None:
    """Run the HTTP server, or the key generator when asked for it."""
    args = sys.argv[1:] if argv is None else argv
    if args and args[0] == GENERATE_KEY_COMMAND:
        generate_key_entrypoint()
        return
    _run_http()


def _run_http() -> None:
    settings = load_settings()
    logger = get_logger(__name__)
    from oidc_bff.transport.http_server import create_http_app

    try:
        import uvicorn
    except ImportError as exc:
        raise RuntimeError("uvicorn is required to serve the session broker") from exc

    logger.info("Starting OIDC BFF session broker v%s", __version__)
    app = create_http_app(settings=settings)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        ws="none",
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
