"""Encrypted cookie persistence.

The browser's cookie jar is the broker's only session store: every value
written here is a compact JWE that only this process (holding the cookie
key) can produce or read.
"""

from oidc_bff.cookies.encryption import decrypt, encrypt, generate_key
from oidc_bff.cookies.jar import CookieJar, RequestCookieJar
from oidc_bff.cookies.tokens import AccessTokenData, SessionStore

__all__ = [
    "AccessTokenData",
    "CookieJar",
    "RequestCookieJar",
    "SessionStore",
    "decrypt",
    "encrypt",
    "generate_key",
]
