"""OAuth 2.0 / OpenID Connect protocol client for the session broker."""
