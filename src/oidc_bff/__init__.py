"""Backend-for-Frontend OAuth/OIDC session broker."""

__version__ = "0.1.0"
