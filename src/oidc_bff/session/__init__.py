"""Login/refresh/logout sequencing over the OAuth client and session cookies."""

from oidc_bff.session.orchestrator import OperationResult, SessionBroker, ValidationError

__all__ = ["OperationResult", "SessionBroker", "ValidationError"]
