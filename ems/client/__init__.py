"""
Client-side session layer
"""
from ems.client.backend import AuthBackend, AuthorizationRecord, HttpBackend, IssuedClaim, LocalBackend
from ems.client.session import SessionContext, SessionState

__all__ = [
    "AuthBackend",
    "AuthorizationRecord",
    "HttpBackend",
    "IssuedClaim",
    "LocalBackend",
    "SessionContext",
    "SessionState",
]
