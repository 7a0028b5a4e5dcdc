"""Authentication module.

This module provides:
- Token verification (shared-secret HS256 verifier)
- Auth middleware for FastAPI
- Request state with the resolved actor
"""

from tether.auth.middleware import AuthMiddleware, Viewer, get_viewer
from tether.auth.verifier import RuntimeTokenVerifier, TokenVerifier

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "RuntimeTokenVerifier",
    "TokenVerifier",
]
