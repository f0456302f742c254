"""
Service API for the solvency ledger.

Provides bearer-token authentication and the FastAPI REST surface.
"""

from .auth import AuthError, JWTAuth, TokenError

__all__ = ["JWTAuth", "AuthError", "TokenError"]
