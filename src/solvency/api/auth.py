"""
Bearer-token authentication for the service API.

Tokens are HS256 JWTs whose ``sub`` claim is the caller identity that the
ledger's access controller checks. The token only proves who the caller is;
what the caller may do is decided by the ledger.
"""

import logging

logger = logging.getLogger(__name__)
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt


class AuthError(Exception):
    """Authentication error."""
    pass


class TokenError(AuthError):
    """Token-related error."""
    pass


class JWTAuth:
    """JWT-based caller authentication."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", ttl: int = 3600):
        if not secret_key:
            raise ValueError("secret_key cannot be empty")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.token_expiry = timedelta(seconds=ttl)

    def create_token(self, caller: str, roles: Optional[List[str]] = None) -> str:
        """Create a token identifying ``caller``."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": caller,
            "roles": list(roles or []),
            "iat": now,
            "exp": now + self.token_expiry,
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Decode and check a token; raises ``TokenError``."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenError("Token has expired")
        except jwt.InvalidTokenError:
            raise TokenError("Invalid token")

        if not payload.get("sub"):
            raise TokenError("Token has no subject")
        return payload

    def caller_of(self, token: str) -> str:
        return self.verify_token(token)["sub"]
