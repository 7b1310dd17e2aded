"""
JWT authentication provider.

Stateless bearer-token verification using python-jose. Tokens carry the
caller's id in ``sub`` and their role (``client``, ``coach`` or ``admin``)
in ``role``.

Example:
    auth = JWTAuth(secret="your-secret-key")

    token = await auth.create_token("coach-123", role="coach")
    claims = await auth.verify_token(token)
    print(claims["sub"], claims["role"])
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Any

from jose import jwt, JWTError

from common.auth.base import AuthProvider


class JWTAuth(AuthProvider):
    """
    JWT authentication provider.

    Handles token creation and verification only; user storage lives elsewhere.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 30,
    ):
        """
        Initialize JWT auth provider.

        Args:
            secret: Secret key for JWT signing (keep this secure!)
            algorithm: JWT algorithm (default: HS256)
            access_token_expire_minutes: Token expiration time
        """
        self.secret = secret
        self.algorithm = algorithm
        self.access_token_expire = timedelta(minutes=access_token_expire_minutes)

    async def create_token(
        self,
        user_id: str,
        **claims: Any,
    ) -> str:
        """Create a JWT token for the user."""
        expire = datetime.now(timezone.utc) + self.access_token_expire
        payload = {
            "sub": user_id,
            "exp": expire,
            "iat": datetime.now(timezone.utc),
            **claims,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    async def verify_token(self, token: str) -> Dict[str, Any]:
        """Verify and decode a JWT token."""
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
            )
            return payload
        except JWTError as e:
            raise ValueError(f"Invalid token: {e}")
