"""
Abstract authentication provider interface.

Defines the contract that token verifiers must implement. Issuing tokens
(login, password reset, verification emails) is owned by a separate
identity service; this backend only needs to verify who is calling.

Example:
    from common.auth import AuthProvider, JWTAuth

    def get_auth_provider(settings) -> AuthProvider:
        return JWTAuth(secret=settings.JWT_SECRET)
"""

from abc import ABC, abstractmethod
from typing import Dict, Any


class AuthProvider(ABC):
    """
    Abstract authentication provider.

    Implement this interface for different token strategies.
    """

    @abstractmethod
    async def create_token(
        self,
        user_id: str,
        **claims: Any,
    ) -> str:
        """
        Create an authentication token for a user.

        Args:
            user_id: The user's ID
            **claims: Additional claims to include in the token (e.g. role)

        Returns:
            The authentication token string
        """
        pass

    @abstractmethod
    async def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Verify an authentication token.

        Args:
            token: The token to verify

        Returns:
            Dictionary containing decoded token claims (at minimum: sub)

        Raises:
            ValueError: If token is invalid or expired
        """
        pass
