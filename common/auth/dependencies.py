"""
FastAPI authentication dependencies.

Provides factory functions to create auth dependencies that can be
injected into route handlers. Works with any AuthProvider implementation.

Example:
    from common.auth import JWTAuth, create_auth_dependency

    auth = JWTAuth(secret="your-secret")
    get_current_claims = create_auth_dependency(lambda: auth)

    @router.get("/check-ins")
    async def list_check_ins(claims: dict = Depends(get_current_claims)):
        return {"user_id": claims["sub"]}
"""

from typing import Any, Callable, Dict, Optional
from fastapi import Header

from common.auth.base import AuthProvider
from common.utils.exceptions import UnauthorizedException


def create_auth_dependency(
    get_auth_provider: Callable[[], AuthProvider],
    header_name: str = "Authorization",
    scheme: str = "Bearer",
):
    """
    Factory to create FastAPI auth dependencies.

    Args:
        get_auth_provider: Callable that returns the AuthProvider instance
        header_name: Header to extract token from (default: Authorization)
        scheme: Auth scheme prefix (default: Bearer)

    Returns:
        A FastAPI dependency function that extracts and verifies the token claims
    """

    async def get_current_claims(
        authorization: Optional[str] = Header(None, alias=header_name),
    ) -> Dict[str, Any]:
        """
        Extract and verify token claims from the authorization header.

        Raises:
            UnauthorizedException: If token is missing, invalid, or expired
        """
        if not authorization:
            raise UnauthorizedException(
                message="Missing authorization header",
                code="UNAUTHORIZED",
            )

        # Extract token from header
        prefix = f"{scheme} "
        if not authorization.startswith(prefix):
            raise UnauthorizedException(
                message=f"Invalid authorization scheme. Expected: {scheme}",
                code="INVALID_AUTH_SCHEME",
            )

        token = authorization[len(prefix) :]

        if not token:
            raise UnauthorizedException(
                message="Token is empty",
                code="EMPTY_TOKEN",
            )

        # Verify token
        auth = get_auth_provider()
        try:
            payload = await auth.verify_token(token)
        except ValueError as e:
            raise UnauthorizedException(
                message=str(e),
                code="INVALID_TOKEN",
            )

        if not (payload.get("sub") or payload.get("uid")):
            raise UnauthorizedException(
                message="Token missing user ID",
                code="INVALID_TOKEN",
            )

        return payload

    return get_current_claims
