"""
Common library for reusable infrastructure components.

This package provides generic modules that can be used across projects:

- database: Async MongoDB connection with Motor, transaction helper
- auth: Pluggable token verification (JWT)
- utils: Standard responses and exceptions
- config: Base settings class
"""

from common.database import MongoDB, transaction
from common.auth import AuthProvider, JWTAuth, create_auth_dependency
from common.utils import (
    success_response,
    error_response,
    APIException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
    InvalidStateException,
    ConflictException,
)
from common.config import BaseAppSettings

__all__ = [
    # Database
    "MongoDB",
    "transaction",
    # Auth
    "AuthProvider",
    "JWTAuth",
    "create_auth_dependency",
    # Utils
    "success_response",
    "error_response",
    "APIException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ValidationException",
    "InvalidStateException",
    "ConflictException",
    # Config
    "BaseAppSettings",
]
