"""
Custom HTTP exceptions with error codes.

Extends FastAPI's HTTPException with standardized error codes so every
rejection carries a stable machine-readable kind plus a human message.

Example:
    from common.utils import NotFoundException, InvalidStateException

    assignment = await collection.find_one({"_id": oid})
    if not assignment:
        raise NotFoundException("Check-in assignment not found", code="ASSIGNMENT_NOT_FOUND")
    if assignment.get("status") == "completed":
        raise InvalidStateException("This check-in is already completed", code="ALREADY_COMPLETED")
"""

from typing import Optional, Any, Dict
from fastapi import HTTPException


class APIException(HTTPException):
    """
    Base API exception with error code support.

    Provides consistent error response format across the API.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Create an API exception.

        Args:
            status_code: HTTP status code
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
            headers: Optional response headers
        """
        detail: Dict[str, Any] = {"message": message}

        if code:
            detail["code"] = code

        if details is not None:
            detail["details"] = details

        self.message = message
        self.code = code

        super().__init__(
            status_code=status_code,
            detail=detail,
            headers=headers,
        )


class InvalidStateException(APIException):
    """400 Bad Request - Operation not legal in the current lifecycle state."""

    def __init__(
        self,
        message: str = "Operation not allowed in the current state",
        code: str = "INVALID_STATE",
        details: Optional[Any] = None,
    ):
        super().__init__(400, message, code, details)


class UnauthorizedException(APIException):
    """401 Unauthorized - Missing or invalid authentication."""

    def __init__(
        self,
        message: str = "Unauthorized",
        code: str = "UNAUTHORIZED",
        details: Optional[Any] = None,
    ):
        super().__init__(401, message, code, details)


class ForbiddenException(APIException):
    """403 Forbidden - Valid auth but insufficient permissions."""

    def __init__(
        self,
        message: str = "Forbidden",
        code: str = "FORBIDDEN",
        details: Optional[Any] = None,
    ):
        super().__init__(403, message, code, details)


class NotFoundException(APIException):
    """404 Not Found - Resource doesn't exist."""

    def __init__(
        self,
        message: str = "Not found",
        code: str = "NOT_FOUND",
        details: Optional[Any] = None,
    ):
        super().__init__(404, message, code, details)


class ConflictException(APIException):
    """409 Conflict - Resource already exists or state conflict."""

    def __init__(
        self,
        message: str = "Conflict",
        code: str = "CONFLICT",
        details: Optional[Any] = None,
    ):
        super().__init__(409, message, code, details)


class ValidationException(APIException):
    """422 Validation Error - Request validation failed."""

    def __init__(
        self,
        message: str = "Validation error",
        code: str = "VALIDATION_ERROR",
        details: Optional[Any] = None,
        errors: Optional[list] = None,
    ):
        detail_info = details
        if errors:
            detail_info = {"errors": errors, **(details or {})}
        super().__init__(422, message, code, detail_info)

