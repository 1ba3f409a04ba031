"""
Standardized response helpers for consistent API responses.
"""

from fastapi import HTTPException, status
from pydantic import BaseModel


class APIResponse(BaseModel):
    """Standard API response model"""

    success: bool
    message: str
    errors: list[str] | None = None


def success_response(message: str = "Success") -> APIResponse:
    """Create a successful response"""
    return APIResponse(success=True, message=message)


def error_response(
    message: str = "An error occurred",
    errors: list[str] | None = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    headers: dict[str, str] | None = None,
) -> HTTPException:
    """Create an error response"""
    response_data = APIResponse(success=False, message=message, errors=errors or [])

    raise HTTPException(
        status_code=status_code, detail=response_data.model_dump(), headers=headers
    )


def validation_error_response(
    errors: list[str], message: str = "Validation failed"
) -> HTTPException:
    """Create a validation error response"""
    return error_response(
        message=message, errors=errors, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY
    )


def not_found_response(message: str = "Resource not found") -> HTTPException:
    """Create a not found error response"""
    return error_response(message=message, status_code=status.HTTP_404_NOT_FOUND)


def forbidden_response(message: str = "Access forbidden") -> HTTPException:
    """Create a forbidden error response"""
    return error_response(message=message, status_code=status.HTTP_403_FORBIDDEN)


def unauthorized_response(message: str = "Authentication required") -> HTTPException:
    """Create an unauthorized error response"""
    return error_response(
        message=message,
        status_code=status.HTTP_401_UNAUTHORIZED,
        headers={"WWW-Authenticate": "Bearer"},
    )


def bad_gateway_response(message: str = "Upstream unavailable") -> HTTPException:
    """Create a bad gateway error response"""
    return error_response(message=message, status_code=status.HTTP_502_BAD_GATEWAY)
