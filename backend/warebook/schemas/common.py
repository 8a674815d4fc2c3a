"""Common schemas used across the application."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope.

    Errors use the same shape with ``success: false`` and are produced by
    the exception handlers, never by routes directly.

    Usage:
        response_model=ApiResponse[BookingOut]
    """
    success: bool = True
    data: T | None = None


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated list.

    Returns:
        {
            "items": [...],
            "total": 150,
            "limit": 50,
            "offset": 0
        }
    """
    items: list[T]
    total: int
    limit: int
    offset: int
