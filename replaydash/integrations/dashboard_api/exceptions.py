"""
Dashboard backend API exceptions for error handling.
"""

from typing import Optional, Dict, Any


class DashboardAPIError(Exception):
    """Base exception for dashboard backend API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        self.response = response or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


class DashboardAPIBadRequestError(DashboardAPIError):
    """Raised when the backend rejects a request (400).

    The backend answers with a plain-text reason such as
    "only SELECT queries are allowed"; it is kept verbatim as the message.
    """

    def __init__(
        self,
        message: str = "Bad request",
        **kwargs,
    ):
        super().__init__(message, status_code=400, **kwargs)


class DashboardAPINotFoundError(DashboardAPIError):
    """Raised when a dashboard or widget does not exist (404)."""

    def __init__(
        self,
        message: str = "Resource not found",
        resource_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, status_code=404, **kwargs)
        self.resource_id = resource_id


class DashboardAPIConnectionError(DashboardAPIError):
    """Raised when network/connection errors occur."""

    def __init__(
        self,
        message: str = "Connection error - unable to reach dashboard backend",
        **kwargs,
    ):
        super().__init__(message, **kwargs)
