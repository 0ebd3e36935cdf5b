"""
Auth0-specific exceptions for error handling.
"""

from typing import Any, Dict, Optional


class Auth0Error(Exception):
    """Base exception for Auth0 Management API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


class Auth0AuthenticationError(Auth0Error):
    """Raised when the client credentials grant is refused."""

    def __init__(
        self,
        message: str = "Failed to authenticate with Auth0 Management API",
        **kwargs,
    ):
        super().__init__(message, **kwargs)


class Auth0ConnectionError(Auth0Error):
    """Raised when network/connection errors occur."""

    def __init__(
        self,
        message: str = "Connection error - unable to reach Auth0",
        **kwargs,
    ):
        super().__init__(message, **kwargs)


class Auth0RoleNotFoundError(Auth0Error):
    """Raised when a role name has no matching Auth0 role."""

    def __init__(self, role_name: str):
        super().__init__(f'Role "{role_name}" not found in Auth0', status_code=404)
        self.role_name = role_name
