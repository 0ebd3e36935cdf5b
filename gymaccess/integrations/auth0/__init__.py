"""
Auth0 Management API integration for staff account provisioning.
"""

from gymaccess.integrations.auth0.client import (
    Auth0ManagementClient,
    Auth0User,
    ManagementToken,
)
from gymaccess.integrations.auth0.exceptions import (
    Auth0AuthenticationError,
    Auth0ConnectionError,
    Auth0Error,
    Auth0RoleNotFoundError,
)

__all__ = [
    "Auth0ManagementClient",
    "Auth0User",
    "ManagementToken",
    "Auth0Error",
    "Auth0AuthenticationError",
    "Auth0ConnectionError",
    "Auth0RoleNotFoundError",
]
