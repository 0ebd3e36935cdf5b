"""
Auth0 Management API client for staff account provisioning.

This client handles:
- Client-credentials token retrieval, cached per client instance
- User creation on the configured database connection
- Role assignment, with cleanup of the new user if it fails

The management token is an explicit ManagementToken value owned by the
client. There is no module-level token cache.

SECURITY: client secret and tokens must never be logged.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import httpx

from gymaccess.integrations.auth0.exceptions import (
    Auth0AuthenticationError,
    Auth0ConnectionError,
    Auth0Error,
    Auth0RoleNotFoundError,
)
from gymaccess.models.base import utc_now

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION = "Username-Password-Authentication"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_TOKEN_LIFETIME_SECONDS = 24 * 60 * 60
# Refresh this long before Auth0 says the token expires
TOKEN_EXPIRY_MARGIN = timedelta(hours=1)


@dataclass(frozen=True)
class ManagementToken:
    """A Management API access token and the time it stops being used."""
    access_token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return bool(self.access_token) and now < self.expires_at


@dataclass(frozen=True)
class Auth0User:
    user_id: str
    email: str
    name: Optional[str] = None


class Auth0ManagementClient:
    """Synchronous client for the Auth0 Management API v2."""

    def __init__(
        self,
        domain: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        audience: Optional[str] = None,
        connection: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize Auth0 client.

        Args:
            domain: Tenant domain (default: AUTH0_DOMAIN)
            client_id: Management client id (default: AUTH0_MANAGEMENT_CLIENT_ID)
            client_secret: Management client secret (default: AUTH0_MANAGEMENT_CLIENT_SECRET)
            audience: Token audience (default: AUTH0_MANAGEMENT_AUDIENCE or the
                tenant's /api/v2/ URL)
            connection: Database connection for new users (default: AUTH0_CONNECTION)
            timeout: Request timeout in seconds
            http_client: Optional pre-built httpx client (tests)
            clock: Time source for token expiry
        """
        self.domain = domain or os.getenv("AUTH0_DOMAIN")
        self.client_id = client_id or os.getenv("AUTH0_MANAGEMENT_CLIENT_ID")
        self.client_secret = client_secret or os.getenv("AUTH0_MANAGEMENT_CLIENT_SECRET")

        if not self.domain:
            raise ValueError(
                "Auth0 domain is required. Set AUTH0_DOMAIN environment variable "
                "or pass domain parameter."
            )

        self.base_url = f"https://{self.domain}"
        self.audience = (
            audience
            or os.getenv("AUTH0_MANAGEMENT_AUDIENCE")
            or f"{self.base_url}/api/v2/"
        )
        self.connection = connection or os.getenv("AUTH0_CONNECTION") or DEFAULT_CONNECTION
        self.clock = clock
        self._client = http_client or httpx.Client(timeout=timeout)
        self._token: Optional[ManagementToken] = None

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "Auth0ManagementClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Token
    # ------------------------------------------------------------------

    @property
    def token(self) -> Optional[ManagementToken]:
        return self._token

    def get_token(self) -> ManagementToken:
        """Return the cached token, fetching a new one when it is missing or stale."""
        if self._token is not None and self._token.is_valid(self.clock()):
            return self._token

        try:
            response = self._client.post(
                f"{self.base_url}/oauth/token",
                json={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "audience": self.audience,
                    "grant_type": "client_credentials",
                },
            )
        except httpx.HTTPError as e:
            logger.error("Auth0 token request failed", extra={"error": str(e)})
            raise Auth0ConnectionError(f"Token request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "Auth0 token request refused",
                extra={"status_code": response.status_code},
            )
            raise Auth0AuthenticationError(status_code=response.status_code)

        data = response.json()
        lifetime = timedelta(seconds=int(data.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS))
        self._token = ManagementToken(
            access_token=data["access_token"],
            expires_at=self.clock() + lifetime - TOKEN_EXPIRY_MARGIN,
        )
        logger.info("Obtained Auth0 Management API access token")
        return self._token

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}/api/v2/{endpoint.lstrip('/')}"
        token = self.get_token()

        try:
            response = self._client.request(
                method=method,
                url=url,
                json=json,
                params=params,
                headers={
                    "Authorization": f"Bearer {token.access_token}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            logger.error(
                "Auth0 API request failed",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            raise Auth0ConnectionError(f"Request failed: {e}") from e

        if response.status_code == 401:
            # Rejected token; the next call fetches a new one
            self._token = None

        if response.status_code >= 400:
            try:
                error_body = response.json()
            except ValueError:
                error_body = {}
            if not isinstance(error_body, dict):
                error_body = {"raw": str(error_body)[:500]}
            message = (
                error_body.get("message")
                or error_body.get("error_description")
                or f"Auth0 API error: {response.status_code}"
            )
            logger.error(
                "Auth0 API error",
                extra={
                    "status_code": response.status_code,
                    "endpoint": endpoint,
                    "response": str(error_body)[:500],
                },
            )
            raise Auth0Error(message, status_code=response.status_code, response=error_body)

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # ------------------------------------------------------------------
    # Users and roles
    # ------------------------------------------------------------------

    def get_role_id(self, role_name: str) -> str:
        roles = self._request(
            "GET",
            "roles",
            params={"name_filter": role_name, "per_page": 100},
        )
        for role in roles if isinstance(roles, list) else []:
            if role.get("name") == role_name and role.get("id"):
                return role["id"]
        raise Auth0RoleNotFoundError(role_name)

    def assign_role(self, user_id: str, role_name: str) -> None:
        role_id = self.get_role_id(role_name)
        self._request(
            "POST",
            f"users/{quote(user_id, safe='')}/roles",
            json={"roles": [role_id]},
        )
        logger.info(
            "Assigned Auth0 role",
            extra={"user_id": user_id, "role": role_name},
        )

    def delete_user(self, user_id: str) -> None:
        self._request("DELETE", f"users/{quote(user_id, safe='')}")

    def create_user(
        self,
        email: str,
        name: str,
        role: str,
        password: Optional[str] = None,
    ) -> Auth0User:
        """
        Create a user and assign it a role.

        A user whose role assignment fails is deleted again before the error
        is raised.

        Raises:
            Auth0Error: creation or role assignment failed
        """
        payload = {"email": email, "name": name, "connection": self.connection}
        if password:
            payload["password"] = password

        data = self._request("POST", "users", json=payload)
        user_id = data["user_id"]
        logger.info("Created Auth0 user", extra={"user_id": user_id})

        try:
            self.assign_role(user_id, role)
        except Auth0Error as role_error:
            logger.error(
                "Role assignment failed, removing Auth0 user",
                extra={"user_id": user_id, "role": role},
            )
            try:
                self.delete_user(user_id)
            except Auth0Error as cleanup_error:
                logger.error(
                    "Failed to clean up Auth0 user after role assignment failure",
                    extra={"user_id": user_id, "error": cleanup_error.message},
                )
            raise Auth0Error(
                f"User created but role assignment failed: {role_error.message}",
                status_code=role_error.status_code,
            ) from role_error

        return Auth0User(
            user_id=user_id,
            email=data.get("email", email),
            name=data.get("name", name),
        )
