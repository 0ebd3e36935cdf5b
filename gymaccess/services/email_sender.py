"""
Email sender abstraction for pass confirmation delivery.

Supports multiple providers:
- SendGrid dynamic templates (production)
- Mock (testing)

Delivery failures raise UnavailableError; callers on non-critical paths
log and swallow it.
"""

import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from gymaccess.platform.errors import UnavailableError

logger = logging.getLogger(__name__)

SENDGRID_MAIL_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
DEFAULT_FROM_EMAIL = "naaman@any-gym.com"
DEFAULT_PASS_TEMPLATE_ID = "d-af64b6e942394f2e833c29abb7258c4f"


@dataclass
class PassEmail:
    """Pass confirmation details rendered by the email template."""
    to_email: str
    recipient_name: Optional[str]
    gym_name: str
    pass_code: str
    pass_qr_url: Optional[str]
    gym_address: Optional[str] = None
    gym_postcode: Optional[str] = None
    gym_city: Optional[str] = None
    gym_latitude: Optional[float] = None
    gym_longitude: Optional[float] = None
    tags: List[str] = field(default_factory=lambda: ["pass_issued"])

    def template_data(self) -> Dict[str, Any]:
        """Dynamic template data, keyed as the SendGrid template expects."""
        return {
            "Recipient_Name": self.recipient_name or "",
            "Gym_Name": self.gym_name,
            "Pass_QR": self.pass_qr_url or "",
            "Pass_Code": self.pass_code,
            "Gym_Address": self.gym_address or "",
            "Gym_Postcode": self.gym_postcode or "",
            "Gym_City": self.gym_city or "",
            "Gym_Lng": self.gym_longitude,
            "Gym_Lat": self.gym_latitude,
        }


class EmailSender(ABC):
    """Abstract base class for email sending."""

    @abstractmethod
    def send_pass_email(self, message: PassEmail) -> None:
        """
        Send a pass confirmation email.

        Raises:
            UnavailableError: the provider could not be reached or refused
        """
        pass


class SendGridEmailSender(EmailSender):
    """SendGrid dynamic template sender."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        template_id: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize SendGrid sender.

        Args:
            api_key: SendGrid API key (or from SENDGRID_API_KEY env var)
            from_email: Sender email (or from NOTIFICATION_FROM_EMAIL env var)
            template_id: Dynamic template id (or from SENDGRID_PASS_TEMPLATE_ID)
            timeout: Request timeout in seconds
            client: Optional pre-built httpx client (tests)
        """
        self.api_key = api_key or os.getenv("SENDGRID_API_KEY")
        self.from_email = from_email or os.getenv(
            "NOTIFICATION_FROM_EMAIL", DEFAULT_FROM_EMAIL
        )
        self.template_id = template_id or os.getenv(
            "SENDGRID_PASS_TEMPLATE_ID", DEFAULT_PASS_TEMPLATE_ID
        )
        self.timeout = timeout
        self._client = client

        if not self.api_key:
            logger.warning("SendGrid API key not configured")

    def build_payload(self, message: PassEmail) -> Dict[str, Any]:
        payload = {
            "personalizations": [
                {
                    "to": [{"email": message.to_email, "name": message.recipient_name or ""}],
                    "dynamic_template_data": message.template_data(),
                }
            ],
            "from": {"email": self.from_email},
            "template_id": self.template_id,
        }
        if message.tags:
            payload["categories"] = message.tags
        return payload

    def send_pass_email(self, message: PassEmail) -> None:
        """Send the pass confirmation via the SendGrid v3 API."""
        if not self.api_key:
            raise UnavailableError("SendGrid API key not configured")

        try:
            if self._client is not None:
                response = self._post(self._client, message)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = self._post(client, message)
        except httpx.HTTPError as e:
            raise UnavailableError(
                "Failed to reach SendGrid",
                details={"to_email": message.to_email, "error": str(e)},
            ) from e

        if response.status_code not in (200, 202):
            raise UnavailableError(
                "SendGrid API error",
                details={
                    "status_code": response.status_code,
                    "response": response.text,
                    "to_email": message.to_email,
                },
            )

        logger.info(
            "Pass email sent",
            extra={"to_email": message.to_email, "pass_code": message.pass_code},
        )

    def _post(self, client: httpx.Client, message: PassEmail) -> httpx.Response:
        return client.post(
            SENDGRID_MAIL_SEND_URL,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json=self.build_payload(message),
            timeout=self.timeout,
        )


class MockEmailSender(EmailSender):
    """Mock email sender for testing."""

    def __init__(self):
        """Initialize mock sender."""
        self.sent_messages: List[PassEmail] = []

    def send_pass_email(self, message: PassEmail) -> None:
        """Record email in sent_messages list."""
        self.sent_messages.append(message)
        logger.info(
            "Mock pass email sent",
            extra={"to_email": message.to_email, "pass_code": message.pass_code},
        )

    def clear(self) -> None:
        """Clear sent messages."""
        self.sent_messages.clear()


def get_email_sender(timeout: float = 10.0) -> EmailSender:
    """
    Get configured email sender based on environment.

    Returns:
        Appropriate EmailSender implementation
    """
    provider = os.getenv("NOTIFICATION_EMAIL_PROVIDER", "sendgrid").lower()

    if provider == "mock":
        return MockEmailSender()
    return SendGridEmailSender(timeout=timeout)
