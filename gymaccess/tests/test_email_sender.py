"""Tests for pass confirmation email senders."""

import json

import httpx
import pytest

from gymaccess.platform.errors import UnavailableError
from gymaccess.services.email_sender import (
    SENDGRID_MAIL_SEND_URL,
    MockEmailSender,
    PassEmail,
    SendGridEmailSender,
    get_email_sender,
)


@pytest.fixture
def message():
    return PassEmail(
        to_email="member@example.com",
        recipient_name="Sam Member",
        gym_name="Iron Works Ancoats",
        pass_code="PASS-K7MQ2XH9RTA4",
        pass_qr_url="https://qr.example/?data=PASS-K7MQ2XH9RTA4",
        gym_address="10 High Street",
        gym_postcode="M1 1AA",
        gym_city="Manchester",
        gym_latitude=53.48,
        gym_longitude=-2.24,
    )


def _sender(handler, api_key="SG.test-key"):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return SendGridEmailSender(api_key=api_key, template_id="d-template", client=client)


class TestSendGridEmailSender:
    """Tests for SendGridEmailSender."""

    def test_posts_dynamic_template(self, message):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(202)

        _sender(handler).send_pass_email(message)

        request = captured[0]
        assert str(request.url) == SENDGRID_MAIL_SEND_URL
        assert request.headers["Authorization"] == "Bearer SG.test-key"
        body = json.loads(request.content)
        assert body["template_id"] == "d-template"
        personalization = body["personalizations"][0]
        assert personalization["to"] == [{"email": "member@example.com", "name": "Sam Member"}]
        data = personalization["dynamic_template_data"]
        assert data["Pass_Code"] == "PASS-K7MQ2XH9RTA4"
        assert data["Gym_Name"] == "Iron Works Ancoats"
        assert data["Gym_Lat"] == 53.48
        assert data["Gym_Lng"] == -2.24
        assert body["categories"] == ["pass_issued"]

    def test_injected_client_uses_sender_timeout(self, message):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(202)

        client = httpx.Client(transport=httpx.MockTransport(handler), timeout=60.0)
        sender = SendGridEmailSender(api_key="SG.test-key", timeout=3.0, client=client)

        sender.send_pass_email(message)

        assert captured[0].extensions["timeout"]["read"] == 3.0
        assert captured[0].extensions["timeout"]["connect"] == 3.0

    def test_provider_error(self, message):
        sender = _sender(lambda request: httpx.Response(500, text="upstream failure"))

        with pytest.raises(UnavailableError) as exc_info:
            sender.send_pass_email(message)

        assert exc_info.value.details["status_code"] == 500

    def test_timeout(self, message):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UnavailableError):
            _sender(handler).send_pass_email(message)

    def test_missing_api_key(self, message, monkeypatch):
        monkeypatch.delenv("SENDGRID_API_KEY", raising=False)
        sender = SendGridEmailSender()

        with pytest.raises(UnavailableError):
            sender.send_pass_email(message)


def test_template_data_blanks_missing_values():
    data = PassEmail(
        to_email="member@example.com",
        recipient_name=None,
        gym_name="Pulse Leeds",
        pass_code="PASS-X9",
        pass_qr_url=None,
    ).template_data()

    assert data["Recipient_Name"] == ""
    assert data["Pass_QR"] == ""
    assert data["Gym_Lat"] is None


def test_get_email_sender_mock(monkeypatch):
    monkeypatch.setenv("NOTIFICATION_EMAIL_PROVIDER", "mock")
    assert isinstance(get_email_sender(), MockEmailSender)


def test_get_email_sender_sendgrid(monkeypatch):
    monkeypatch.setenv("NOTIFICATION_EMAIL_PROVIDER", "SendGrid")
    sender = get_email_sender(timeout=3.0)

    assert isinstance(sender, SendGridEmailSender)
    assert sender.timeout == 3.0
