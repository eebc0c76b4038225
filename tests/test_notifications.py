"""
Academy Admin - Notification Transport Tests

Run with: pytest tests/test_notifications.py -v
"""

import pytest

from academy.notifications import DELIVERY_FAILED, deliver, sender as sender_module
from academy.notifications.sender import SmtpSender
from academy.notifications.templates import configuration_test_email
from tests.conftest import signed_in_headers


class BrokenLoginSMTP:
    """SMTP connection whose login fails on a non-ASCII password."""

    def __init__(self, host, port, timeout=None):
        self.closed = False

    def starttls(self):
        pass

    def login(self, username, password):
        raise UnicodeEncodeError("ascii", password, 0, 1, "ordinal not in range(128)")

    def send_message(self, msg):
        raise AssertionError("login failed, nothing should be sent")

    def quit(self):
        self.closed = True


@pytest.fixture
def smtp_sender(monkeypatch):
    monkeypatch.setattr(sender_module.smtplib, "SMTP", BrokenLoginSMTP)
    return SmtpSender(
        host="smtp.academy.test",
        port=587,
        username="mailer",
        password="pässwörd",
        from_email="noreply@academy.test",
    )


class TestSmtpSender:

    def test_unexpected_transport_error_is_a_failed_result(self, smtp_sender):
        result = smtp_sender.send("someone@academy.test", "Hi", "text", "<p>html</p>")

        assert result.success is False
        assert "ordinal not in range" in result.error

    @pytest.mark.asyncio
    async def test_deliver_hides_transport_error(self, smtp_sender):
        result = await deliver(smtp_sender, "someone@academy.test", configuration_test_email())

        assert result.success is False
        assert result.error == DELIVERY_FAILED

    def test_disabled_without_host(self):
        sender = SmtpSender(host="", port=587)

        assert sender.enabled is False
        assert sender.send("a@b.co", "s", "t", "h").success is False

    def test_invitation_still_created_when_transport_breaks(self, client, admin, smtp_sender):
        client.app.state.notifier = smtp_sender
        headers = signed_in_headers(client, "admin")

        response = client.post(
            "/api/invitations",
            headers=headers,
            json={"email": "new@academy.test", "role": "student"},
        )

        assert response.status_code == 201
        invitation = response.json()["invitation"]
        assert invitation["email_sent"] is False
        assert invitation["email_error"] == DELIVERY_FAILED
