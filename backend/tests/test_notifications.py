import smtplib
from types import SimpleNamespace

import httpx

from securesign.services.notification import InvitationEmail, NotificationService, build_notification_service


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):  # noqa: D401
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.logged_in = None
        self.sent_messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, username, password):
        self.logged_in = (username, password)

    def send_message(self, message):
        self.sent_messages.append(message)


class BrokenSMTP(FakeSMTP):
    def send_message(self, message):
        raise smtplib.SMTPServerDisconnected("connection dropped")


def _invitation() -> InvitationEmail:
    return InvitationEmail(
        sender_name="Olivia Owner",
        recipient_email="guest@example.com",
        recipient_name="Gina Guest",
        document_name="contract.pdf",
        role="Signer",
        link="http://localhost:5173/sign/abc123",
    )


def test_invitation_email_via_smtp(monkeypatch) -> None:
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    service = NotificationService()
    service.configure_email(
        host="smtp.example.com",
        port=2525,
        sender="SecureSign <no-reply@example.com>",
        username="mailer",
        password="secret",
    )

    assert service.send_invitation_email(_invitation()) is True

    smtp = FakeSMTP.instances[0]
    assert (smtp.host, smtp.port) == ("smtp.example.com", 2525)
    assert smtp.started_tls is True
    assert smtp.logged_in == ("mailer", "secret")
    message = smtp.sent_messages[0]
    assert message["To"] == "guest@example.com"
    assert "contract.pdf" in message["Subject"]
    html = message.get_body(preferencelist=("html",)).get_content()
    assert "http://localhost:5173/sign/abc123" in html
    assert "Gina Guest" in html


def test_delivery_failure_returns_false(monkeypatch) -> None:
    monkeypatch.setattr(smtplib, "SMTP", BrokenSMTP)
    service = NotificationService()
    service.configure_email(host="smtp.example.com", port=25, sender="no-reply@example.com", starttls=False)

    assert service.send_invitation_email(_invitation()) is False


def test_without_sender_mail_is_simulated() -> None:
    assert NotificationService().send_invitation_email(_invitation()) is True


def test_sendgrid_backend(monkeypatch) -> None:
    calls = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "headers": headers, "json": json})
        return httpx.Response(202, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)
    settings = SimpleNamespace(
        email_backend="sendgrid",
        sendgrid_api_key="SG.key",
        smtp_sender="SecureSign <no-reply@example.com>",
        smtp_host=None,
    )
    service = build_notification_service(settings)

    assert service.send_invitation_email(_invitation()) is True
    payload = calls[0]["json"]
    assert calls[0]["headers"]["Authorization"] == "Bearer SG.key"
    assert payload["from"] == {"email": "no-reply@example.com", "name": "SecureSign"}
    assert payload["personalizations"][0]["to"][0]["email"] == "guest@example.com"


def test_sendgrid_http_error_returns_false(monkeypatch) -> None:
    def fake_post(url, headers=None, json=None, timeout=None):
        return httpx.Response(401, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)
    service = NotificationService()
    service.configure_sendgrid(api_key="bad", sender="no-reply@example.com")

    assert service.send_invitation_email(_invitation()) is False
