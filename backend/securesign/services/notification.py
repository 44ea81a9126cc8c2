from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import parseaddr
from pathlib import Path
from typing import Optional

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from securesign.core.logging_setup import logger


@dataclass
class EmailConfig:
    host: str
    port: int
    username: str | None
    password: str | None
    sender: str
    starttls: bool


@dataclass
class SendGridConfig:
    api_key: str
    sender: str | None


@dataclass
class InvitationEmail:
    sender_name: str
    recipient_email: str
    recipient_name: str
    document_name: str
    role: str
    link: str


class NotificationService:
    """
    Outbound e-mail. Delivery is fire-and-forget: ``send_invitation_email``
    reports success as a boolean and never raises for transport failures.
    Without any configured sender the message is only logged.
    """

    def __init__(
        self,
        email_config: Optional[EmailConfig] = None,
        sendgrid_config: Optional[SendGridConfig] = None,
        email_backend: str = "smtp",
        template_root: Path | None = None,
    ) -> None:
        self.email_config = email_config
        self.sendgrid_config = sendgrid_config
        normalized_backend = (email_backend or "smtp").strip().lower()
        self.email_backend = normalized_backend if normalized_backend in {"smtp", "sendgrid"} else "smtp"
        self.template_root = template_root or Path(__file__).resolve().parent.parent / "templates"
        self.template_env = Environment(
            loader=FileSystemLoader(self.template_root),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def apply_email_settings(self, settings) -> None:  # type: ignore[no-untyped-def]
        preferred = (getattr(settings, "email_backend", "smtp") or "smtp").strip().lower()
        sender = getattr(settings, "smtp_sender", None)
        sendgrid_key = getattr(settings, "sendgrid_api_key", None)
        smtp_host = getattr(settings, "smtp_host", None)

        if preferred == "sendgrid" and sendgrid_key and sender:
            self.configure_sendgrid(api_key=sendgrid_key, sender=sender)
            return
        if smtp_host and sender:
            self.configure_email(
                host=smtp_host,
                port=int(getattr(settings, "smtp_port", 587)),
                sender=sender,
                username=getattr(settings, "smtp_username", None),
                password=getattr(settings, "smtp_password", None),
                starttls=bool(getattr(settings, "smtp_starttls", True)),
            )
            return
        if sendgrid_key and sender:
            self.configure_sendgrid(api_key=sendgrid_key, sender=sender)

    def configure_email(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        starttls: bool = True,
    ) -> None:
        self.email_config = EmailConfig(
            host=host,
            port=port,
            username=username,
            password=password,
            sender=sender,
            starttls=starttls,
        )
        self.email_backend = "smtp"

    def configure_sendgrid(self, *, api_key: str, sender: str | None = None) -> None:
        self.sendgrid_config = SendGridConfig(api_key=api_key, sender=sender)
        self.email_backend = "sendgrid"

    def _email_sender_available(self) -> bool:
        if self.email_backend == "sendgrid":
            return self.sendgrid_config is not None
        return self.email_config is not None

    def _render_template(self, template_name: str, context: dict) -> str:
        template = self.template_env.get_template(template_name)
        return template.render(**context)

    def send_invitation_email(self, invitation: InvitationEmail) -> bool:
        subject = f"Invitation to {invitation.role} document: {invitation.document_name}"
        text_body = (
            f"Hello {invitation.recipient_name},\n\n"
            f"{invitation.sender_name} has invited you to {invitation.role} the document "
            f"\"{invitation.document_name}\".\n\n"
            f"Open the document:\n{invitation.link}\n"
        )

        if not self._email_sender_available():
            logger.info(
                "[EMAIL] No sender configured; simulated invitation to %s (%s)",
                invitation.recipient_email,
                invitation.link,
            )
            return True

        html_body = self._render_template(
            "email/invitation.html",
            {
                "sender_name": invitation.sender_name,
                "recipient_name": invitation.recipient_name,
                "document_name": invitation.document_name,
                "role": invitation.role,
                "link": invitation.link,
            },
        )
        try:
            self._send_email(
                to=invitation.recipient_email,
                subject=subject,
                html_body=html_body,
                text_body=text_body,
            )
        except (OSError, smtplib.SMTPException, httpx.HTTPError, RuntimeError) as exc:
            logger.error("[EMAIL] Invitation to %s failed: %s", invitation.recipient_email, exc)
            return False

        logger.info("[EMAIL] Invitation sent to %s", invitation.recipient_email)
        return True

    def _send_email(
        self,
        *,
        to: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> None:
        if self.email_backend == "sendgrid":
            self._send_email_via_sendgrid(to=to, subject=subject, html_body=html_body, text_body=text_body)
            return

        if not self.email_config:
            raise RuntimeError("Email sender not configured")

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.email_config.sender
        message["To"] = to
        message.set_content(text_body or "", subtype="plain", charset="utf-8")
        message.add_alternative(html_body, subtype="html", charset="utf-8")

        with smtplib.SMTP(self.email_config.host, self.email_config.port, timeout=10) as smtp:
            if self.email_config.starttls:
                smtp.starttls()
            if self.email_config.username and self.email_config.password:
                smtp.login(self.email_config.username, self.email_config.password)
            smtp.send_message(message)

    def _send_email_via_sendgrid(
        self,
        *,
        to: str,
        subject: str,
        html_body: str,
        text_body: str | None,
    ) -> None:
        if not self.sendgrid_config:
            raise RuntimeError("SendGrid sender not configured")

        sender = self.sendgrid_config.sender or (self.email_config.sender if self.email_config else None)
        if not sender:
            raise RuntimeError("SendGrid sender address missing")
        name, email = parseaddr(sender)
        if not email:
            raise RuntimeError("SendGrid sender address invalid")

        contents: list[dict[str, str]] = []
        if text_body:
            contents.append({"type": "text/plain", "value": text_body})
        contents.append({"type": "text/html", "value": html_body})

        payload: dict[str, object] = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": email, **({"name": name} if name else {})},
            "subject": subject,
            "content": contents,
        }
        response = httpx.post(
            "https://api.sendgrid.com/v3/mail/send",
            headers={
                "Authorization": f"Bearer {self.sendgrid_config.api_key}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=10,
        )
        response.raise_for_status()


def build_notification_service(settings) -> NotificationService:  # type: ignore[no-untyped-def]
    service = NotificationService(email_backend=getattr(settings, "email_backend", "smtp"))
    service.apply_email_settings(settings)
    return service
