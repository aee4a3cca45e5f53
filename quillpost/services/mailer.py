"""Best-effort email delivery and subscriber fan-out.

Each message goes through an ordered list of providers (HTTPS API first,
SMTP relay second) until one accepts it. Failures are logged and reported
as ``DeliveryOutcome``; nothing here raises to the caller and nothing is
retried.

Usage:
    dispatcher = build_dispatcher(get_settings())
    result = await dispatcher.broadcast("Hello", "Body text", ["a@example.com"])
"""

import asyncio
import html
import logging
import ssl
from dataclasses import dataclass
from email.message import EmailMessage as MIMEMessage
from email.utils import make_msgid
from typing import Protocol

import aiosmtplib
import httpx
from fastapi import Request

from quillpost.config import Settings
from quillpost.models.post import Post
from quillpost.services.errors import DeliveryError
from quillpost.services.http_client import get_shared_client
from quillpost.services.renderer import (
    render_broadcast_html,
    render_new_post_email,
    render_welcome_email,
)

logger = logging.getLogger(__name__)

FALLBACK_SENDER = "onboarding@resend.dev"


@dataclass
class MailMessage:
    """One logical email to one recipient."""

    to: str
    subject: str
    html: str
    text: str
    sender: str = ""


@dataclass
class DeliveryOutcome:
    """Result of delivering a single message."""

    recipient: str
    success: bool
    provider: str | None = None
    message_id: str | None = None
    error: str | None = None


@dataclass
class BatchResult:
    """Aggregate counts from a fan-out send."""

    total: int
    sent: int
    failed: int

    def to_dict(self) -> dict:
        return {"total": self.total, "sent": self.sent, "failed": self.failed}


class EmailProvider(Protocol):
    name: str

    async def send(self, message: MailMessage) -> str:
        """Deliver *message* and return the provider's message id.

        Raises ``DeliveryError`` when the provider rejects or cannot be reached.
        """
        ...


class ResendProvider:
    """Transactional email over HTTPS (Resend-compatible JSON API)."""

    name = "resend"

    def __init__(self, api_key: str, api_url: str) -> None:
        self.api_key = api_key
        self.api_url = api_url

    async def send(self, message: MailMessage) -> str:
        client = get_shared_client()
        try:
            resp = await client.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "from": message.sender,
                    "to": message.to,
                    "subject": message.subject,
                    "html": message.html,
                    "text": message.text,
                },
            )
        except httpx.HTTPError as e:
            raise DeliveryError(f"Resend request failed: {e}") from e

        if not resp.is_success:
            raise DeliveryError(f"Resend {resp.status_code}: {resp.text}")
        try:
            return str(resp.json().get("id") or "")
        except ValueError:
            return ""


class SmtpProvider:
    """SMTP relay via aiosmtplib."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        *,
        secure: bool = False,
        require_tls: bool = False,
        timeout: float = 15.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        # Port 465 is implicit TLS regardless of the flag
        self.secure = secure or port == 465
        self.require_tls = require_tls
        self.timeout = timeout

    def _tls_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        return context

    def build_mime(self, message: MailMessage) -> MIMEMessage:
        mime = MIMEMessage()
        mime["From"] = message.sender
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime["Message-ID"] = make_msgid()
        mime.set_content(message.text)
        mime.add_alternative(message.html, subtype="html")
        return mime

    async def send(self, message: MailMessage) -> str:
        mime = self.build_mime(message)
        try:
            await aiosmtplib.send(
                mime,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                use_tls=self.secure,
                # None lets aiosmtplib upgrade opportunistically
                start_tls=False if self.secure else (True if self.require_tls else None),
                tls_context=self._tls_context(),
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP send failed: {e}") from e
        return mime["Message-ID"]


def resolve_sender(settings: Settings) -> str:
    """Configured from-address, else the SMTP username, else a fixed fallback."""
    if settings.mail_from:
        return settings.mail_from
    if settings.smtp_user:
        return settings.smtp_user
    logger.warning("MAIL_FROM not set. Using default sender %s", FALLBACK_SENDER)
    return FALLBACK_SENDER


def build_providers(settings: Settings) -> list[EmailProvider]:
    """Ordered provider list: HTTPS API when keyed, then SMTP when configured."""
    providers: list[EmailProvider] = []
    if settings.resend_api_key:
        providers.append(
            ResendProvider(settings.resend_api_key, settings.resend_api_url)
        )
    if settings.smtp_host and settings.smtp_user and settings.smtp_pass:
        providers.append(
            SmtpProvider(
                settings.smtp_host,
                settings.smtp_port,
                settings.smtp_user,
                settings.smtp_pass,
                secure=settings.smtp_secure,
                require_tls=settings.smtp_require_tls,
                timeout=settings.smtp_timeout_ms / 1000,
            )
        )
    else:
        logger.warning(
            "SMTP relay disabled: missing SMTP_HOST, SMTP_USER or SMTP_PASS"
        )
    return providers


class NotificationDispatcher:
    """Sends product emails through the configured providers."""

    def __init__(
        self, providers: list[EmailProvider], sender: str, site_name: str
    ) -> None:
        self.providers = providers
        self.sender = sender
        self.site_name = site_name

    @property
    def enabled(self) -> bool:
        return bool(self.providers)

    async def send(self, message: MailMessage) -> DeliveryOutcome:
        """Try each provider in order until one delivers. Never raises."""
        if not message.sender:
            message.sender = self.sender
        if not self.providers:
            logger.warning(
                "Email disabled: no provider configured, dropping %r to %s",
                message.subject,
                message.to,
            )
            return DeliveryOutcome(
                recipient=message.to, success=False, error="no email provider configured"
            )

        last_error = ""
        for provider in self.providers:
            try:
                message_id = await provider.send(message)
            except DeliveryError as e:
                last_error = str(e)
                logger.error(
                    "%s send failed to %s (%r): %s",
                    provider.name,
                    message.to,
                    message.subject,
                    e,
                )
                continue
            except Exception as e:
                last_error = str(e)
                logger.exception(
                    "Unexpected %s error sending to %s", provider.name, message.to
                )
                continue

            logger.info(
                "Email sent via %s to %s (%r) id=%s",
                provider.name,
                message.to,
                message.subject,
                message_id,
            )
            return DeliveryOutcome(
                recipient=message.to,
                success=True,
                provider=provider.name,
                message_id=message_id,
            )

        return DeliveryOutcome(recipient=message.to, success=False, error=last_error)

    async def send_batch(
        self, recipients: list[str], subject: str, html_body: str, text: str
    ) -> BatchResult:
        """Send the same message to every recipient concurrently.

        Every send runs to completion regardless of the others; the counts
        reflect actual outcomes.
        """
        if not recipients:
            return BatchResult(total=0, sent=0, failed=0)

        results = await asyncio.gather(
            *(
                self.send(MailMessage(to=r, subject=subject, html=html_body, text=text))
                for r in recipients
            ),
            return_exceptions=True,
        )
        sent = sum(1 for r in results if isinstance(r, DeliveryOutcome) and r.success)
        return BatchResult(total=len(results), sent=sent, failed=len(results) - sent)

    async def notify_new_post(
        self, post: Post, post_url: str, recipients: list[str]
    ) -> BatchResult:
        """Tell every subscriber about a freshly published post."""
        subject, html_body, text = render_new_post_email(post.title, post_url)
        logger.info("Notifying %d subscribers of post %s", len(recipients), post.slug)
        result = await self.send_batch(recipients, subject, html_body, text)
        logger.info(
            "Notification results for %s: total=%d sent=%d failed=%d",
            post.slug,
            result.total,
            result.sent,
            result.failed,
        )
        return result

    async def broadcast(
        self, subject: str, message: str, recipients: list[str]
    ) -> BatchResult:
        """Send an admin-composed message to every subscriber."""
        html_body = render_broadcast_html(subject, message, self.site_name)
        logger.info("Broadcasting %r to %d subscribers", subject, len(recipients))
        result = await self.send_batch(recipients, subject, html_body, message)
        logger.info(
            "Broadcast results for %r: total=%d sent=%d failed=%d",
            subject,
            result.total,
            result.sent,
            result.failed,
        )
        return result

    async def send_welcome(self, email: str) -> DeliveryOutcome:
        subject, html_body, text = render_welcome_email(self.site_name)
        return await self.send(
            MailMessage(to=email, subject=subject, html=html_body, text=text)
        )

    async def send_test(
        self, to: str, subject: str | None = None, body: str | None = None
    ) -> DeliveryOutcome:
        """One-off delivery check used by the admin UI and the CLI script."""
        if body is None:
            body_text = f"Test email from {self.site_name}"
            body_html = f"<p>Test email from <strong>{html.escape(self.site_name)}</strong></p>"
        else:
            body_text = body
            body_html = f"<p>{html.escape(body)}</p>"
        return await self.send(
            MailMessage(
                to=to,
                subject=subject or f"{self.site_name} email test",
                html=body_html,
                text=body_text,
            )
        )


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    return NotificationDispatcher(
        build_providers(settings), resolve_sender(settings), settings.site_name
    )


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """FastAPI dependency returning the dispatcher built at startup."""
    return request.app.state.dispatcher
