"""
Email service for sending ticket notifications.

WHAT: A unified interface for sending HTML email through a pluggable
provider (Resend in production, an in-memory mock otherwise).

WHY: Email is the helpdesk's convenience channel: admins hear about new
and reopened tickets, requesters hear about status changes, and both
sides hear about new comments. Delivery problems must never break the
ticket operation that triggered them, so providers report failures as
an EmailResult instead of raising.

HOW: ResendProvider POSTs to the Resend REST API with httpx. EmailService
renders subjects and bodies through EmailTemplateService and hands the
message to the provider.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, List
from datetime import datetime

import httpx

from helpdesk.core.config import settings
from helpdesk.services.email_template_service import get_email_template_service, EmailTemplateService

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


# ============================================================================
# Email Types and Messages
# ============================================================================


class EmailType(str, Enum):
    """Kinds of notification email, used for logging and test assertions."""

    TICKET_CREATED = "ticket_created"
    STATUS_CHANGED = "status_changed"
    COMMENT_ADDED = "comment_added"
    TICKET_REOPENED = "ticket_reopened"
    TICKET_AUTO_CLOSED = "ticket_auto_closed"


@dataclass
class EmailMessage:
    """
    Represents an email to be sent.
    """

    to_email: str
    """Recipient email address."""

    subject: str
    """Email subject line."""

    html_content: str
    """HTML email body."""

    text_content: Optional[str] = None
    """Plain text fallback."""

    from_email: Optional[str] = None
    """Sender (defaults to settings.EMAIL_FROM)."""

    email_type: EmailType = EmailType.TICKET_CREATED
    """Type of email for tracking/logging."""

    metadata: Optional[Dict[str, Any]] = None
    """Additional metadata for tracking (ticket id, event)."""


@dataclass
class EmailResult:
    """
    Result of an email send operation.
    """

    success: bool
    """Whether email was sent successfully."""

    message_id: Optional[str] = None
    """Provider message ID for tracking."""

    error: Optional[str] = None
    """Error message if send failed."""

    provider: Optional[str] = None
    """Which provider was used."""


# ============================================================================
# Email Provider Interface
# ============================================================================


class EmailProvider(ABC):
    """
    Abstract base class for email providers.
    """

    @abstractmethod
    async def send(self, message: EmailMessage) -> EmailResult:
        """
        Send an email message.

        Args:
            message: The email message to send

        Returns:
            EmailResult with success status and provider details
        """
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """True if credentials are present."""
        pass


class ResendProvider(EmailProvider):
    """
    Resend email provider implementation.
    """

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        """
        Initialize Resend provider.

        Args:
            api_key: Resend API key (defaults to settings)
            from_email: Default sender (defaults to settings.EMAIL_FROM)
        """
        self._api_key = api_key or settings.RESEND_API_KEY
        self._default_from = from_email or settings.EMAIL_FROM

    def is_configured(self) -> bool:
        """Check if Resend API key is configured."""
        return bool(self._api_key)

    async def send(self, message: EmailMessage) -> EmailResult:
        """
        Send email via Resend API.

        Args:
            message: Email message to send

        Returns:
            EmailResult with send status (never raises)
        """
        if not self.is_configured():
            return EmailResult(
                success=False,
                error="Resend API key not configured",
                provider="resend",
            )

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": message.from_email or self._default_from,
                        "to": [message.to_email],
                        "subject": message.subject,
                        "html": message.html_content,
                        "text": message.text_content,
                    },
                    timeout=30.0,
                )

                if response.status_code in (200, 201):
                    data = response.json()
                    return EmailResult(
                        success=True,
                        message_id=data.get("id"),
                        provider="resend",
                    )
                return EmailResult(
                    success=False,
                    error=f"Resend API error: {response.status_code} - {response.text}",
                    provider="resend",
                )

        except httpx.HTTPError as e:
            logger.error(f"Resend send error: {e}")
            return EmailResult(
                success=False,
                error=str(e),
                provider="resend",
            )


class MockEmailProvider(EmailProvider):
    """
    Mock email provider for testing and development.

    Logs emails instead of sending them and keeps them in sent_emails.
    """

    sent_emails: List[EmailMessage] = []
    """Class-level list to track sent emails for testing."""

    def is_configured(self) -> bool:
        """Mock provider is always configured."""
        return True

    async def send(self, message: EmailMessage) -> EmailResult:
        """
        Mock send - logs email instead of sending.

        Args:
            message: Email message to "send"

        Returns:
            Always returns success
        """
        logger.info(
            f"[MOCK EMAIL] To: {message.to_email}, "
            f"Subject: {message.subject}, "
            f"Type: {message.email_type.value}"
        )

        MockEmailProvider.sent_emails.append(message)

        return EmailResult(
            success=True,
            message_id=f"mock-{datetime.utcnow().timestamp()}",
            provider="mock",
        )

    @classmethod
    def clear_sent_emails(cls):
        """Clear sent emails list (for test cleanup)."""
        cls.sent_emails = []


# ============================================================================
# Email Service
# ============================================================================


class EmailService:
    """
    High-level email service for ticket notifications.

    HOW: Each send_* method renders a template and delegates to
    send_email(), which logs the outcome.
    """

    def __init__(
        self,
        provider: Optional[EmailProvider] = None,
        template_service: Optional[EmailTemplateService] = None,
    ):
        """
        Initialize email service.

        Args:
            provider: Email provider to use (auto-detected if not provided)
            template_service: Template service for rendering (auto-created if not provided)
        """
        if provider:
            self._provider = provider
        elif settings.RESEND_API_KEY:
            self._provider = ResendProvider()
        else:
            logger.warning("No email provider configured, using mock provider")
            self._provider = MockEmailProvider()

        self._template_service = template_service or get_email_template_service()

    async def send_email(self, message: EmailMessage) -> EmailResult:
        """
        Send an email message through the provider.

        Args:
            message: Email message to send

        Returns:
            EmailResult with send status
        """
        logger.info(
            f"Sending {message.email_type.value} email to {message.to_email}",
            extra={
                "email_type": message.email_type.value,
                "to": message.to_email,
            },
        )

        result = await self._provider.send(message)

        if result.success:
            logger.info(
                f"Email sent successfully: {result.message_id}",
                extra={
                    "message_id": result.message_id,
                    "provider": result.provider,
                },
            )
        else:
            logger.error(
                f"Email send failed: {result.error}",
                extra={
                    "email_type": message.email_type.value,
                    "to": message.to_email,
                    "error": result.error,
                },
            )

        return result

    async def _send_rendered(
        self,
        to_email: str,
        rendered: tuple[str, str, str],
        email_type: EmailType,
        ticket_id: int,
    ) -> EmailResult:
        subject, html_content, text_content = rendered
        return await self.send_email(
            EmailMessage(
                to_email=to_email,
                subject=subject,
                html_content=html_content,
                text_content=text_content,
                email_type=email_type,
                metadata={"ticket_id": ticket_id},
            )
        )

    async def send_ticket_created_email(
        self,
        to_email: str,
        ticket_id: int,
        ticket_title: str,
        requester_name: str,
        requester_email: str,
        priority: str,
    ) -> EmailResult:
        """
        Tell the admin channel about a new ticket.

        Returns:
            EmailResult with send status
        """
        rendered = self._template_service.render_ticket_created_email(
            ticket_id=ticket_id,
            ticket_title=ticket_title,
            requester_name=requester_name,
            requester_email=requester_email,
            priority=priority,
        )
        return await self._send_rendered(to_email, rendered, EmailType.TICKET_CREATED, ticket_id)

    async def send_status_changed_email(
        self,
        to_email: str,
        user_name: str,
        ticket_id: int,
        ticket_title: str,
        old_status: str,
        new_status: str,
    ) -> EmailResult:
        """
        Tell the requester their ticket changed status.

        Returns:
            EmailResult with send status
        """
        rendered = self._template_service.render_status_changed_email(
            user_name=user_name,
            ticket_id=ticket_id,
            ticket_title=ticket_title,
            old_status=old_status,
            new_status=new_status,
        )
        return await self._send_rendered(to_email, rendered, EmailType.STATUS_CHANGED, ticket_id)

    async def send_comment_added_email(
        self,
        to_email: str,
        recipient_name: str,
        ticket_id: int,
        ticket_title: str,
        author_name: str,
        comment_body: str,
    ) -> EmailResult:
        """
        Tell the other party about a new comment.

        Returns:
            EmailResult with send status
        """
        rendered = self._template_service.render_comment_added_email(
            recipient_name=recipient_name,
            ticket_id=ticket_id,
            ticket_title=ticket_title,
            author_name=author_name,
            comment_body=comment_body,
        )
        return await self._send_rendered(to_email, rendered, EmailType.COMMENT_ADDED, ticket_id)

    async def send_reopened_email(
        self,
        to_email: str,
        ticket_id: int,
        ticket_title: str,
        reopened_by: str,
    ) -> EmailResult:
        """
        Tell the admin channel a requester reopened a ticket.

        Returns:
            EmailResult with send status
        """
        rendered = self._template_service.render_reopened_email(
            ticket_id=ticket_id,
            ticket_title=ticket_title,
            reopened_by=reopened_by,
        )
        return await self._send_rendered(to_email, rendered, EmailType.TICKET_REOPENED, ticket_id)

    async def send_auto_closed_email(
        self,
        to_email: str,
        user_name: str,
        ticket_id: int,
        ticket_title: str,
        days: int,
    ) -> EmailResult:
        """
        Tell the requester their resolved ticket was closed by the auto-close job.

        Returns:
            EmailResult with send status
        """
        rendered = self._template_service.render_auto_closed_email(
            user_name=user_name,
            ticket_id=ticket_id,
            ticket_title=ticket_title,
            days=days,
        )
        return await self._send_rendered(to_email, rendered, EmailType.TICKET_AUTO_CLOSED, ticket_id)


# Module-level singleton
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """
    Get or create the global email service instance.

    Returns:
        EmailService instance
    """
    global _email_service

    if _email_service is None:
        _email_service = EmailService()

    return _email_service
