"""
Email Template Service for rendering Jinja2 email templates.

WHAT: Loads and renders the ticket notification templates.

WHY: Keeping the HTML in template files keeps markup out of the services
and lets every notification share one layout (base.html).

HOW: Uses a Jinja2 environment with FileSystemLoader over
backend/templates/email and HTML autoescaping. Each render method returns
(subject, html, text).
"""

import html as html_lib
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape, TemplateNotFound

from helpdesk.core.config import settings
from helpdesk.core.exceptions import EmailServiceError


logger = logging.getLogger(__name__)


def _status_label(status: str) -> str:
    """in_progress -> In progress"""
    return status.replace("_", " ").capitalize()


class EmailTemplateService:
    """
    Service for rendering email templates.

    Example:
        template_service = EmailTemplateService()
        subject, html, text = template_service.render_reopened_email(
            ticket_id=42,
            ticket_title="Printer broken",
            reopened_by="u1",
        )
    """

    def __init__(self, template_dir: Optional[Path] = None):
        """
        Initialize template service.

        Args:
            template_dir: Path to templates directory (defaults to backend/templates/email)
        """
        if template_dir is None:
            template_dir = Path(__file__).parent.parent.parent / "templates" / "email"

        self._template_dir = template_dir
        self._env = self._create_environment()

    def _create_environment(self) -> Environment:
        """
        Create Jinja2 environment with autoescaping for .html templates.

        Returns:
            Configured Jinja2 Environment
        """
        env = Environment(
            loader=FileSystemLoader(str(self._template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        env.filters["status_label"] = _status_label
        return env

    def _get_base_context(self) -> Dict[str, Any]:
        """Variables every template can use (footer, links)."""
        return {
            "year": datetime.utcnow().year,
            "app_url": settings.APP_URL,
            "platform_name": "Helpdesk",
        }

    @staticmethod
    def ticket_url(ticket_id: int) -> str:
        """Link to a ticket in the web app."""
        return f"{settings.APP_URL.rstrip('/')}/tickets/{ticket_id}"

    def render_template(
        self,
        template_name: str,
        context: Dict[str, Any],
    ) -> str:
        """
        Render a template with given context.

        Args:
            template_name: Name of template file (e.g., "ticket_reopened.html")
            context: Template variables

        Returns:
            Rendered HTML string

        Raises:
            EmailServiceError: If template not found or render fails
        """
        try:
            template = self._env.get_template(template_name)
            full_context = {**self._get_base_context(), **context}
            return template.render(**full_context)
        except TemplateNotFound:
            logger.error(f"Email template not found: {template_name}")
            raise EmailServiceError(
                message=f"Email template not found: {template_name}",
                template=template_name,
            )
        except Exception as e:
            logger.error(f"Error rendering template {template_name}: {e}")
            raise EmailServiceError(
                message="Failed to render email template",
                template=template_name,
                error=str(e),
            )

    # =========================================================================
    # Ticket notifications
    # =========================================================================

    def render_ticket_created_email(
        self,
        ticket_id: int,
        ticket_title: str,
        requester_name: str,
        requester_email: str,
        priority: str,
    ) -> tuple[str, str, str]:
        """
        Render the admin-channel notice for a new ticket.

        Returns:
            Tuple of (subject, html_content, text_content)
        """
        ticket_url = self.ticket_url(ticket_id)
        html = self.render_template(
            "ticket_created.html",
            {
                "ticket_id": ticket_id,
                "ticket_title": ticket_title,
                "requester_name": requester_name,
                "requester_email": requester_email,
                "priority": priority,
                "ticket_url": ticket_url,
            },
        )
        text = self._generate_text_version(
            f"New ticket #{ticket_id} from {requester_name} <{requester_email}>.\n\n"
            f"Title: {ticket_title}\n"
            f"Priority: {priority}\n\n"
            f"View ticket: {ticket_url}"
        )
        return f"New ticket: {ticket_title}", html, text

    def render_status_changed_email(
        self,
        user_name: str,
        ticket_id: int,
        ticket_title: str,
        old_status: str,
        new_status: str,
    ) -> tuple[str, str, str]:
        """
        Render the requester notice for a status change.

        Returns:
            Tuple of (subject, html_content, text_content)
        """
        ticket_url = self.ticket_url(ticket_id)
        html = self.render_template(
            "ticket_status_changed.html",
            {
                "user_name": user_name,
                "ticket_id": ticket_id,
                "ticket_title": ticket_title,
                "old_status": old_status,
                "new_status": new_status,
                "ticket_url": ticket_url,
            },
        )
        text = self._generate_text_version(
            f"Hi {user_name},\n\n"
            f"The status of your ticket \"{ticket_title}\" changed from "
            f"{_status_label(old_status)} to {_status_label(new_status)}.\n\n"
            f"View ticket: {ticket_url}"
        )
        return f"Status changed: {ticket_title} → {new_status}", html, text

    def render_comment_added_email(
        self,
        recipient_name: str,
        ticket_id: int,
        ticket_title: str,
        author_name: str,
        comment_body: str,
    ) -> tuple[str, str, str]:
        """
        Render the "other party" notice for a new comment.

        Args:
            comment_body: Stored comment body. It is already HTML-escaped,
                so the template marks it safe instead of escaping it twice.

        Returns:
            Tuple of (subject, html_content, text_content)
        """
        ticket_url = self.ticket_url(ticket_id)
        html = self.render_template(
            "ticket_comment_added.html",
            {
                "recipient_name": recipient_name,
                "ticket_id": ticket_id,
                "ticket_title": ticket_title,
                "author_name": author_name,
                "comment_body": comment_body,
                "ticket_url": ticket_url,
            },
        )
        text = self._generate_text_version(
            f"Hi {recipient_name},\n\n"
            f"{author_name} commented on \"{ticket_title}\":\n\n"
            f"{html_lib.unescape(comment_body)}\n\n"
            f"Reply: {ticket_url}"
        )
        return f"New comment on: {ticket_title}", html, text

    def render_reopened_email(
        self,
        ticket_id: int,
        ticket_title: str,
        reopened_by: str,
    ) -> tuple[str, str, str]:
        """
        Render the admin-channel notice for a requester reopening a ticket.

        Returns:
            Tuple of (subject, html_content, text_content)
        """
        ticket_url = self.ticket_url(ticket_id)
        html = self.render_template(
            "ticket_reopened.html",
            {
                "ticket_id": ticket_id,
                "ticket_title": ticket_title,
                "reopened_by": reopened_by,
                "ticket_url": ticket_url,
            },
        )
        text = self._generate_text_version(
            f"{reopened_by} reopened ticket #{ticket_id} \"{ticket_title}\".\n\n"
            f"View ticket: {ticket_url}"
        )
        return f"Reopened: {ticket_title}", html, text

    def render_auto_closed_email(
        self,
        user_name: str,
        ticket_id: int,
        ticket_title: str,
        days: int,
    ) -> tuple[str, str, str]:
        """
        Render the requester notice for a ticket closed by the auto-close job.

        Returns:
            Tuple of (subject, html_content, text_content)
        """
        ticket_url = self.ticket_url(ticket_id)
        html = self.render_template(
            "ticket_auto_closed.html",
            {
                "user_name": user_name,
                "ticket_id": ticket_id,
                "ticket_title": ticket_title,
                "days": days,
                "ticket_url": ticket_url,
            },
        )
        text = self._generate_text_version(
            f"Hi {user_name},\n\n"
            f"Your ticket \"{ticket_title}\" was closed automatically after "
            f"{days} days in the resolved state.\n\n"
            f"View ticket: {ticket_url}"
        )
        return f"Closed: {ticket_title}", html, text

    @staticmethod
    def _generate_text_version(content: str) -> str:
        """
        Plain text fallback with the standard footer.

        Args:
            content: Text content

        Returns:
            Formatted plain text email
        """
        footer = (
            "\n\n---\n"
            "Helpdesk\n"
            "You are receiving this because you are part of this ticket."
        )
        return content.strip() + footer


# Module-level singleton
_template_service: Optional[EmailTemplateService] = None


def get_email_template_service() -> EmailTemplateService:
    """
    Get or create the global template service instance.

    Returns:
        EmailTemplateService instance
    """
    global _template_service

    if _template_service is None:
        _template_service = EmailTemplateService()

    return _template_service
