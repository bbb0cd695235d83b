"""
Notification Service for ticket events.

WHAT: Decides who gets told about a ticket event and sends the email.

WHY: Ticket, comment and attachment services should only say "this
happened". Recipient selection (admin channel vs. requester) and the
rule that delivery failures never propagate live here.

HOW: Event methods receive domain objects, pick the recipient and
delegate to EmailService. Every method returns True/False and never
raises; failures are logged with their traceback.
"""

import logging
from typing import Awaitable, Callable, Optional

from helpdesk.core.config import settings
from helpdesk.core.exceptions import EmailServiceError
from helpdesk.core.principal import Principal
from helpdesk.models.ticket import Ticket, TicketComment, TicketStatus
from helpdesk.services.email import EmailService, EmailResult, get_email_service

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Sends ticket notifications over email.

    Attributes:
        email_service: Service used to render and send email
        admin_email: Address of the admin channel
    """

    def __init__(
        self,
        email_service: Optional[EmailService] = None,
        admin_email: Optional[str] = None,
    ):
        """
        Args:
            email_service: EmailService instance (defaults to the global one)
            admin_email: Admin channel address (defaults to settings.ADMIN_EMAIL)
        """
        self.email_service = email_service or get_email_service()
        self.admin_email = admin_email or settings.ADMIN_EMAIL

    async def _deliver(
        self,
        send: Callable[[], Awaitable[EmailResult]],
        event: str,
        ticket_id: int,
    ) -> bool:
        """Run one send and turn every failure into a logged False."""
        try:
            result = await send()
        except EmailServiceError as e:
            logger.error(
                f"Failed to send {event} notification for ticket #{ticket_id}: {e.message}",
                extra={"ticket_id": ticket_id, "event": event},
            )
            return False
        except Exception:
            logger.error(
                f"Unexpected error sending {event} notification for ticket #{ticket_id}",
                exc_info=True,
                extra={"ticket_id": ticket_id, "event": event},
            )
            return False
        return result.success

    # =========================================================================
    # Ticket Notifications
    # =========================================================================

    async def notify_ticket_created(self, ticket: Ticket, requester: Principal) -> bool:
        """
        Tell the admin channel a ticket was filed.

        Args:
            ticket: The created ticket
            requester: Who filed it

        Returns:
            True if the email was sent
        """
        logger.info(f"Sending ticket created notification for ticket #{ticket.id}")
        return await self._deliver(
            lambda: self.email_service.send_ticket_created_email(
                to_email=self.admin_email,
                ticket_id=ticket.id,
                ticket_title=ticket.title,
                requester_name=requester.username,
                requester_email=requester.email,
                priority=ticket.priority.value,
            ),
            "ticket_created",
            ticket.id,
        )

    async def notify_status_changed(
        self,
        ticket: Ticket,
        old_status: TicketStatus,
        new_status: TicketStatus,
    ) -> bool:
        """
        Tell the requester their ticket moved.

        Args:
            ticket: Ticket with requester loaded
            old_status: Status before the change
            new_status: Status after the change

        Returns:
            True if the email was sent
        """
        logger.info(
            f"Sending status changed notification for ticket #{ticket.id} "
            f"({old_status.value} -> {new_status.value})"
        )
        return await self._deliver(
            lambda: self.email_service.send_status_changed_email(
                to_email=ticket.requester.email,
                user_name=ticket.requester.username,
                ticket_id=ticket.id,
                ticket_title=ticket.title,
                old_status=old_status.value,
                new_status=new_status.value,
            ),
            "status_changed",
            ticket.id,
        )

    async def notify_comment_added(
        self,
        ticket: Ticket,
        comment: TicketComment,
        author: Principal,
    ) -> bool:
        """
        Tell the other party about a comment.

        Staff comments go to the requester; everyone else's go to the
        admin channel. Nothing is sent when that recipient is the author.

        Args:
            ticket: Ticket with requester loaded
            comment: The new comment
            author: Who wrote it

        Returns:
            True if the email was sent
        """
        if author.is_admin:
            to_email = ticket.requester.email
            recipient_name = ticket.requester.username
        else:
            to_email = self.admin_email
            recipient_name = "Support"

        if to_email.lower() == author.email.lower():
            logger.debug(
                f"Skipping comment notification for ticket #{ticket.id}: recipient is the author"
            )
            return False

        logger.info(f"Sending comment notification for ticket #{ticket.id} to {to_email}")
        return await self._deliver(
            lambda: self.email_service.send_comment_added_email(
                to_email=to_email,
                recipient_name=recipient_name,
                ticket_id=ticket.id,
                ticket_title=ticket.title,
                author_name=author.username,
                comment_body=comment.body,
            ),
            "comment_added",
            ticket.id,
        )

    async def notify_reopened(self, ticket: Ticket, actor: Principal) -> bool:
        """
        Tell the admin channel a requester reopened a ticket.

        Returns:
            True if the email was sent
        """
        logger.info(f"Sending reopened notification for ticket #{ticket.id}")
        return await self._deliver(
            lambda: self.email_service.send_reopened_email(
                to_email=self.admin_email,
                ticket_id=ticket.id,
                ticket_title=ticket.title,
                reopened_by=actor.username,
            ),
            "reopened",
            ticket.id,
        )

    async def notify_auto_closed(self, ticket: Ticket, days: int) -> bool:
        """
        Tell the requester their resolved ticket was closed automatically.

        Args:
            ticket: Ticket with requester loaded
            days: Age threshold that triggered the close

        Returns:
            True if the email was sent
        """
        logger.info(f"Sending auto-close notification for ticket #{ticket.id}")
        return await self._deliver(
            lambda: self.email_service.send_auto_closed_email(
                to_email=ticket.requester.email,
                user_name=ticket.requester.username,
                ticket_id=ticket.id,
                ticket_title=ticket.title,
                days=days,
            ),
            "auto_closed",
            ticket.id,
        )
