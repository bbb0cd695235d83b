"""
Comment Service.

WHAT: Adds and soft-deletes ticket comments.

WHY: Comments are the conversation between requester and staff. Who may
write, who may delete, and who hears about a new comment are decided
here, next to the audit entry each change writes.

HOW: A single ticket lookup followed by an explicit permission check.
A non-owner gets AuthorizationError whether or not the ticket exists, so
ticket ids are not confirmed to people who cannot see them. Bodies are
HTML-escaped before storage.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.exceptions import AuthorizationError, CommentNotFoundError
from helpdesk.core.principal import Principal
from helpdesk.dao.ticket import TicketDAO, TicketCommentDAO
from helpdesk.models.audit_log import AuditAction, AuditTargetType
from helpdesk.models.ticket import TicketComment, NotificationEvent
from helpdesk.services.audit import AuditService
from helpdesk.services.notification_dedup import NotificationDeduplicator
from helpdesk.services.notification_service import NotificationService
from helpdesk.services.ticket_service import get_visible_ticket
from helpdesk.utils.sanitize import escape_html

logger = logging.getLogger(__name__)


class CommentService:
    """
    Service for ticket comments.

    Example:
        service = CommentService(db)
        comment = await service.add(principal, ticket_id, "Any update?")
    """

    def __init__(
        self,
        session: AsyncSession,
        notification_service: Optional[NotificationService] = None,
        deduplicator: Optional[NotificationDeduplicator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.ticket_dao = TicketDAO(session)
        self.comment_dao = TicketCommentDAO(session)
        self.audit = AuditService(session)
        self._clock = clock or datetime.utcnow
        self.deduplicator = deduplicator or NotificationDeduplicator(session, clock=self._clock)
        self.notifications = notification_service or NotificationService()

    async def add(self, principal: Principal, ticket_id: int, body: str) -> TicketComment:
        """
        Add a comment and tell the other party.

        Admin comments notify the requester; requester comments notify the
        admin channel. At most one email per ticket per minute.

        Args:
            principal: Author
            ticket_id: Ticket to comment on
            body: Raw comment text

        Returns:
            Created TicketComment (body stored escaped)

        Raises:
            AuthorizationError: If a non-admin does not own the ticket
            TicketNotFoundError: If an admin names a missing ticket
        """
        ticket = await get_visible_ticket(self.ticket_dao, principal, ticket_id)

        comment = await self.comment_dao.create(
            ticket_id=ticket.id,
            author_user_id=principal.id,
            body=escape_html(body),
            now=self._clock(),
        )

        await self.audit.record(
            actor_user_id=principal.id,
            action=AuditAction.COMMENT_ADD,
            target_type=AuditTargetType.COMMENT,
            target_id=comment.id,
            changes={"ticketId": ticket.id},
        )

        logger.info(
            f"Comment {comment.id} added to ticket #{ticket.id} by user {principal.id}",
            extra={"ticket_id": ticket.id, "actor_id": principal.id, "action": "comment:add"},
        )

        if await self.deduplicator.should_send(ticket.id, NotificationEvent.COMMENT_ADDED):
            await self.notifications.notify_comment_added(ticket, comment, principal)

        return comment

    async def soft_delete(self, principal: Principal, comment_id: int) -> TicketComment:
        """
        Hide a comment. The body stays in the database.

        Args:
            principal: Caller, must be an admin or the comment's author
            comment_id: Comment to delete

        Returns:
            Updated TicketComment

        Raises:
            CommentNotFoundError: If the comment does not exist
            AuthorizationError: If the caller is neither admin nor author
        """
        comment = await self.comment_dao.get_by_id(comment_id)
        if comment is None:
            raise CommentNotFoundError(comment_id=comment_id)

        if not (principal.is_admin or comment.author_user_id == principal.id):
            raise AuthorizationError(
                message="You can only delete your own comments",
                comment_id=comment_id,
                user_id=principal.id,
            )

        await self.comment_dao.soft_delete(comment, now=self._clock())
        await self.audit.record(
            actor_user_id=principal.id,
            action=AuditAction.COMMENT_DELETE,
            target_type=AuditTargetType.COMMENT,
            target_id=comment.id,
            changes={"ticketId": comment.ticket_id},
        )

        logger.info(
            f"Comment {comment.id} deleted by user {principal.id}",
            extra={"ticket_id": comment.ticket_id, "actor_id": principal.id, "action": "comment:delete"},
        )
        return comment
