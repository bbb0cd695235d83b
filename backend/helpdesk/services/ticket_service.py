"""
Ticket Service.

WHAT: The ticket lifecycle: creation, priority changes, status
transitions and the requester reopen flow.

WHY: Ticket status is the one piece of helpdesk state with real rules:
1. Only admins change status or priority
2. Non-admin transitions follow ALLOWED_STATUS_TRANSITIONS; admins may
   move a ticket anywhere, including out of CLOSED
3. Status writes carry timestamp side effects (resolved_at, closed_at)
4. Requesters may reopen their own resolved ticket for a limited window
5. Every change writes exactly one audit entry, in the same transaction

HOW: Orchestrates TicketDAO, TicketAttachmentDAO, AuditService and the
notification path. Methods flush through the caller's session and never
commit; the request dependency (get_db) commits or rolls back the unit.
Notifications are gated by NotificationDeduplicator where the event can
repeat, and never fail the operation.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence, Tuple, Union

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import settings
from helpdesk.core.exceptions import (
    AuthorizationError,
    InvalidAttachmentKeyError,
    InvalidPriorityError,
    InvalidStatusError,
    InvalidTransitionError,
    ReopenNotAllowedError,
    ReopenWindowElapsedError,
    TicketNotFoundError,
)
from helpdesk.core.principal import Principal
from helpdesk.dao.ticket import TicketDAO, TicketAttachmentDAO, is_transition_allowed
from helpdesk.models.audit_log import AuditAction, AuditTargetType
from helpdesk.models.ticket import Ticket, TicketStatus, TicketPriority, NotificationEvent
from helpdesk.schemas.ticket import AttachmentMeta
from helpdesk.services.audit import AuditService
from helpdesk.services.notification_dedup import NotificationDeduplicator
from helpdesk.services.notification_service import NotificationService
from helpdesk.services.storage import user_key_prefix

logger = logging.getLogger(__name__)


def ensure_admin(principal: Principal, action: str) -> None:
    """
    Raise AuthorizationError unless the principal is an admin.

    Args:
        principal: Caller
        action: Short description used in the error context
    """
    if not principal.is_admin:
        raise AuthorizationError(
            message="Admin access required",
            action=action,
            user_id=principal.id,
        )


def _has_unsafe_segment(key: str) -> bool:
    return any(segment in ("", ".", "..") for segment in key.split("/"))


def ensure_keys_owned(principal: Principal, attachments: Sequence[AttachmentMeta]) -> None:
    """
    Check every storage key sits under the principal's own prefix.

    Keys are namespaced as u/<uploader id>/..., so ownership is decided
    from the key string alone. Empty, "." and ".." segments are refused
    so a path-normalizing store cannot resolve the key outside the prefix.

    Raises:
        InvalidAttachmentKeyError: On the first key outside the prefix
    """
    prefix = user_key_prefix(principal.id)
    for attachment in attachments:
        key = attachment.storage_key
        if not key.startswith(prefix) or _has_unsafe_segment(key):
            raise InvalidAttachmentKeyError(
                storage_key=attachment.storage_key,
                user_id=principal.id,
            )


async def get_visible_ticket(
    ticket_dao: TicketDAO,
    principal: Principal,
    ticket_id: int,
) -> Ticket:
    """
    Load a ticket the principal may act on.

    Admins see every ticket. Anyone else sees only their own, and a
    missing ticket looks the same to them as someone else's: both raise
    AuthorizationError, so ticket ids are never confirmed to non-owners.

    Raises:
        AuthorizationError: Non-admin and the ticket is missing or not theirs
        TicketNotFoundError: Admin and the ticket is missing
    """
    ticket = await ticket_dao.get_by_id(ticket_id)
    may_access = ticket is not None and (
        principal.is_admin or ticket.created_by_user_id == principal.id
    )

    if not may_access:
        if principal.is_admin:
            raise TicketNotFoundError(ticket_id=ticket_id)
        raise AuthorizationError(ticket_id=ticket_id, user_id=principal.id)

    return ticket


class TicketService:
    """
    Service for ticket lifecycle operations.

    Example:
        service = TicketService(db)
        ticket, changed = await service.update_status(admin, ticket_id, "in_progress")
    """

    def __init__(
        self,
        session: AsyncSession,
        notification_service: Optional[NotificationService] = None,
        deduplicator: Optional[NotificationDeduplicator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize TicketService.

        Args:
            session: Async database session (the caller owns the transaction)
            notification_service: Email notifications (defaults to a new one)
            deduplicator: Notification gate (defaults to one on this session)
            clock: Returns the current UTC time (injectable for tests)
        """
        self.session = session
        self.ticket_dao = TicketDAO(session)
        self.attachment_dao = TicketAttachmentDAO(session)
        self.audit = AuditService(session)
        self._clock = clock or datetime.utcnow
        self.deduplicator = deduplicator or NotificationDeduplicator(session, clock=self._clock)
        self.notifications = notification_service or NotificationService()

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_ticket(
        self,
        principal: Principal,
        title: str,
        body: str,
        attachments: Optional[Sequence[AttachmentMeta]] = None,
    ) -> Ticket:
        """
        File a new ticket, optionally with already-uploaded attachments.

        WHAT: Ticket row, attachment rows and the ticket:create audit entry
        are written in one transaction; the admin channel is then told.

        Args:
            principal: Requester
            title: Ticket title
            body: Problem description
            attachments: Metadata of files uploaded through presigned URLs

        Returns:
            The new Ticket (status NEW)

        Raises:
            InvalidAttachmentKeyError: If a key is not under the requester's prefix
        """
        attachments = list(attachments or [])
        ensure_keys_owned(principal, attachments)

        now = self._clock()
        ticket = await self.ticket_dao.create(
            created_by_user_id=principal.id,
            title=title,
            body=body,
            now=now,
        )

        if attachments:
            await self.attachment_dao.create_many(
                ticket_id=ticket.id,
                uploaded_by_user_id=principal.id,
                files=[a.model_dump() for a in attachments],
                now=now,
            )

        await self.audit.record(
            actor_user_id=principal.id,
            action=AuditAction.TICKET_CREATE,
            target_type=AuditTargetType.TICKET,
            target_id=ticket.id,
            changes={"title": ticket.title, "attachments": len(attachments)},
        )

        logger.info(
            f"Ticket #{ticket.id} created by user {principal.id}",
            extra={"ticket_id": ticket.id, "actor_id": principal.id, "action": "ticket:create"},
        )

        # One-time event per ticket, so no dedup gate
        await self.notifications.notify_ticket_created(ticket, principal)

        return ticket

    # =========================================================================
    # Admin updates
    # =========================================================================

    async def update_priority(
        self,
        principal: Principal,
        ticket_id: int,
        priority: Union[str, TicketPriority],
    ) -> Tuple[Ticket, bool]:
        """
        Change a ticket's priority (admin only).

        Args:
            principal: Caller, must be an admin
            ticket_id: Ticket to change
            priority: New priority value

        Returns:
            (ticket, changed). changed is False when the priority was
            already set; nothing is written in that case.

        Raises:
            AuthorizationError: If the caller is not an admin
            InvalidPriorityError: If the value is not a TicketPriority
            TicketNotFoundError: If the ticket does not exist
        """
        ensure_admin(principal, "update_priority")
        new_priority = self._coerce_priority(priority)

        ticket = await self.ticket_dao.get_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id=ticket_id)

        previous = ticket.priority
        if previous == new_priority:
            return ticket, False

        await self.ticket_dao.set_priority(ticket, new_priority, now=self._clock())
        await self.audit.record(
            actor_user_id=principal.id,
            action=AuditAction.TICKET_PRIORITY_CHANGE,
            target_type=AuditTargetType.TICKET,
            target_id=ticket.id,
            changes={"from": previous, "to": new_priority},
        )

        logger.info(
            f"Ticket #{ticket.id} priority {previous.value} -> {new_priority.value}",
            extra={"ticket_id": ticket.id, "actor_id": principal.id, "action": "ticket:priority_change"},
        )
        return ticket, True

    async def update_status(
        self,
        principal: Principal,
        ticket_id: int,
        status: Union[str, TicketStatus],
    ) -> Tuple[Ticket, bool]:
        """
        Move a ticket to a new status (admin only).

        Args:
            principal: Caller, must be an admin
            ticket_id: Ticket to change
            status: Target status value

        Returns:
            (ticket, changed). changed is False when the ticket already had
            this status; nothing is written or sent in that case.

        Raises:
            AuthorizationError: If the caller is not an admin
            InvalidStatusError: If the value is not a TicketStatus
            TicketNotFoundError: If the ticket does not exist
            InvalidTransitionError: If a non-admin path asks for an edge
                missing from the transition table
        """
        ensure_admin(principal, "update_status")
        new_status = self._coerce_status(status)

        ticket = await self.ticket_dao.get_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id=ticket_id)

        previous = ticket.status
        if previous == new_status:
            return ticket, False

        self._ensure_transition(principal.is_admin, previous, new_status)

        await self.ticket_dao.change_status(ticket, new_status, now=self._clock())
        await self.audit.record(
            actor_user_id=principal.id,
            action=AuditAction.TICKET_STATUS_CHANGE,
            target_type=AuditTargetType.TICKET,
            target_id=ticket.id,
            changes={"from": previous, "to": new_status},
        )

        logger.info(
            f"Ticket #{ticket.id} status {previous.value} -> {new_status.value}",
            extra={"ticket_id": ticket.id, "actor_id": principal.id, "action": "ticket:status_change"},
        )

        if await self.deduplicator.should_send(ticket.id, NotificationEvent.STATUS_CHANGED):
            await self.notifications.notify_status_changed(ticket, previous, new_status)

        return ticket, True

    # =========================================================================
    # Reopen
    # =========================================================================

    async def reopen(self, principal: Principal, ticket_id: int) -> Ticket:
        """
        Reopen a ticket.

        WHAT: Admins may reopen from any state at any time. A requester may
        reopen only their own ticket, only while it is RESOLVED, and only
        within REOPEN_WINDOW_DAYS of resolved_at.

        Args:
            principal: Caller
            ticket_id: Ticket to reopen

        Returns:
            The ticket in REOPENED with resolved_at and closed_at cleared

        Raises:
            TicketNotFoundError: If the ticket does not exist
            AuthorizationError: If a non-admin does not own the ticket
            ReopenNotAllowedError: If a non-admin's ticket is not RESOLVED
            ReopenWindowElapsedError: If the window has passed
        """
        ticket = await self.ticket_dao.get_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id=ticket_id)

        now = self._clock()
        if not principal.is_admin:
            self._ensure_requester_may_reopen(principal, ticket, now)

        previous = ticket.status
        await self.ticket_dao.change_status(ticket, TicketStatus.REOPENED, now=now)
        await self.audit.record(
            actor_user_id=principal.id,
            action=AuditAction.TICKET_REOPEN,
            target_type=AuditTargetType.TICKET,
            target_id=ticket.id,
            changes={"from": previous, "to": TicketStatus.REOPENED},
        )

        logger.info(
            f"Ticket #{ticket.id} reopened by user {principal.id}",
            extra={"ticket_id": ticket.id, "actor_id": principal.id, "action": "ticket:reopen"},
        )

        if not principal.is_admin and await self.deduplicator.should_send(
            ticket.id, NotificationEvent.REOPENED
        ):
            await self.notifications.notify_reopened(ticket, principal)

        return ticket

    def _ensure_requester_may_reopen(
        self,
        principal: Principal,
        ticket: Ticket,
        now: datetime,
    ) -> None:
        if ticket.created_by_user_id != principal.id:
            raise AuthorizationError(
                message="You can only reopen your own tickets",
                ticket_id=ticket.id,
                user_id=principal.id,
            )

        if ticket.status != TicketStatus.RESOLVED:
            raise ReopenNotAllowedError(ticket_id=ticket.id, status=ticket.status.value)

        window = timedelta(days=settings.REOPEN_WINDOW_DAYS)
        if ticket.resolved_at is None or now > ticket.resolved_at + window:
            raise ReopenWindowElapsedError(
                ticket_id=ticket.id,
                window_days=settings.REOPEN_WINDOW_DAYS,
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _ensure_transition(
        is_admin: bool,
        current: TicketStatus,
        requested: TicketStatus,
    ) -> None:
        """
        Admins move unconditionally; everyone else follows the table.

        Raises:
            InvalidTransitionError: If the table has no such edge
        """
        if is_admin:
            return
        if not is_transition_allowed(current, requested):
            raise InvalidTransitionError(
                message=f"Cannot change status from {current.value} to {requested.value}",
                from_status=current.value,
                to_status=requested.value,
            )

    @staticmethod
    def _coerce_priority(value: Union[str, TicketPriority]) -> TicketPriority:
        try:
            return TicketPriority(value)
        except ValueError:
            raise InvalidPriorityError(
                message=f"Invalid priority: {value}",
                allowed=[p.value for p in TicketPriority],
            )

    @staticmethod
    def _coerce_status(value: Union[str, TicketStatus]) -> TicketStatus:
        try:
            return TicketStatus(value)
        except ValueError:
            raise InvalidStatusError(
                message=f"Invalid status: {value}",
                allowed=[s.value for s in TicketStatus],
            )
