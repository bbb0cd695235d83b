"""
Ticket Data Access Object.

WHAT: DAOs for tickets, comments and attachments, plus the status
transition table.

WHY: Encapsulates all ticket database operations with:
1. Status transition table and timestamp side effects in one place
2. Single-query ticket lookups that also load the requester
3. Soft delete for comments
4. Conflict-skipping bulk insert for attachments

HOW: Uses SQLAlchemy 2.0 async. Methods flush but never commit; the caller
owns the transaction.
"""

from datetime import datetime
from typing import Optional, List, Dict, FrozenSet, Iterable, Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from helpdesk.dao.base import BaseDAO
from helpdesk.models.ticket import (
    Ticket,
    TicketStatus,
    TicketPriority,
    TicketComment,
    TicketAttachment,
)


# Status transitions allowed without an admin override.
# CLOSED has no outgoing edges; a closed ticket only moves again through
# an admin action.
ALLOWED_STATUS_TRANSITIONS: Dict[TicketStatus, FrozenSet[TicketStatus]] = {
    TicketStatus.NEW: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.CLOSED}),
    TicketStatus.IN_PROGRESS: frozenset(
        {TicketStatus.WAITING_ON_USER, TicketStatus.RESOLVED, TicketStatus.CLOSED}
    ),
    TicketStatus.WAITING_ON_USER: frozenset(
        {TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED}
    ),
    TicketStatus.RESOLVED: frozenset({TicketStatus.CLOSED, TicketStatus.REOPENED}),
    TicketStatus.REOPENED: frozenset(
        {
            TicketStatus.IN_PROGRESS,
            TicketStatus.WAITING_ON_USER,
            TicketStatus.RESOLVED,
            TicketStatus.CLOSED,
        }
    ),
    TicketStatus.CLOSED: frozenset(),
}


def is_transition_allowed(current: TicketStatus, requested: TicketStatus) -> bool:
    """
    Look up a status change in the transition table.

    Args:
        current: Status the ticket is in now
        requested: Status being asked for

    Returns:
        True if the edge exists in ALLOWED_STATUS_TRANSITIONS
    """
    return requested in ALLOWED_STATUS_TRANSITIONS.get(current, frozenset())


class TicketDAO:
    """
    Data Access Object for Ticket operations.

    WHAT: Manages ticket persistence and the timestamp rules that travel
    with every status write.

    HOW: All methods are async and use the injected session.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize TicketDAO with database session.

        Args:
            session: AsyncSession for database operations
        """
        self.session = session

    # =========================================================================
    # CRUD Operations
    # =========================================================================

    async def create(
        self,
        created_by_user_id: int,
        title: str,
        body: str,
        priority: TicketPriority = TicketPriority.NORMAL,
        now: Optional[datetime] = None,
    ) -> Ticket:
        """
        Create a new ticket in the NEW state.

        Args:
            created_by_user_id: Requester's user id
            title: Ticket title
            body: Ticket description
            priority: Initial priority
            now: Creation timestamp (defaults to current UTC time)

        Returns:
            Created Ticket
        """
        ticket = Ticket(
            created_by_user_id=created_by_user_id,
            title=title,
            body=body,
            status=TicketStatus.NEW,
            priority=priority,
            created_at=now or datetime.utcnow(),
        )

        self.session.add(ticket)
        await self.session.flush()
        await self.session.refresh(ticket)

        return ticket

    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        """
        Get ticket by ID with its requester loaded.

        Args:
            ticket_id: Ticket ID

        Returns:
            Ticket if found, None otherwise
        """
        query = (
            select(Ticket)
            .options(selectinload(Ticket.requester))
            .where(Ticket.id == ticket_id)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_id_with_relations(self, ticket_id: int) -> Optional[Ticket]:
        """
        Get ticket with requester, comments (and their authors) and attachments.

        Args:
            ticket_id: Ticket ID

        Returns:
            Ticket with relationships loaded, None if not found
        """
        query = (
            select(Ticket)
            .options(
                selectinload(Ticket.requester),
                selectinload(Ticket.comments).selectinload(TicketComment.author),
                selectinload(Ticket.attachments),
            )
            .where(Ticket.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_resolved_before(self, cutoff: datetime) -> List[Ticket]:
        """
        List resolved tickets whose resolution is at or before cutoff.

        Args:
            cutoff: Latest resolved_at to include

        Returns:
            Tickets eligible for auto-close, oldest resolution first
        """
        query = (
            select(Ticket)
            .options(selectinload(Ticket.requester))
            .where(
                Ticket.status == TicketStatus.RESOLVED,
                Ticket.resolved_at.is_not(None),
                Ticket.resolved_at <= cutoff,
            )
            .order_by(Ticket.resolved_at.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    # =========================================================================
    # Mutations
    # =========================================================================

    async def set_priority(
        self,
        ticket: Ticket,
        priority: TicketPriority,
        now: Optional[datetime] = None,
    ) -> Ticket:
        """
        Persist a new priority.

        Args:
            ticket: Loaded ticket
            priority: New priority

        Returns:
            Updated Ticket
        """
        ticket.priority = priority
        ticket.updated_at = now or datetime.utcnow()
        await self.session.flush()
        return ticket

    async def change_status(
        self,
        ticket: Ticket,
        new_status: TicketStatus,
        now: Optional[datetime] = None,
    ) -> Ticket:
        """
        Write a new status together with its timestamp side effects.

        WHAT: The only place ticket status is written.

        Rules:
        - to RESOLVED: resolved_at = now, closed_at cleared
        - to CLOSED: closed_at = now, resolved_at kept
        - to anything else from RESOLVED or CLOSED: closed_at cleared
        - to REOPENED: resolved_at cleared as well

        Transition legality is the caller's decision; this method applies
        whatever it is given.

        Args:
            ticket: Loaded ticket
            new_status: Target status
            now: Timestamp to record (defaults to current UTC time)

        Returns:
            Updated Ticket
        """
        now = now or datetime.utcnow()
        old_status = ticket.status

        if new_status == TicketStatus.RESOLVED:
            ticket.resolved_at = now
            ticket.closed_at = None
        elif new_status == TicketStatus.CLOSED:
            ticket.closed_at = now
        else:
            if old_status in (TicketStatus.RESOLVED, TicketStatus.CLOSED):
                ticket.closed_at = None
            if new_status == TicketStatus.REOPENED:
                ticket.resolved_at = None

        ticket.status = new_status
        ticket.updated_at = now

        await self.session.flush()
        return ticket


class TicketCommentDAO:
    """
    Data Access Object for TicketComment operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        ticket_id: int,
        author_user_id: int,
        body: str,
        now: Optional[datetime] = None,
    ) -> TicketComment:
        """
        Create a new comment on a ticket.

        Args:
            ticket_id: Ticket ID
            author_user_id: User writing the comment
            body: Already-escaped comment body

        Returns:
            Created TicketComment
        """
        comment = TicketComment(
            ticket_id=ticket_id,
            author_user_id=author_user_id,
            body=body,
            created_at=now or datetime.utcnow(),
        )

        self.session.add(comment)
        await self.session.flush()
        await self.session.refresh(comment)

        return comment

    async def get_by_id(self, comment_id: int) -> Optional[TicketComment]:
        """Get comment by ID."""
        query = select(TicketComment).where(TicketComment.id == comment_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_for_ticket(self, ticket_id: int) -> List[TicketComment]:
        """List comments for a ticket, oldest first, including soft-deleted ones."""
        query = (
            select(TicketComment)
            .where(TicketComment.ticket_id == ticket_id)
            .order_by(TicketComment.created_at.asc(), TicketComment.id.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def soft_delete(
        self,
        comment: TicketComment,
        now: Optional[datetime] = None,
    ) -> TicketComment:
        """
        Mark a comment deleted. The body is kept.

        Args:
            comment: Loaded comment

        Returns:
            Updated TicketComment
        """
        comment.deleted_at = now or datetime.utcnow()
        await self.session.flush()
        return comment


class TicketAttachmentDAO(BaseDAO[TicketAttachment]):
    """
    Data Access Object for TicketAttachment operations.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(TicketAttachment, session)

    async def get_by_id_with_ticket(self, attachment_id: int) -> Optional[TicketAttachment]:
        """
        Get attachment by ID with its parent ticket loaded.

        WHY: Removal permission depends on the parent ticket's owner, so
        both come back from one lookup.
        """
        query = (
            select(TicketAttachment)
            .options(selectinload(TicketAttachment.ticket))
            .where(TicketAttachment.id == attachment_id)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def count_for_ticket(self, ticket_id: int) -> int:
        """Number of attachments currently on a ticket."""
        return await self.count(ticket_id=ticket_id)

    async def list_for_ticket(self, ticket_id: int) -> List[TicketAttachment]:
        """List attachments for a ticket."""
        query = (
            select(TicketAttachment)
            .where(TicketAttachment.ticket_id == ticket_id)
            .order_by(TicketAttachment.created_at.asc(), TicketAttachment.id.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create_many(
        self,
        ticket_id: int,
        uploaded_by_user_id: int,
        files: Iterable[Dict[str, Any]],
        now: Optional[datetime] = None,
    ) -> int:
        """
        Insert attachment rows, silently skipping storage keys that already exist.

        Args:
            ticket_id: Parent ticket
            uploaded_by_user_id: Uploader
            files: Dicts with filename, storage_key, size, content_type

        Returns:
            Number of rows actually inserted
        """
        now = now or datetime.utcnow()
        inserted = 0
        for file in files:
            created = await self.insert_ignoring_conflicts(
                {
                    "ticket_id": ticket_id,
                    "uploaded_by_user_id": uploaded_by_user_id,
                    "filename": file["filename"],
                    "storage_key": file["storage_key"],
                    "size": file["size"],
                    "content_type": file["content_type"],
                    "created_at": now,
                },
                conflict_columns=["storage_key"],
            )
            if created:
                inserted += 1
        return inserted
