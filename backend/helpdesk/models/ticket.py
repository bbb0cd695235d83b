"""
Ticket models for the helpdesk.

WHAT: SQLAlchemy models for tickets, comments, attachments and the
notification dedup gate.

WHY: Provides the persistent shape of the ticket lifecycle:
1. Status workflow (new -> in_progress -> waiting_on_user -> resolved -> closed,
   with reopened as the way back from resolved)
2. Soft-deleted comment threads between requester and staff
3. Attachment metadata pointing into external object storage
4. A uniqueness-constrained table that gates notification email

HOW: Uses SQLAlchemy 2.0 with:
- Enums for status and priority fields
- Foreign keys to users and tickets
- Composite primary key on the dedup table as the race-safe primitive
- Proper indexing for common queries
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import (
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
    Index,
    PrimaryKeyConstraint,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from helpdesk.models.base import Base, utcnow

if TYPE_CHECKING:
    from helpdesk.models.user import User


# ============================================================================
# Enums
# ============================================================================


class TicketStatus(str, Enum):
    """
    Ticket status values.

    WHAT: Tracks the lifecycle of a support ticket.

    - NEW: Just filed, nobody has picked it up
    - IN_PROGRESS: Staff is working on it
    - WAITING_ON_USER: Blocked on the requester
    - RESOLVED: Staff considers it done; requester may reopen for a while
    - CLOSED: Terminal for ordinary transitions
    - REOPENED: Requester (or staff) pulled a resolved ticket back
    """

    NEW = "new"
    IN_PROGRESS = "in_progress"
    WAITING_ON_USER = "waiting_on_user"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REOPENED = "reopened"


class TicketPriority(str, Enum):
    """Ticket priority levels."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationEvent(str, Enum):
    """
    Event types that can trigger a deduplicated notification email.

    Ticket creation is not listed: it happens once per ticket and is
    always sent.
    """

    STATUS_CHANGED = "status_changed"
    COMMENT_ADDED = "comment_added"
    REOPENED = "reopened"


# ============================================================================
# Ticket Model
# ============================================================================


class Ticket(Base):
    """
    Support ticket filed by a requester.

    WHAT: The unit of work in the helpdesk.

    Timestamp invariants (maintained by TicketDAO.change_status):
    - closed_at is set only while the ticket is closed
    - resolved_at is set when the ticket is resolved and cleared on reopen

    Tickets are never deleted; closed is the end of the line.
    """

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_by_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )

    # Ticket details
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    # Classification
    status: Mapped[TicketStatus] = mapped_column(
        SQLEnum(TicketStatus, name="ticketstatus"),
        default=TicketStatus.NEW,
        nullable=False,
    )
    priority: Mapped[TicketPriority] = mapped_column(
        SQLEnum(TicketPriority, name="ticketpriority"),
        default=TicketPriority.NORMAL,
        nullable=False,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, onupdate=utcnow, nullable=True
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    requester: Mapped["User"] = relationship("User", back_populates="tickets")
    comments: Mapped[List["TicketComment"]] = relationship(
        "TicketComment",
        back_populates="ticket",
        order_by="TicketComment.created_at",
    )
    attachments: Mapped[List["TicketAttachment"]] = relationship(
        "TicketAttachment",
        back_populates="ticket",
        order_by="TicketAttachment.created_at",
    )

    # Indexes for common queries
    __table_args__ = (
        Index("ix_tickets_created_by_user_id", "created_by_user_id"),
        Index("ix_tickets_status_resolved_at", "status", "resolved_at"),
        Index("ix_tickets_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, title='{self.title[:30]}', status={self.status.value})>"


# ============================================================================
# TicketComment Model
# ============================================================================


class TicketComment(Base):
    """
    Comment on a ticket.

    The body is stored HTML-escaped. Soft-deleted comments keep their body
    but deleted_at tells readers to hide it.
    """

    __tablename__ = "ticket_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id"), nullable=False
    )
    author_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )

    body: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    ticket: Mapped["Ticket"] = relationship("Ticket", back_populates="comments")
    author: Mapped["User"] = relationship("User")

    __table_args__ = (
        Index("ix_ticket_comments_ticket_id", "ticket_id"),
        Index("ix_ticket_comments_author_user_id", "author_user_id"),
    )

    def __repr__(self) -> str:
        return f"<TicketComment(id={self.id}, ticket_id={self.ticket_id}, deleted={self.is_deleted})>"

    @property
    def is_deleted(self) -> bool:
        """Check if comment has been soft-deleted."""
        return self.deleted_at is not None


# ============================================================================
# TicketAttachment Model
# ============================================================================


class TicketAttachment(Base):
    """
    File reference attached to a ticket.

    WHAT: Metadata only. The bytes live in object storage under storage_key,
    which always starts with the uploader's key prefix (u/<user id>/).

    The storage key is unique so a repeated submission of the same upload
    is skipped instead of duplicated.
    """

    __tablename__ = "ticket_attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id"), nullable=False
    )
    uploaded_by_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )

    # File details
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    # Relationships
    ticket: Mapped["Ticket"] = relationship("Ticket", back_populates="attachments")
    uploaded_by: Mapped["User"] = relationship("User")

    __table_args__ = (
        Index("ix_ticket_attachments_ticket_id", "ticket_id"),
    )

    def __repr__(self) -> str:
        return f"<TicketAttachment(id={self.id}, filename='{self.filename}')>"

    @property
    def size_mb(self) -> float:
        """Get file size in megabytes."""
        return self.size / (1024 * 1024)


# ============================================================================
# NotificationDedup Model
# ============================================================================


class NotificationDedup(Base):
    """
    Marker row meaning "already notified this minute".

    WHAT: One row per (ticket, event type, minute bucket).

    WHY: The composite primary key is the only synchronization in the
    notification path. Whichever writer inserts first wins; everyone else
    hits the constraint and skips sending. Works across processes because
    the database enforces it.
    """

    __tablename__ = "notification_dedup"

    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id"), nullable=False
    )
    event_type: Mapped[NotificationEvent] = mapped_column(
        SQLEnum(NotificationEvent, name="notificationevent"),
        nullable=False,
    )
    minute_bucket: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("ticket_id", "event_type", "minute_bucket"),
    )

    def __repr__(self) -> str:
        return (
            f"<NotificationDedup(ticket_id={self.ticket_id}, "
            f"event_type={self.event_type.value}, minute_bucket={self.minute_bucket})>"
        )
