"""
Audit Log Model.

WHAT: SQLAlchemy model for the append-only record of who did what to which
ticket, comment or attachment.

WHY: Triage decisions (status, priority, reopen) and content changes need
a trail that outlives the rows they describe. Each entry captures:
- Actor (null for system jobs such as auto-close)
- Namespaced action (e.g. ticket:status_change)
- Target type and id
- A small JSON map of changes, typically {"from": ..., "to": ...}
- Client IP when the action came from a request

HOW: Immutable append-only table. Uses JSON for flexible storage of changes
(JSONB on PostgreSQL, JSON on SQLite for tests).
"""

import enum
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Integer, String, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk.models.base import Base, utcnow
from helpdesk.models.user import User


class AuditAction(str, enum.Enum):
    """
    Enumeration of auditable actions.

    Values are namespaced by target so they read well in the log.
    """

    # Tickets
    TICKET_CREATE = "ticket:create"
    TICKET_PRIORITY_CHANGE = "ticket:priority_change"
    TICKET_STATUS_CHANGE = "ticket:status_change"
    TICKET_REOPEN = "ticket:reopen"
    TICKET_AUTO_CLOSE = "ticket:auto_close"

    # Comments
    COMMENT_ADD = "comment:add"
    COMMENT_DELETE = "comment:delete"

    # Attachments
    ATTACHMENT_ADD = "attachment:add"
    ATTACHMENT_REMOVE = "attachment:remove"


class AuditTargetType(str, enum.Enum):
    """Kind of entity an audit entry refers to."""

    TICKET = "ticket"
    COMMENT = "comment"
    ATTACHMENT = "attachment"


class AuditLog(Base):
    """
    Immutable audit log entry.

    Fields:
    - actor_user_id: Who performed the action (null means system-initiated)
    - action: AuditAction value
    - target_type: AuditTargetType value
    - target_id: Id of the affected row
    - changes: JSON-normalized change map
    - ip_address: Client IP (IPv6 max length)
    - created_at: When it happened
    """

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    target_type: Mapped[str] = mapped_column(String(32), nullable=False)
    target_id: Mapped[int] = mapped_column(Integer, nullable=False)
    changes: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    actor: Mapped[Optional[User]] = relationship(User, foreign_keys=[actor_user_id])

    __table_args__ = (
        Index("ix_audit_logs_actor_user_id", "actor_user_id"),
        Index("ix_audit_logs_action", "action"),
        Index("ix_audit_logs_target", "target_type", "target_id"),
        Index("ix_audit_logs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action={self.action}, "
            f"actor_user_id={self.actor_user_id}, target={self.target_type}:{self.target_id})>"
        )
