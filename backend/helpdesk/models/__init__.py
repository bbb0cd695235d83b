"""
Database models package.

WHY: Centralizing model imports ensures Alembic and the test fixtures see
every table when they build the schema from Base.metadata.
"""

from helpdesk.models.base import Base
from helpdesk.models.user import User, UserRole
from helpdesk.models.audit_log import AuditLog, AuditAction, AuditTargetType
from helpdesk.models.ticket import (
    Ticket,
    TicketStatus,
    TicketPriority,
    TicketComment,
    TicketAttachment,
    NotificationDedup,
    NotificationEvent,
)

__all__ = [
    "Base",
    "User",
    "UserRole",
    "AuditLog",
    "AuditAction",
    "AuditTargetType",
    "Ticket",
    "TicketStatus",
    "TicketPriority",
    "TicketComment",
    "TicketAttachment",
    "NotificationDedup",
    "NotificationEvent",
]
