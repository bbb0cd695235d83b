"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from helpdesk.dao.base import BaseDAO
from helpdesk.dao.user import UserDAO
from helpdesk.dao.audit_log import AuditLogDAO
from helpdesk.dao.ticket import (
    ALLOWED_STATUS_TRANSITIONS,
    TicketDAO,
    TicketCommentDAO,
    TicketAttachmentDAO,
    is_transition_allowed,
)
from helpdesk.dao.notification_dedup import NotificationDedupDAO

__all__ = [
    "BaseDAO",
    "UserDAO",
    "AuditLogDAO",
    "ALLOWED_STATUS_TRANSITIONS",
    "TicketDAO",
    "TicketCommentDAO",
    "TicketAttachmentDAO",
    "is_transition_allowed",
    "NotificationDedupDAO",
]
