"""
Audit logging service.

WHAT: Service layer that writes audit entries for ticket, comment and
attachment changes.

WHY: Every state-changing operation records who did what, to which
target, with which changes, from which IP. The entry is flushed in the
same transaction as the change it describes, so the two commit together.

HOW: Uses AuditLogDAO for persistence and the RequestContext middleware
for the client IP when the caller does not pass one. Unlike notification
paths, failures here are NOT swallowed: they are logged and re-raised so
the enclosing operation fails and its transaction rolls back.
"""

import enum
import json
import logging
from datetime import date, datetime
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.dao.audit_log import AuditLogDAO
from helpdesk.models.audit_log import AuditLog, AuditAction, AuditTargetType
from helpdesk.middleware.request_context import get_request_context


# Logger for audit service errors (not audit events themselves)
logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    """Fallback encoder for values json.dumps does not know."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return str(value)


def normalize_changes(changes: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Deep-copy a change map through a JSON round trip.

    WHAT: Produces a plain dict of JSON types.

    WHY: The stored map must not alias caller objects, and values such as
    datetimes or enums must be stored in their string form.

    Args:
        changes: Change map from the caller

    Returns:
        JSON-normalized copy, or None

    Example:
        >>> normalize_changes({"to": TicketStatus.CLOSED, "at": datetime(2024, 1, 1)})
        {'to': 'closed', 'at': '2024-01-01T00:00:00'}
    """
    if changes is None:
        return None
    return json.loads(json.dumps(changes, default=_json_default))


class AuditService:
    """
    Service for creating audit log entries.

    Example:
        audit = AuditService(db)
        await audit.record(
            actor_user_id=admin.id,
            action=AuditAction.TICKET_STATUS_CHANGE,
            target_type=AuditTargetType.TICKET,
            target_id=ticket.id,
            changes={"from": "new", "to": "in_progress"},
        )
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize audit service with database session.

        Args:
            session: Async database session for audit log persistence
        """
        self.dao = AuditLogDAO(session)
        self._session = session

    def _get_ip_address(self) -> Optional[str]:
        """IP address of the current request, None outside a request."""
        ctx = get_request_context()
        if ctx:
            return ctx.ip_address
        return None

    async def record(
        self,
        actor_user_id: Optional[int],
        action: AuditAction,
        target_type: AuditTargetType,
        target_id: int,
        changes: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        """
        Append one audit entry.

        Args:
            actor_user_id: Acting user id, None for system-initiated actions
            action: What happened
            target_type: Kind of entity affected
            target_id: Id of the entity affected
            changes: Small change map, normalized before storage
            ip_address: Client IP (defaults to the current request's IP)

        Returns:
            Created AuditLog

        Raises:
            Exception: Whatever the persistence layer raised. The caller's
                operation is expected to fail with it.
        """
        if ip_address is None:
            ip_address = self._get_ip_address()

        try:
            log = await self.dao.create(
                actor_user_id=actor_user_id,
                action=AuditAction(action).value,
                target_type=AuditTargetType(target_type).value,
                target_id=target_id,
                changes=normalize_changes(changes),
                ip_address=ip_address,
            )
        except Exception:
            logger.error(
                f"Failed to write audit entry {action} for {target_type}:{target_id}",
                exc_info=True,
                extra={"actor_user_id": actor_user_id},
            )
            raise

        logger.debug(
            f"Audit {log.action} on {log.target_type}:{log.target_id} by {actor_user_id}",
        )
        return log
