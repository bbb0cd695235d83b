"""
Audit Log Data Access Object (DAO).

WHAT: Data access layer for audit log operations.

WHY: The audit trail is append-only. This DAO provides:
- Insertion of new entries inside the caller's transaction
- Filtered, paginated queries for the admin audit screen
- Per-target history lookups

HOW: Stand-alone DAO (not BaseDAO) so update/delete can be overridden to
always refuse.
"""

from typing import Optional, List, Dict, Any
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.models.audit_log import AuditLog
from helpdesk.core.exceptions import AuditLogImmutableError


class AuditLogDAO:
    """
    Data Access Object for audit log operations.

    HOW: Uses SQLAlchemy async session for all operations. Entries are
    flushed, never committed here, so they share the fate of the business
    mutation they describe.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize AuditLogDAO with database session.

        Args:
            session: Async database session
        """
        self.session = session

    async def create(
        self,
        action: str,
        target_type: str,
        target_id: int,
        actor_user_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        """
        Create a new audit log entry.

        Args:
            action: Namespaced action (AuditAction value)
            target_type: AuditTargetType value
            target_id: Id of the affected row
            actor_user_id: Acting user (None for system jobs)
            changes: JSON-safe change map
            ip_address: Client IP address

        Returns:
            The created AuditLog entry

        Raises:
            IntegrityError: If database constraints are violated
        """
        log = AuditLog(
            actor_user_id=actor_user_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            changes=changes,
            ip_address=ip_address,
        )
        self.session.add(log)
        await self.session.flush()
        await self.session.refresh(log)
        return log

    async def get_by_id(self, log_id: int) -> Optional[AuditLog]:
        """Get a single audit entry by id."""
        result = await self.session.execute(select(AuditLog).where(AuditLog.id == log_id))
        return result.scalar_one_or_none()

    def _filtered(
        self,
        query,
        actor_user_id: Optional[int] = None,
        target_type: Optional[str] = None,
        action: Optional[str] = None,
    ):
        if actor_user_id is not None:
            query = query.where(AuditLog.actor_user_id == actor_user_id)
        if target_type is not None:
            query = query.where(AuditLog.target_type == target_type)
        if action is not None:
            query = query.where(AuditLog.action == action)
        return query

    async def list(
        self,
        actor_user_id: Optional[int] = None,
        target_type: Optional[str] = None,
        action: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[AuditLog]:
        """
        List audit entries, newest first.

        Args:
            actor_user_id: Only entries by this actor
            target_type: Only entries about this kind of target
            action: Only entries with this action
            skip: Number of entries to skip
            limit: Maximum number of entries to return

        Returns:
            Matching audit entries
        """
        query = self._filtered(
            select(AuditLog),
            actor_user_id=actor_user_id,
            target_type=target_type,
            action=action,
        )
        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        query = query.offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count(
        self,
        actor_user_id: Optional[int] = None,
        target_type: Optional[str] = None,
        action: Optional[str] = None,
    ) -> int:
        """Count audit entries matching the same filters as list()."""
        query = self._filtered(
            select(func.count()).select_from(AuditLog),
            actor_user_id=actor_user_id,
            target_type=target_type,
            action=action,
        )
        result = await self.session.execute(query)
        return result.scalar_one()

    async def get_for_target(self, target_type: str, target_id: int) -> List[AuditLog]:
        """
        Full history of one ticket, comment or attachment, oldest first.

        Args:
            target_type: AuditTargetType value
            target_id: Id of the target row

        Returns:
            Audit entries for the target
        """
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.target_type == target_type, AuditLog.target_id == target_id)
            .order_by(AuditLog.created_at, AuditLog.id)
        )
        return list(result.scalars().all())

    async def update(self, log_id: int, **kwargs: Any) -> None:
        """
        Attempt to update an audit log (BLOCKED).

        Raises:
            AuditLogImmutableError: Always raised - updates not allowed
        """
        raise AuditLogImmutableError(
            "Audit logs are immutable and cannot be updated.",
            log_id=log_id,
        )

    async def delete(self, log_id: int) -> None:
        """
        Attempt to delete an audit log (BLOCKED).

        Raises:
            AuditLogImmutableError: Always raised - deletions not allowed
        """
        raise AuditLogImmutableError(
            "Audit logs cannot be deleted.",
            log_id=log_id,
        )
