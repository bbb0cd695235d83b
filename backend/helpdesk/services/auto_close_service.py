"""
Auto-close Background Service.

WHAT: Closes tickets that have sat in RESOLVED longer than
AUTO_CLOSE_DAYS and tells each requester.

WHY: A resolved ticket the requester never reopens should not stay open
forever. Closing it:
1. Goes through the transition table like any other status change
2. Applies the usual timestamp rules (closed_at set, resolved_at kept)
3. Writes a ticket:auto_close audit entry with no actor (system action)

HOW: One query lists the candidates. Each ticket is then closed in its
own session and transaction together with its audit entry, and the email
goes out after the commit. A failure on one ticket (database or email)
is counted and logged, and the sweep moves on. Scheduled by APScheduler
(see scheduler.py) and runnable once from the command line as
helpdesk-auto-close.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import settings
from helpdesk.dao.ticket import TicketDAO, is_transition_allowed
from helpdesk.db.session import AsyncSessionLocal
from helpdesk.models.audit_log import AuditAction, AuditTargetType
from helpdesk.models.ticket import Ticket, TicketStatus
from helpdesk.services.audit import AuditService
from helpdesk.services.notification_service import NotificationService


logger = logging.getLogger(__name__)


class AutoCloseService:
    """
    Background service for closing stale resolved tickets.

    Example:
        service = AutoCloseService()
        stats = await service.run()
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        notification_service: Optional[NotificationService] = None,
        clock: Optional[Callable[[], datetime]] = None,
        days: Optional[int] = None,
    ):
        """
        Initialize auto-close service.

        Args:
            session_factory: Creates database sessions (defaults to AsyncSessionLocal)
            notification_service: Email notifications (created lazily if omitted)
            clock: Returns the current UTC time (injectable for tests)
            days: Age threshold in days (defaults to settings.AUTO_CLOSE_DAYS)
        """
        self._session_factory = session_factory or AsyncSessionLocal
        self._notification_service = notification_service
        self._clock = clock or datetime.utcnow
        self.days = days if days is not None else settings.AUTO_CLOSE_DAYS

    def _get_notification_service(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService()
        return self._notification_service

    async def run(self) -> dict:
        """
        Main job function: close every eligible ticket.

        Returns:
            Dict with counts: candidates, closed, notified, skipped, errors
        """
        logger.info(f"Starting auto-close job (AUTO_CLOSE_DAYS={self.days})")
        start_time = datetime.utcnow()
        cutoff = self._clock() - timedelta(days=self.days)

        stats = {
            "candidates": 0,
            "closed": 0,
            "notified": 0,
            "skipped": 0,
            "errors": 0,
        }

        async with self._session_factory() as session:
            tickets = await TicketDAO(session).list_resolved_before(cutoff)
            ticket_ids: List[int] = [t.id for t in tickets]

        stats["candidates"] = len(ticket_ids)
        logger.info(f"Found {len(ticket_ids)} resolved tickets older than {cutoff.isoformat()}")

        for ticket_id in ticket_ids:
            try:
                ticket = await self._close_ticket(ticket_id, cutoff)
            except Exception as e:
                logger.error(
                    f"Failed to auto-close ticket #{ticket_id}: {e}",
                    exc_info=True,
                    extra={"ticket_id": ticket_id},
                )
                stats["errors"] += 1
                continue

            if ticket is None:
                stats["skipped"] += 1
                continue

            stats["closed"] += 1
            if await self._get_notification_service().notify_auto_closed(ticket, self.days):
                stats["notified"] += 1
            else:
                stats["errors"] += 1

        elapsed = (datetime.utcnow() - start_time).total_seconds()
        logger.info(
            f"Auto-close completed in {elapsed:.2f}s. "
            f"Closed: {stats['closed']}, Notified: {stats['notified']}, "
            f"Skipped: {stats['skipped']}, Errors: {stats['errors']}"
        )

        return stats

    async def _close_ticket(self, ticket_id: int, cutoff: datetime) -> Optional[Ticket]:
        """
        Close one ticket and audit it in a single transaction.

        The ticket is re-read inside the transaction; if it was reopened or
        changed since the candidate query it is left alone.

        Returns:
            The closed ticket (requester loaded), or None if skipped
        """
        async with self._session_factory() as session:
            try:
                ticket_dao = TicketDAO(session)
                ticket = await ticket_dao.get_by_id(ticket_id)

                if (
                    ticket is None
                    or ticket.status != TicketStatus.RESOLVED
                    or ticket.resolved_at is None
                    or ticket.resolved_at > cutoff
                ):
                    logger.info(f"Ticket #{ticket_id} no longer eligible for auto-close")
                    return None

                if not is_transition_allowed(ticket.status, TicketStatus.CLOSED):
                    return None

                await ticket_dao.change_status(ticket, TicketStatus.CLOSED, now=self._clock())
                await AuditService(session).record(
                    actor_user_id=None,
                    action=AuditAction.TICKET_AUTO_CLOSE,
                    target_type=AuditTargetType.TICKET,
                    target_id=ticket.id,
                    changes={"from": TicketStatus.RESOLVED, "to": TicketStatus.CLOSED},
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        logger.info(
            f"Auto-closed ticket #{ticket.id}",
            extra={"ticket_id": ticket.id, "action": "ticket:auto_close"},
        )
        return ticket


# Singleton instance for the scheduler
_auto_close_service: Optional[AutoCloseService] = None


def get_auto_close_service() -> AutoCloseService:
    """Get or create the auto-close service instance."""
    global _auto_close_service
    if _auto_close_service is None:
        _auto_close_service = AutoCloseService()
    return _auto_close_service


def main() -> None:
    """Run one auto-close sweep (the helpdesk-auto-close command)."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    stats = asyncio.run(AutoCloseService().run())
    if stats["errors"]:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
