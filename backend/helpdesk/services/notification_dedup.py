"""
Notification deduplication.

WHAT: A minute-granularity gate that admits at most one notification per
(ticket, event type) per wall-clock minute.

WHY: Several qualifying actions can land on a ticket within seconds (two
quick comments, a status flip-flop). Email is a convenience channel, so
one message per minute per event is enough. The triggering operation
itself always succeeds and is always audited; only the email is skipped.

HOW: The current time is truncated to the minute and a row keyed by
(ticket_id, event_type, minute_bucket) is inserted. The database's
uniqueness check decides the race, so the gate holds across processes.
A conflict means "already sent" and is returned as False, never raised.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.dao.notification_dedup import NotificationDedupDAO
from helpdesk.models.ticket import NotificationEvent

logger = logging.getLogger(__name__)


def minute_bucket(moment: datetime) -> datetime:
    """Truncate a timestamp to the start of its minute."""
    return moment.replace(second=0, microsecond=0)


class NotificationDeduplicator:
    """
    Decides whether a notification may be sent for an event right now.

    Example:
        dedup = NotificationDeduplicator(db)
        if await dedup.should_send(ticket.id, NotificationEvent.COMMENT_ADDED):
            await notifications.notify_comment_added(...)
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            session: Database session shared with the triggering operation
            clock: Returns the current UTC time (injectable for tests)
        """
        self.dao = NotificationDedupDAO(session)
        self._clock = clock or datetime.utcnow

    async def should_send(self, ticket_id: int, event_type: NotificationEvent) -> bool:
        """
        Claim this minute's notification slot for the event.

        Args:
            ticket_id: Ticket the event belongs to
            event_type: Kind of event

        Returns:
            True if the caller should send, False if a notification for the
            same event on the same ticket already went out this minute
        """
        bucket = minute_bucket(self._clock())
        admitted = await self.dao.claim(ticket_id, NotificationEvent(event_type), bucket)

        if not admitted:
            logger.debug(
                f"Suppressed duplicate {event_type} notification for ticket #{ticket_id}",
                extra={"ticket_id": ticket_id, "minute_bucket": bucket.isoformat()},
            )
        return admitted
