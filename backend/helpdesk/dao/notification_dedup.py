"""
Notification dedup Data Access Object.

WHAT: Claims (ticket, event type, minute bucket) keys in the
notification_dedup table.

WHY: The composite primary key turns the table into a cross-process gate.
Claiming a key that someone else already holds is an expected outcome, so
it is reported as False rather than raised.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.dao.base import BaseDAO
from helpdesk.models.ticket import NotificationDedup, NotificationEvent


class NotificationDedupDAO(BaseDAO[NotificationDedup]):
    """Data Access Object for NotificationDedup rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(NotificationDedup, session)

    async def claim(
        self,
        ticket_id: int,
        event_type: NotificationEvent,
        minute_bucket: datetime,
    ) -> bool:
        """
        Try to record that this event was notified in this minute.

        Args:
            ticket_id: Ticket the event belongs to
            event_type: Kind of event
            minute_bucket: Timestamp truncated to the minute

        Returns:
            True if this call created the row, False if it already existed
        """
        return await self.insert_ignoring_conflicts(
            {
                "ticket_id": ticket_id,
                "event_type": event_type,
                "minute_bucket": minute_bucket,
                "created_at": datetime.utcnow(),
            },
            conflict_columns=["ticket_id", "event_type", "minute_bucket"],
        )
