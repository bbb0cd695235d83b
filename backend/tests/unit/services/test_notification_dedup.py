"""
Unit tests for NotificationDeduplicator.

WHAT: The one-per-minute gate in front of notification email.
"""

import pytest
from datetime import datetime

from helpdesk.models.ticket import NotificationEvent
from helpdesk.services.notification_dedup import NotificationDeduplicator, minute_bucket
from tests.factories import FrozenClock, TicketFactory


def test_minute_bucket_truncates():
    assert minute_bucket(datetime(2024, 5, 1, 10, 15, 59, 999999)) == datetime(2024, 5, 1, 10, 15)


class TestShouldSend:
    """Tests for NotificationDeduplicator.should_send."""

    @pytest.mark.asyncio
    async def test_once_per_minute(self, db_session, test_user):
        ticket = await TicketFactory.create(db_session, test_user)
        clock = FrozenClock(datetime(2024, 5, 1, 10, 15, 1))
        dedup = NotificationDeduplicator(db_session, clock=clock)

        first = await dedup.should_send(ticket.id, NotificationEvent.COMMENT_ADDED)
        clock.advance(seconds=58)
        second = await dedup.should_send(ticket.id, NotificationEvent.COMMENT_ADDED)
        clock.advance(seconds=1)
        third = await dedup.should_send(ticket.id, NotificationEvent.COMMENT_ADDED)

        assert (first, second, third) == (True, False, True)

    @pytest.mark.asyncio
    async def test_events_gated_separately(self, db_session, test_user):
        ticket = await TicketFactory.create(db_session, test_user)
        dedup = NotificationDeduplicator(db_session, clock=FrozenClock(datetime(2024, 5, 1, 10, 15)))

        assert await dedup.should_send(ticket.id, NotificationEvent.COMMENT_ADDED) is True
        assert await dedup.should_send(ticket.id, NotificationEvent.STATUS_CHANGED) is True
        assert await dedup.should_send(ticket.id, NotificationEvent.REOPENED) is True

    @pytest.mark.asyncio
    async def test_gate_shared_across_instances(self, db_session, test_user):
        """The database row decides, not in-process state."""
        ticket = await TicketFactory.create(db_session, test_user)
        clock = FrozenClock(datetime(2024, 5, 1, 10, 15, 30))

        first = NotificationDeduplicator(db_session, clock=clock)
        second = NotificationDeduplicator(db_session, clock=clock)

        assert await first.should_send(ticket.id, NotificationEvent.STATUS_CHANGED) is True
        assert await second.should_send(ticket.id, NotificationEvent.STATUS_CHANGED) is False
