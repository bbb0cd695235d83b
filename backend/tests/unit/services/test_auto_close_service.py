"""
Unit tests for AutoCloseService.

WHAT: Tests for the job that closes tickets left in RESOLVED.

WHY: Verifies that:
1. Only tickets resolved at least AUTO_CLOSE_DAYS ago are closed
2. Closing keeps resolved_at, sets closed_at and writes a system audit entry
3. Each requester is told once
4. One failing ticket neither stops the sweep nor leaves a half-written change
5. The command-line entry point exits non-zero when anything failed

HOW: Test data is committed first; the service then opens its own
sessions through a factory bound to the same in-memory database.
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from helpdesk.dao.audit_log import AuditLogDAO
from helpdesk.dao.ticket import TicketDAO
from helpdesk.models.ticket import TicketStatus
from helpdesk.services import auto_close_service as auto_close_module
from helpdesk.services.audit import AuditService
from helpdesk.services.auto_close_service import AutoCloseService
from helpdesk.services.email import EmailType
from tests.factories import FrozenClock, TicketFactory


NOW = datetime(2024, 5, 20, 3, 0, 0)


@pytest.fixture
def service(session_factory, notification_service):
    return AutoCloseService(
        session_factory=session_factory,
        notification_service=notification_service,
        clock=FrozenClock(NOW),
        days=14,
    )


async def _load(session_factory, ticket_id):
    async with session_factory() as session:
        return await TicketDAO(session).get_by_id(ticket_id)


class TestAutoCloseRun:
    """Tests for AutoCloseService.run."""

    @pytest.mark.asyncio
    async def test_closes_only_stale_resolved_tickets(
        self, service, db_session, session_factory, test_user, mock_email
    ):
        stale = await TicketFactory.create_resolved(db_session, test_user, resolved_days_ago=15, now=NOW)
        fresh = await TicketFactory.create_resolved(db_session, test_user, resolved_days_ago=13, now=NOW)
        working = await TicketFactory.create(db_session, test_user, status=TicketStatus.IN_PROGRESS)

        stats = await service.run()

        assert stats == {"candidates": 1, "closed": 1, "notified": 1, "skipped": 0, "errors": 0}

        closed = await _load(session_factory, stale.id)
        assert closed.status == TicketStatus.CLOSED
        assert closed.closed_at == NOW
        assert closed.resolved_at == NOW - timedelta(days=15)

        assert (await _load(session_factory, fresh.id)).status == TicketStatus.RESOLVED
        assert (await _load(session_factory, working.id)).status == TicketStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_exactly_at_threshold_is_closed(self, service, db_session, session_factory, test_user):
        ticket = await TicketFactory.create_resolved(db_session, test_user, resolved_days_ago=14, now=NOW)

        await service.run()

        assert (await _load(session_factory, ticket.id)).status == TicketStatus.CLOSED

    @pytest.mark.asyncio
    async def test_writes_system_audit_entry(self, service, db_session, session_factory, test_user):
        ticket = await TicketFactory.create_resolved(db_session, test_user, resolved_days_ago=30, now=NOW)

        await service.run()

        async with session_factory() as session:
            history = await AuditLogDAO(session).get_for_target("ticket", ticket.id)
        assert len(history) == 1
        assert history[0].action == "ticket:auto_close"
        assert history[0].actor_user_id is None
        assert history[0].ip_address is None
        assert history[0].changes == {"from": "resolved", "to": "closed"}

    @pytest.mark.asyncio
    async def test_notifies_requester(self, service, db_session, test_user, mock_email):
        await TicketFactory.create_resolved(db_session, test_user, resolved_days_ago=20, now=NOW)

        await service.run()

        assert len(mock_email.sent_emails) == 1
        assert mock_email.sent_emails[0].to_email == "alice@example.com"
        assert mock_email.sent_emails[0].email_type == EmailType.TICKET_AUTO_CLOSED

    @pytest.mark.asyncio
    async def test_nothing_to_do(self, service):
        stats = await service.run()

        assert stats == {"candidates": 0, "closed": 0, "notified": 0, "skipped": 0, "errors": 0}

    @pytest.mark.asyncio
    async def test_email_failure_counts_as_error_but_ticket_stays_closed(
        self, session_factory, db_session, test_user
    ):
        notifications = MagicMock()
        notifications.notify_auto_closed = AsyncMock(return_value=False)
        service = AutoCloseService(
            session_factory=session_factory,
            notification_service=notifications,
            clock=FrozenClock(NOW),
            days=14,
        )
        ticket = await TicketFactory.create_resolved(db_session, test_user, resolved_days_ago=20, now=NOW)

        stats = await service.run()

        assert stats["closed"] == 1
        assert stats["notified"] == 0
        assert stats["errors"] == 1
        assert (await _load(session_factory, ticket.id)).status == TicketStatus.CLOSED

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_sweep(
        self, service, db_session, session_factory, test_user
    ):
        broken = await TicketFactory.create_resolved(db_session, test_user, resolved_days_ago=30, now=NOW)
        healthy = await TicketFactory.create_resolved(db_session, test_user, resolved_days_ago=20, now=NOW)
        original_record = AuditService.record

        async def flaky_record(self, **kwargs):
            if kwargs["target_id"] == broken.id:
                raise RuntimeError("audit table unavailable")
            return await original_record(self, **kwargs)

        with patch.object(AuditService, "record", flaky_record):
            stats = await service.run()

        assert stats["candidates"] == 2
        assert stats["closed"] == 1
        assert stats["errors"] == 1

        # The failed close was rolled back together with its audit entry
        assert (await _load(session_factory, broken.id)).status == TicketStatus.RESOLVED
        assert (await _load(session_factory, healthy.id)).status == TicketStatus.CLOSED

    @pytest.mark.asyncio
    async def test_ticket_reopened_meanwhile_is_skipped(
        self, service, db_session, session_factory, test_user
    ):
        ticket = await TicketFactory.create_resolved(db_session, test_user, resolved_days_ago=20, now=NOW)

        assert await service._close_ticket(ticket.id + 1000, NOW - timedelta(days=14)) is None

        async with session_factory() as session:
            dao = TicketDAO(session)
            loaded = await dao.get_by_id(ticket.id)
            await dao.change_status(loaded, TicketStatus.REOPENED, now=NOW)
            await session.commit()

        assert await service._close_ticket(ticket.id, NOW - timedelta(days=14)) is None
        assert (await _load(session_factory, ticket.id)).status == TicketStatus.REOPENED


class TestMain:
    """Tests for the helpdesk-auto-close entry point."""

    def test_exit_code_on_errors(self):
        fake = MagicMock()
        fake.run = AsyncMock(return_value={"candidates": 1, "closed": 0, "notified": 0, "skipped": 0, "errors": 1})

        with patch.object(auto_close_module, "AutoCloseService", return_value=fake):
            with pytest.raises(SystemExit) as exc_info:
                auto_close_module.main()

        assert exc_info.value.code == 1

    def test_clean_run_returns_normally(self):
        fake = MagicMock()
        fake.run = AsyncMock(return_value={"candidates": 0, "closed": 0, "notified": 0, "skipped": 0, "errors": 0})

        with patch.object(auto_close_module, "AutoCloseService", return_value=fake):
            auto_close_module.main()

        fake.run.assert_awaited_once()
