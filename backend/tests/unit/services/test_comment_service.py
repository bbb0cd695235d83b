"""
Unit tests for CommentService.

WHAT: Adding and soft-deleting comments.

WHY: Verifies that:
1. Only the owner or an admin may comment; ids are not confirmed to others
2. Bodies are stored HTML-escaped
3. Email goes to the other party, at most once per ticket per minute
4. Only the author or an admin may delete, and the body is kept

HOW: Uses pytest-asyncio with in-memory SQLite and a frozen clock.
"""

import pytest
from datetime import datetime

from helpdesk.core.exceptions import AuthorizationError, CommentNotFoundError, TicketNotFoundError
from helpdesk.dao.audit_log import AuditLogDAO
from helpdesk.services.comment_service import CommentService
from helpdesk.services.email import EmailType
from tests.factories import CommentFactory, FrozenClock, TicketFactory, principal_for


NOW = datetime(2024, 5, 1, 10, 15, 5)


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def service(db_session, notification_service, clock):
    return CommentService(db_session, notification_service=notification_service, clock=clock)


class TestAddComment:
    """Tests for CommentService.add."""

    @pytest.mark.asyncio
    async def test_requester_comment_notifies_admin(self, service, db_session, test_user, mock_email):
        ticket = await TicketFactory.create(db_session, test_user)

        comment = await service.add(principal_for(test_user), ticket.id, "Still broken")

        assert comment.ticket_id == ticket.id
        assert comment.author_user_id == test_user.id
        assert comment.created_at == NOW
        assert [m.to_email for m in mock_email.sent_emails] == ["admin@example.com"]
        assert mock_email.sent_emails[0].email_type == EmailType.COMMENT_ADDED

    @pytest.mark.asyncio
    async def test_admin_comment_notifies_requester(
        self, service, db_session, test_user, test_admin, mock_email
    ):
        ticket = await TicketFactory.create(db_session, test_user)

        await service.add(principal_for(test_admin), ticket.id, "Have you tried turning it off?")

        assert [m.to_email for m in mock_email.sent_emails] == ["alice@example.com"]

    @pytest.mark.asyncio
    async def test_body_is_escaped(self, service, db_session, test_user):
        ticket = await TicketFactory.create(db_session, test_user)

        comment = await service.add(principal_for(test_user), ticket.id, '<script>alert("x")</script>')

        assert comment.body == "&lt;script&gt;alert(&quot;x&quot;)&lt;/script&gt;"

    @pytest.mark.asyncio
    async def test_audited_against_comment(self, service, db_session, test_user):
        ticket = await TicketFactory.create(db_session, test_user)

        comment = await service.add(principal_for(test_user), ticket.id, "Hello")

        history = await AuditLogDAO(db_session).get_for_target("comment", comment.id)
        assert len(history) == 1
        assert history[0].action == "comment:add"
        assert history[0].changes == {"ticketId": ticket.id}

    @pytest.mark.asyncio
    async def test_two_comments_same_minute_send_one_email(
        self, service, db_session, test_user, clock, mock_email
    ):
        ticket = await TicketFactory.create(db_session, test_user)
        requester = principal_for(test_user)

        await service.add(requester, ticket.id, "First")
        clock.advance(seconds=30)
        await service.add(requester, ticket.id, "Second")

        assert len(mock_email.sent_emails) == 1
        assert await AuditLogDAO(db_session).count(action="comment:add") == 2

    @pytest.mark.asyncio
    async def test_next_minute_sends_again(self, service, db_session, test_user, clock, mock_email):
        ticket = await TicketFactory.create(db_session, test_user)
        requester = principal_for(test_user)

        await service.add(requester, ticket.id, "First")
        clock.advance(seconds=60)
        await service.add(requester, ticket.id, "Second")

        assert len(mock_email.sent_emails) == 2

    @pytest.mark.asyncio
    async def test_outsider_rejected(self, service, db_session, test_user, other_user):
        ticket = await TicketFactory.create(db_session, test_user)

        with pytest.raises(AuthorizationError):
            await service.add(principal_for(other_user), ticket.id, "Me too")

    @pytest.mark.asyncio
    async def test_outsider_missing_ticket_is_forbidden(self, service, other_user):
        with pytest.raises(AuthorizationError):
            await service.add(principal_for(other_user), 404, "Hello?")

    @pytest.mark.asyncio
    async def test_admin_missing_ticket_is_not_found(self, service, test_admin):
        with pytest.raises(TicketNotFoundError):
            await service.add(principal_for(test_admin), 404, "Hello?")


class TestSoftDelete:
    """Tests for CommentService.soft_delete."""

    @pytest.mark.asyncio
    async def test_author_deletes(self, service, db_session, test_user):
        ticket = await TicketFactory.create(db_session, test_user)
        comment = await CommentFactory.create(db_session, ticket, test_user, body="typo")

        deleted = await service.soft_delete(principal_for(test_user), comment.id)

        assert deleted.deleted_at == NOW
        assert deleted.body == "typo"
        history = await AuditLogDAO(db_session).get_for_target("comment", comment.id)
        assert history[-1].action == "comment:delete"
        assert history[-1].changes == {"ticketId": ticket.id}

    @pytest.mark.asyncio
    async def test_admin_deletes_any(self, service, db_session, test_user, test_admin):
        ticket = await TicketFactory.create(db_session, test_user)
        comment = await CommentFactory.create(db_session, ticket, test_user)

        deleted = await service.soft_delete(principal_for(test_admin), comment.id)

        assert deleted.is_deleted

    @pytest.mark.asyncio
    async def test_ticket_owner_cannot_delete_admin_comment(
        self, service, db_session, test_user, test_admin
    ):
        ticket = await TicketFactory.create(db_session, test_user)
        comment = await CommentFactory.create(db_session, ticket, test_admin)

        with pytest.raises(AuthorizationError) as exc_info:
            await service.soft_delete(principal_for(test_user), comment.id)

        assert exc_info.value.message == "You can only delete your own comments"

    @pytest.mark.asyncio
    async def test_missing_comment(self, service, test_user):
        with pytest.raises(CommentNotFoundError):
            await service.soft_delete(principal_for(test_user), 404)
