"""
Integration tests for the admin endpoints.

WHAT: Status and priority triage, the audit log viewer and the health check.

WHY: Verifies that:
1. Only admins reach /api/admin
2. No-op changes report changed=false and leave no audit entry
3. The audit listing paginates newest first and filters by actor, type and action
4. The client IP recorded in audit entries comes from proxy headers
"""

import pytest
from httpx import AsyncClient

from helpdesk.models.ticket import TicketPriority, TicketStatus
from tests.factories import TicketFactory, auth_headers


class TestChangeStatus:
    """Tests for PATCH /api/admin/tickets/{id}/status."""

    @pytest.mark.asyncio
    async def test_change_status(self, client: AsyncClient, db_session, test_user, test_admin, mock_email):
        ticket = await TicketFactory.create(db_session, test_user)

        response = await client.patch(
            f"/api/admin/tickets/{ticket.id}/status",
            json={"status": "in_progress"},
            headers=auth_headers(test_admin),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["changed"] is True
        assert data["ticket"]["status"] == "in_progress"
        assert mock_email.sent_emails[0].to_email == "alice@example.com"

    @pytest.mark.asyncio
    async def test_same_status_is_noop(self, client: AsyncClient, db_session, test_user, test_admin, mock_email):
        ticket = await TicketFactory.create(db_session, test_user, status=TicketStatus.IN_PROGRESS)

        response = await client.patch(
            f"/api/admin/tickets/{ticket.id}/status",
            json={"status": "in_progress"},
            headers=auth_headers(test_admin),
        )

        assert response.status_code == 200
        assert response.json()["changed"] is False
        assert mock_email.sent_emails == []

        history = await client.get(f"/api/admin/tickets/{ticket.id}/history", headers=auth_headers(test_admin))
        assert history.json() == []

    @pytest.mark.asyncio
    async def test_resolve_sets_resolved_at(self, client: AsyncClient, db_session, test_user, test_admin):
        ticket = await TicketFactory.create(db_session, test_user, status=TicketStatus.IN_PROGRESS)

        response = await client.patch(
            f"/api/admin/tickets/{ticket.id}/status",
            json={"status": "resolved"},
            headers=auth_headers(test_admin),
        )

        assert response.json()["ticket"]["resolved_at"] is not None

    @pytest.mark.asyncio
    async def test_unknown_status(self, client: AsyncClient, db_session, test_user, test_admin):
        ticket = await TicketFactory.create(db_session, test_user)

        response = await client.patch(
            f"/api/admin/tickets/{ticket.id}/status",
            json={"status": "done"},
            headers=auth_headers(test_admin),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidStatusError"

    @pytest.mark.asyncio
    async def test_missing_ticket(self, client: AsyncClient, test_admin):
        response = await client.patch(
            "/api/admin/tickets/999/status",
            json={"status": "in_progress"},
            headers=auth_headers(test_admin),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_admin(self, client: AsyncClient, db_session, test_user):
        ticket = await TicketFactory.create(db_session, test_user)

        response = await client.patch(
            f"/api/admin/tickets/{ticket.id}/status",
            json={"status": "resolved"},
            headers=auth_headers(test_user),
        )

        assert response.status_code == 403
        assert response.json()["message"] == "Admin access required"


class TestChangePriority:
    """Tests for PATCH /api/admin/tickets/{id}/priority."""

    @pytest.mark.asyncio
    async def test_change_priority(self, client: AsyncClient, db_session, test_user, test_admin):
        ticket = await TicketFactory.create(db_session, test_user)

        response = await client.patch(
            f"/api/admin/tickets/{ticket.id}/priority",
            json={"priority": "urgent"},
            headers=auth_headers(test_admin),
        )

        assert response.status_code == 200
        assert response.json()["ticket"]["priority"] == "urgent"
        assert response.json()["changed"] is True

    @pytest.mark.asyncio
    async def test_same_priority_is_noop(self, client: AsyncClient, db_session, test_user, test_admin):
        ticket = await TicketFactory.create(db_session, test_user, priority=TicketPriority.HIGH)

        response = await client.patch(
            f"/api/admin/tickets/{ticket.id}/priority",
            json={"priority": "high"},
            headers=auth_headers(test_admin),
        )

        assert response.json()["changed"] is False

    @pytest.mark.asyncio
    async def test_unknown_priority(self, client: AsyncClient, db_session, test_user, test_admin):
        ticket = await TicketFactory.create(db_session, test_user)

        response = await client.patch(
            f"/api/admin/tickets/{ticket.id}/priority",
            json={"priority": "critical"},
            headers=auth_headers(test_admin),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidPriorityError"


class TestAuditLogs:
    """Tests for GET /api/admin/audit-logs and the ticket history view."""

    async def _file_tickets(self, client: AsyncClient, user, count: int) -> list[int]:
        ids = []
        for i in range(count):
            response = await client.post(
                "/api/tickets",
                json={"title": f"Ticket number {i}", "body": "details"},
                headers={**auth_headers(user), "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
            )
            ids.append(response.json()["id"])
        return ids

    @pytest.mark.asyncio
    async def test_list_newest_first_with_pagination(self, client: AsyncClient, test_user, test_admin):
        ids = await self._file_tickets(client, test_user, 3)

        response = await client.get(
            "/api/admin/audit-logs", params={"page": 1, "page_size": 2}, headers=auth_headers(test_admin)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["page"] == 1
        assert data["page_size"] == 2
        assert [item["target_id"] for item in data["items"]] == [ids[2], ids[1]]

        second = await client.get(
            "/api/admin/audit-logs", params={"page": 2, "page_size": 2}, headers=auth_headers(test_admin)
        )
        assert [item["target_id"] for item in second.json()["items"]] == [ids[0]]

    @pytest.mark.asyncio
    async def test_entry_contents(self, client: AsyncClient, test_user, test_admin):
        [ticket_id] = await self._file_tickets(client, test_user, 1)

        response = await client.get("/api/admin/audit-logs", headers=auth_headers(test_admin))

        entry = response.json()["items"][0]
        assert entry["action"] == "ticket:create"
        assert entry["target_type"] == "ticket"
        assert entry["target_id"] == ticket_id
        assert entry["actor_user_id"] == test_user.id
        assert entry["ip_address"] == "203.0.113.7"
        assert entry["changes"] == {"title": "Ticket number 0", "attachments": 0}

    @pytest.mark.asyncio
    async def test_filters(self, client: AsyncClient, test_user, test_admin):
        [ticket_id] = await self._file_tickets(client, test_user, 1)
        await client.patch(
            f"/api/admin/tickets/{ticket_id}/status",
            json={"status": "in_progress"},
            headers=auth_headers(test_admin),
        )

        by_action = await client.get(
            "/api/admin/audit-logs",
            params={"action": "ticket:status_change"},
            headers=auth_headers(test_admin),
        )
        by_actor = await client.get(
            "/api/admin/audit-logs",
            params={"actor_user_id": test_user.id},
            headers=auth_headers(test_admin),
        )
        by_type = await client.get(
            "/api/admin/audit-logs",
            params={"target_type": "comment"},
            headers=auth_headers(test_admin),
        )

        assert [e["actor_user_id"] for e in by_action.json()["items"]] == [test_admin.id]
        assert [e["action"] for e in by_actor.json()["items"]] == ["ticket:create"]
        assert by_type.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_page_size_limit(self, client: AsyncClient, test_admin):
        response = await client.get(
            "/api/admin/audit-logs", params={"page_size": 500}, headers=auth_headers(test_admin)
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_requires_admin(self, client: AsyncClient, test_user):
        response = await client.get("/api/admin/audit-logs", headers=auth_headers(test_user))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_ticket_history_oldest_first(self, client: AsyncClient, test_user, test_admin):
        [ticket_id] = await self._file_tickets(client, test_user, 1)
        for new_status in ("in_progress", "resolved"):
            await client.patch(
                f"/api/admin/tickets/{ticket_id}/status",
                json={"status": new_status},
                headers=auth_headers(test_admin),
            )
        await client.post(f"/api/tickets/{ticket_id}/reopen", headers=auth_headers(test_user))

        response = await client.get(f"/api/admin/tickets/{ticket_id}/history", headers=auth_headers(test_admin))

        assert [e["action"] for e in response.json()] == [
            "ticket:create",
            "ticket:status_change",
            "ticket:status_change",
            "ticket:reopen",
        ]
        assert response.json()[-1]["changes"] == {"from": "resolved", "to": "reopened"}


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["scheduler"]["running"] is False
