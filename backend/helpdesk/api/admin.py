"""
Admin API endpoints.

WHAT: Ticket triage (status, priority) and the audit log viewer.

WHY: Administrators need to:
1. Move tickets through the workflow and set their priority
2. Review who changed what, and from where

HOW: FastAPI router with the ADMIN role required on every endpoint. The
services check the role again, so they stay safe when called from
elsewhere.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.deps import require_admin, get_notification_service
from helpdesk.core.principal import Principal
from helpdesk.db.session import get_db
from helpdesk.dao.audit_log import AuditLogDAO
from helpdesk.models.audit_log import AuditTargetType
from helpdesk.schemas.audit import AuditLogListResponse, AuditLogResponse
from helpdesk.schemas.ticket import (
    TicketChangeResponse,
    TicketPriorityUpdate,
    TicketResponse,
    TicketStatusUpdate,
)
from helpdesk.services.notification_service import NotificationService
from helpdesk.services.ticket_service import TicketService


router = APIRouter(prefix="/admin", tags=["admin"])


# ============================================================================
# Ticket Triage Endpoints
# ============================================================================


@router.patch(
    "/tickets/{ticket_id}/status",
    response_model=TicketChangeResponse,
    status_code=status.HTTP_200_OK,
    summary="Change ticket status",
    description="Move a ticket to another status (ADMIN only)",
)
async def change_ticket_status(
    ticket_id: int,
    data: TicketStatusUpdate,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
) -> TicketChangeResponse:
    """
    Change ticket status.

    Setting the current status again is a no-op and returns changed=false.

    Raises:
        InvalidStatusError (400): If the status is unknown
        TicketNotFoundError (404): If the ticket does not exist
    """
    service = TicketService(db, notification_service=notifications)
    ticket, changed = await service.update_status(admin, ticket_id, data.status)
    return TicketChangeResponse(ticket=TicketResponse.model_validate(ticket), changed=changed)


@router.patch(
    "/tickets/{ticket_id}/priority",
    response_model=TicketChangeResponse,
    status_code=status.HTTP_200_OK,
    summary="Change ticket priority",
    description="Set a ticket's priority (ADMIN only)",
)
async def change_ticket_priority(
    ticket_id: int,
    data: TicketPriorityUpdate,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> TicketChangeResponse:
    """
    Change ticket priority.

    Raises:
        InvalidPriorityError (400): If the priority is unknown
        TicketNotFoundError (404): If the ticket does not exist
    """
    ticket, changed = await TicketService(db).update_priority(admin, ticket_id, data.priority)
    return TicketChangeResponse(ticket=TicketResponse.model_validate(ticket), changed=changed)


# ============================================================================
# Audit Log Viewer Endpoints
# ============================================================================


@router.get(
    "/audit-logs",
    response_model=AuditLogListResponse,
    status_code=status.HTTP_200_OK,
    summary="List audit logs",
    description="Get paginated list of audit logs with filtering (ADMIN only)",
)
async def list_audit_logs(
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=50, ge=1, le=100, description="Items per page"),
    actor_user_id: Optional[int] = Query(default=None, description="Filter by actor user"),
    target_type: Optional[AuditTargetType] = Query(default=None, description="Filter by target type"),
    action: Optional[str] = Query(default=None, description="Filter by action, e.g. ticket:reopen"),
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> AuditLogListResponse:
    """
    List audit logs, newest first.
    """
    dao = AuditLogDAO(db)
    filters = {
        "actor_user_id": actor_user_id,
        "target_type": target_type.value if target_type else None,
        "action": action,
    }

    total = await dao.count(**filters)
    logs = await dao.list(**filters, skip=(page - 1) * page_size, limit=page_size)

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/tickets/{ticket_id}/history",
    response_model=list[AuditLogResponse],
    status_code=status.HTTP_200_OK,
    summary="Ticket history",
    description="Audit entries recorded against one ticket, oldest first (ADMIN only)",
)
async def get_ticket_history(
    ticket_id: int,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[AuditLogResponse]:
    """Audit trail of a single ticket."""
    logs = await AuditLogDAO(db).get_for_target(AuditTargetType.TICKET.value, ticket_id)
    return [AuditLogResponse.model_validate(log) for log in logs]
