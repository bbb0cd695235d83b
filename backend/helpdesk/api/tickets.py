"""
Ticket API endpoints.

WHAT: REST endpoints for filing tickets, reading them, reopening them,
and adding comments and attachments.

WHY: This is the requester-facing surface of the helpdesk. Admins use the
same endpoints (they can see and comment on every ticket) plus the admin
router for status and priority.

HOW: FastAPI router. Every handler resolves the Principal, calls one
service method and converts the result to a schema. The session from
get_db commits when the handler returns and rolls back on any error, so
each request is one transaction.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.deps import get_current_principal, get_notification_service
from helpdesk.core.principal import Principal
from helpdesk.db.session import get_db
from helpdesk.models.ticket import Ticket, TicketComment
from helpdesk.models.user import User
from helpdesk.schemas.ticket import (
    AttachmentAddRequest,
    AttachmentAddResponse,
    AttachmentResponse,
    CommentCreate,
    CommentResponse,
    TicketChangeResponse,
    TicketCreate,
    TicketDetailResponse,
    TicketResponse,
    UserReference,
)
from helpdesk.services.attachment_service import AttachmentService
from helpdesk.services.comment_service import CommentService
from helpdesk.services.notification_service import NotificationService
from helpdesk.services.ticket_service import TicketService, get_visible_ticket


router = APIRouter(prefix="/tickets", tags=["tickets"])


def _user_to_reference(user: User) -> UserReference:
    """Minimal user info for embedding in responses."""
    return UserReference(id=user.id, username=user.username, email=user.email)


def _comment_to_response(comment: TicketComment, author: UserReference) -> CommentResponse:
    """
    Convert a comment, withholding the body once it is soft-deleted.
    """
    return CommentResponse(
        id=comment.id,
        ticket_id=comment.ticket_id,
        author=author,
        body=None if comment.is_deleted else comment.body,
        created_at=comment.created_at,
        deleted_at=comment.deleted_at,
    )


def _ticket_to_detail_response(ticket: Ticket) -> TicketDetailResponse:
    """Ticket with requester, comments and attachments loaded."""
    return TicketDetailResponse(
        **TicketResponse.model_validate(ticket).model_dump(),
        requester=_user_to_reference(ticket.requester),
        comments=[
            _comment_to_response(c, _user_to_reference(c.author)) for c in ticket.comments
        ],
        attachments=[AttachmentResponse.model_validate(a) for a in ticket.attachments],
    )


# ============================================================================
# Ticket Endpoints
# ============================================================================


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create ticket",
    description="File a new ticket, optionally with files uploaded through presigned URLs",
)
async def create_ticket(
    data: TicketCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
) -> TicketResponse:
    """
    Create a new ticket.

    Raises:
        InvalidAttachmentKeyError (400): If an attachment key is not the caller's
    """
    service = TicketService(db, notification_service=notifications)
    ticket = await service.create_ticket(
        principal,
        title=data.title,
        body=data.body,
        attachments=data.attachments,
    )
    return TicketResponse.model_validate(ticket)


@router.get(
    "/{ticket_id}",
    response_model=TicketDetailResponse,
    status_code=status.HTTP_200_OK,
    summary="Get ticket details",
    description="Get a ticket with its comments and attachments",
)
async def get_ticket(
    ticket_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> TicketDetailResponse:
    """
    Get ticket by ID with full details.

    Note: Soft-deleted comments are listed without their body.

    Raises:
        AuthorizationError (403): If a non-admin does not own the ticket
        TicketNotFoundError (404): If an admin asks for a missing ticket
    """
    service = TicketService(db)
    await get_visible_ticket(service.ticket_dao, principal, ticket_id)

    ticket = await service.ticket_dao.get_by_id_with_relations(ticket_id)
    return _ticket_to_detail_response(ticket)


@router.post(
    "/{ticket_id}/reopen",
    response_model=TicketChangeResponse,
    status_code=status.HTTP_200_OK,
    summary="Reopen ticket",
    description="Requesters may reopen their resolved ticket within the reopen window",
)
async def reopen_ticket(
    ticket_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
) -> TicketChangeResponse:
    """
    Reopen a ticket.

    Raises:
        TicketNotFoundError (404): If the ticket does not exist
        AuthorizationError (403): If a non-admin does not own the ticket
        ReopenNotAllowedError (422): If a non-admin's ticket is not resolved
        ReopenWindowElapsedError (422): If the reopen window has passed
    """
    service = TicketService(db, notification_service=notifications)
    ticket = await service.reopen(principal, ticket_id)
    return TicketChangeResponse(ticket=TicketResponse.model_validate(ticket), changed=True)


# ============================================================================
# Comment Endpoints
# ============================================================================


@router.post(
    "/{ticket_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add comment",
    description="Add a comment to a ticket",
)
async def add_comment(
    ticket_id: int,
    data: CommentCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
) -> CommentResponse:
    """
    Add a comment to a ticket.

    Raises:
        AuthorizationError (403): If a non-admin does not own the ticket
    """
    service = CommentService(db, notification_service=notifications)
    comment = await service.add(principal, ticket_id, data.body)
    author = UserReference(id=principal.id, username=principal.username, email=principal.email)
    return _comment_to_response(comment, author)


# ============================================================================
# Attachment Endpoints
# ============================================================================


@router.post(
    "/{ticket_id}/attachments",
    response_model=AttachmentAddResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach files",
    description="Attach files already uploaded through presigned URLs",
)
async def add_attachments(
    ticket_id: int,
    data: AttachmentAddRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> AttachmentAddResponse:
    """
    Attach uploaded files to a ticket.

    Raises:
        FeatureDisabledError (403): If attachments are switched off
        AuthorizationError (403): If a non-admin does not own the ticket
        InvalidAttachmentKeyError (400): If a key is not the caller's
        TooManyAttachmentsError (422): If the ticket would exceed the cap
    """
    added = await AttachmentService(db).add(principal, ticket_id, data.files)
    return AttachmentAddResponse(ticket_id=ticket_id, added=added)
