"""
Comment API endpoints.

WHAT: Soft-deleting a comment. Comments are created under
/tickets/{id}/comments.

HOW: The body stays in the database; ticket detail responses stop
showing it once deleted_at is set.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.deps import get_current_principal
from helpdesk.core.principal import Principal
from helpdesk.db.session import get_db
from helpdesk.services.comment_service import CommentService


router = APIRouter(prefix="/comments", tags=["comments"])


@router.delete(
    "/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete comment",
    description="Soft-delete a comment (author or admin)",
)
async def delete_comment(
    comment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Soft-delete a comment.

    Raises:
        CommentNotFoundError (404): If the comment does not exist
        AuthorizationError (403): If the caller is neither author nor admin
    """
    await CommentService(db).soft_delete(principal, comment_id)
