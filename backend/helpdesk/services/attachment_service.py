"""
Attachment Service.

WHAT: Attaches already-uploaded files to tickets and removes them.

WHY: The bytes live in object storage and never pass through the API.
What the service guards is the metadata: who may attach to which
ticket, that a storage key really belongs to the uploader, and the
per-ticket attachment cap.

HOW: Permission is a single ticket lookup plus an explicit check. Key
ownership is decided from the u/<user id>/ prefix alone. Rows are
bulk-inserted with duplicate storage keys skipped. Removal only deletes
the row and hands the storage key back, so the caller can delete the
object once the transaction has committed.
"""

import logging
from typing import Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import settings
from helpdesk.core.exceptions import (
    AttachmentNotFoundError,
    AuthorizationError,
    FeatureDisabledError,
    TooManyAttachmentsError,
)
from helpdesk.core.principal import Principal
from helpdesk.dao.ticket import TicketDAO, TicketAttachmentDAO
from helpdesk.models.audit_log import AuditAction, AuditTargetType
from helpdesk.models.ticket import TicketAttachment
from helpdesk.schemas.ticket import AttachmentMeta
from helpdesk.services.audit import AuditService
from helpdesk.services.ticket_service import ensure_keys_owned, get_visible_ticket

logger = logging.getLogger(__name__)


def ensure_attachments_enabled() -> None:
    """
    Raises:
        FeatureDisabledError: If ENABLE_ATTACHMENTS is off
    """
    if not settings.ENABLE_ATTACHMENTS:
        raise FeatureDisabledError(
            message="Attachment functionality is currently disabled",
            feature="attachments",
        )


class AttachmentService:
    """
    Service for ticket attachments.

    Example:
        service = AttachmentService(db)
        added = await service.add(principal, ticket_id, files)
    """

    def __init__(self, session: AsyncSession):
        """
        Args:
            session: Async database session (the caller owns the transaction)
        """
        self.session = session
        self.ticket_dao = TicketDAO(session)
        self.attachment_dao = TicketAttachmentDAO(session)
        self.audit = AuditService(session)

    async def add(
        self,
        principal: Principal,
        ticket_id: int,
        files: Sequence[AttachmentMeta],
    ) -> int:
        """
        Attach uploaded files to a ticket.

        Args:
            principal: Caller, must be an admin or the ticket's owner
            ticket_id: Ticket to attach to
            files: Metadata of the uploaded objects

        Returns:
            Number of rows inserted (storage keys already present are skipped)

        Raises:
            FeatureDisabledError: If attachments are switched off
            AuthorizationError: If a non-admin does not own the ticket
            TicketNotFoundError: If an admin names a missing ticket
            InvalidAttachmentKeyError: If a non-admin submits a key outside
                their own prefix
            TooManyAttachmentsError: If the ticket would exceed the cap
        """
        ensure_attachments_enabled()
        files = list(files)

        ticket = await get_visible_ticket(self.ticket_dao, principal, ticket_id)

        if not principal.is_admin:
            ensure_keys_owned(principal, files)

        limit = settings.ATTACHMENT_MAX_COUNT
        current = await self.attachment_dao.count_for_ticket(ticket.id)
        if current + len(files) > limit:
            logger.warning(
                f"Attachment limit exceeded on ticket #{ticket.id}",
                extra={
                    "ticket_id": ticket.id,
                    "actor_id": principal.id,
                    "current_count": current,
                    "trying_to_add": len(files),
                },
            )
            raise TooManyAttachmentsError(
                message=(
                    f"Maximum {limit} attachments allowed. You currently have "
                    f"{current} attachments and are trying to add {len(files)} more."
                ),
                current_count=current,
                trying_to_add=len(files),
                limit=limit,
            )

        added = await self.attachment_dao.create_many(
            ticket_id=ticket.id,
            uploaded_by_user_id=principal.id,
            files=[f.model_dump() for f in files],
        )

        await self.audit.record(
            actor_user_id=principal.id,
            action=AuditAction.ATTACHMENT_ADD,
            target_type=AuditTargetType.TICKET,
            target_id=ticket.id,
            changes={"count": added},
        )

        logger.info(
            f"Added {added} attachment(s) to ticket #{ticket.id}",
            extra={"ticket_id": ticket.id, "actor_id": principal.id, "action": "attachment:add"},
        )
        return added

    async def get_for_download(self, principal: Principal, attachment_id: int) -> TicketAttachment:
        """
        Load an attachment the principal may download.

        Same rule as removal: admin, uploader, or owner of the parent ticket.

        Raises:
            AttachmentNotFoundError: If the attachment does not exist
            AuthorizationError: If none of the three permissions holds
        """
        attachment = await self._get_manageable(principal, attachment_id)
        logger.info(
            f"Download of attachment {attachment_id} issued to user {principal.id}",
            extra={"ticket_id": attachment.ticket_id, "actor_id": principal.id},
        )
        return attachment

    async def _get_manageable(self, principal: Principal, attachment_id: int) -> TicketAttachment:
        attachment = await self.attachment_dao.get_by_id_with_ticket(attachment_id)
        if attachment is None:
            raise AttachmentNotFoundError(attachment_id=attachment_id)

        if not (
            principal.is_admin
            or attachment.uploaded_by_user_id == principal.id
            or attachment.ticket.created_by_user_id == principal.id
        ):
            raise AuthorizationError(
                message="You don't have permission to access this attachment",
                attachment_id=attachment_id,
                user_id=principal.id,
            )
        return attachment

    async def remove(self, principal: Principal, attachment_id: int) -> Tuple[int, str]:
        """
        Remove an attachment's metadata row.

        Allowed for an admin, the uploader, or the owner of the parent ticket.

        Args:
            principal: Caller
            attachment_id: Attachment to remove

        Returns:
            (ticket_id, storage_key) of the removed attachment. The object
            itself is still in the bucket.

        Raises:
            FeatureDisabledError: If attachments are switched off
            AttachmentNotFoundError: If the attachment does not exist
            AuthorizationError: If none of the three permissions holds
        """
        ensure_attachments_enabled()

        attachment = await self._get_manageable(principal, attachment_id)
        ticket = attachment.ticket

        storage_key = attachment.storage_key
        await self.attachment_dao.delete_instance(attachment)
        await self.audit.record(
            actor_user_id=principal.id,
            action=AuditAction.ATTACHMENT_REMOVE,
            target_type=AuditTargetType.TICKET,
            target_id=ticket.id,
            changes={"attachmentId": attachment_id},
        )

        logger.info(
            f"Removed attachment {attachment_id} from ticket #{ticket.id}",
            extra={
                "ticket_id": ticket.id,
                "actor_id": principal.id,
                "action": "attachment:remove",
                "storage_key": storage_key,
            },
        )
        return ticket.id, storage_key
