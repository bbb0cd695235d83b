"""
Attachment API endpoints.

WHAT: Presigned upload and download URLs, and attachment removal.

WHY: File bytes go straight between the browser and object storage. The
API only issues time-limited URLs under keys it chooses, and records
metadata once the client attaches the upload to a ticket
(POST /tickets/{id}/attachments).

HOW: Upload keys are built as u/<user id>/<uuid>-<name>, which is what
the ownership check on attach expects. On removal the row is deleted in
the request transaction and the object is deleted afterwards as a
background task; a failed object delete is logged, not raised.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.deps import get_current_principal, get_storage_service
from helpdesk.core.principal import Principal
from helpdesk.db.session import get_db
from helpdesk.schemas.ticket import (
    DownloadUrlResponse,
    PresignUploadRequest,
    PresignUploadResponse,
)
from helpdesk.services.attachment_service import AttachmentService, ensure_attachments_enabled
from helpdesk.services.storage import StorageService, build_upload_key


router = APIRouter(prefix="/attachments", tags=["attachments"])


@router.post(
    "/presign",
    response_model=PresignUploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Presign upload",
    description="Get a presigned PUT URL and the storage key to attach afterwards",
)
async def presign_upload(
    data: PresignUploadRequest,
    principal: Principal = Depends(get_current_principal),
    storage: StorageService = Depends(get_storage_service),
) -> PresignUploadResponse:
    """
    Issue an upload URL under the caller's key prefix.

    Raises:
        FeatureDisabledError (403): If attachments are switched off
        StorageError (502): If the URL cannot be generated
    """
    ensure_attachments_enabled()

    key = build_upload_key(principal.id, data.filename)
    upload_url = storage.generate_upload_url(key, data.content_type)
    return PresignUploadResponse(
        upload_url=upload_url,
        storage_key=key,
        expires_in=storage.expires_in,
    )


@router.get(
    "/{attachment_id}/download",
    response_model=DownloadUrlResponse,
    status_code=status.HTTP_200_OK,
    summary="Download attachment",
    description="Get a presigned download URL (admin, uploader or ticket owner)",
)
async def download_attachment(
    attachment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
) -> DownloadUrlResponse:
    """
    Issue a download URL for an attachment.

    Raises:
        AttachmentNotFoundError (404): If the attachment does not exist
        AuthorizationError (403): If the caller may not see it
    """
    attachment = await AttachmentService(db).get_for_download(principal, attachment_id)
    download_url = storage.generate_download_url(attachment.storage_key, attachment.filename)
    return DownloadUrlResponse(download_url=download_url, expires_in=storage.expires_in)


@router.delete(
    "/{attachment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove attachment",
    description="Remove an attachment (admin, uploader or ticket owner)",
)
async def remove_attachment(
    attachment_id: int,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
) -> None:
    """
    Remove an attachment's metadata and then its stored object.

    Raises:
        FeatureDisabledError (403): If attachments are switched off
        AttachmentNotFoundError (404): If the attachment does not exist
        AuthorizationError (403): If none of the permissions holds
    """
    _, storage_key = await AttachmentService(db).remove(principal, attachment_id)
    background_tasks.add_task(storage.delete_object_quietly, storage_key)
