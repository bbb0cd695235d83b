"""
Object storage service.

WHAT: Thin wrapper over the S3 API (AWS or MinIO) for attachment bytes.

WHY: The ticket services only ever handle storage keys. Issuing
time-limited upload/download URLs and deleting objects is the one place
that talks to the bucket.

HOW: boto3 S3 client configured from settings. Keys are namespaced per
uploader as u/<user id>/<uuid>-<sanitized name>, which lets the
attachment service validate ownership from the key alone.
"""

import logging
import uuid
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from helpdesk.core.config import settings
from helpdesk.core.exceptions import StorageError
from helpdesk.utils.sanitize import sanitize_filename

logger = logging.getLogger(__name__)


def user_key_prefix(user_id: int) -> str:
    """
    Storage key prefix owned by a user.

    The trailing slash matters: user 1 must not match user 12's keys.
    """
    return f"u/{user_id}/"


def build_upload_key(user_id: int, filename: str) -> str:
    """
    Build a fresh storage key for a user's upload.

    Args:
        user_id: Uploader
        filename: Client-supplied filename

    Returns:
        Key of the form u/<user id>/<uuid4>-<sanitized filename>
    """
    return f"{user_key_prefix(user_id)}{uuid.uuid4()}-{sanitize_filename(filename)}"


class StorageService:
    """
    Service for attachment object storage.

    Example:
        storage = StorageService()
        key = build_upload_key(user.id, "screenshot.png")
        url = storage.generate_upload_url(key, "image/png")
    """

    def __init__(self, s3_client=None, bucket_name: Optional[str] = None):
        """
        Args:
            s3_client: Preconfigured boto3 S3 client (built from settings if omitted)
            bucket_name: Bucket holding attachments (defaults to settings.S3_BUCKET)
        """
        self.s3_client = s3_client or boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT,
            aws_access_key_id=settings.S3_ACCESS_KEY,
            aws_secret_access_key=settings.S3_SECRET_KEY,
            region_name=settings.S3_REGION,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
        self.bucket_name = bucket_name or settings.S3_BUCKET
        self.expires_in = settings.PRESIGNED_URL_EXPIRES_SECONDS

    def generate_upload_url(self, key: str, content_type: str) -> str:
        """
        Presigned PUT URL for uploading one object.

        Args:
            key: Storage key to upload to
            content_type: Content-Type the client must send

        Returns:
            Presigned URL

        Raises:
            StorageError: If the URL cannot be generated
        """
        try:
            return self.s3_client.generate_presigned_url(
                "put_object",
                Params={
                    "Bucket": self.bucket_name,
                    "Key": key,
                    "ContentType": content_type,
                },
                ExpiresIn=self.expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                message="Failed to generate upload URL",
                error=str(e),
            )

    def generate_download_url(self, key: str, filename: str) -> str:
        """
        Presigned GET URL that downloads the object under its original name.

        Raises:
            StorageError: If the URL cannot be generated
        """
        safe_name = sanitize_filename(filename)
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={
                    "Bucket": self.bucket_name,
                    "Key": key,
                    "ResponseContentDisposition": f'attachment; filename="{safe_name}"',
                },
                ExpiresIn=self.expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                message="Failed to generate download URL",
                error=str(e),
            )

    def delete_object(self, key: str) -> None:
        """
        Delete one object.

        Raises:
            StorageError: If the bucket rejects the delete
        """
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                message="Failed to delete file from storage",
                error=str(e),
            )

    def delete_object_quietly(self, key: str) -> bool:
        """
        Best-effort delete used after an attachment row is removed.

        A failure leaves an orphaned object behind; it is logged with the
        key so it can be cleaned up by hand.

        Returns:
            True if the object was deleted
        """
        try:
            self.delete_object(key)
        except StorageError as e:
            logger.error(
                f"Failed to delete orphaned attachment object {key}: {e.context.get('error')}",
                extra={"storage_key": key},
            )
            return False
        logger.info(f"Deleted attachment object {key}")
        return True
