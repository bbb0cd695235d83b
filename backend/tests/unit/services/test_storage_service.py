"""
Unit tests for StorageService and storage key helpers.

HOW: The boto3 client is a MagicMock; nothing talks to a bucket.
"""

import re
import pytest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

from helpdesk.core.exceptions import StorageError
from helpdesk.services.storage import StorageService, build_upload_key, user_key_prefix


def _client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, operation)


@pytest.fixture
def s3_client():
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://storage.test/signed"
    return client


@pytest.fixture
def storage(s3_client):
    return StorageService(s3_client=s3_client, bucket_name="helpdesk-attachments")


class TestKeys:
    """Tests for the per-user key namespace."""

    def test_prefix(self):
        assert user_key_prefix(12) == "u/12/"

    def test_prefix_does_not_match_longer_ids(self):
        assert not user_key_prefix(12).startswith(user_key_prefix(1))

    def test_upload_key_format(self):
        key = build_upload_key(7, "Screen Shot.PNG")

        assert re.fullmatch(r"u/7/[0-9a-f-]{36}-Screen Shot\.png", key)

    def test_upload_keys_are_unique(self):
        assert build_upload_key(7, "a.txt") != build_upload_key(7, "a.txt")


class TestPresignedUrls:
    """Tests for presigned URL generation."""

    def test_upload_url(self, storage, s3_client):
        url = storage.generate_upload_url("u/1/abc-log.txt", "text/plain")

        assert url == "https://storage.test/signed"
        s3_client.generate_presigned_url.assert_called_once_with(
            "put_object",
            Params={
                "Bucket": "helpdesk-attachments",
                "Key": "u/1/abc-log.txt",
                "ContentType": "text/plain",
            },
            ExpiresIn=300,
        )

    def test_download_url_uses_sanitized_name(self, storage, s3_client):
        storage.generate_download_url("u/1/abc-log.txt", 'evil"/name.txt')

        params = s3_client.generate_presigned_url.call_args.kwargs["Params"]
        assert params["ResponseContentDisposition"] == 'attachment; filename="evil-name.txt"'

    def test_client_error_becomes_storage_error(self, storage, s3_client):
        s3_client.generate_presigned_url.side_effect = _client_error("GeneratePresignedUrl")

        with pytest.raises(StorageError) as exc_info:
            storage.generate_upload_url("u/1/x", "text/plain")

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Failed to generate upload URL"


class TestDelete:
    """Tests for object deletion."""

    def test_delete(self, storage, s3_client):
        storage.delete_object("u/1/abc-log.txt")

        s3_client.delete_object.assert_called_once_with(
            Bucket="helpdesk-attachments", Key="u/1/abc-log.txt"
        )

    def test_delete_failure_raises(self, storage, s3_client):
        s3_client.delete_object.side_effect = _client_error("DeleteObject")

        with pytest.raises(StorageError):
            storage.delete_object("u/1/abc-log.txt")

    def test_quiet_delete(self, storage):
        assert storage.delete_object_quietly("u/1/abc-log.txt") is True

    def test_quiet_delete_failure_returns_false(self, storage, s3_client):
        s3_client.delete_object.side_effect = _client_error("DeleteObject")

        assert storage.delete_object_quietly("u/1/abc-log.txt") is False
