"""
Unit tests for ticket request schemas.

WHAT: Field validation that happens before any service code runs.
"""

import pytest
from pydantic import ValidationError

from helpdesk.schemas.ticket import (
    AttachmentMeta,
    CommentCreate,
    PresignUploadRequest,
    TicketCreate,
)


def _meta(**overrides):
    data = {
        "filename": "screenshot.png",
        "storage_key": "u/1/0b8f-screenshot.png",
        "size": 2048,
        "content_type": "image/png",
    }
    data.update(overrides)
    return data


class TestTicketCreate:
    """Tests for TicketCreate."""

    def test_strips_text(self):
        ticket = TicketCreate(title="  Printer jammed  ", body="\nPaper stuck in tray 2\n")

        assert ticket.title == "Printer jammed"
        assert ticket.body == "Paper stuck in tray 2"
        assert ticket.attachments == []

    @pytest.mark.parametrize("title", ["ab", "x" * 121])
    def test_title_length(self, title):
        with pytest.raises(ValidationError):
            TicketCreate(title=title, body="details")

    def test_blank_body_rejected(self):
        with pytest.raises(ValidationError, match="Must not be blank"):
            TicketCreate(title="Printer jammed", body="   ")

    def test_too_many_attachments(self):
        files = [_meta(storage_key=f"u/1/{i}-a.png") for i in range(6)]

        with pytest.raises(ValidationError, match="At most 5 attachments allowed"):
            TicketCreate(title="Printer jammed", body="details", attachments=files)

    def test_five_attachments_allowed(self):
        files = [_meta(storage_key=f"u/1/{i}-a.png") for i in range(5)]

        assert len(TicketCreate(title="Printer jammed", body="details", attachments=files).attachments) == 5


class TestAttachmentMeta:
    """Tests for AttachmentMeta."""

    def test_normalizes_content_type_and_filename(self):
        meta = AttachmentMeta(**_meta(filename="My Scan?.PDF", content_type=" Application/PDF "))

        assert meta.content_type == "application/pdf"
        assert meta.filename == "My Scan-.pdf"

    def test_rejects_unsupported_type(self):
        with pytest.raises(ValidationError, match="Unsupported file type"):
            AttachmentMeta(**_meta(content_type="application/x-msdownload"))

    def test_rejects_oversized_file(self):
        with pytest.raises(ValidationError, match="File too large"):
            AttachmentMeta(**_meta(size=10 * 1024 * 1024 + 1))

    def test_rejects_empty_file(self):
        with pytest.raises(ValidationError):
            AttachmentMeta(**_meta(size=0))


def test_presign_request_validates_type():
    with pytest.raises(ValidationError):
        PresignUploadRequest(filename="a.exe", content_type="application/octet-stream", size=10)


def test_comment_strips_body():
    assert CommentCreate(body="  thanks!  ").body == "thanks!"
