"""
Pydantic schemas for ticket endpoints.

WHAT: Request/response schemas for tickets, comments and attachments.

WHY: Schemas define API contracts:
1. Validate incoming request data (lengths, sizes, content types)
2. Document the API for OpenAPI
3. Control which fields are exposed (soft-deleted comment bodies are withheld)

HOW: Uses Pydantic v2 with Field constraints, field validators, and
from_attributes for SQLAlchemy integration. AttachmentMeta doubles as the
input type of AttachmentService and TicketService.create_ticket.
"""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from helpdesk.core.config import settings
from helpdesk.models.ticket import TicketStatus, TicketPriority
from helpdesk.utils.sanitize import sanitize_filename


# ============================================================================
# User Reference Schema
# ============================================================================


class UserReference(BaseModel):
    """Minimal user info embedded in ticket responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="User ID")
    username: str = Field(..., description="Display name")
    email: str = Field(..., description="User email")


# ============================================================================
# Attachment Schemas
# ============================================================================


def check_attachment_size(size: int) -> int:
    """Enforce the configured per-file size limit."""
    if size > settings.ATTACHMENT_MAX_SIZE_BYTES:
        raise ValueError(
            f"File too large (max {settings.ATTACHMENT_MAX_SIZE_BYTES // (1024 * 1024)}MB)"
        )
    return size


def check_content_type(content_type: str) -> str:
    """Only the configured content types may be attached."""
    content_type = content_type.lower().strip()
    if content_type not in settings.ATTACHMENT_ALLOWED_CONTENT_TYPES:
        raise ValueError(
            f"Unsupported file type. Allowed: {', '.join(settings.ATTACHMENT_ALLOWED_CONTENT_TYPES)}"
        )
    return content_type


class AttachmentMeta(BaseModel):
    """
    Metadata for a file already uploaded to object storage.

    WHAT: What the client reports after a presigned upload.

    WHY: The bytes never pass through the API, so the metadata is all the
    server can check: size, content type, and (in the service) that the
    key belongs to the caller.
    """

    filename: str = Field(..., min_length=1, max_length=255, description="Original filename")
    storage_key: str = Field(..., min_length=1, max_length=500, description="Object storage key")
    size: int = Field(..., gt=0, description="File size in bytes")
    content_type: str = Field(..., min_length=1, max_length=100, description="MIME type")

    @field_validator("filename")
    @classmethod
    def clean_filename(cls, v: str) -> str:
        """Store a sanitized display name."""
        return sanitize_filename(v)

    @field_validator("size")
    @classmethod
    def validate_size(cls, v: int) -> int:
        """Enforce the configured per-file size limit."""
        return check_attachment_size(v)

    @field_validator("content_type")
    @classmethod
    def validate_content_type(cls, v: str) -> str:
        """Only the configured content types may be attached."""
        return check_content_type(v)


class AttachmentAddRequest(BaseModel):
    """Attach already-uploaded files to an existing ticket."""

    files: List[AttachmentMeta] = Field(..., min_length=1)


class AttachmentResponse(BaseModel):
    """Attachment metadata in responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    filename: str
    storage_key: str
    size: int
    content_type: str
    uploaded_by_user_id: int
    created_at: datetime


class AttachmentAddResponse(BaseModel):
    """Outcome of attaching files."""

    ticket_id: int
    added: int = Field(..., description="Rows inserted (duplicate keys are skipped)")


class PresignUploadRequest(BaseModel):
    """Ask for a presigned upload URL."""

    filename: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=1, max_length=100)
    size: int = Field(..., gt=0)

    @field_validator("size")
    @classmethod
    def validate_size(cls, v: int) -> int:
        return check_attachment_size(v)

    @field_validator("content_type")
    @classmethod
    def validate_content_type(cls, v: str) -> str:
        return check_content_type(v)


class PresignUploadResponse(BaseModel):
    """Where and under which key to upload."""

    upload_url: str
    storage_key: str
    expires_in: int


class DownloadUrlResponse(BaseModel):
    """Presigned download link."""

    download_url: str
    expires_in: int


# ============================================================================
# Ticket Schemas
# ============================================================================


class TicketCreate(BaseModel):
    """
    Ticket creation request.

    Attachments listed here were uploaded beforehand through a presigned URL.
    """

    title: str = Field(..., min_length=3, max_length=120, description="Ticket title")
    body: str = Field(..., min_length=1, max_length=5000, description="Problem description")
    attachments: List[AttachmentMeta] = Field(default_factory=list)

    @field_validator("title", "body")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Must not be blank")
        return v

    @field_validator("attachments")
    @classmethod
    def limit_attachments(cls, v: List[AttachmentMeta]) -> List[AttachmentMeta]:
        if len(v) > settings.ATTACHMENT_MAX_COUNT:
            raise ValueError(f"At most {settings.ATTACHMENT_MAX_COUNT} attachments allowed")
        return v


class TicketStatusUpdate(BaseModel):
    """Admin status change. Validated against TicketStatus by the service."""

    status: str = Field(..., description="Target status")


class TicketPriorityUpdate(BaseModel):
    """Admin priority change. Validated against TicketPriority by the service."""

    priority: str = Field(..., description="Target priority")


class CommentResponse(BaseModel):
    """
    Comment in responses.

    body is None for soft-deleted comments.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    author: UserReference
    body: Optional[str]
    created_at: datetime
    deleted_at: Optional[datetime] = None


class TicketResponse(BaseModel):
    """Ticket summary in responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    body: str
    status: TicketStatus
    priority: TicketPriority
    created_by_user_id: int
    created_at: datetime
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class TicketDetailResponse(TicketResponse):
    """Ticket with its conversation and files."""

    requester: UserReference
    comments: List[CommentResponse] = Field(default_factory=list)
    attachments: List[AttachmentResponse] = Field(default_factory=list)


class TicketChangeResponse(BaseModel):
    """Result of a status, priority or reopen call."""

    ticket: TicketResponse
    changed: bool = Field(..., description="False when the request was a no-op")


# ============================================================================
# Comment Schemas
# ============================================================================


class CommentCreate(BaseModel):
    """New comment on a ticket."""

    body: str = Field(..., min_length=1, max_length=5000)

    @field_validator("body")
    @classmethod
    def strip_body(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Must not be blank")
        return v
