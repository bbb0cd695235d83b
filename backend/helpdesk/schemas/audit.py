"""
Pydantic schemas for the audit log listing.

WHAT: Read-only views of AuditLog rows for the admin endpoint.

WHY: Audit entries are append-only, so there are no request schemas;
only the listing and its pagination envelope.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, ConfigDict, Field


class AuditLogResponse(BaseModel):
    """One audit entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    actor_user_id: Optional[int] = Field(None, description="Null for system actions")
    action: str = Field(..., description="Namespaced action, e.g. ticket:status_change")
    target_type: str
    target_id: int
    changes: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    """Paginated audit entries, newest first."""

    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
