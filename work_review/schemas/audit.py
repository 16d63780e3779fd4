"""Pydantic schemas for the audit trail."""

from datetime import datetime
from uuid import UUID

from ..models import AuditAction
from .base import WorkReviewBaseModel


class AuditLogEntry(WorkReviewBaseModel):
    """A single audit log entry."""

    id: UUID
    organization_id: UUID
    actor_id: UUID | None = None  # None for system actions
    action: AuditAction
    resource_type: str
    resource_id: UUID
    details: dict
    sequence: int
    created_at: datetime

    # Chain integrity
    previous_hash: str | None = None
    entry_hash: str | None = None


class AuditTrailResponse(WorkReviewBaseModel):
    """Audit trail of one work entry, oldest first."""

    resource_id: UUID
    items: list[AuditLogEntry]
    seal_valid: bool | None = None  # None while the entry is not approved


class ChainVerificationResponse(WorkReviewBaseModel):
    """Result of recomputing an organization's audit hash chains."""

    is_valid: bool
    checked: int
    broken_at_id: UUID | None = None
    expected_hash: str | None = None
    actual_hash: str | None = None
    verified_at: datetime
