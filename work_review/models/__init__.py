"""SQLAlchemy ORM Models for the work review service."""

from .base import Base, JSONType, TimestampMixin, UUIDMixin
from .models import (
    # Enums
    AuditAction,
    GrantScope,
    ReviewerRole,
    ReviewStatus,
    TaskStatus,
    VerificationStatus,
    # Organization hierarchy
    EmploymentRelationship,
    Organization,
    ReviewerGrant,
    Team,
    # Work entries
    WorkEntry,
    # Audit
    AuditLog,
)

__all__ = [
    # Base
    "Base",
    "JSONType",
    "UUIDMixin",
    "TimestampMixin",
    # Enums
    "AuditAction",
    "GrantScope",
    "ReviewerRole",
    "ReviewStatus",
    "TaskStatus",
    "VerificationStatus",
    # Organization hierarchy
    "Organization",
    "Team",
    "EmploymentRelationship",
    "ReviewerGrant",
    # Work entries
    "WorkEntry",
    # Audit
    "AuditLog",
]
