"""SQLAlchemy ORM Models for the work review service.

Organizations, teams, employment relationships and reviewer grants are owned by
the organization-management side of the product; this service only reads them.
WorkEntry is the one shared mutable record, and AuditLog is append-only.
"""

from datetime import date, datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType, TimestampMixin, UUIDMixin


# =============================================================================
# ENUMS
# =============================================================================


class VerificationStatus(str, PyEnum):
    """Identity-verification state of an organization."""
    UNVERIFIED = "unverified"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ReviewStatus(str, PyEnum):
    """Organization-controlled approval lifecycle of a work entry."""
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"  # Terminal
    NEEDS_CHANGES = "needs_changes"


class TaskStatus(str, PyEnum):
    """Employee's own view of task progress. Never drives approval."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


class GrantScope(str, PyEnum):
    ORGANIZATION = "organization"
    TEAM = "team"


class ReviewerRole(str, PyEnum):
    ORGANIZATION_ADMIN = "organization_admin"
    ASSIGNED_MANAGER = "assigned_manager"


class AuditAction(str, PyEnum):
    CREATE = "create"
    UPDATE = "update"
    RESUBMIT = "resubmit"
    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    DELETE = "delete"


# =============================================================================
# ORGANIZATION HIERARCHY (read-only inputs)
# =============================================================================


class Organization(Base, UUIDMixin):
    """Organization that employs people and reviews their work."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    verification_status: Mapped[VerificationStatus] = mapped_column(
        Enum(VerificationStatus, name="verification_status", values_callable=lambda x: [e.value for e in x]),
        default=VerificationStatus.UNVERIFIED,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )

    # Relationships
    teams: Mapped[list["Team"]] = relationship(back_populates="organization")


class Team(Base, UUIDMixin):
    """Team within an organization. Scopes which manager reviews an entry."""

    __tablename__ = "teams"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )

    # Relationships
    organization: Mapped["Organization"] = relationship(back_populates="teams")

    __table_args__ = (
        UniqueConstraint("organization_id", "name"),
        Index("idx_teams_org", "organization_id"),
    )


class EmploymentRelationship(Base, UUIDMixin):
    """Links an employee identity to an organization."""

    __tablename__ = "employment_relationships"

    employee_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )
    ended_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "organization_id"),
        Index("idx_employment_employee", "employee_id"),
    )


class ReviewerGrant(Base, UUIDMixin):
    """Authority of a reviewer identity over work entries."""

    __tablename__ = "reviewer_grants"

    reviewer_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    scope: Mapped[GrantScope] = mapped_column(
        Enum(GrantScope, name="grant_scope", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    team_id: Mapped[UUID | None] = mapped_column(ForeignKey("teams.id"), nullable=True)
    role: Mapped[ReviewerRole] = mapped_column(
        Enum(ReviewerRole, name="reviewer_role", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "scope != 'team' OR team_id IS NOT NULL",
            name="team_scope_requires_team",
        ),
        CheckConstraint(
            "(scope = 'organization' AND role = 'organization_admin') "
            "OR (scope = 'team' AND role = 'assigned_manager')",
            name="role_matches_scope",
        ),
        Index("idx_reviewer_grants_lookup", "reviewer_id", "organization_id"),
    )


# =============================================================================
# WORK ENTRY (Core)
# =============================================================================


class WorkEntry(Base, UUIDMixin, TimestampMixin):
    """A reviewable record of work an employee performed for an organization."""

    __tablename__ = "work_entries"

    # Identity (never changes after insert)
    employee_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    team_id: Mapped[UUID | None] = mapped_column(ForeignKey("teams.id"), nullable=True)

    # Content (employee-authored)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    work_type: Mapped[str] = mapped_column(String(50), default="task")
    category: Mapped[str | None] = mapped_column(String(100))
    project: Mapped[str | None] = mapped_column(String(255))
    client: Mapped[str | None] = mapped_column(String(255))
    priority: Mapped[str] = mapped_column(String(20), default="medium")
    estimated_hours: Mapped[float | None] = mapped_column(Float)
    actual_hours: Mapped[float | None] = mapped_column(Float)
    billable: Mapped[bool] = mapped_column(Boolean, default=False)
    billable_rate: Mapped[float | None] = mapped_column(Float)
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list)
    achievements: Mapped[list[str]] = mapped_column(JSONType, default=list)
    challenges: Mapped[str | None] = mapped_column(Text)
    learnings: Mapped[str | None] = mapped_column(Text)
    attachments: Mapped[list[str]] = mapped_column(JSONType, default=list)

    task_status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, name="task_status", values_callable=lambda x: [e.value for e in x]),
        default=TaskStatus.IN_PROGRESS,
        nullable=False,
    )

    # Review lifecycle
    review_status: Mapped[ReviewStatus] = mapped_column(
        Enum(ReviewStatus, name="review_status", values_callable=lambda x: [e.value for e in x]),
        default=ReviewStatus.PENDING_REVIEW,
        nullable=False,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
        comment="Bumped on every write; used for conditional updates",
    )

    # Written once, by the approve transition
    reviewed_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    reviewer_role: Mapped[ReviewerRole | None] = mapped_column(
        Enum(ReviewerRole, name="reviewer_role", values_callable=lambda x: [e.value for e in x]),
    )
    rating: Mapped[int | None] = mapped_column(Integer)
    approval_feedback: Mapped[str | None] = mapped_column(Text)
    approved_at: Mapped[datetime | None] = mapped_column()
    content_hash: Mapped[str | None] = mapped_column(
        String(64),
        comment="SHA-256 of the approved content",
    )

    # Latest change request (overwritten by each request, kept on resubmit)
    change_request_feedback: Mapped[str | None] = mapped_column(Text)
    changes_requested_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    changes_requested_at: Mapped[datetime | None] = mapped_column()

    # Relationships
    organization: Mapped["Organization"] = relationship()
    team: Mapped["Team | None"] = relationship()

    __table_args__ = (
        CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
            name="rating_range",
        ),
        Index("idx_work_entries_org_status", "organization_id", "review_status"),
        Index("idx_work_entries_employee", "employee_id", "organization_id"),
        Index("idx_work_entries_team", "team_id"),
    )

    @property
    def is_approved(self) -> bool:
        return self.review_status == ReviewStatus.APPROVED


# =============================================================================
# AUDIT MODELS
# =============================================================================


class AuditLog(Base, UUIDMixin):
    """Append-only audit trail."""

    __tablename__ = "audit_log"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    actor_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, name="audit_action", values_callable=lambda x: [e.value for e in x]), nullable=False
    )
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    details: Mapped[dict] = mapped_column(JSONType, default=dict)
    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Position in the per-resource hash chain",
    )
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )
    previous_hash: Mapped[str | None] = mapped_column(String(64))
    entry_hash: Mapped[str | None] = mapped_column(String(64))

    __table_args__ = (
        UniqueConstraint("resource_type", "resource_id", "sequence"),
        Index("idx_audit_log_org_time", "organization_id", "created_at"),
        Index("idx_audit_log_resource", "resource_type", "resource_id"),
    )
