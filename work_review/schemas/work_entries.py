"""Pydantic schemas for work entries and review decisions."""

from datetime import date, datetime
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import Field, field_validator

from ..models import ReviewerRole, ReviewStatus, TaskStatus
from ..services.record_store import WorkEntryContent
from ..services.review_engine import ApproveDecision, RequestChangesDecision
from .base import TimestampMixin, WorkReviewBaseModel


# =============================================================================
# WORK ENTRY CONTENT
# =============================================================================


class WorkEntryContentFields(WorkReviewBaseModel):
    """Employee-authored fields shared by create and response."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    work_type: str = Field(default="task", max_length=50)
    category: str | None = Field(default=None, max_length=100)
    project: str | None = Field(default=None, max_length=255)
    client: str | None = Field(default=None, max_length=255)
    priority: str = Field(default="medium", max_length=20)
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    billable: bool = False
    billable_rate: float | None = Field(default=None, ge=0)
    tags: list[str] = Field(default_factory=list, max_length=20)
    achievements: list[str] = Field(default_factory=list)
    challenges: str | None = None
    learnings: str | None = None
    attachments: list[str] = Field(
        default_factory=list,
        description="Opaque references to files stored elsewhere",
    )
    task_status: TaskStatus = TaskStatus.IN_PROGRESS


class WorkEntryCreate(WorkEntryContentFields):
    """Schema for submitting a new work entry."""

    organization_id: UUID
    team_id: UUID | None = None

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        return [tag.strip().lower() for tag in v if tag.strip()]

    def to_content(self) -> WorkEntryContent:
        data = self.model_dump(exclude={"organization_id", "team_id"})
        data["task_status"] = TaskStatus(data["task_status"])
        return WorkEntryContent(**data)


class WorkEntryUpdate(WorkReviewBaseModel):
    """Partial content update. Only fields that are sent are written."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    work_type: str | None = Field(default=None, max_length=50)
    category: str | None = Field(default=None, max_length=100)
    project: str | None = Field(default=None, max_length=255)
    client: str | None = Field(default=None, max_length=255)
    priority: str | None = Field(default=None, max_length=20)
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    billable: bool | None = None
    billable_rate: float | None = Field(default=None, ge=0)
    tags: list[str] | None = Field(default=None, max_length=20)
    achievements: list[str] | None = None
    challenges: str | None = None
    learnings: str | None = None
    attachments: list[str] | None = None
    task_status: TaskStatus | None = None

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# =============================================================================
# REVIEW DECISIONS
# =============================================================================


class ApproveRequest(WorkReviewBaseModel):
    """Approve a pending entry. Rating bounds are enforced by the service."""

    decision: Literal["approve"]
    rating: int | None = Field(default=None, description="1-5, omit for no rating")
    feedback: str | None = Field(default=None, max_length=5000)

    def to_decision(self) -> ApproveDecision:
        return ApproveDecision(rating=self.rating, feedback=self.feedback)


class RequestChangesRequest(WorkReviewBaseModel):
    """Send a pending entry back to the employee."""

    decision: Literal["request_changes"]
    feedback: str = Field(..., max_length=5000)

    def to_decision(self) -> RequestChangesDecision:
        return RequestChangesDecision(feedback=self.feedback)


ReviewRequest = Annotated[
    Union[ApproveRequest, RequestChangesRequest],
    Field(discriminator="decision"),
]


# =============================================================================
# RESPONSES
# =============================================================================


class WorkEntryResponse(WorkEntryContentFields, TimestampMixin):
    """Full work entry."""

    id: UUID
    employee_id: UUID
    organization_id: UUID
    team_id: UUID | None = None
    review_status: ReviewStatus
    version: int

    # Approval
    reviewed_by: UUID | None = None
    reviewer_role: ReviewerRole | None = None
    rating: int | None = None
    approval_feedback: str | None = None
    approved_at: datetime | None = None
    content_hash: str | None = None

    # Latest change request
    change_request_feedback: str | None = None
    changes_requested_by: UUID | None = None
    changes_requested_at: datetime | None = None


class ReviewStatusCounts(WorkReviewBaseModel):
    pending_review: int = 0
    approved: int = 0
    needs_changes: int = 0

    @property
    def total(self) -> int:
        return self.pending_review + self.approved + self.needs_changes

    @classmethod
    def from_counts(cls, counts: dict[ReviewStatus, int]) -> "ReviewStatusCounts":
        return cls(**{status.value: count for status, count in counts.items()})


class ReviewListResponse(WorkReviewBaseModel):
    """Entries a reviewer can act on, with dashboard counts."""

    items: list[WorkEntryResponse]
    counts: ReviewStatusCounts
    organization_wide: bool
    team_ids: list[UUID] = []
