"""
Record Store: durable storage of work entries.

Every write is a conditional UPDATE keyed on (id, version, review_status).
If another request changed the entry between our read and our write, the
UPDATE matches zero rows and the caller gets InvalidTransitionError instead
of silently overwriting the winner. No row locks are taken.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Mapping, Sequence
from uuid import UUID

from sqlalchemy import delete, false, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AuditAction, ReviewStatus, TaskStatus, Team, WorkEntry
from .audit import AuditService
from .employment import EmploymentStatusGate
from .exceptions import (
    ImmutableRecordError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "work_entry"

# Fields the owning employee may write while the entry is not approved
CONTENT_FIELDS = frozenset(
    {
        "title",
        "description",
        "start_date",
        "end_date",
        "work_type",
        "category",
        "project",
        "client",
        "priority",
        "estimated_hours",
        "actual_hours",
        "billable",
        "billable_rate",
        "tags",
        "achievements",
        "challenges",
        "learnings",
        "attachments",
        "task_status",
    }
)

LIST_FIELDS = ("tags", "achievements", "attachments")
NUMERIC_FIELDS = ("estimated_hours", "actual_hours", "billable_rate")
# Content columns that cannot hold NULL
REQUIRED_FIELDS = ("title", "work_type", "priority", "billable", "task_status")


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class WorkEntryContent:
    """Employee-authored content of a work entry."""
    title: str
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    work_type: str = "task"
    category: str | None = None
    project: str | None = None
    client: str | None = None
    priority: str = "medium"
    estimated_hours: float | None = None
    actual_hours: float | None = None
    billable: bool = False
    billable_rate: float | None = None
    tags: list[str] = field(default_factory=list)
    achievements: list[str] = field(default_factory=list)
    challenges: str | None = None
    learnings: str | None = None
    attachments: list[str] = field(default_factory=list)
    task_status: TaskStatus = TaskStatus.IN_PROGRESS

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CreateWorkEntryInput:
    """Input for creating a work entry."""
    employee_id: UUID
    organization_id: UUID
    content: WorkEntryContent
    team_id: UUID | None = None


@dataclass
class WorkEntryFilters:
    """Listing filters. Presentation convenience, not lifecycle."""
    query: str | None = None
    employee_id: UUID | None = None
    review_status: ReviewStatus | None = None
    team_ids: frozenset[UUID] | None = None  # None = every team
    limit: int = 100
    offset: int = 0


# =============================================================================
# HELPERS
# =============================================================================


def content_snapshot(entry: WorkEntry) -> dict[str, Any]:
    """Content fields of an entry in a JSON-stable form."""
    snapshot = {}
    for name in sorted(CONTENT_FIELDS):
        value = getattr(entry, name)
        if isinstance(value, date):
            value = value.isoformat()
        elif isinstance(value, TaskStatus):
            value = value.value
        elif name in LIST_FIELDS:
            value = list(value or [])
        snapshot[name] = value
    return snapshot


def canonical_content(entry: WorkEntry) -> str:
    return json.dumps(content_snapshot(entry), sort_keys=True, default=str)


def validate_content(values: Mapping[str, Any]) -> dict[str, Any]:
    """Validate content values (full or partial) and return a clean copy."""
    unknown = set(values) - CONTENT_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields cannot be written: {', '.join(sorted(unknown))}",
            fields=sorted(unknown),
        )

    cleaned = dict(values)

    for name in REQUIRED_FIELDS:
        if name in cleaned and cleaned[name] is None:
            raise ValidationError(f"{name} cannot be null", field=name)

    if "title" in cleaned:
        title = cleaned["title"].strip()
        if not title:
            raise ValidationError("Title is required", field="title")
        if len(title) > 500:
            raise ValidationError("Title must be at most 500 characters", field="title")
        cleaned["title"] = title

    for name in NUMERIC_FIELDS:
        value = cleaned.get(name)
        if value is not None and value < 0:
            raise ValidationError(f"{name} cannot be negative", field=name)

    for name in LIST_FIELDS:
        if name in cleaned:
            items = cleaned[name] or []
            if not all(isinstance(item, str) for item in items):
                raise ValidationError(f"{name} must be a list of strings", field=name)
            cleaned[name] = list(items)

    if "task_status" in cleaned:
        try:
            cleaned["task_status"] = TaskStatus(cleaned["task_status"])
        except ValueError:
            raise ValidationError("Unknown task status", field="task_status")

    start, end = cleaned.get("start_date"), cleaned.get("end_date")
    if start and end and end < start:
        raise ValidationError("end_date cannot be before start_date", field="end_date")

    return cleaned


# =============================================================================
# RECORD STORE
# =============================================================================


class RecordStore:
    """Create / read / conditional-update of work entries."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._employment = EmploymentStatusGate(session)
        self._audit = AuditService(session)

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create(self, input: CreateWorkEntryInput) -> WorkEntry:
        """Create an entry in pending_review for an active employee."""
        values = validate_content(input.content.to_dict())

        await self._employment.require_active(input.employee_id, input.organization_id)

        if input.team_id is not None:
            await self._require_team(input.team_id, input.organization_id)

        entry = WorkEntry(
            employee_id=input.employee_id,
            organization_id=input.organization_id,
            team_id=input.team_id,
            review_status=ReviewStatus.PENDING_REVIEW,
            version=1,
            **values,
        )
        self._session.add(entry)
        await self._session.flush()

        await self._audit.log_event(
            organization_id=entry.organization_id,
            action=AuditAction.CREATE,
            resource_type=RESOURCE_TYPE,
            resource_id=entry.id,
            actor_id=input.employee_id,
            details={"title": entry.title, "team_id": input.team_id},
        )

        logger.info(f"Work entry {entry.id} created by employee {input.employee_id}")
        return await self._reload(entry.id)

    # =========================================================================
    # READ
    # =========================================================================

    async def get(self, entry_id: UUID) -> WorkEntry:
        """Get an entry or raise NotFoundError."""
        result = await self._session.execute(
            select(WorkEntry).where(WorkEntry.id == entry_id)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError(f"Work entry {entry_id} not found", entry_id=str(entry_id))
        return entry

    async def list_by_organization(
        self,
        organization_id: UUID,
        filters: WorkEntryFilters | None = None,
    ) -> Sequence[WorkEntry]:
        filters = filters or WorkEntryFilters()
        query = self._apply_filters(
            select(WorkEntry).where(WorkEntry.organization_id == organization_id),
            filters,
        )
        query = (
            query.order_by(WorkEntry.created_at.desc(), WorkEntry.id)
            .limit(filters.limit)
            .offset(filters.offset)
        )
        result = await self._session.execute(query)
        return result.scalars().all()

    async def list_pending_by_organization(
        self,
        organization_id: UUID,
        team_ids: frozenset[UUID] | None = None,
    ) -> Sequence[WorkEntry]:
        return await self.list_by_organization(
            organization_id,
            WorkEntryFilters(review_status=ReviewStatus.PENDING_REVIEW, team_ids=team_ids),
        )

    async def list_by_employee(
        self,
        employee_id: UUID,
        organization_id: UUID | None = None,
    ) -> Sequence[WorkEntry]:
        query = select(WorkEntry).where(WorkEntry.employee_id == employee_id)
        if organization_id is not None:
            query = query.where(WorkEntry.organization_id == organization_id)
        result = await self._session.execute(
            query.order_by(WorkEntry.created_at.desc(), WorkEntry.id)
        )
        return result.scalars().all()

    async def count_by_status(
        self,
        organization_id: UUID,
        filters: WorkEntryFilters | None = None,
    ) -> dict[ReviewStatus, int]:
        """Per-review-status counts for the review dashboard."""
        filters = filters or WorkEntryFilters()
        # Counts cover every status, so ignore the status filter itself
        scoped = WorkEntryFilters(
            query=filters.query,
            employee_id=filters.employee_id,
            team_ids=filters.team_ids,
        )
        query = self._apply_filters(
            select(WorkEntry.review_status, func.count())
            .where(WorkEntry.organization_id == organization_id),
            scoped,
        ).group_by(WorkEntry.review_status)
        result = await self._session.execute(query)

        counts = {status: 0 for status in ReviewStatus}
        for status, count in result.all():
            counts[ReviewStatus(status)] = count
        return counts

    # =========================================================================
    # UPDATE
    # =========================================================================

    async def update(
        self,
        entry_id: UUID,
        patch: Mapping[str, Any],
        *,
        actor_id: UUID | None = None,
        resubmit: bool = False,
    ) -> WorkEntry:
        """
        Apply an employee's content patch.

        With resubmit=True the entry must be in needs_changes and returns to
        pending_review in the same write. Change-request feedback is kept.
        """
        entry = await self.get(entry_id)

        if entry.is_approved:
            raise ImmutableRecordError(
                "Approved work entries are immutable", entry_id=str(entry_id)
            )

        await self._employment.require_active(entry.employee_id, entry.organization_id)

        values = validate_content(patch)
        start = values.get("start_date", entry.start_date)
        end = values.get("end_date", entry.end_date)
        if start and end and end < start:
            raise ValidationError("end_date cannot be before start_date", field="end_date")

        expected_status = entry.review_status
        if resubmit:
            if expected_status != ReviewStatus.NEEDS_CHANGES:
                raise InvalidTransitionError(
                    f"Cannot resubmit a work entry in {expected_status.value}",
                    entry_id=str(entry_id),
                    current_status=expected_status.value,
                )
            values["review_status"] = ReviewStatus.PENDING_REVIEW

        previous_version = entry.version
        entry = await self.conditional_write(entry, expected_status, values)

        await self._audit.log_event(
            organization_id=entry.organization_id,
            action=AuditAction.RESUBMIT if resubmit else AuditAction.UPDATE,
            resource_type=RESOURCE_TYPE,
            resource_id=entry.id,
            actor_id=actor_id,
            details={
                "fields": sorted(patch),
                "previous_version": previous_version,
                "new_version": entry.version,
            },
        )
        return entry

    async def conditional_write(
        self,
        entry: WorkEntry,
        expected_status: ReviewStatus,
        values: Mapping[str, Any],
    ) -> WorkEntry:
        """
        Write `values` only if the row is still at the version and status we read.

        The version compared is the one on `entry` as the caller loaded it.
        """
        expected_version = entry.version
        result = await self._session.execute(
            update(WorkEntry)
            .where(
                WorkEntry.id == entry.id,
                WorkEntry.version == expected_version,
                WorkEntry.review_status == expected_status,
            )
            .values(
                **values,
                version=expected_version + 1,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            current = await self._reload(entry.id, missing_ok=True)
            if current is None:
                raise NotFoundError(f"Work entry {entry.id} not found", entry_id=str(entry.id))
            logger.warning(
                f"Lost write on work entry {entry.id}: read v{expected_version} "
                f"({expected_status.value}), now v{current.version} ({current.review_status.value})"
            )
            raise InvalidTransitionError(
                "Work entry was modified by another request",
                entry_id=str(entry.id),
                expected_version=expected_version,
                current_version=current.version,
                current_status=current.review_status.value,
            )

        return await self._reload(entry.id)

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete(self, entry_id: UUID, *, actor_id: UUID | None = None) -> None:
        """Delete an entry that has not been approved."""
        entry = await self.get(entry_id)

        if entry.is_approved:
            raise ImmutableRecordError(
                "Approved work entries cannot be deleted", entry_id=str(entry_id)
            )

        await self._employment.require_active(entry.employee_id, entry.organization_id)

        result = await self._session.execute(
            delete(WorkEntry)
            .where(
                WorkEntry.id == entry.id,
                WorkEntry.version == entry.version,
                WorkEntry.review_status != ReviewStatus.APPROVED,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransitionError(
                "Work entry was modified by another request", entry_id=str(entry_id)
            )
        self._session.expunge(entry)

        await self._audit.log_event(
            organization_id=entry.organization_id,
            action=AuditAction.DELETE,
            resource_type=RESOURCE_TYPE,
            resource_id=entry.id,
            actor_id=actor_id,
            details={"title": entry.title, "version": entry.version},
        )
        logger.info(f"Work entry {entry_id} deleted")

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    async def _reload(self, entry_id: UUID, missing_ok: bool = False) -> WorkEntry | None:
        """Re-read an entry from the database, overwriting any cached state."""
        result = await self._session.execute(
            select(WorkEntry)
            .where(WorkEntry.id == entry_id)
            .execution_options(populate_existing=True)
        )
        entry = result.scalar_one_or_none()
        if entry is None and not missing_ok:
            raise NotFoundError(f"Work entry {entry_id} not found", entry_id=str(entry_id))
        return entry

    async def _require_team(self, team_id: UUID, organization_id: UUID) -> None:
        result = await self._session.execute(
            select(Team.id).where(Team.id == team_id, Team.organization_id == organization_id)
        )
        if result.scalar_one_or_none() is None:
            raise ValidationError(
                "Team does not belong to this organization", field="team_id"
            )

    @staticmethod
    def _apply_filters(query, filters: WorkEntryFilters):
        if filters.employee_id:
            query = query.where(WorkEntry.employee_id == filters.employee_id)
        if filters.review_status:
            query = query.where(WorkEntry.review_status == filters.review_status)
        if filters.team_ids is not None:
            if not filters.team_ids:
                return query.where(false())
            query = query.where(WorkEntry.team_id.in_(filters.team_ids))
        if filters.query and filters.query.strip():
            pattern = f"%{filters.query.strip()}%"
            query = query.where(
                or_(
                    WorkEntry.title.ilike(pattern),
                    WorkEntry.description.ilike(pattern),
                )
            )
        return query
