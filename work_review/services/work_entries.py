"""Work entry service: the operations exposed to employees and reviewers."""

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import ReviewStatus, WorkEntry
from .authorizer import HierarchyAuthorizer, ReviewScope
from .events import EventPublisher
from .exceptions import NotAuthorizedError
from .record_store import (
    CreateWorkEntryInput,
    RecordStore,
    WorkEntryContent,
    WorkEntryFilters,
)
from .review_engine import ReviewDecision, ReviewEngine

logger = logging.getLogger(__name__)


@dataclass
class ReviewListing:
    """Entries visible to a reviewer plus per-status counts."""
    entries: Sequence[WorkEntry]
    counts: dict[ReviewStatus, int]
    scope: ReviewScope


class WorkEntryService:
    """Service for submitting, editing and reviewing work entries."""

    def __init__(self, session: AsyncSession, publisher: EventPublisher | None = None):
        self.session = session
        self.store = RecordStore(session)
        self.engine = ReviewEngine(session, publisher=publisher)
        self.authorizer = HierarchyAuthorizer(session)

    # =========================================================================
    # EMPLOYEE OPERATIONS
    # =========================================================================

    async def create_work_entry(
        self,
        employee_id: UUID,
        organization_id: UUID,
        content: WorkEntryContent,
        team_id: UUID | None = None,
    ) -> WorkEntry:
        return await self.store.create(
            CreateWorkEntryInput(
                employee_id=employee_id,
                organization_id=organization_id,
                content=content,
                team_id=team_id,
            )
        )

    async def edit_work_entry(
        self,
        actor_id: UUID,
        entry_id: UUID,
        patch: Mapping[str, Any],
    ) -> WorkEntry:
        """Edit content of a non-approved entry. Review status is unchanged."""
        entry = await self.store.get(entry_id)
        if not entry.is_approved:
            self._require_owner(actor_id, entry, "edit")
        return await self.store.update(entry_id, patch, actor_id=actor_id)

    async def resubmit_work_entry(
        self,
        actor_id: UUID,
        entry_id: UUID,
        patch: Mapping[str, Any] | None = None,
    ) -> WorkEntry:
        return await self.engine.resubmit(actor_id, entry_id, patch)

    async def delete_work_entry(self, actor_id: UUID, entry_id: UUID) -> None:
        entry = await self.store.get(entry_id)
        if not entry.is_approved:
            self._require_owner(actor_id, entry, "delete")
        await self.store.delete(entry_id, actor_id=actor_id)

    async def list_my_entries(
        self,
        employee_id: UUID,
        organization_id: UUID | None = None,
    ) -> Sequence[WorkEntry]:
        return await self.store.list_by_employee(employee_id, organization_id)

    # =========================================================================
    # REVIEWER OPERATIONS
    # =========================================================================

    async def review_work_entry(
        self,
        reviewer_id: UUID,
        entry_id: UUID,
        decision: ReviewDecision,
    ) -> WorkEntry:
        return await self.engine.review(reviewer_id, entry_id, decision)

    async def list_pending_reviews(self, organization_id: UUID) -> Sequence[WorkEntry]:
        """Every pending entry of an organization, newest first."""
        return await self.store.list_pending_by_organization(organization_id)

    async def list_all_reviews(
        self,
        organization_id: UUID,
        filters: WorkEntryFilters | None = None,
    ) -> Sequence[WorkEntry]:
        return await self.store.list_by_organization(organization_id, filters)

    async def list_reviews_for(
        self,
        reviewer_id: UUID,
        organization_id: UUID,
        filters: WorkEntryFilters | None = None,
    ) -> ReviewListing:
        """
        Entries the reviewer may act on.

        Organization admins see the whole organization, assigned managers
        only their teams. A reviewer without grants gets NotAuthorizedError.
        """
        scope = await self.authorizer.review_scope(reviewer_id, organization_id)
        filters = filters or WorkEntryFilters()
        if not scope.organization_wide:
            filters = replace(filters, team_ids=scope.team_ids)

        entries = await self.store.list_by_organization(organization_id, filters)
        counts = await self.store.count_by_status(organization_id, filters)
        return ReviewListing(entries=entries, counts=counts, scope=scope)

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    async def get_visible_entry(self, actor_id: UUID, entry_id: UUID) -> WorkEntry:
        """Get an entry for its owner or for a reviewer with authority over it."""
        entry = await self.store.get(entry_id)
        if entry.employee_id == actor_id:
            return entry
        await self.authorizer.require(actor_id, entry)
        return entry

    @staticmethod
    def _require_owner(actor_id: UUID, entry: WorkEntry, action: str) -> None:
        if entry.employee_id != actor_id:
            logger.warning(f"Actor {actor_id} tried to {action} work entry {entry.id}")
            raise NotAuthorizedError(
                f"Only the owning employee can {action} a work entry",
                entry_id=str(entry.id),
            )
