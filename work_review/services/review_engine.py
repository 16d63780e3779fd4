"""
Review Engine: the approval state machine of a work entry.

    pending_review --approve--------> approved       (terminal)
    pending_review --request_changes-> needs_changes
    needs_changes  --resubmit-------> pending_review (owner only)

Every reviewer transition runs the same checks, in order:
entry exists -> not approved -> decision (rating, feedback) -> state
precondition -> verification gate -> hierarchy authorizer -> conditional
write. Events are queued and reach subscribers once the transaction commits.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import hash_content, verify_content_hash
from ..models import AuditAction, ReviewerRole, ReviewStatus, WorkEntry
from .audit import AuditService
from .authorizer import HierarchyAuthorizer
from .events import (
    WORK_ENTRY_APPROVED,
    WORK_ENTRY_CHANGES_REQUESTED,
    EventPublisher,
    WorkEntryEvent,
    defer,
)
from .exceptions import (
    ImmutableRecordError,
    InvalidTransitionError,
    NotAuthorizedError,
    ValidationError,
)
from .record_store import RESOURCE_TYPE, RecordStore, canonical_content
from .verification import VerificationGate

logger = logging.getLogger(__name__)


# =============================================================================
# TRANSITION RULES
# =============================================================================

TERMINAL_STATES = {ReviewStatus.APPROVED}

ALLOWED_TRANSITIONS = {
    ReviewStatus.PENDING_REVIEW: {ReviewStatus.APPROVED, ReviewStatus.NEEDS_CHANGES},
    ReviewStatus.NEEDS_CHANGES: {ReviewStatus.PENDING_REVIEW},
    ReviewStatus.APPROVED: set(),
}

MIN_RATING = 1
MAX_RATING = 5


def is_terminal(status: ReviewStatus) -> bool:
    return status in TERMINAL_STATES


def can_transition(current: ReviewStatus, target: ReviewStatus) -> bool:
    if is_terminal(current):
        return False
    return target in ALLOWED_TRANSITIONS.get(current, set())


# =============================================================================
# DECISIONS
# =============================================================================


@dataclass(frozen=True)
class ApproveDecision:
    rating: int | None = None  # None = no rating given
    feedback: str | None = None


@dataclass(frozen=True)
class RequestChangesDecision:
    feedback: str


ReviewDecision = Union[ApproveDecision, RequestChangesDecision]


def validate_rating(rating: Any) -> int | None:
    if rating is None:
        return None
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be an integer", field="rating")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}",
            field="rating",
            rating=rating,
        )
    return rating


def _clean_feedback(feedback: str | None) -> str | None:
    if feedback is None:
        return None
    feedback = feedback.strip()
    return feedback or None


def seal_content(entry: WorkEntry) -> str:
    """SHA-256 of the entry's content fields."""
    return hash_content(canonical_content(entry))


# =============================================================================
# REVIEW ENGINE
# =============================================================================


class ReviewEngine:
    """Performs review transitions on work entries."""

    def __init__(self, session: AsyncSession, publisher: EventPublisher | None = None):
        self._session = session
        self._store = RecordStore(session)
        self._authorizer = HierarchyAuthorizer(session)
        self._verification = VerificationGate(session)
        self._audit = AuditService(session)
        self._publisher = publisher

    async def review(
        self,
        reviewer_id: UUID,
        entry_id: UUID,
        decision: ReviewDecision,
    ) -> WorkEntry:
        """Dispatch a reviewer decision."""
        if isinstance(decision, ApproveDecision):
            return await self.approve(
                reviewer_id, entry_id, rating=decision.rating, feedback=decision.feedback
            )
        if isinstance(decision, RequestChangesDecision):
            return await self.request_changes(reviewer_id, entry_id, decision.feedback)
        raise ValidationError(f"Unknown review decision: {type(decision).__name__}")

    # =========================================================================
    # APPROVE
    # =========================================================================

    async def approve(
        self,
        reviewer_id: UUID,
        entry_id: UUID,
        rating: int | None = None,
        feedback: str | None = None,
    ) -> WorkEntry:
        """
        pending_review -> approved.

        Reviewer, role, rating, feedback, timestamp and content seal are
        written together with the status; the entry is frozen afterwards.
        """
        entry = await self._load_unapproved(entry_id)
        rating = validate_rating(rating)
        feedback = _clean_feedback(feedback)
        role = await self._check_reviewer(reviewer_id, entry, ReviewStatus.APPROVED)

        entry = await self._store.conditional_write(
            entry,
            ReviewStatus.PENDING_REVIEW,
            {
                "review_status": ReviewStatus.APPROVED,
                "reviewed_by": reviewer_id,
                "reviewer_role": role,
                "rating": rating,
                "approval_feedback": feedback,
                "approved_at": datetime.now(timezone.utc),
                "content_hash": seal_content(entry),
            },
        )

        await self._audit.log_event(
            organization_id=entry.organization_id,
            action=AuditAction.APPROVE,
            resource_type=RESOURCE_TYPE,
            resource_id=entry.id,
            actor_id=reviewer_id,
            details={
                "reviewer_role": role.value,
                "rating": rating,
                "feedback": feedback,
                "content_hash": entry.content_hash,
                "version": entry.version,
            },
        )

        logger.info(
            f"Work entry {entry.id} approved by {reviewer_id} as {role.value} (rating={rating})"
        )
        self._emit(WORK_ENTRY_APPROVED, entry, reviewer_id, {"rating": rating})
        return entry

    # =========================================================================
    # REQUEST CHANGES
    # =========================================================================

    async def request_changes(
        self,
        reviewer_id: UUID,
        entry_id: UUID,
        feedback: str,
    ) -> WorkEntry:
        """pending_review -> needs_changes. Feedback is required."""
        entry = await self._load_unapproved(entry_id)
        feedback = _clean_feedback(feedback)
        if not feedback:
            raise ValidationError("Feedback is required when requesting changes", field="feedback")
        role = await self._check_reviewer(reviewer_id, entry, ReviewStatus.NEEDS_CHANGES)

        entry = await self._store.conditional_write(
            entry,
            ReviewStatus.PENDING_REVIEW,
            {
                "review_status": ReviewStatus.NEEDS_CHANGES,
                "change_request_feedback": feedback,
                "changes_requested_by": reviewer_id,
                "changes_requested_at": datetime.now(timezone.utc),
            },
        )

        await self._audit.log_event(
            organization_id=entry.organization_id,
            action=AuditAction.REQUEST_CHANGES,
            resource_type=RESOURCE_TYPE,
            resource_id=entry.id,
            actor_id=reviewer_id,
            details={
                "reviewer_role": role.value,
                "feedback": feedback,
                "version": entry.version,
            },
        )

        logger.info(f"Changes requested on work entry {entry.id} by {reviewer_id}")
        self._emit(
            WORK_ENTRY_CHANGES_REQUESTED, entry, reviewer_id, {"feedback": feedback}
        )
        return entry

    # =========================================================================
    # RESUBMIT
    # =========================================================================

    async def resubmit(
        self,
        employee_id: UUID,
        entry_id: UUID,
        patch: Mapping[str, Any] | None = None,
    ) -> WorkEntry:
        """needs_changes -> pending_review, by the owning employee only."""
        entry = await self._store.get(entry_id)

        if entry.is_approved:
            raise ImmutableRecordError(
                "Approved work entries are immutable", entry_id=str(entry_id)
            )
        if entry.employee_id != employee_id:
            raise NotAuthorizedError(
                "Only the owning employee can resubmit a work entry",
                entry_id=str(entry_id),
            )
        if not can_transition(entry.review_status, ReviewStatus.PENDING_REVIEW):
            raise InvalidTransitionError(
                f"Cannot resubmit a work entry in {entry.review_status.value}",
                entry_id=str(entry_id),
                current_status=entry.review_status.value,
            )

        entry = await self._store.update(
            entry_id, patch or {}, actor_id=employee_id, resubmit=True
        )
        logger.info(f"Work entry {entry.id} resubmitted by {employee_id}")
        return entry

    # =========================================================================
    # SEAL
    # =========================================================================

    @staticmethod
    def verify_seal(entry: WorkEntry) -> bool:
        """True if an approved entry's content still matches its seal."""
        if not entry.is_approved or not entry.content_hash:
            return False
        return verify_content_hash(canonical_content(entry), entry.content_hash)

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    async def _load_unapproved(self, entry_id: UUID) -> WorkEntry:
        entry = await self._store.get(entry_id)
        if entry.is_approved:
            raise ImmutableRecordError(
                "Work entry is already approved", entry_id=str(entry_id)
            )
        return entry

    async def _check_reviewer(
        self,
        reviewer_id: UUID,
        entry: WorkEntry,
        target: ReviewStatus,
    ) -> ReviewerRole:
        if not can_transition(entry.review_status, target):
            raise InvalidTransitionError(
                f"Cannot move work entry from {entry.review_status.value} to {target.value}",
                entry_id=str(entry.id),
                current_status=entry.review_status.value,
            )

        await self._verification.require(entry.organization_id)
        return await self._authorizer.require(reviewer_id, entry)

    def _emit(
        self,
        name: str,
        entry: WorkEntry,
        actor_id: UUID,
        payload: dict[str, Any],
    ) -> None:
        if self._publisher is None:
            return
        defer(
            self._session,
            self._publisher,
            WorkEntryEvent(
                name=name,
                entry_id=entry.id,
                organization_id=entry.organization_id,
                employee_id=entry.employee_id,
                actor_id=actor_id,
                payload=payload,
            ),
        )
