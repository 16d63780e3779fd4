"""Hierarchy Authorizer: the single decision point for reviewer authority.

Decision rule, evaluated in order:
1. an active `organization` grant for the entry's organization
   -> allowed as organization_admin
2. an active `team` grant for the entry's team
   -> allowed as assigned_manager
3. otherwise -> denied (not_authorized)

Grants are read on every call. A revoked grant denies the next check.
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import GrantScope, ReviewerGrant, ReviewerRole, WorkEntry
from .exceptions import NotAuthorizedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    role: ReviewerRole | None = None
    reason: str | None = None


@dataclass(frozen=True)
class ReviewScope:
    """What a reviewer can see inside one organization."""
    organization_wide: bool
    team_ids: frozenset[UUID] = field(default_factory=frozenset)

    def covers(self, entry: WorkEntry) -> bool:
        if self.organization_wide:
            return True
        return entry.team_id is not None and entry.team_id in self.team_ids


class HierarchyAuthorizer:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def lookup_grants(
        self,
        reviewer_id: UUID,
        organization_id: UUID,
    ) -> Sequence[ReviewerGrant]:
        """Active grants held by a reviewer inside one organization."""
        result = await self._session.execute(
            select(ReviewerGrant).where(
                ReviewerGrant.reviewer_id == reviewer_id,
                ReviewerGrant.organization_id == organization_id,
                ReviewerGrant.revoked_at.is_(None),
            )
        )
        return result.scalars().all()

    async def authorize(self, reviewer_id: UUID, entry: WorkEntry) -> AuthorizationDecision:
        grants = await self.lookup_grants(reviewer_id, entry.organization_id)

        if any(g.scope == GrantScope.ORGANIZATION for g in grants):
            return AuthorizationDecision(allowed=True, role=ReviewerRole.ORGANIZATION_ADMIN)

        if entry.team_id is not None and any(
            g.scope == GrantScope.TEAM and g.team_id == entry.team_id for g in grants
        ):
            return AuthorizationDecision(allowed=True, role=ReviewerRole.ASSIGNED_MANAGER)

        return AuthorizationDecision(allowed=False, reason="not_authorized")

    async def require(self, reviewer_id: UUID, entry: WorkEntry) -> ReviewerRole:
        """Authorize or raise NotAuthorizedError. Returns the resolved role."""
        decision = await self.authorize(reviewer_id, entry)
        if not decision.allowed:
            logger.warning(f"Reviewer {reviewer_id} denied on work entry {entry.id}")
            raise NotAuthorizedError(
                "Reviewer has no authority over this work entry",
                reviewer_id=str(reviewer_id),
                entry_id=str(entry.id),
            )
        return decision.role

    async def review_scope(self, reviewer_id: UUID, organization_id: UUID) -> ReviewScope:
        """Resolve listing visibility; raises if the reviewer holds no grant."""
        grants = await self.lookup_grants(reviewer_id, organization_id)
        if not grants:
            raise NotAuthorizedError(
                "Reviewer holds no grant in this organization",
                reviewer_id=str(reviewer_id),
                organization_id=str(organization_id),
            )
        if any(g.scope == GrantScope.ORGANIZATION for g in grants):
            return ReviewScope(organization_wide=True)
        return ReviewScope(
            organization_wide=False,
            team_ids=frozenset(g.team_id for g in grants if g.team_id is not None),
        )
