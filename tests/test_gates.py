"""Tests for the Employment Status Gate, Verification Gate and Hierarchy Authorizer."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from work_review.models import (
    EmploymentRelationship,
    GrantScope,
    Organization,
    ReviewerGrant,
    ReviewerRole,
    VerificationStatus,
)
from work_review.services import (
    CreateWorkEntryInput,
    EmploymentInactiveError,
    EmploymentStatusGate,
    HierarchyAuthorizer,
    NotAuthorizedError,
    RecordStore,
    VerificationGate,
    VerificationRequiredError,
)

from conftest import make_content


# =============================================================================
# TEST: EMPLOYMENT STATUS GATE
# =============================================================================


class TestEmploymentStatusGate:
    async def test_active_employee(self, session, hierarchy):
        gate = EmploymentStatusGate(session)
        assert await gate.is_active(hierarchy.employee_id, hierarchy.organization_id)

    async def test_missing_relationship_is_inactive(self, session, hierarchy):
        gate = EmploymentStatusGate(session)
        assert not await gate.is_active(uuid4(), hierarchy.organization_id)
        assert not await gate.is_active(hierarchy.employee_id, uuid4())

    async def test_deactivation_takes_effect_immediately(self, session, hierarchy):
        gate = EmploymentStatusGate(session)
        await gate.require_active(hierarchy.employee_id, hierarchy.organization_id)

        await session.execute(
            update(EmploymentRelationship)
            .where(EmploymentRelationship.employee_id == hierarchy.employee_id)
            .values(is_active=False, ended_at=datetime.now(timezone.utc))
        )

        with pytest.raises(EmploymentInactiveError) as exc_info:
            await gate.require_active(hierarchy.employee_id, hierarchy.organization_id)
        assert exc_info.value.code == "employment_inactive"


# =============================================================================
# TEST: VERIFICATION GATE
# =============================================================================


class TestVerificationGate:
    async def test_verified_organization_allowed(self, session, hierarchy):
        decision = await VerificationGate(session).check(hierarchy.organization_id)
        assert decision.allowed
        assert decision.status == VerificationStatus.VERIFIED

    @pytest.mark.parametrize(
        "status",
        [VerificationStatus.UNVERIFIED, VerificationStatus.PENDING, VerificationStatus.REJECTED],
    )
    async def test_other_statuses_denied(self, session, hierarchy, status):
        await session.execute(
            update(Organization)
            .where(Organization.id == hierarchy.organization_id)
            .values(verification_status=status)
        )
        gate = VerificationGate(session)

        decision = await gate.check(hierarchy.organization_id)
        assert not decision.allowed
        assert decision.reason == f"organization_{status.value}"

        with pytest.raises(VerificationRequiredError):
            await gate.require(hierarchy.organization_id)

    async def test_unknown_organization_denied(self, session):
        decision = await VerificationGate(session).check(uuid4())
        assert not decision.allowed
        assert decision.reason == "organization_unknown"


# =============================================================================
# TEST: HIERARCHY AUTHORIZER
# =============================================================================


class TestHierarchyAuthorizer:
    async def test_organization_grant_is_admin(self, session, hierarchy, entry):
        decision = await HierarchyAuthorizer(session).authorize(hierarchy.admin_id, entry)
        assert decision.allowed
        assert decision.role == ReviewerRole.ORGANIZATION_ADMIN

    async def test_team_grant_is_manager(self, session, hierarchy, entry):
        decision = await HierarchyAuthorizer(session).authorize(hierarchy.manager_id, entry)
        assert decision.allowed
        assert decision.role == ReviewerRole.ASSIGNED_MANAGER

    async def test_manager_of_other_team_denied(self, session, hierarchy, entry):
        decision = await HierarchyAuthorizer(session).authorize(
            hierarchy.other_manager_id, entry
        )
        assert not decision.allowed
        assert decision.reason == "not_authorized"

    async def test_manager_denied_on_entry_without_team(self, session, hierarchy):
        entry = await RecordStore(session).create(
            CreateWorkEntryInput(
                employee_id=hierarchy.employee_id,
                organization_id=hierarchy.organization_id,
                content=make_content(),
            )
        )
        decision = await HierarchyAuthorizer(session).authorize(hierarchy.manager_id, entry)
        assert not decision.allowed

    async def test_outsider_denied(self, session, hierarchy, entry):
        with pytest.raises(NotAuthorizedError):
            await HierarchyAuthorizer(session).require(hierarchy.outsider_id, entry)

    async def test_revoked_grant_denies_next_call(self, session, hierarchy, entry):
        authorizer = HierarchyAuthorizer(session)
        assert await authorizer.require(hierarchy.manager_id, entry)

        await session.execute(
            update(ReviewerGrant)
            .where(ReviewerGrant.reviewer_id == hierarchy.manager_id)
            .values(revoked_at=datetime.now(timezone.utc))
        )

        with pytest.raises(NotAuthorizedError):
            await authorizer.require(hierarchy.manager_id, entry)

    async def test_review_scope(self, session, hierarchy):
        authorizer = HierarchyAuthorizer(session)

        admin_scope = await authorizer.review_scope(hierarchy.admin_id, hierarchy.organization_id)
        assert admin_scope.organization_wide

        manager_scope = await authorizer.review_scope(
            hierarchy.manager_id, hierarchy.organization_id
        )
        assert not manager_scope.organization_wide
        assert manager_scope.team_ids == frozenset({hierarchy.team.id})

        with pytest.raises(NotAuthorizedError):
            await authorizer.review_scope(hierarchy.outsider_id, hierarchy.organization_id)

    @pytest.mark.parametrize(
        "scope, role",
        [
            (GrantScope.ORGANIZATION, ReviewerRole.ASSIGNED_MANAGER),
            (GrantScope.TEAM, ReviewerRole.ORGANIZATION_ADMIN),
        ],
    )
    async def test_grant_role_must_match_scope(self, session, hierarchy, scope, role):
        session.add(
            ReviewerGrant(
                reviewer_id=uuid4(),
                organization_id=hierarchy.organization_id,
                scope=scope,
                team_id=hierarchy.team.id,
                role=role,
            )
        )

        with pytest.raises(IntegrityError):
            await session.flush()
        await session.rollback()
