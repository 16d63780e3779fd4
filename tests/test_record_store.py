"""
Tests for the Record Store.

These tests verify:
1. CREATE: entries start in pending_review at version 1, for active employees only
2. UPDATE: content patches bump the version, identity and status are not writable
3. DELETE: only entries that are not approved can be removed
4. LISTING: filters and per-status counts
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from work_review.models import (
    EmploymentRelationship,
    ReviewStatus,
    TaskStatus,
)
from work_review.services import (
    CreateWorkEntryInput,
    EmploymentInactiveError,
    ImmutableRecordError,
    InvalidTransitionError,
    NotFoundError,
    RecordStore,
    ReviewEngine,
    ValidationError,
    WorkEntryFilters,
)

from conftest import make_content, submit_entry


async def deactivate(session: AsyncSession, employee_id, organization_id) -> None:
    await session.execute(
        update(EmploymentRelationship)
        .where(
            EmploymentRelationship.employee_id == employee_id,
            EmploymentRelationship.organization_id == organization_id,
        )
        .values(is_active=False)
    )
    await session.commit()


# =============================================================================
# TEST: CREATE
# =============================================================================


class TestCreate:
    """Tests for RecordStore.create."""

    async def test_create_starts_pending_at_version_one(self, session, hierarchy):
        entry = await submit_entry(session, hierarchy)

        assert entry.review_status == ReviewStatus.PENDING_REVIEW
        assert entry.version == 1
        assert entry.employee_id == hierarchy.employee_id
        assert entry.team_id == hierarchy.team.id
        assert entry.task_status == TaskStatus.IN_PROGRESS
        assert entry.rating is None
        assert entry.reviewed_by is None
        assert entry.created_at is not None

    async def test_create_keeps_content(self, session, hierarchy):
        entry = await submit_entry(session, hierarchy, tags=["auth"], actual_hours=3.0)

        assert entry.title == "Implement login"
        assert entry.start_date == date(2024, 3, 1)
        assert entry.tags == ["auth"]
        assert entry.actual_hours == 3.0

    async def test_create_without_team(self, session, hierarchy):
        store = RecordStore(session)
        entry = await store.create(
            CreateWorkEntryInput(
                employee_id=hierarchy.employee_id,
                organization_id=hierarchy.organization_id,
                content=make_content(),
            )
        )
        assert entry.team_id is None

    async def test_create_rejects_inactive_employee(self, session, hierarchy):
        await deactivate(session, hierarchy.employee_id, hierarchy.organization_id)

        with pytest.raises(EmploymentInactiveError):
            await submit_entry(session, hierarchy)

    async def test_create_rejects_unknown_employee(self, session, hierarchy):
        store = RecordStore(session)
        with pytest.raises(EmploymentInactiveError):
            await store.create(
                CreateWorkEntryInput(
                    employee_id=uuid4(),
                    organization_id=hierarchy.organization_id,
                    content=make_content(),
                )
            )

    async def test_create_requires_title(self, session, hierarchy):
        with pytest.raises(ValidationError):
            await submit_entry(session, hierarchy, title="   ")

    async def test_create_rejects_end_before_start(self, session, hierarchy):
        with pytest.raises(ValidationError):
            await submit_entry(
                session, hierarchy, start_date=date(2024, 3, 8), end_date=date(2024, 3, 1)
            )

    async def test_create_rejects_negative_hours(self, session, hierarchy):
        with pytest.raises(ValidationError):
            await submit_entry(session, hierarchy, actual_hours=-1.0)

    async def test_create_rejects_team_of_other_organization(self, session, hierarchy):
        with pytest.raises(ValidationError):
            await submit_entry(session, hierarchy, team_id=uuid4())


# =============================================================================
# TEST: UPDATE
# =============================================================================


class TestUpdate:
    """Tests for RecordStore.update."""

    async def test_update_applies_patch_and_bumps_version(self, session, entry):
        store = RecordStore(session)

        updated = await store.update(
            entry.id,
            {"description": "Added password reset", "task_status": "completed"},
            actor_id=entry.employee_id,
        )

        assert updated.description == "Added password reset"
        assert updated.task_status == TaskStatus.COMPLETED
        assert updated.version == 2
        assert updated.review_status == ReviewStatus.PENDING_REVIEW
        assert updated.updated_at is not None

    async def test_update_keeps_needs_changes_status(self, session, hierarchy, entry):
        await ReviewEngine(session).request_changes(
            hierarchy.manager_id, entry.id, "Add test coverage"
        )

        updated = await RecordStore(session).update(entry.id, {"description": "Tests added"})

        assert updated.review_status == ReviewStatus.NEEDS_CHANGES
        assert updated.change_request_feedback == "Add test coverage"

    @pytest.mark.parametrize(
        "field",
        ["employee_id", "organization_id", "review_status", "rating", "version", "team_id"],
    )
    async def test_update_rejects_non_content_fields(self, session, entry, field):
        with pytest.raises(ValidationError):
            await RecordStore(session).update(entry.id, {field: None})

    @pytest.mark.parametrize("field", ["title", "work_type", "priority", "billable", "task_status"])
    async def test_update_rejects_null_for_required_fields(self, session, entry, field):
        with pytest.raises(ValidationError) as exc_info:
            await RecordStore(session).update(entry.id, {field: None})

        assert exc_info.value.context["field"] == field
        assert (await RecordStore(session).get(entry.id)).version == 1

    async def test_update_accepts_null_for_optional_fields(self, session, entry):
        updated = await RecordStore(session).update(
            entry.id, {"description": None, "actual_hours": None, "tags": None}
        )

        assert updated.description is None
        assert updated.actual_hours is None
        assert updated.tags == []

    async def test_update_rejects_end_before_existing_start(self, session, entry):
        with pytest.raises(ValidationError):
            await RecordStore(session).update(entry.id, {"end_date": date(2024, 2, 1)})

    async def test_update_approved_entry_is_immutable(self, session, hierarchy, entry):
        await ReviewEngine(session).approve(hierarchy.admin_id, entry.id, rating=4)

        with pytest.raises(ImmutableRecordError):
            await RecordStore(session).update(entry.id, {"title": "Changed"})

    async def test_update_rejects_inactive_employee(self, session, hierarchy, entry):
        await deactivate(session, hierarchy.employee_id, hierarchy.organization_id)

        with pytest.raises(EmploymentInactiveError):
            await RecordStore(session).update(entry.id, {"title": "Changed"})

    async def test_update_missing_entry(self, session, hierarchy):
        with pytest.raises(NotFoundError):
            await RecordStore(session).update(uuid4(), {"title": "Changed"})

    async def test_resubmit_requires_needs_changes(self, session, entry):
        with pytest.raises(InvalidTransitionError):
            await RecordStore(session).update(entry.id, {}, resubmit=True)

    async def test_stale_write_is_rejected(self, session_factory, hierarchy):
        """A write based on an outdated read never overwrites the newer row."""
        async with session_factory() as setup:
            entry = await submit_entry(setup, hierarchy)

        async with session_factory() as first, session_factory() as second:
            stale = await RecordStore(second).get(entry.id)
            assert stale.version == 1

            await RecordStore(first).update(entry.id, {"title": "First writer"})
            await first.commit()

            with pytest.raises(InvalidTransitionError):
                await RecordStore(second).update(entry.id, {"title": "Second writer"})
            await second.rollback()

        async with session_factory() as check:
            current = await RecordStore(check).get(entry.id)
            assert current.title == "First writer"
            assert current.version == 2


# =============================================================================
# TEST: DELETE
# =============================================================================


class TestDelete:
    """Tests for RecordStore.delete."""

    async def test_delete_pending_entry(self, session, entry):
        store = RecordStore(session)
        await store.delete(entry.id, actor_id=entry.employee_id)

        with pytest.raises(NotFoundError):
            await store.get(entry.id)

    async def test_delete_approved_entry_is_immutable(self, session, hierarchy, entry):
        await ReviewEngine(session).approve(hierarchy.admin_id, entry.id)

        with pytest.raises(ImmutableRecordError):
            await RecordStore(session).delete(entry.id)

        assert (await RecordStore(session).get(entry.id)).is_approved


# =============================================================================
# TEST: LISTING
# =============================================================================


class TestListing:
    """Tests for listing and counts."""

    async def test_list_by_organization_filters(self, session, hierarchy):
        first = await submit_entry(session, hierarchy, title="Implement login")
        second = await submit_entry(
            session, hierarchy, title="Fix billing export", team_id=hierarchy.other_team.id
        )
        await ReviewEngine(session).approve(hierarchy.admin_id, second.id)

        store = RecordStore(session)
        org_id = hierarchy.organization_id

        everything = await store.list_by_organization(org_id)
        assert {e.id for e in everything} == {first.id, second.id}

        by_text = await store.list_by_organization(org_id, WorkEntryFilters(query="billing"))
        assert [e.id for e in by_text] == [second.id]

        by_status = await store.list_by_organization(
            org_id, WorkEntryFilters(review_status=ReviewStatus.PENDING_REVIEW)
        )
        assert [e.id for e in by_status] == [first.id]

        by_team = await store.list_by_organization(
            org_id, WorkEntryFilters(team_ids=frozenset({hierarchy.team.id}))
        )
        assert [e.id for e in by_team] == [first.id]

        no_team = await store.list_by_organization(org_id, WorkEntryFilters(team_ids=frozenset()))
        assert list(no_team) == []

    async def test_list_pending_by_organization(self, session, hierarchy):
        pending = await submit_entry(session, hierarchy)
        approved = await submit_entry(session, hierarchy, title="Done already")
        await ReviewEngine(session).approve(hierarchy.admin_id, approved.id)

        result = await RecordStore(session).list_pending_by_organization(hierarchy.organization_id)

        assert [e.id for e in result] == [pending.id]

    async def test_list_by_employee(self, session, hierarchy):
        entry = await submit_entry(session, hierarchy)
        store = RecordStore(session)

        assert [e.id for e in await store.list_by_employee(hierarchy.employee_id)] == [entry.id]
        assert list(await store.list_by_employee(uuid4())) == []
        assert list(await store.list_by_employee(hierarchy.employee_id, uuid4())) == []

    async def test_count_by_status(self, session, hierarchy):
        engine = ReviewEngine(session)
        await submit_entry(session, hierarchy)
        approved = await submit_entry(session, hierarchy)
        changes = await submit_entry(session, hierarchy)
        await engine.approve(hierarchy.admin_id, approved.id)
        await engine.request_changes(hierarchy.admin_id, changes.id, "More detail")

        counts = await RecordStore(session).count_by_status(
            hierarchy.organization_id,
            WorkEntryFilters(review_status=ReviewStatus.APPROVED),
        )

        assert counts == {
            ReviewStatus.PENDING_REVIEW: 1,
            ReviewStatus.APPROVED: 1,
            ReviewStatus.NEEDS_CHANGES: 1,
        }
