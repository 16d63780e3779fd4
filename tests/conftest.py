"""Shared fixtures: a throwaway SQLite database and an organization hierarchy."""

import os

# Must be set before work_review is imported; settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production-use-0123456789")

from dataclasses import dataclass
from datetime import date
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from work_review.core import build_engine, build_session_factory, init_db
from work_review.core.database import get_session
from work_review.core.security import create_access_token
from work_review.models import (
    EmploymentRelationship,
    GrantScope,
    Organization,
    ReviewerGrant,
    ReviewerRole,
    Team,
    VerificationStatus,
    WorkEntry,
)
from work_review.services import CreateWorkEntryInput, RecordStore, WorkEntryContent
from work_review.services.events import publish_committed


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def db_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'work_review.db'}", echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# ORGANIZATION HIERARCHY
# =============================================================================


@dataclass
class Hierarchy:
    organization: Organization
    team: Team
    other_team: Team
    employee_id: UUID
    admin_id: UUID  # organization grant
    manager_id: UUID  # team grant on `team`
    other_manager_id: UUID  # team grant on `other_team`
    outsider_id: UUID  # no grant

    @property
    def organization_id(self) -> UUID:
        return self.organization.id


async def build_hierarchy(
    session: AsyncSession,
    verification_status: VerificationStatus = VerificationStatus.VERIFIED,
) -> Hierarchy:
    """Insert an organization with two teams, one employee and three reviewers."""
    organization = Organization(name="Acme", verification_status=verification_status)
    session.add(organization)
    await session.flush()

    team = Team(organization_id=organization.id, name="Platform")
    other_team = Team(organization_id=organization.id, name="Growth")
    session.add_all([team, other_team])
    await session.flush()

    h = Hierarchy(
        organization=organization,
        team=team,
        other_team=other_team,
        employee_id=uuid4(),
        admin_id=uuid4(),
        manager_id=uuid4(),
        other_manager_id=uuid4(),
        outsider_id=uuid4(),
    )

    session.add_all(
        [
            EmploymentRelationship(
                employee_id=h.employee_id,
                organization_id=organization.id,
                is_active=True,
            ),
            ReviewerGrant(
                reviewer_id=h.admin_id,
                organization_id=organization.id,
                scope=GrantScope.ORGANIZATION,
                role=ReviewerRole.ORGANIZATION_ADMIN,
            ),
            ReviewerGrant(
                reviewer_id=h.manager_id,
                organization_id=organization.id,
                scope=GrantScope.TEAM,
                team_id=team.id,
                role=ReviewerRole.ASSIGNED_MANAGER,
            ),
            ReviewerGrant(
                reviewer_id=h.other_manager_id,
                organization_id=organization.id,
                scope=GrantScope.TEAM,
                team_id=other_team.id,
                role=ReviewerRole.ASSIGNED_MANAGER,
            ),
        ]
    )
    await session.commit()
    return h


@pytest.fixture
async def hierarchy(session) -> Hierarchy:
    return await build_hierarchy(session)


@pytest.fixture
async def unverified_hierarchy(session) -> Hierarchy:
    return await build_hierarchy(session, VerificationStatus.PENDING)


# =============================================================================
# WORK ENTRIES
# =============================================================================


def make_content(**overrides) -> WorkEntryContent:
    data = dict(
        title="Implement login",
        description="Email and password sign-in",
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 8),
        project="Customer portal",
        actual_hours=12.5,
        tags=["auth", "backend"],
        achievements=["Shipped behind a feature flag"],
    )
    data.update(overrides)
    return WorkEntryContent(**data)


async def submit_entry(
    session: AsyncSession,
    h: Hierarchy,
    team_id: UUID | None = None,
    **overrides,
) -> WorkEntry:
    """Create a pending entry for the hierarchy's employee, on `team` by default."""
    entry = await RecordStore(session).create(
        CreateWorkEntryInput(
            employee_id=h.employee_id,
            organization_id=h.organization_id,
            team_id=team_id or h.team.id,
            content=make_content(**overrides),
        )
    )
    await session.commit()
    return entry


@pytest.fixture
async def entry(session, hierarchy) -> WorkEntry:
    return await submit_entry(session, hierarchy)


# =============================================================================
# API
# =============================================================================


def auth_headers(actor_id: UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(actor_id)}"}


@pytest.fixture
async def client(session_factory):
    from work_review.main import app

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
                await publish_committed(session)
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
