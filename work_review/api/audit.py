"""API routes for the audit trail."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import CurrentActorDep, SessionDep
from ..models import AuditAction
from ..schemas import AuditLogEntry, AuditTrailResponse, ChainVerificationResponse
from ..services import (
    AuditService,
    HierarchyAuthorizer,
    NotAuthorizedError,
    ReviewEngine,
)
from .work_entries import WorkEntryServiceDep

router = APIRouter(tags=["audit"])


def get_audit_service(session: SessionDep) -> AuditService:
    return AuditService(session)


AuditServiceDep = Annotated[AuditService, Depends(get_audit_service)]


async def require_organization_admin(
    session: AsyncSession,
    actor_id: UUID,
    organization_id: UUID,
) -> None:
    scope = await HierarchyAuthorizer(session).review_scope(actor_id, organization_id)
    if not scope.organization_wide:
        raise NotAuthorizedError(
            "Organization-wide audit requires an organization grant",
            organization_id=str(organization_id),
        )


@router.get("/work-entries/{entry_id}/audit", response_model=AuditTrailResponse)
async def get_work_entry_audit(
    entry_id: UUID,
    current_actor: CurrentActorDep,
    service: WorkEntryServiceDep,
    audit: AuditServiceDep,
):
    """Audit trail of one entry, for its owner and its reviewers."""
    entry = await service.get_visible_entry(current_actor.id, entry_id)
    trail = await audit.get_trail(entry.id)
    return AuditTrailResponse(
        resource_id=entry.id,
        items=[AuditLogEntry.model_validate(row) for row in trail],
        seal_valid=ReviewEngine.verify_seal(entry) if entry.is_approved else None,
    )


@router.get("/organizations/{organization_id}/audit", response_model=list[AuditLogEntry])
async def get_organization_audit_log(
    organization_id: UUID,
    current_actor: CurrentActorDep,
    session: SessionDep,
    audit: AuditServiceDep,
    actor_id: UUID | None = None,
    action: AuditAction | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Organization audit log, newest first. Organization admins only."""
    await require_organization_admin(session, current_actor.id, organization_id)
    rows, _ = await audit.get_audit_log(
        organization_id, actor_id=actor_id, action=action, limit=limit, offset=offset
    )
    return [AuditLogEntry.model_validate(row) for row in rows]


@router.get(
    "/organizations/{organization_id}/audit/verify",
    response_model=ChainVerificationResponse,
)
async def verify_audit_chain(
    organization_id: UUID,
    current_actor: CurrentActorDep,
    session: SessionDep,
    audit: AuditServiceDep,
):
    """Recompute the hash chains of an organization's audit log."""
    await require_organization_admin(session, current_actor.id, organization_id)
    result = await audit.verify_chain_integrity(organization_id)
    return ChainVerificationResponse(**result)
