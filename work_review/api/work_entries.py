"""API routes for submitting, editing and reviewing work entries."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..core import CurrentActorDep, SessionDep
from ..schemas import (
    ReviewRequest,
    WorkEntryCreate,
    WorkEntryResponse,
    WorkEntryUpdate,
)
from ..services import WorkEntryService, publisher

router = APIRouter(prefix="/work-entries", tags=["work-entries"])


def get_work_entry_service(session: SessionDep) -> WorkEntryService:
    return WorkEntryService(session, publisher=publisher)


WorkEntryServiceDep = Annotated[WorkEntryService, Depends(get_work_entry_service)]


# =============================================================================
# EMPLOYEE ENDPOINTS
# =============================================================================


@router.post("", response_model=WorkEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_work_entry(
    data: WorkEntryCreate,
    current_actor: CurrentActorDep,
    service: WorkEntryServiceDep,
):
    """Submit a work entry. It starts in pending_review."""
    entry = await service.create_work_entry(
        employee_id=current_actor.id,
        organization_id=data.organization_id,
        content=data.to_content(),
        team_id=data.team_id,
    )
    return WorkEntryResponse.model_validate(entry)


@router.get("", response_model=list[WorkEntryResponse])
async def list_my_work_entries(
    current_actor: CurrentActorDep,
    service: WorkEntryServiceDep,
    organization_id: UUID | None = Query(None),
):
    """List the caller's own work entries, newest first."""
    entries = await service.list_my_entries(current_actor.id, organization_id)
    return [WorkEntryResponse.model_validate(e) for e in entries]


@router.get("/{entry_id}", response_model=WorkEntryResponse)
async def get_work_entry(
    entry_id: UUID,
    current_actor: CurrentActorDep,
    service: WorkEntryServiceDep,
):
    """Get a work entry. Visible to its owner and to reviewers with authority over it."""
    entry = await service.get_visible_entry(current_actor.id, entry_id)
    return WorkEntryResponse.model_validate(entry)


@router.patch("/{entry_id}", response_model=WorkEntryResponse)
async def edit_work_entry(
    entry_id: UUID,
    data: WorkEntryUpdate,
    current_actor: CurrentActorDep,
    service: WorkEntryServiceDep,
):
    """Edit a work entry that is not approved. Review status is unchanged."""
    entry = await service.edit_work_entry(current_actor.id, entry_id, data.to_patch())
    return WorkEntryResponse.model_validate(entry)


@router.post("/{entry_id}/resubmit", response_model=WorkEntryResponse)
async def resubmit_work_entry(
    entry_id: UUID,
    data: WorkEntryUpdate,
    current_actor: CurrentActorDep,
    service: WorkEntryServiceDep,
):
    """Apply requested changes and send the entry back for review."""
    entry = await service.resubmit_work_entry(current_actor.id, entry_id, data.to_patch())
    return WorkEntryResponse.model_validate(entry)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_work_entry(
    entry_id: UUID,
    current_actor: CurrentActorDep,
    service: WorkEntryServiceDep,
):
    """Delete a work entry that has not been approved."""
    await service.delete_work_entry(current_actor.id, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# REVIEWER ENDPOINTS
# =============================================================================


@router.post("/{entry_id}/review", response_model=WorkEntryResponse)
async def review_work_entry(
    entry_id: UUID,
    data: ReviewRequest,
    current_actor: CurrentActorDep,
    service: WorkEntryServiceDep,
):
    """
    Approve or request changes on a pending entry.

    Body is `{"decision": "approve", "rating": 4, "feedback": "..."}` or
    `{"decision": "request_changes", "feedback": "..."}`.
    """
    entry = await service.review_work_entry(current_actor.id, entry_id, data.to_decision())
    return WorkEntryResponse.model_validate(entry)
