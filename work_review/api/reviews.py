"""API routes for reviewer dashboards."""

from uuid import UUID

from fastapi import APIRouter, Query

from ..core import CurrentActorDep
from ..models import ReviewStatus
from ..schemas import ReviewListResponse, ReviewStatusCounts, WorkEntryResponse
from ..services import ReviewListing, WorkEntryFilters
from .work_entries import WorkEntryServiceDep

router = APIRouter(prefix="/organizations/{organization_id}/reviews", tags=["reviews"])


def listing_to_response(listing: ReviewListing) -> ReviewListResponse:
    return ReviewListResponse(
        items=[WorkEntryResponse.model_validate(e) for e in listing.entries],
        counts=ReviewStatusCounts.from_counts(listing.counts),
        organization_wide=listing.scope.organization_wide,
        team_ids=sorted(listing.scope.team_ids, key=str),
    )


@router.get("", response_model=ReviewListResponse)
async def list_reviews(
    organization_id: UUID,
    current_actor: CurrentActorDep,
    service: WorkEntryServiceDep,
    q: str | None = Query(None, max_length=200, description="Search title and description"),
    employee_id: UUID | None = None,
    review_status: ReviewStatus | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """
    List work entries the caller may review.

    Organization admins see every entry, assigned managers only their teams.
    """
    listing = await service.list_reviews_for(
        current_actor.id,
        organization_id,
        WorkEntryFilters(
            query=q,
            employee_id=employee_id,
            review_status=review_status,
            limit=limit,
            offset=offset,
        ),
    )
    return listing_to_response(listing)


@router.get("/pending", response_model=ReviewListResponse)
async def list_pending_reviews(
    organization_id: UUID,
    current_actor: CurrentActorDep,
    service: WorkEntryServiceDep,
):
    """List entries waiting for the caller's review."""
    listing = await service.list_reviews_for(
        current_actor.id,
        organization_id,
        WorkEntryFilters(review_status=ReviewStatus.PENDING_REVIEW),
    )
    return listing_to_response(listing)
