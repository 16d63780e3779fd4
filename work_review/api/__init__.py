"""API routes for Work Review."""

from fastapi import APIRouter

from .audit import router as audit_router
from .reviews import router as reviews_router
from .work_entries import router as work_entries_router

# Main API router
api_router = APIRouter()

api_router.include_router(work_entries_router)
api_router.include_router(reviews_router)
api_router.include_router(audit_router)

__all__ = ["api_router"]
