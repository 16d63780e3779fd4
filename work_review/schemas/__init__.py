"""Pydantic schemas for the Work Review API."""

from .audit import AuditLogEntry, AuditTrailResponse, ChainVerificationResponse
from .base import ErrorDetail, ErrorResponse, TimestampMixin, WorkReviewBaseModel
from .work_entries import (
    ApproveRequest,
    RequestChangesRequest,
    ReviewListResponse,
    ReviewRequest,
    ReviewStatusCounts,
    WorkEntryCreate,
    WorkEntryResponse,
    WorkEntryUpdate,
)

__all__ = [
    # Base
    "WorkReviewBaseModel",
    "TimestampMixin",
    "ErrorDetail",
    "ErrorResponse",
    # Work entries
    "WorkEntryCreate",
    "WorkEntryUpdate",
    "WorkEntryResponse",
    "ApproveRequest",
    "RequestChangesRequest",
    "ReviewRequest",
    "ReviewStatusCounts",
    "ReviewListResponse",
    # Audit
    "AuditLogEntry",
    "AuditTrailResponse",
    "ChainVerificationResponse",
]
