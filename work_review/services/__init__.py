"""Business logic services for work review."""

from .audit import AuditService
from .authorizer import AuthorizationDecision, HierarchyAuthorizer, ReviewScope
from .employment import EmploymentStatusGate
from .events import EventPublisher, WorkEntryEvent, publisher
from .exceptions import (
    EmploymentInactiveError,
    ImmutableRecordError,
    InvalidTransitionError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
    VerificationRequiredError,
    WorkReviewError,
)
from .record_store import (
    CreateWorkEntryInput,
    RecordStore,
    WorkEntryContent,
    WorkEntryFilters,
)
from .review_engine import (
    ApproveDecision,
    RequestChangesDecision,
    ReviewDecision,
    ReviewEngine,
)
from .verification import VerificationDecision, VerificationGate
from .work_entries import ReviewListing, WorkEntryService

__all__ = [
    # Operations
    "WorkEntryService",
    "ReviewListing",
    # Components
    "RecordStore",
    "EmploymentStatusGate",
    "HierarchyAuthorizer",
    "VerificationGate",
    "ReviewEngine",
    "AuditService",
    "EventPublisher",
    "publisher",
    # Inputs and decisions
    "CreateWorkEntryInput",
    "WorkEntryContent",
    "WorkEntryFilters",
    "ApproveDecision",
    "RequestChangesDecision",
    "ReviewDecision",
    "AuthorizationDecision",
    "VerificationDecision",
    "ReviewScope",
    "WorkEntryEvent",
    # Errors
    "WorkReviewError",
    "NotFoundError",
    "EmploymentInactiveError",
    "ImmutableRecordError",
    "NotAuthorizedError",
    "VerificationRequiredError",
    "InvalidTransitionError",
    "ValidationError",
]
