"""Typed failures of the work review core.

All of them are terminal for the request that raised them: nothing here is
retried, since a retry within the same request sees the same policy inputs.
"""


class WorkReviewError(Exception):
    """Base exception for work review operations."""

    code = "work_review_error"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(WorkReviewError):
    """Work entry does not exist."""

    code = "not_found"


class EmploymentInactiveError(WorkReviewError):
    """Employee is not (or no longer) active at the organization."""

    code = "employment_inactive"


class ImmutableRecordError(WorkReviewError):
    """Write attempted against an approved work entry."""

    code = "immutable_record"


class NotAuthorizedError(WorkReviewError):
    """Actor lacks a grant (or ownership) for this work entry."""

    code = "not_authorized"


class VerificationRequiredError(WorkReviewError):
    """Reviewing organization has not completed identity verification."""

    code = "verification_required"


class InvalidTransitionError(WorkReviewError):
    """Current review status does not permit the requested transition.

    Also raised to the loser of a concurrent write against the same entry.
    """

    code = "invalid_transition"


class ValidationError(WorkReviewError):
    """Malformed input: bad rating, empty required feedback, bad content."""

    code = "validation_error"
