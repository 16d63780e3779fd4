"""Verification Gate: the reviewing organization must itself be verified."""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Organization, VerificationStatus
from .exceptions import VerificationRequiredError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationDecision:
    allowed: bool
    status: VerificationStatus | None
    reason: str | None = None


class VerificationGate:
    """
    Blocks approve / request-changes until the organization is `verified`.

    Applies to every reviewer regardless of role.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def check(self, organization_id: UUID) -> VerificationDecision:
        result = await self._session.execute(
            select(Organization.verification_status).where(
                Organization.id == organization_id
            )
        )
        status = result.scalar_one_or_none()

        if status == VerificationStatus.VERIFIED:
            return VerificationDecision(allowed=True, status=status)
        if status is None:
            return VerificationDecision(
                allowed=False, status=None, reason="organization_unknown"
            )
        return VerificationDecision(
            allowed=False, status=status, reason=f"organization_{status.value}"
        )

    async def require(self, organization_id: UUID) -> None:
        decision = await self.check(organization_id)
        if not decision.allowed:
            logger.warning(
                f"Review blocked for organization {organization_id}: {decision.reason}"
            )
            raise VerificationRequiredError(
                "Organization must complete verification before reviewing work entries",
                organization_id=str(organization_id),
                verification_status=decision.status.value if decision.status else None,
            )
