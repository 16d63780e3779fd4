"""Employment Status Gate.

Answers whether an employee may currently write work entries for an
organization. Always a fresh read; a relationship that flips to inactive
takes effect on the very next write attempt.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import EmploymentRelationship
from .exceptions import EmploymentInactiveError

logger = logging.getLogger(__name__)


class EmploymentStatusGate:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def is_active(self, employee_id: UUID, organization_id: UUID) -> bool:
        """A missing relationship counts as inactive."""
        result = await self._session.execute(
            select(EmploymentRelationship.is_active).where(
                EmploymentRelationship.employee_id == employee_id,
                EmploymentRelationship.organization_id == organization_id,
            )
        )
        return bool(result.scalar_one_or_none())

    async def require_active(self, employee_id: UUID, organization_id: UUID) -> None:
        if not await self.is_active(employee_id, organization_id):
            logger.warning(
                f"Write blocked: employee {employee_id} inactive at organization {organization_id}"
            )
            raise EmploymentInactiveError(
                "Employee is not active at this organization",
                employee_id=str(employee_id),
                organization_id=str(organization_id),
            )
