"""Audit service: append-only, hash-chained trail of work entry actions."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..core.security import hash_content
from ..models import AuditAction, AuditLog

logger = logging.getLogger(__name__)


def _canonical(details: dict[str, Any]) -> str:
    return json.dumps(details, sort_keys=True, default=str)


def compute_entry_hash(
    previous_hash: str | None,
    sequence: int,
    action: AuditAction,
    resource_type: str,
    resource_id: UUID,
    actor_id: UUID | None,
    details: dict[str, Any],
) -> str:
    """Hash of one audit row, chained to the row before it."""
    hash_input = "|".join(
        [
            previous_hash or "",
            str(sequence),
            action.value,
            resource_type,
            str(resource_id),
            str(actor_id) if actor_id else "",
            _canonical(details),
        ]
    )
    return hash_content(hash_input)


class AuditService:
    """
    Service for audit logging and chain verification.

    The chain is kept per resource: rows of one work entry are linked by
    `previous_hash`. Writes to one entry are already serialized by the
    record store's version check, so chains of different entries never
    contend with each other.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._chain_enabled = get_settings().audit_chain_enabled

    async def log_event(
        self,
        organization_id: UUID,
        action: AuditAction,
        resource_type: str,
        resource_id: UUID,
        actor_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Append an audit row. Part of the caller's transaction."""
        # Round-trip through JSON so the stored value hashes the same on reload
        details = json.loads(_canonical(details or {}))

        last = await self._last_entry(resource_type, resource_id)
        sequence = (last.sequence + 1) if last else 1
        previous_hash = last.entry_hash if last else None

        entry_hash = None
        if self._chain_enabled:
            entry_hash = compute_entry_hash(
                previous_hash, sequence, action, resource_type, resource_id, actor_id, details
            )

        audit = AuditLog(
            organization_id=organization_id,
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
            sequence=sequence,
            previous_hash=previous_hash,
            entry_hash=entry_hash,
        )
        self.session.add(audit)
        await self.session.flush()

        logger.debug(f"Audit {action.value} on {resource_type} {resource_id} (#{sequence})")
        return audit

    async def get_trail(
        self,
        resource_id: UUID,
        resource_type: str = "work_entry",
    ) -> Sequence[AuditLog]:
        """All audit rows of one resource, oldest first."""
        result = await self.session.execute(
            select(AuditLog)
            .where(
                AuditLog.resource_type == resource_type,
                AuditLog.resource_id == resource_id,
            )
            .order_by(AuditLog.sequence)
        )
        return result.scalars().all()

    async def get_audit_log(
        self,
        organization_id: UUID,
        actor_id: UUID | None = None,
        action: AuditAction | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[AuditLog], int]:
        """Query the audit log of an organization with filters."""
        query = select(AuditLog).where(AuditLog.organization_id == organization_id)

        if actor_id:
            query = query.where(AuditLog.actor_id == actor_id)
        if action:
            query = query.where(AuditLog.action == action)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        query = query.order_by(AuditLog.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(query)

        return result.scalars().all(), total

    async def verify_chain_integrity(self, organization_id: UUID) -> dict[str, Any]:
        """Recompute every chain of an organization and report the first break.

        Only meaningful when rows were written with audit_chain_enabled.
        """
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.organization_id == organization_id)
            .order_by(AuditLog.resource_type, AuditLog.resource_id, AuditLog.sequence)
        )
        rows = result.scalars().all()

        previous: AuditLog | None = None
        for row in rows:
            same_chain = (
                previous is not None
                and previous.resource_type == row.resource_type
                and previous.resource_id == row.resource_id
            )
            expected_previous = previous.entry_hash if same_chain else None
            expected_hash = compute_entry_hash(
                expected_previous,
                row.sequence,
                row.action,
                row.resource_type,
                row.resource_id,
                row.actor_id,
                row.details or {},
            )
            if row.previous_hash != expected_previous or row.entry_hash != expected_hash:
                logger.error(f"Audit chain broken at {row.id} for organization {organization_id}")
                return {
                    "is_valid": False,
                    "checked": len(rows),
                    "broken_at_id": row.id,
                    "expected_hash": expected_hash,
                    "actual_hash": row.entry_hash,
                    "verified_at": datetime.now(timezone.utc),
                }
            previous = row

        return {
            "is_valid": True,
            "checked": len(rows),
            "broken_at_id": None,
            "expected_hash": None,
            "actual_hash": None,
            "verified_at": datetime.now(timezone.utc),
        }

    async def _last_entry(self, resource_type: str, resource_id: UUID) -> AuditLog | None:
        result = await self.session.execute(
            select(AuditLog)
            .where(
                AuditLog.resource_type == resource_type,
                AuditLog.resource_id == resource_id,
            )
            .order_by(AuditLog.sequence.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
