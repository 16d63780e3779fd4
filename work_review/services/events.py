"""Completion events emitted by review transitions.

Delivery (email, toast, chat) belongs to notification services outside this
package; they subscribe here.

Transitions only queue their events on the session. An event reaches the
subscribers after the transaction that stored the transition commits, via
`publish_committed`. A rollback drops the queue.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

WORK_ENTRY_APPROVED = "work_entry.approved"
WORK_ENTRY_CHANGES_REQUESTED = "work_entry.changes_requested"

_PENDING_KEY = "work_review.pending_events"
_COMMITTED_KEY = "work_review.committed_events"


@dataclass(frozen=True)
class WorkEntryEvent:
    name: str
    entry_id: UUID
    organization_id: UUID
    employee_id: UUID
    actor_id: UUID
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[WorkEntryEvent], Awaitable[None]]


class EventPublisher:
    """In-process fan-out of work entry events."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    async def publish(self, event: WorkEntryEvent) -> None:
        logger.debug(f"Publishing {event.name} to {len(self._subscribers)} subscriber(s)")
        for subscriber in self._subscribers:
            try:
                await subscriber(event)
            except Exception as e:
                # Listener failures never fail the transition
                logger.error(f"Subscriber failed for {event.name}: {e}", exc_info=True)


# =============================================================================
# TRANSACTION-BOUND DELIVERY
# =============================================================================


def defer(session: AsyncSession, publisher: EventPublisher, event: WorkEntryEvent) -> None:
    """Queue an event until the session's transaction commits."""
    session.info.setdefault(_PENDING_KEY, []).append((publisher, event))


async def publish_committed(session: AsyncSession) -> int:
    """Publish every event whose transaction has committed. Returns the count."""
    committed = session.info.pop(_COMMITTED_KEY, [])
    for publisher, event in committed:
        await publisher.publish(event)
    return len(committed)


@sa_event.listens_for(Session, "after_commit")
def _promote_pending(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, None)
    if pending:
        session.info.setdefault(_COMMITTED_KEY, []).extend(pending)


@sa_event.listens_for(Session, "after_soft_rollback")
def _drop_pending(session: Session, previous_transaction) -> None:
    dropped = session.info.pop(_PENDING_KEY, None)
    if dropped:
        logger.debug(f"Dropped {len(dropped)} event(s) of a rolled back transaction")


async def log_event(event: WorkEntryEvent) -> None:
    logger.info(
        f"{event.name}: work entry {event.entry_id} of employee {event.employee_id} "
        f"by {event.actor_id}"
    )


# Process-wide publisher used by the API layer
publisher = EventPublisher()
publisher.subscribe(log_event)
