"""FastAPI dependencies for identity and request context."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_session
from .security import decode_token

logger = logging.getLogger(__name__)

# Security scheme
bearer_scheme = HTTPBearer(auto_error=False)


class CurrentActor:
    """
    The identity making the request.

    Carries no authority of its own: whether the actor may edit or review
    an entry is decided by the services from ownership, employment and grants.
    """

    def __init__(self, actor_id: UUID):
        self.actor_id = actor_id

    @property
    def id(self) -> UUID:
        return self.actor_id


async def get_current_actor(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> CurrentActor:
    """Dependency to resolve the acting identity from a bearer token."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    try:
        actor_id = UUID(payload.sub)
    except ValueError:
        logger.warning(f"Token subject is not a UUID: {payload.sub}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
        )

    return CurrentActor(actor_id)


# Type aliases for cleaner dependency injection
CurrentActorDep = Annotated[CurrentActor, Depends(get_current_actor)]
SessionDep = Annotated[AsyncSession, Depends(get_session)]
