"""Core application utilities."""

from .config import Settings, get_settings
from .database import (
    async_session_factory,
    build_engine,
    build_session_factory,
    close_db,
    engine,
    get_session,
    get_session_context,
    init_db,
)
from .dependencies import (
    CurrentActor,
    CurrentActorDep,
    SessionDep,
    get_current_actor,
)
from .logging import configure_logging
from .security import (
    create_access_token,
    decode_token,
    hash_content,
    verify_content_hash,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "configure_logging",
    # Database
    "engine",
    "async_session_factory",
    "build_engine",
    "build_session_factory",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Dependencies
    "CurrentActor",
    "get_current_actor",
    "CurrentActorDep",
    "SessionDep",
    # Security
    "create_access_token",
    "decode_token",
    "hash_content",
    "verify_content_hash",
]
