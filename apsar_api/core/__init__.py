"""Core application utilities."""

from .config import Settings, get_settings
from .database import (
    UPSERT_INSERTS,
    async_session_factory,
    build_engine,
    build_session_factory,
    close_db,
    engine,
    enqueue_after_commit,
    get_session,
    get_session_context,
    init_db,
    take_outbox,
)
from .dependencies import (
    AdminDep,
    CommandDep,
    CurrentUser,
    CurrentUserDep,
    OfficerDep,
    SessionDep,
    get_current_user,
    require_role,
)
from .security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "engine",
    "async_session_factory",
    "build_engine",
    "build_session_factory",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    "enqueue_after_commit",
    "take_outbox",
    "UPSERT_INSERTS",
    # Dependencies
    "CurrentUser",
    "get_current_user",
    "require_role",
    "CurrentUserDep",
    "OfficerDep",
    "CommandDep",
    "AdminDep",
    "SessionDep",
    # Security
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
]
