"""
FastAPI dependency injection.

Dependencies provide the session store and configuration to route
handlers. Routes never build their own store, which keeps them easy to
test: a test overrides get_session_store with a store over in-memory
storage.

There is exactly one SessionStore per process. It is created on first
use and shared by every request, since the store owns the in-memory
copy of the history and two stores over the same slot would drift.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..core.sessions.store import SessionStore
from ..infrastructure.storage.client import StorageConfig, create_key_value_storage

logger = logging.getLogger(__name__)

_session_store: Optional[SessionStore] = None


def build_session_store(settings: Settings) -> SessionStore:
    """Create a SessionStore over the storage backend the settings select."""
    storage = create_key_value_storage(
        config=StorageConfig(
            directory=settings.storage_path,
            quota_bytes=settings.storage_quota_bytes,
        ),
        mock_mode=settings.storage_mock_mode,
    )

    store = SessionStore(
        storage,
        storage_key=settings.storage_key,
        warning_ratio=settings.storage_warning_ratio,
        session_threshold=settings.session_warning_threshold,
    )

    logger.info(
        "Created session store",
        extra={
            "mock_mode": settings.storage_mock_mode,
            "storage_key": settings.storage_key,
            "session_count": len(store),
        }
    )
    return store


def get_session_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> SessionStore:
    """Provide the process-wide SessionStore, creating it on first use."""
    global _session_store

    if _session_store is None:
        _session_store = build_session_store(settings)

    return _session_store


def reset_session_store() -> None:
    """Forget the shared store so the next request builds a fresh one."""
    global _session_store
    _session_store = None


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
