# =============================================================================
# skill_core/offline/__init__.py
# Local-First Synchronization for the Staff Skill Tracker
# =============================================================================
"""
Local-First Synchronization Module

The whole dataset is one JSON document in one Supabase row. Every write
replaces the whole document; every read prefers the remote copy and falls
back to a local SQLite cache.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                     LOCAL-FIRST ARCHITECTURE                     │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │           DatasetService / ContentService                 │  │
│   │         (one method per user action)                      │  │
│   └──────────────────────────────────────────────────────────┘  │
│                            │                                     │
│                            ▼                                     │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                     SyncEngine                            │  │
│   │   fetch -> mutate -> write local -> write remote -> verify│  │
│   └──────────────────────────────────────────────────────────┘  │
│        │                    │                      │             │
│        ▼                    ▼                      ▼             │
│ ┌──────────────┐  ┌───────────────────┐  ┌─────────────────┐    │
│ │LocalDatabase │  │RemoteDocumentStore│  │   BlobStorage   │    │
│ │  (SQLite)    │  │ (hospitals_json)  │  │   (app_files)   │    │
│ └──────────────┘  └───────────────────┘  └─────────────────┘    │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from skill_core.offline import create_sync_engine

engine = create_sync_engine()
dataset = engine.fetch_dataset()
unsubscribe = engine.subscribe(lambda: st.session_state.update(needs_refresh=True))
"""

import logging
from typing import Any, Optional

from skill_core.config import Settings, load_settings
from skill_core.data.supabase_client import get_supabase_client
from skill_core.offline.local_database import LocalDatabase
from skill_core.offline.remote_store import (
    RemoteDocumentStore,
    NO_ROWS_CODE,
    POLICY_VIOLATION_CODE,
    is_policy_violation,
)
from skill_core.offline.blob_storage import (
    BlobStorage,
    build_storage_path,
    decode_data_url,
    encode_data_url,
    sanitize_file_name,
)
from skill_core.offline.sync_engine import (
    SyncEngine,
    SyncState,
    CleanupTask,
)

logger = logging.getLogger(__name__)


def create_sync_engine(
    settings: Optional[Settings] = None,
    client: Any = None,
) -> SyncEngine:
    """
    Wire a SyncEngine with its local cache, remote store and blob storage.

    Args:
        settings: Resolved settings (loaded from env/secrets if None)
        client: Pre-built Supabase client; created from settings if None.
            Without credentials the engine runs on the local cache only.

    Returns:
        A new, independent SyncEngine
    """
    settings = settings or load_settings()

    if client is None:
        client = get_supabase_client(settings)

    local_db = LocalDatabase(settings.local_db_path)
    local_db.initialize()

    remote = RemoteDocumentStore(
        client,
        table_name=settings.table_name,
        row_id=settings.data_row_id,
        channel_name=settings.channel_name,
    )
    blobs = BlobStorage(
        client,
        bucket_name=settings.bucket_name,
        prefix=settings.storage_prefix,
        cache_control=settings.cache_control,
        local_cache=local_db,
    )
    logger.info(
        f"Sync engine ready (remote: {'configured' if client is not None else 'local only'}, "
        f"table: {settings.table_name})"
    )
    return SyncEngine(local_db, remote, blobs)


__all__ = [
    # Local cache
    "LocalDatabase",
    # Remote document
    "RemoteDocumentStore",
    "NO_ROWS_CODE",
    "POLICY_VIOLATION_CODE",
    "is_policy_violation",
    # Blob storage
    "BlobStorage",
    "build_storage_path",
    "decode_data_url",
    "encode_data_url",
    "sanitize_file_name",
    # Sync engine
    "SyncEngine",
    "SyncState",
    "CleanupTask",
    "create_sync_engine",
]
