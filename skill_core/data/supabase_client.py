# =============================================================================
# skill_core/data/supabase_client.py
# Supabase Client Configuration for the Staff Skill Tracker
# =============================================================================

from __future__ import annotations
import logging
from typing import Optional

from supabase import Client, create_client

from skill_core.config import Settings, load_settings

logger = logging.getLogger(__name__)


def get_supabase_client(settings: Optional[Settings] = None) -> Optional[Client]:
    """
    Initialize and return a Supabase client.

    Args:
        settings: Resolved settings (loaded from env/secrets if None)

    Returns:
        Supabase client instance or None if not configured / creation failed
    """
    settings = settings or load_settings()

    if not settings.remote_configured:
        logger.warning(
            "Supabase credentials not found; running against the local cache only. "
            "Set SUPABASE_URL / SUPABASE_KEY or a [supabase] section in .streamlit/secrets.toml"
        )
        return None

    try:
        client: Client = create_client(settings.supabase_url, settings.supabase_key)
        return client
    except Exception as e:
        logger.error(f"Failed to initialize Supabase client: {e}")
        return None


def close_supabase_client(client: Optional[Client]) -> None:
    """
    Explicitly close a client's HTTP sessions.
    Call this when an engine is torn down (tests, script runs).
    """
    if client is None:
        return
    try:
        postgrest = getattr(client, "postgrest", None)
        session = getattr(postgrest, "session", None)
        if session is not None and hasattr(session, "close"):
            session.close()
    except Exception as e:
        logger.debug(f"Ignoring error while closing Supabase client: {e}")
