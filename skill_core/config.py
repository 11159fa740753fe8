# =============================================================================
# skill_core/config.py
# Runtime configuration for the Staff Skill Tracker
# =============================================================================
"""
Settings are resolved from environment variables first, then from a
Streamlit-secrets style mapping, then from defaults.

Expected secrets.toml format:
    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"

    [skill_tracker]
    table = "hospitals_json"
    bucket = "app_files"
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from skill_core.errors import ConfigurationError

DEFAULT_LOCAL_DB_PATH = Path(__file__).parent.parent / "local_data" / "skill_tracker.db"

# The single built-in admin credential pair
DEFAULT_ADMIN_NATIONAL_ID = "5850008985"
DEFAULT_ADMIN_PASSWORD = "64546"


@dataclass
class Settings:
    """Connection and storage settings shared by every component."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    table_name: str = "hospitals_json"
    data_row_id: int = 1
    bucket_name: str = "app_files"
    storage_prefix: str = "public"
    cache_control: str = "3600"
    channel_name: str = "hospitals_json_changes"
    local_db_path: Path = field(default_factory=lambda: DEFAULT_LOCAL_DB_PATH)
    admin_national_id: str = DEFAULT_ADMIN_NATIONAL_ID
    admin_password: str = DEFAULT_ADMIN_PASSWORD

    @property
    def remote_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _section(secrets: Optional[Mapping[str, Any]], name: str) -> Mapping[str, Any]:
    if not secrets:
        return {}
    try:
        return secrets[name] if name in secrets else {}
    except Exception:
        # st.secrets raises when no secrets.toml exists at all
        return {}


def _streamlit_secrets() -> Optional[Mapping[str, Any]]:
    try:
        import streamlit as st
        return st.secrets
    except Exception:
        return None


def load_settings(secrets: Optional[Mapping[str, Any]] = None) -> Settings:
    """
    Build Settings from the environment and secrets.

    Args:
        secrets: Mapping shaped like st.secrets; read from Streamlit if None

    Returns:
        Resolved Settings

    Raises:
        ConfigurationError: if SKILL_TRACKER_ROW_ID is not an integer
    """
    if secrets is None:
        secrets = _streamlit_secrets()

    supabase = _section(secrets, "supabase")
    tracker = _section(secrets, "skill_tracker")
    defaults = Settings()

    raw_row_id = os.getenv("SKILL_TRACKER_ROW_ID", tracker.get("row_id", defaults.data_row_id))
    try:
        row_id = int(raw_row_id)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid data row id: {raw_row_id!r}",
            config_key="SKILL_TRACKER_ROW_ID",
            expected_type="int",
        )

    db_path = os.getenv("SKILL_TRACKER_DB_PATH", tracker.get("db_path"))

    return Settings(
        supabase_url=os.getenv("SUPABASE_URL", supabase.get("url")),
        supabase_key=os.getenv("SUPABASE_KEY", supabase.get("key")),
        table_name=os.getenv("SKILL_TRACKER_TABLE", tracker.get("table", defaults.table_name)),
        data_row_id=row_id,
        bucket_name=os.getenv("SKILL_TRACKER_BUCKET", tracker.get("bucket", defaults.bucket_name)),
        storage_prefix=tracker.get("storage_prefix", defaults.storage_prefix),
        cache_control=str(tracker.get("cache_control", defaults.cache_control)),
        channel_name=tracker.get("channel", defaults.channel_name),
        local_db_path=Path(db_path) if db_path else defaults.local_db_path,
        admin_national_id=os.getenv("SKILL_TRACKER_ADMIN_ID", defaults.admin_national_id),
        admin_password=os.getenv("SKILL_TRACKER_ADMIN_PASSWORD", defaults.admin_password),
    )
