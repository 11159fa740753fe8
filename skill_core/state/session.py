import logging
import threading
from typing import Optional

import streamlit as st

from skill_core.data.models import Dataset, current_jalali_year
from skill_core.logging import setup_logging
from skill_core.offline import SyncEngine, create_sync_engine

logger = logging.getLogger(__name__)

ACTIVE_YEAR_SETTING = "active_year"

# Central registry for session-state keys used across the app.
SESSION_DEFAULTS = {
    "dataset": None,
    "principal": None,
    "active_year": None,
    "needs_refresh": False,
    "selected_hospital_id": None,
    "selected_department_id": None,
    "selected_staff_id": None,
}


@st.cache_resource
def get_engine() -> SyncEngine:
    """One sync engine per server process, shared by every session."""
    setup_logging()
    return create_sync_engine()


def init_state(engine: Optional[SyncEngine] = None):
    """Initialize session state with defaults and the persisted active year."""
    for k, v in SESSION_DEFAULTS.items():
        if k not in st.session_state:
            st.session_state[k] = v

    if st.session_state["active_year"] is None:
        engine = engine or get_engine()
        saved = engine.local_db.get_setting(ACTIVE_YEAR_SETTING)
        st.session_state["active_year"] = int(saved) if saved else current_jalali_year()


def refresh_dataset(engine: Optional[SyncEngine] = None) -> Dataset:
    """
    Replace the session's dataset snapshot with a fresh fetch.
    There is no merge: whatever was in session state is discarded.
    """
    engine = engine or get_engine()
    dataset = engine.fetch_dataset()
    st.session_state["dataset"] = dataset
    st.session_state["needs_refresh"] = False
    flag = st.session_state.get("_change_flag")
    if flag is not None:
        flag.clear()
    return dataset


def bind_change_listener(engine: Optional[SyncEngine] = None) -> None:
    """
    Subscribe this session to remote changes (once).

    The engine is shared by every session and fans one remote channel out
    to all of them. The callback runs on the realtime thread, so it only
    sets an event; ``needs_refresh()`` reads it on the next script run.
    """
    if st.session_state.get("_unsubscribe") is not None:
        return

    engine = engine or get_engine()
    flag = threading.Event()
    st.session_state["_change_flag"] = flag
    st.session_state["_unsubscribe"] = engine.subscribe(flag.set)
    logger.debug("Change listener bound to session")


def unbind_change_listener() -> None:
    unsubscribe = st.session_state.pop("_unsubscribe", None)
    if unsubscribe is not None:
        unsubscribe()
    st.session_state.pop("_change_flag", None)


def needs_refresh() -> bool:
    flag = st.session_state.get("_change_flag")
    return bool(st.session_state.get("needs_refresh")) or (flag is not None and flag.is_set())


def set_active_year(year: int, engine: Optional[SyncEngine] = None) -> None:
    """Switch the working year and remember it in the local cache."""
    engine = engine or get_engine()
    st.session_state["active_year"] = int(year)
    engine.local_db.set_setting(ACTIVE_YEAR_SETTING, int(year))


def archive_year(year_to_archive: int, engine: Optional[SyncEngine] = None) -> int:
    """Close a year: the following year becomes the active one."""
    next_year = int(year_to_archive) + 1
    set_active_year(next_year, engine)
    return next_year


def clear_session():
    """Clear session state (except auth) and re-apply defaults."""
    unbind_change_listener()

    auth_keys = ["authenticated", "principal", "role", "name"]
    for key in list(st.session_state.keys()):
        if key not in auth_keys:
            del st.session_state[key]

    for k, v in SESSION_DEFAULTS.items():
        if k not in auth_keys:
            st.session_state[k] = v
