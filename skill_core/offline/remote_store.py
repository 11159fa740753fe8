# =============================================================================
# skill_core/offline/remote_store.py
# Whole-Document Store on a Single Supabase Row
# =============================================================================
"""
RemoteDocumentStore - the entire dataset lives in one row of one table:

    hospitals_json(id INTEGER PRIMARY KEY, data JSONB)

Reads are a point select on the fixed id, writes replace the whole row
(last writer wins), and a realtime channel on the table tells other
clients to re-fetch.
"""

from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Optional

from postgrest.exceptions import APIError

from skill_core.data.models import Dataset
from skill_core.errors import (
    OperationResult,
    PolicyRejectionError,
    RemoteStoreError,
)

logger = logging.getLogger(__name__)

# PostgREST code for ".single()" matching zero rows
NO_ROWS_CODE = "PGRST116"
# Postgres insufficient_privilege, raised for row level security violations
POLICY_VIOLATION_CODE = "42501"
POLICY_MESSAGE_MARKERS = ("security policies", "row-level security", "row level security")


def is_policy_violation(code: Optional[str], message: Optional[str]) -> bool:
    """True if a remote error is an access-policy rejection."""
    if code == POLICY_VIOLATION_CODE:
        return True
    text = (message or "").lower()
    return any(marker in text for marker in POLICY_MESSAGE_MARKERS)


class RemoteDocumentStore:
    """
    Adapter over a Supabase client for the single-row dataset document.

    Usage:
        store = RemoteDocumentStore(client, "hospitals_json", row_id=1)
        dataset = store.fetch_remote()       # None when the row is absent
        result = store.replace_dataset(dataset)
        unsubscribe = store.subscribe_to_changes(refresh)
    """

    def __init__(
        self,
        client: Any,
        table_name: str = "hospitals_json",
        row_id: int = 1,
        channel_name: str = "hospitals_json_changes",
    ):
        self.client = client
        self.table_name = table_name
        self.row_id = row_id
        self.channel_name = channel_name
        self._channel = None
        self._channel_lock = threading.Lock()

    def is_connected(self) -> bool:
        """Check if a Supabase client is available."""
        return self.client is not None

    # =========================================================================
    # READ
    # =========================================================================

    def fetch_remote(self) -> Optional[Dataset]:
        """
        Fetch the dataset row.

        Returns:
            The stored Dataset, or None if the row does not exist

        Raises:
            RemoteStoreError: on any failure other than "no rows"
        """
        if not self.is_connected():
            raise RemoteStoreError("Remote store is not configured")

        try:
            response = (
                self.client.table(self.table_name)
                .select("data")
                .eq("id", self.row_id)
                .single()
                .execute()
            )
        except APIError as e:
            if e.code == NO_ROWS_CODE:
                return None
            raise RemoteStoreError(
                f"Could not fetch data from the remote store: {e.message}",
                remote_code=e.code,
            ) from e
        except Exception as e:
            raise RemoteStoreError(f"Could not reach the remote store: {e}") from e

        row = response.data if response is not None else None
        if not row or row.get("data") is None:
            return None

        try:
            return Dataset.from_document(row["data"])
        except Exception as e:
            raise RemoteStoreError(f"Remote dataset document is malformed: {e}") from e

    # =========================================================================
    # WRITE
    # =========================================================================

    def replace_dataset(self, dataset: Dataset) -> OperationResult:
        """
        Upsert the whole dataset as the fixed row.

        Returns:
            OperationResult; a PolicyRejectionError marks access-policy failures
        """
        if not self.is_connected():
            return OperationResult.failure(
                RemoteStoreError("Remote store is not configured; changes were only saved locally")
            )

        try:
            (
                self.client.table(self.table_name)
                .upsert({"id": self.row_id, "data": dataset.to_document()}, on_conflict="id")
                .execute()
            )
            return OperationResult.success()

        except APIError as e:
            logger.error(f"Supabase upsert error: [{e.code}] {e.message}")
            if is_policy_violation(e.code, e.message):
                return OperationResult.failure(PolicyRejectionError(
                    "The database rejected the changes. This is almost always caused by "
                    f"row level security policies: make sure the '{self.table_name}' table "
                    "has policies allowing both INSERT and UPDATE. Without them no change "
                    "(including deletes) can be saved.",
                    remote_code=e.code,
                ))
            return OperationResult.failure(RemoteStoreError(
                f"Error saving data to the database: {e.message} (error code: {e.code})",
                remote_code=e.code,
            ))

        except Exception as e:
            logger.error(f"Network or unexpected error while saving to Supabase: {e}")
            return OperationResult.failure(
                RemoteStoreError(f"Network or unexpected error: {e}")
            )

    # =========================================================================
    # CHANGE NOTIFICATIONS
    # =========================================================================

    def subscribe_to_changes(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Invoke ``callback`` on every insert/update/delete of the table.

        Only one subscription is held; a new one tears down the previous.

        Returns:
            A function that removes the subscription
        """
        if not self.is_connected():
            return lambda: None

        with self._channel_lock:
            self._remove_channel()

            def on_change(payload: Any) -> None:
                logger.info("Remote change detected, refreshing data")
                logger.debug(f"Change payload: {payload}")
                try:
                    callback()
                except Exception as e:
                    logger.error(f"Error in change callback: {e}")

            try:
                channel = self.client.channel(self.channel_name)
                channel.on_postgres_changes(
                    "*",
                    schema="public",
                    table=self.table_name,
                    callback=on_change,
                )
                channel.subscribe()
                self._channel = channel
            except Exception as e:
                logger.warning(f"Could not subscribe to remote changes: {e}")
                return lambda: None

        subscribed = channel

        def unsubscribe() -> None:
            with self._channel_lock:
                if self._channel is subscribed:
                    self._remove_channel()

        return unsubscribe

    def _remove_channel(self) -> None:
        if self._channel is None:
            return
        try:
            self.client.remove_channel(self._channel)
        except Exception as e:
            logger.error(f"Error removing change channel: {e}")
        finally:
            self._channel = None

    @property
    def subscribed(self) -> bool:
        return self._channel is not None
