# =============================================================================
# skill_core/offline/sync_engine.py
# Read-Modify-Write Synchronization of the Dataset Document
# =============================================================================
"""
SyncEngine - every mutation runs the same cycle against the one shared
document:

1. fetch the dataset (remote first, local cache on absence or failure)
2. apply a pure mutation in memory
3. write the whole dataset: local cache first, then the remote row
4. for deletes and resets, re-fetch and confirm the change took effect
5. delete orphaned file blobs in the background once the write stuck

There is no version token and no merge: two sessions writing concurrently
race, and the last full document written wins.
"""

from __future__ import annotations
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging

from skill_core.data.models import Dataset
from skill_core.errors import (
    OperationResult,
    RemoteStoreError,
    SkillTrackerError,
    VerificationError,
)

logger = logging.getLogger(__name__)

# A mutation edits the dataset in place and returns orphaned blob paths (or None)
Mutation = Callable[[Dataset], Optional[Iterable[str]]]


@dataclass
class SyncState:
    """Current sync state."""
    last_fetch_source: Optional[str] = None   # "remote" | "local"
    last_fetch: Optional[datetime] = None
    last_sync_success: Optional[datetime] = None
    last_error: Optional[str] = None
    total_writes: int = 0
    failed_writes: int = 0
    verification_failures: int = 0


class CleanupTask:
    """
    Handle on a background blob deletion.

    The dataset write has already succeeded when this runs; its outcome is
    only logged and exposed here for callers (and tests) that want to wait.
    """

    def __init__(self, paths: List[str]):
        self.paths = paths
        self.result: Optional[OperationResult] = None
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the deletion finished. Returns False on timeout."""
        return self._done.wait(timeout)

    def _finish(self, result: OperationResult) -> None:
        self.result = result
        self._done.set()


class SyncEngine:
    """
    Orchestrates fetch / mutate / write cycles on the dataset document.

    Usage:
        engine = create_sync_engine(settings)
        dataset = engine.fetch_dataset()
        result = engine.perform_update(lambda ds: ds.hospitals.append(h))
        if not result.ok:
            present_result(result)
    """

    def __init__(self, local_db, remote, blobs):
        """
        Args:
            local_db: LocalDatabase cache
            remote: RemoteDocumentStore for the dataset row
            blobs: BlobStorage for file cleanup
        """
        self.local_db = local_db
        self.remote = remote
        self.blobs = blobs
        self._state = SyncState()
        self._callbacks: List[Callable[[SyncState], None]] = []
        self._cleanups: List[CleanupTask] = []
        self._cleanup_lock = threading.Lock()
        self._listeners: List[Callable[[], None]] = []
        self._listener_lock = threading.Lock()
        self._unsubscribe_remote: Optional[Callable[[], None]] = None

    @property
    def state(self) -> SyncState:
        """Get current sync state."""
        return self._state

    # =========================================================================
    # FETCH / SAVE
    # =========================================================================

    def fetch_dataset(self) -> Dataset:
        """
        Fetch the authoritative dataset.

        Remote data, when present, also refreshes the local cache. If the row
        is absent or the remote is unreachable, the cached dataset is returned.
        """
        self._state.last_fetch = datetime.now()
        try:
            dataset = self.remote.fetch_remote()
        except RemoteStoreError as e:
            logger.warning(f"Could not fetch data from the remote store, using local fallback: {e.message}")
            self._state.last_fetch_source = "local"
            return self.local_db.read_dataset()

        if dataset is None:
            logger.info("No remote dataset row yet, using local cache")
            self._state.last_fetch_source = "local"
            return self.local_db.read_dataset()

        self.local_db.write_dataset(dataset)
        self._state.last_fetch_source = "remote"
        return dataset

    def save_dataset(self, dataset: Dataset) -> OperationResult:
        """
        Write the whole dataset: local cache first (always), then remote.
        """
        self.local_db.write_dataset(dataset)
        result = self.remote.replace_dataset(dataset)

        self._state.total_writes += 1
        if result.ok:
            self._state.last_sync_success = datetime.now()
            self._state.last_error = None
        else:
            self._state.failed_writes += 1
            self._state.last_error = result.error.message
        self._notify_callbacks()
        return result

    # =========================================================================
    # READ-MODIFY-WRITE
    # =========================================================================

    def _apply(self, mutation: Mutation, dataset: Dataset) -> List[str]:
        orphaned = mutation(dataset)
        return [p for p in (orphaned or []) if p]

    def perform_update(self, mutation: Mutation, operation: str = "update") -> OperationResult:
        """
        Run one fetch-mutate-write cycle without verification.

        A SkillTrackerError raised by the mutation aborts the cycle before
        anything is written and becomes the result's error.
        """
        try:
            dataset = self.fetch_dataset()
            orphaned = self._apply(mutation, dataset)
        except SkillTrackerError as e:
            logger.warning(f"{operation} aborted: {e.message}")
            return OperationResult.failure(e)
        except Exception as e:
            logger.error(f"Unexpected error during {operation}: {e}", exc_info=True)
            return OperationResult.from_exception(e)

        result = self.save_dataset(dataset)
        if not result.ok:
            return result

        return OperationResult.success(cleanup=self.schedule_cleanup(orphaned))

    def perform_delete(
        self,
        mutation: Mutation,
        still_present: Callable[[Dataset], bool],
        failure_message: str,
        operation: str = "delete",
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> OperationResult:
        """
        Run a destructive cycle followed by a verification read.

        Args:
            mutation: Removes the entity; returns blob paths it owned
            still_present: True if the entity is still in a fetched dataset
            failure_message: Message of the VerificationError on mismatch
        """
        try:
            dataset = self.fetch_dataset()
            orphaned = self._apply(mutation, dataset)
        except SkillTrackerError as e:
            logger.warning(f"{operation} aborted: {e.message}")
            return OperationResult.failure(e)
        except Exception as e:
            logger.error(f"Unexpected error during {operation}: {e}", exc_info=True)
            return OperationResult.from_exception(e)

        result = self.save_dataset(dataset)
        if not result.ok:
            return result

        actual = self.fetch_dataset()
        if still_present(actual):
            logger.error(f"{operation} did not take effect remotely; resyncing local cache")
            self.local_db.write_dataset(actual)
            self._state.verification_failures += 1
            self._state.last_error = failure_message
            self._notify_callbacks()
            return OperationResult.failure(
                VerificationError(failure_message, entity=entity, entity_id=entity_id)
            )

        return OperationResult.success(cleanup=self.schedule_cleanup(orphaned))

    def replace_all(self, dataset: Dataset) -> OperationResult:
        """Wholesale replacement (backup restore)."""
        return self.save_dataset(dataset)

    # =========================================================================
    # BACKGROUND BLOB CLEANUP
    # =========================================================================

    def schedule_cleanup(self, paths: Iterable[str]) -> Optional[CleanupTask]:
        """
        Delete blob paths on a background thread without blocking the caller.

        Returns:
            CleanupTask handle, or None when there is nothing to delete
        """
        targets = [p for p in dict.fromkeys(paths) if p]
        if not targets:
            return None

        task = CleanupTask(targets)

        def run() -> None:
            logger.info(f"(Background) Deleting {len(targets)} file(s)")
            try:
                result = self.blobs.delete(targets)
            except Exception as e:
                logger.error(f"Background file cleanup crashed: {e}")
                result = OperationResult.from_exception(e)
            if not result.ok:
                logger.error(f"Background file cleanup failed: {result.error.message}")
            task._finish(result)

        task._thread = threading.Thread(target=run, daemon=True, name="BlobCleanup")
        with self._cleanup_lock:
            self._cleanups = [t for t in self._cleanups if not t.done]
            self._cleanups.append(task)
        task._thread.start()
        return task

    @property
    def pending_cleanups(self) -> int:
        with self._cleanup_lock:
            return sum(1 for t in self._cleanups if not t.done)

    def wait_for_cleanups(self, timeout: Optional[float] = None) -> bool:
        """Wait for every scheduled cleanup. Returns False if any timed out."""
        with self._cleanup_lock:
            tasks = list(self._cleanups)
        return all(task.wait(timeout) for task in tasks)

    # =========================================================================
    # CHANGE NOTIFICATIONS & CALLBACKS
    # =========================================================================

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Call ``callback`` whenever another client changes the document.

        All listeners share one remote channel, opened with the first
        listener and closed when the last one unsubscribes.

        Returns:
            A function that removes this listener
        """
        with self._listener_lock:
            self._listeners.append(callback)
            if self._unsubscribe_remote is None:
                self._unsubscribe_remote = self.remote.subscribe_to_changes(self._dispatch_change)
            logger.debug(f"Change listener added ({len(self._listeners)} active)")

        def unsubscribe() -> None:
            with self._listener_lock:
                if callback not in self._listeners:
                    return
                self._listeners.remove(callback)
                if not self._listeners and self._unsubscribe_remote is not None:
                    self._unsubscribe_remote()
                    self._unsubscribe_remote = None

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _dispatch_change(self) -> None:
        with self._listener_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logger.error(f"Error in change listener: {e}")

    def register_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Register a callback for sync state changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in sync callback: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        return {
            "source": self._state.last_fetch_source,
            "last_fetch": self._state.last_fetch.isoformat() if self._state.last_fetch else None,
            "last_success": (
                self._state.last_sync_success.isoformat() if self._state.last_sync_success else None
            ),
            "last_error": self._state.last_error,
            "total_writes": self._state.total_writes,
            "failed_writes": self._state.failed_writes,
            "verification_failures": self._state.verification_failures,
            "pending_cleanups": self.pending_cleanups,
        }
