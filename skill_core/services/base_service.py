# =============================================================================
# skill_core/services/base_service.py
# Base Service Class with Common Functionality
# =============================================================================

from __future__ import annotations
from abc import ABC
from typing import Any, Callable, Optional

from skill_core.logging import get_logger, LogContext
from skill_core.errors import OperationResult, SkillTrackerError
from skill_core.data.models import Dataset


class BaseService(ABC):
    """
    Abstract base class for the mutation services.

    Every public operation runs one read-modify-write cycle through the
    shared SyncEngine and returns an OperationResult.

    Usage:
        class MyService(BaseService):
            def rename(self, hospital_id, name) -> OperationResult:
                def mutate(ds):
                    ds.find_hospital(hospital_id).name = name
                return self._update("Renaming hospital", mutate)
    """

    def __init__(self, engine):
        self.engine = engine
        self.logger = get_logger(self.__class__.__name__)
        self._progress_callback: Optional[Callable[[int, str], None]] = None

    def set_progress_callback(
        self,
        callback: Callable[[int, str], None]
    ) -> None:
        """
        Set a callback for progress updates.

        Args:
            callback: Function that takes (percentage: int, message: str)
        """
        self._progress_callback = callback

    def _update_progress(self, percentage: int, message: str = "") -> None:
        """Update progress via callback if set"""
        if self._progress_callback:
            self._progress_callback(percentage, message)

    def log_operation(self, operation: str) -> LogContext:
        """
        Create a logging context for an operation.

        Usage:
            with self.log_operation("Deleting hospital"):
                ...
        """
        return LogContext(self.logger, operation)

    def _update(
        self,
        operation: str,
        mutation: Callable[[Dataset], Any],
        data: Any = None,
    ) -> OperationResult:
        """
        Run a non-destructive mutation (no verification read).

        ``data`` is attached to a successful result, e.g. the id of a new record.
        """
        with self.log_operation(operation):
            result = self.engine.perform_update(mutation, operation=operation)
        self._log_result(operation, result)
        if result.ok and data is not None:
            result.data = data
        return result

    def _delete(
        self,
        operation: str,
        mutation: Callable[[Dataset], Any],
        still_present: Callable[[Dataset], bool],
        failure_message: str,
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> OperationResult:
        """Run a destructive mutation followed by a verification read."""
        with self.log_operation(operation):
            result = self.engine.perform_delete(
                mutation,
                still_present,
                failure_message,
                operation=operation,
                entity=entity,
                entity_id=entity_id,
            )
        self._log_result(operation, result)
        return result

    def safe_execute(
        self,
        operation: str,
        func: Callable[..., Any],
        *args,
        **kwargs
    ) -> OperationResult:
        """
        Execute a function with error handling and logging.

        Returns:
            OperationResult carrying the function's return value as data
        """
        with self.log_operation(operation):
            try:
                return OperationResult.success(data=func(*args, **kwargs))
            except SkillTrackerError as e:
                self.logger.warning(f"{operation} failed: {e}")
                return OperationResult.failure(e)
            except Exception as e:
                self.logger.error(f"{operation} failed: {e}", exc_info=True)
                return OperationResult.from_exception(e)

    def _log_result(self, operation: str, result: OperationResult) -> None:
        if not result.ok:
            self.logger.warning(f"{operation} failed: {result.error}")
