# =============================================================================
# skill_core/errors/handlers.py
# Error Handling Utilities for the Staff Skill Tracker
# =============================================================================

from __future__ import annotations
import traceback
from typing import Optional, Callable, TypeVar
import streamlit as st

from skill_core.logging import get_logger
from .exceptions import SkillTrackerError, PolicyRejectionError
from .results import OperationResult

logger = get_logger(__name__)

T = TypeVar("T")


def handle_error(
    error: Exception,
    show_user_message: bool = True,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Centralized error handling function.

    Args:
        error: The exception to handle
        show_user_message: Whether to display error to user via st.error
        log_error: Whether to log the error
        user_message: Custom message to show user (uses error message if None)
    """
    if isinstance(error, SkillTrackerError):
        message = user_message or error.message
        code = error.code
        details = error.details
        recoverable = error.recoverable
    else:
        message = user_message or str(error)
        code = "UNKNOWN"
        details = {"traceback": traceback.format_exc()}
        recoverable = True

    if log_error:
        logger.error(
            f"[{code}] {message}",
            extra={"details": details},
            exc_info=error if error.__traceback__ else None,
        )

    if show_user_message:
        if isinstance(error, PolicyRejectionError):
            st.error(f"Changes were rejected by the database: {message}")
        elif recoverable:
            st.error(f"Error: {message}")
        else:
            st.error(f"Critical Error: {message}. Please contact support.")

        if details and st.session_state.get("debug_mode", False):
            with st.expander("Error Details", expanded=False):
                st.json(details)


def present_result(
    result: OperationResult,
    success_message: Optional[str] = None,
) -> bool:
    """
    Show the outcome of a mutation operator to the user.

    Success is silent unless ``success_message`` is given; failures are shown
    as a blocking error naming the failure class.

    Returns:
        True if the operation succeeded
    """
    if result.ok:
        if success_message:
            st.success(success_message)
        return True

    handle_error(result.error)
    return False


def safe_execute(
    func: Callable[..., T],
    *args,
    default: Optional[T] = None,
    error_message: Optional[str] = None,
    reraise: bool = False,
    **kwargs,
) -> Optional[T]:
    """
    Execute a function with automatic error handling.

    Usage:
        backup = safe_execute(
            parse_backup,
            raw_text, "hospital_backup",
            default=None,
            error_message="The selected file is not a valid backup"
        )
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        handle_error(e, user_message=error_message)
        if reraise:
            raise
        return default


class ErrorContext:
    """
    Context manager for error handling with automatic logging and user feedback.

    Usage:
        with ErrorContext("Restoring hospital backup", recoverable=True):
            payload = parse_backup(text, "hospital_backup", hospital.id)

        # On error, logs and shows: "Error during: Restoring hospital backup"
    """

    def __init__(
        self,
        operation: str,
        recoverable: bool = True,
        show_success: bool = False,
        success_message: Optional[str] = None,
    ):
        self.operation = operation
        self.recoverable = recoverable
        self.show_success = show_success
        self.success_message = success_message

    def __enter__(self) -> ErrorContext:
        logger.info(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            if isinstance(exc_val, SkillTrackerError):
                handle_error(exc_val)
            else:
                handle_error(
                    exc_val,
                    user_message=f"Error during: {self.operation}",
                )

            # Suppress exception if recoverable
            return self.recoverable
        else:
            logger.info(f"Completed: {self.operation}")
            if self.show_success:
                st.success(self.success_message or f"{self.operation} completed")

        return False
