# =============================================================================
# skill_core/errors/__init__.py
# Centralized Error Handling for the Staff Skill Tracker
# =============================================================================

from .exceptions import (
    SkillTrackerError,
    DataValidationError,
    EntityNotFoundError,
    BackupValidationError,
    LocalCacheError,
    RemoteStoreError,
    PolicyRejectionError,
    VerificationError,
    BlobStorageError,
    ConfigurationError,
)

from .results import (
    OperationResult,
    UploadResult,
)

from .handlers import (
    handle_error,
    present_result,
    safe_execute,
    ErrorContext,
)

__all__ = [
    # Exceptions
    "SkillTrackerError",
    "DataValidationError",
    "EntityNotFoundError",
    "BackupValidationError",
    "LocalCacheError",
    "RemoteStoreError",
    "PolicyRejectionError",
    "VerificationError",
    "BlobStorageError",
    "ConfigurationError",
    # Results
    "OperationResult",
    "UploadResult",
    # Handlers
    "handle_error",
    "present_result",
    "safe_execute",
    "ErrorContext",
]
