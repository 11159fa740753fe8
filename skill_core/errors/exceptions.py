# =============================================================================
# skill_core/errors/exceptions.py
# Custom Exception Hierarchy for the Staff Skill Tracker
# =============================================================================

from typing import Optional, Dict, Any


class SkillTrackerError(Exception):
    """
    Base exception for all Staff Skill Tracker errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "SYNC_002")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "ST_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# DATA LAYER EXCEPTIONS
# =============================================================================

class DataValidationError(SkillTrackerError):
    """Raised when a record fails validation before it is written"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if expected:
            details["expected"] = expected
        if actual is not None:
            details["actual"] = actual

        super().__init__(
            message=message,
            code="DATA_001",
            details=details,
            **kwargs,
        )


class EntityNotFoundError(SkillTrackerError):
    """Raised when a mutation targets a hospital/department/staff/... that does not exist"""

    def __init__(
        self,
        entity: str,
        entity_id: Optional[str] = None,
        message: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["entity"] = entity
        if entity_id is not None:
            details["entity_id"] = entity_id

        super().__init__(
            message=message or f"{entity.capitalize()} not found",
            code="DATA_002",
            details=details,
            **kwargs,
        )
        self.entity = entity
        self.entity_id = entity_id


class BackupValidationError(SkillTrackerError):
    """Raised when an imported backup file is rejected before any mutation"""

    def __init__(
        self,
        message: str,
        expected_type: Optional[str] = None,
        actual_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if expected_type:
            details["expected_type"] = expected_type
        if actual_type is not None:
            details["actual_type"] = actual_type

        super().__init__(
            message=message,
            code="DATA_003",
            details=details,
            **kwargs,
        )


# =============================================================================
# STORAGE EXCEPTIONS
# =============================================================================

class LocalCacheError(SkillTrackerError):
    """Raised when the local blob store is misused (e.g. not initialized)"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, code="CACHE_001", **kwargs)


class RemoteStoreError(SkillTrackerError):
    """Raised for network or unexpected failures talking to the remote document store"""

    def __init__(
        self,
        message: str,
        remote_code: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if remote_code:
            details["remote_code"] = remote_code

        super().__init__(
            message=message,
            code=kwargs.pop("code", "SYNC_001"),
            details=details,
            **kwargs,
        )
        self.remote_code = remote_code


class PolicyRejectionError(RemoteStoreError):
    """Raised when the remote store's access policy (row level security) rejects a write"""

    def __init__(self, message: str, remote_code: Optional[str] = None, **kwargs):
        kwargs.setdefault("code", "SYNC_002")
        super().__init__(message=message, remote_code=remote_code, **kwargs)


class VerificationError(PolicyRejectionError):
    """
    Raised when a destructive write reported success but a verification read
    shows the entity is still present remotely.
    """

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if entity:
            details["entity"] = entity
        if entity_id is not None:
            details["entity_id"] = entity_id

        kwargs.setdefault("code", "SYNC_003")
        super().__init__(message=message, details=details, **kwargs)


class BlobStorageError(SkillTrackerError):
    """Raised when uploading, downloading or deleting a stored file fails"""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if path:
            details["path"] = path

        super().__init__(
            message=message,
            code="BLOB_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(SkillTrackerError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
