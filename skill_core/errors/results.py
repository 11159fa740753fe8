# =============================================================================
# skill_core/errors/results.py
# Result containers returned by storage adapters and mutation operators
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional

from .exceptions import SkillTrackerError, PolicyRejectionError


@dataclass
class OperationResult:
    """
    Outcome of a dataset mutation or storage call.

    ``error`` is ``None`` on success. Failures carry a ``SkillTrackerError``
    whose ``message`` is meant to be shown to the user; a
    ``PolicyRejectionError`` (or subclass) means the remote access policy
    rejected the write.
    """
    error: Optional[SkillTrackerError] = None
    data: Optional[Any] = None
    cleanup: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def policy_rejected(self) -> bool:
        return isinstance(self.error, PolicyRejectionError)

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, data: Any = None, cleanup: Any = None) -> OperationResult:
        return cls(error=None, data=data, cleanup=cleanup)

    @classmethod
    def failure(cls, error: SkillTrackerError) -> OperationResult:
        return cls(error=error)

    @classmethod
    def from_exception(cls, e: Exception) -> OperationResult:
        """Wrap any exception; foreign ones become generic SkillTrackerErrors."""
        if isinstance(e, SkillTrackerError):
            return cls(error=e)
        return cls(error=SkillTrackerError(f"Unexpected error: {e}", code="EXCEPTION"))


@dataclass
class UploadResult:
    """Outcome of a blob upload: ``path`` is empty whenever ``error`` is set."""
    path: str = ""
    error: Optional[SkillTrackerError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.path)

    def __bool__(self) -> bool:
        return self.ok
