# =============================================================================
# skill_core/services/backup_service.py
# JSON backups of the whole dataset, one hospital or one department
# =============================================================================
"""
Backup files are plain JSON tagged with a ``type`` discriminator:

    {"type": "full_backup_metadata_only", "hospitals": [...]}
    {"type": "hospital_backup", "hospitalId": "...", "data": {...}}
    {"type": "department_backup", "hospitalId": "...", "departmentId": "...", "data": {...}}

Only metadata travels in a backup; stored files stay in the bucket and are
referenced by path. A restore replaces its target wholesale.
"""

from __future__ import annotations
import json
from datetime import date
from typing import Any, Dict, Mapping, Optional, Union

from skill_core.data.models import Dataset, Department, Hospital
from skill_core.errors import (
    BackupValidationError,
    DataValidationError,
    EntityNotFoundError,
    OperationResult,
)
from .base_service import BaseService

FULL_BACKUP = "full_backup_metadata_only"
HOSPITAL_BACKUP = "hospital_backup"
DEPARTMENT_BACKUP = "department_backup"

BACKUP_TYPES = (FULL_BACKUP, HOSPITAL_BACKUP, DEPARTMENT_BACKUP)


# =============================================================================
# EXPORT
# =============================================================================

def export_full(dataset: Dataset) -> Dict[str, Any]:
    return {"type": FULL_BACKUP, "hospitals": dataset.to_document()}


def export_hospital(hospital: Hospital) -> Dict[str, Any]:
    return {"type": HOSPITAL_BACKUP, "hospitalId": hospital.id, "data": hospital.to_dict()}


def export_department(hospital_id: str, department: Department) -> Dict[str, Any]:
    return {
        "type": DEPARTMENT_BACKUP,
        "hospitalId": hospital_id,
        "departmentId": department.id,
        "data": department.to_dict(),
    }


def backup_file_name(payload: Mapping[str, Any], name: Optional[str] = None, today: Optional[date] = None) -> str:
    """Download file name for a backup payload (``name`` is the hospital/department name)."""
    label = "_".join((name or "").split())
    kind = payload.get("type")
    if kind == HOSPITAL_BACKUP:
        return f"پشتیبان_بیمارستان_{label}.json"
    if kind == DEPARTMENT_BACKUP:
        return f"پشتیبان_بخش_{label}.json"
    return f"skill_assessment_backup_{(today or date.today()).isoformat()}.json"


def dump_backup(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2)


# =============================================================================
# PARSE / VALIDATE
# =============================================================================

def parse_backup(
    source: Union[str, bytes, Mapping[str, Any]],
    expected_type: str,
    expected_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Validate a backup before anything is restored.

    Args:
        source: File contents (JSON text) or an already-decoded mapping
        expected_type: Required ``type`` discriminator
        expected_id: Hospital id (hospital backups) or department id
            (department backups) the file must belong to

    Returns:
        The decoded payload

    Raises:
        BackupValidationError: on bad JSON, a wrong type, a foreign id or a
            malformed body
    """
    if expected_type not in BACKUP_TYPES:
        raise ValueError(f"Unknown backup type: {expected_type}")

    if isinstance(source, (str, bytes)):
        try:
            payload = json.loads(source)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise BackupValidationError(f"The backup file is not valid JSON: {e}", expected_type=expected_type)
    else:
        payload = source

    if not isinstance(payload, Mapping):
        raise BackupValidationError(
            "The backup file must contain a JSON object",
            expected_type=expected_type,
            actual_type=type(payload).__name__,
        )

    actual_type = payload.get("type")
    if actual_type != expected_type:
        raise BackupValidationError(
            f"This file is not a valid {expected_type} file (found type: {actual_type!r})",
            expected_type=expected_type,
            actual_type=actual_type,
        )

    if expected_type == FULL_BACKUP:
        if not isinstance(payload.get("hospitals"), list):
            raise BackupValidationError(
                "The backup file has no hospital list",
                expected_type=expected_type,
                actual_type=actual_type,
            )
        return dict(payload)

    id_key = "hospitalId" if expected_type == HOSPITAL_BACKUP else "departmentId"
    if expected_id is not None and payload.get(id_key) != expected_id:
        raise BackupValidationError(
            f"This file belongs to another {'hospital' if expected_type == HOSPITAL_BACKUP else 'department'} "
            f"({payload.get(id_key)!r}, expected {expected_id!r})",
            expected_type=expected_type,
            actual_type=actual_type,
        )
    if not isinstance(payload.get("data"), Mapping):
        raise BackupValidationError(
            "The backup file has no data object",
            expected_type=expected_type,
            actual_type=actual_type,
        )
    return dict(payload)


def _load(model, data: Any, expected_type: str):
    try:
        return model.from_dict(data)
    except (DataValidationError, TypeError, AttributeError) as e:
        raise BackupValidationError(f"The backup data is malformed: {e}", expected_type=expected_type)


# =============================================================================
# RESTORE
# =============================================================================

class BackupService(BaseService):
    """
    Restores backups through the sync engine.

    Usage:
        service = BackupService(engine)
        result = service.restore_hospital(hospital_id, uploaded_text)
    """

    def export_current(self) -> Dict[str, Any]:
        """Full backup of the dataset as currently stored."""
        return export_full(self.engine.fetch_dataset())

    def restore_full(self, source: Union[str, bytes, Mapping[str, Any]]) -> OperationResult:
        """Replace the entire dataset with a full backup."""
        try:
            payload = parse_backup(source, FULL_BACKUP)
            dataset = Dataset.from_document(payload["hospitals"])
        except BackupValidationError as e:
            return OperationResult.failure(e)
        except DataValidationError as e:
            return OperationResult.failure(
                BackupValidationError(f"The backup data is malformed: {e.message}", expected_type=FULL_BACKUP)
            )

        with self.log_operation(f"Restoring full backup ({len(dataset)} hospitals)"):
            result = self.engine.replace_all(dataset)
        self._log_result("Full restore", result)
        return result

    def restore_hospital(
        self,
        hospital_id: str,
        source: Union[str, bytes, Mapping[str, Any]],
    ) -> OperationResult:
        """Replace one existing hospital with the contents of its backup."""
        try:
            payload = parse_backup(source, HOSPITAL_BACKUP, expected_id=hospital_id)
            hospital = _load(Hospital, payload["data"], HOSPITAL_BACKUP)
        except BackupValidationError as e:
            return OperationResult.failure(e)
        hospital.id = hospital_id

        def mutate(ds: Dataset) -> None:
            for index, existing in enumerate(ds.hospitals):
                if existing.id == hospital_id:
                    ds.hospitals[index] = hospital
                    return
            raise EntityNotFoundError("hospital", hospital_id, message="The hospital was not found in the database")

        return self._update(f"Restoring hospital {hospital_id}", mutate)

    def restore_department(
        self,
        hospital_id: str,
        department_id: str,
        source: Union[str, bytes, Mapping[str, Any]],
    ) -> OperationResult:
        """Replace one existing department with the contents of its backup."""
        try:
            payload = parse_backup(source, DEPARTMENT_BACKUP, expected_id=department_id)
            department = _load(Department, payload["data"], DEPARTMENT_BACKUP)
        except BackupValidationError as e:
            return OperationResult.failure(e)
        department.id = department_id

        def mutate(ds: Dataset) -> None:
            hospital = ds.find_hospital(hospital_id)
            if hospital is None:
                raise EntityNotFoundError("hospital", hospital_id, message="The hospital was not found")
            for index, existing in enumerate(hospital.departments):
                if existing.id == department_id:
                    hospital.departments[index] = department
                    return
            raise EntityNotFoundError(
                "department", department_id, message="The department was not found in this hospital"
            )

        return self._update(f"Restoring department {department_id}", mutate)
