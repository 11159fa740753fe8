# =============================================================================
# skill_core/services/__init__.py
# Service Layer for the Staff Skill Tracker
# Separates dataset mutations from UI presentation
# =============================================================================
"""
Service Layer for the Staff Skill Tracker

Every user action maps to one service method, which runs a full
fetch / mutate / write cycle through the SyncEngine and returns an
OperationResult (``result.ok``, ``result.error``).

Usage Example:
-------------
    from skill_core.offline import create_sync_engine
    from skill_core.services import DatasetService, ContentService, FileUpload

    engine = create_sync_engine()
    structure = DatasetService(engine)
    content = ContentService(engine)

    result = structure.delete_hospital(hospital_id)
    if not result.ok:
        st.error(result.error.message)

    upload = FileUpload("guide.pdf", "application/pdf", data_url)
    content.add_accreditation_material(hospital_id, upload)
"""

from skill_core.errors import OperationResult, UploadResult

from .base_service import BaseService
from .dataset_service import DatasetService
from .content_service import ContentService, FileUpload
from .backup_service import (
    BackupService,
    export_full,
    export_hospital,
    export_department,
    backup_file_name,
    dump_backup,
    parse_backup,
)
from . import report_service

__all__ = [
    # Base classes
    "BaseService",
    "OperationResult",
    "UploadResult",
    # Mutation operators
    "DatasetService",
    "ContentService",
    "FileUpload",
    # Backups
    "BackupService",
    "export_full",
    "export_hospital",
    "export_department",
    "backup_file_name",
    "dump_backup",
    "parse_backup",
    # Read-only views
    "report_service",
]
