# =============================================================================
# skill_core/services/content_service.py
# Materials, banners, messages, needs assessments and templates
# =============================================================================
"""
ContentService - user actions that attach content to hospitals and
departments.

Operations that carry a file upload it first. If the upload fails nothing
is written and the upload error is returned. Files of removed content are
deleted in the background after the dataset write succeeds.
"""

from __future__ import annotations
import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Mapping, Optional, Union

from skill_core.data import mutations
from skill_core.data.models import (
    AdminMessage,
    ChatMessage,
    ChecklistTemplate,
    ExamTemplate,
    FileReference,
    NeedsAssessmentTopic,
    NewsBanner,
    TrainingMaterial,
)
from skill_core.errors import DataValidationError, OperationResult, UploadResult
from .base_service import BaseService

CHAT_SENDERS = ("patient", "manager")
ADMIN_SENDERS = ("hospital", "admin")


@dataclass
class FileUpload:
    """A file picked in the UI: raw bytes or a data URL."""
    name: str
    content_type: str
    data: Union[bytes, str]
    description: Optional[str] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ContentService(BaseService):
    """
    Mutation operators for content attached to hospitals and departments.

    Usage:
        service = ContentService(engine, blobs)
        upload = FileUpload("handbook.pdf", "application/pdf", data)
        result = service.add_training_material(hospital_id, dept_id, "مهر", upload)
    """

    def __init__(self, engine, blobs=None):
        super().__init__(engine)
        self.blobs = blobs if blobs is not None else engine.blobs

    # =========================================================================
    # UPLOAD HELPERS
    # =========================================================================

    def _upload(self, upload: FileUpload) -> UploadResult:
        self._update_progress(10, f"Uploading {upload.name}")
        result = self.blobs.upload(upload.data, upload.name, upload.content_type)
        self._update_progress(60, "Saving")
        return result

    def _upload_material(self, upload: FileUpload):
        """Upload a file and build its material record: (material, error)."""
        stored = self._upload(upload)
        if not stored.ok:
            return None, stored.error
        material = TrainingMaterial(
            id=mutations.new_id(),
            name=upload.name,
            type=upload.content_type,
            storage_path=stored.path,
            description=upload.description,
        )
        return material, None

    def _upload_reference(self, upload: Optional[FileUpload]):
        if upload is None:
            return None, None
        stored = self._upload(upload)
        if not stored.ok:
            return None, stored.error
        reference = FileReference(
            id=f"file-{mutations.new_id()}",
            name=upload.name,
            type=upload.content_type,
            storage_path=stored.path,
        )
        return reference, None

    # =========================================================================
    # TRAINING MATERIALS
    # =========================================================================

    def add_training_material(
        self,
        hospital_id: str,
        department_id: str,
        month: str,
        upload: FileUpload,
    ) -> OperationResult:
        """Attach a training file to a department, grouped under ``month``."""
        material, error = self._upload_material(upload)
        if error is not None:
            return OperationResult.failure(error)
        return self._update(
            f"Adding training material {material.name}",
            lambda ds: mutations.add_training_material(ds, hospital_id, department_id, month, material),
            data=material.id,
        )

    def add_hospital_training_material(
        self,
        hospital_id: str,
        month: str,
        upload: FileUpload,
    ) -> OperationResult:
        material, error = self._upload_material(upload)
        if error is not None:
            return OperationResult.failure(error)
        return self._update(
            f"Adding hospital training material {material.name}",
            lambda ds: mutations.add_hospital_training_material(ds, hospital_id, month, material),
            data=material.id,
        )

    def delete_training_material(
        self,
        hospital_id: str,
        material_id: str,
        month: Optional[str] = None,
        department_id: Optional[str] = None,
    ) -> OperationResult:
        return self._update(
            f"Deleting training material {material_id}",
            lambda ds: mutations.delete_training_material(ds, hospital_id, material_id, month, department_id),
        )

    def update_material_description(
        self,
        hospital_id: str,
        material_id: str,
        description: str,
        department_id: Optional[str] = None,
    ) -> OperationResult:
        return self._update(
            f"Updating description of material {material_id}",
            lambda ds: mutations.update_material_description(
                ds, hospital_id, material_id, description, department_id
            ),
        )

    # =========================================================================
    # ACCREDITATION & PATIENT EDUCATION
    # =========================================================================

    def add_accreditation_material(self, hospital_id: str, upload: FileUpload) -> OperationResult:
        material, error = self._upload_material(upload)
        if error is not None:
            return OperationResult.failure(error)
        return self._update(
            f"Adding accreditation material {material.name}",
            lambda ds: mutations.add_accreditation_material(ds, hospital_id, material),
            data=material.id,
        )

    def delete_accreditation_material(self, hospital_id: str, material_id: str) -> OperationResult:
        return self._update(
            f"Deleting accreditation material {material_id}",
            lambda ds: mutations.delete_accreditation_material(ds, hospital_id, material_id),
        )

    def add_patient_education_material(
        self,
        hospital_id: str,
        department_id: str,
        upload: FileUpload,
    ) -> OperationResult:
        material, error = self._upload_material(upload)
        if error is not None:
            return OperationResult.failure(error)
        return self._update(
            f"Adding patient education material {material.name}",
            lambda ds: mutations.add_patient_education_material(ds, hospital_id, department_id, material),
            data=material.id,
        )

    def delete_patient_education_material(
        self,
        hospital_id: str,
        department_id: str,
        material_id: str,
    ) -> OperationResult:
        return self._update(
            f"Deleting patient education material {material_id}",
            lambda ds: mutations.delete_patient_education_material(
                ds, hospital_id, department_id, material_id
            ),
        )

    # =========================================================================
    # NEWS BANNERS
    # =========================================================================

    def add_news_banner(
        self,
        hospital_id: str,
        title: str,
        image: FileUpload,
        description: Optional[str] = None,
    ) -> OperationResult:
        stored = self._upload(image)
        if not stored.ok:
            return OperationResult.failure(stored.error)
        banner = NewsBanner(
            id=mutations.new_id(),
            title=title,
            description=description,
            image_storage_path=stored.path,
        )
        return self._update(
            f"Adding news banner {title}",
            lambda ds: mutations.add_news_banner(ds, hospital_id, banner),
            data=banner.id,
        )

    def update_news_banner(
        self,
        hospital_id: str,
        banner_id: str,
        title: str,
        description: Optional[str] = None,
    ) -> OperationResult:
        return self._update(
            f"Updating news banner {banner_id}",
            lambda ds: mutations.update_news_banner(ds, hospital_id, banner_id, title, description),
        )

    def delete_news_banner(self, hospital_id: str, banner_id: str) -> OperationResult:
        return self._update(
            f"Deleting news banner {banner_id}",
            lambda ds: mutations.delete_news_banner(ds, hospital_id, banner_id),
        )

    # =========================================================================
    # MESSAGES
    # =========================================================================

    def send_chat_message(
        self,
        hospital_id: str,
        department_id: str,
        patient_id: str,
        sender: str,
        text: Optional[str] = None,
        upload: Optional[FileUpload] = None,
    ) -> OperationResult:
        """Append a patient / manager chat message, optionally with a file."""
        if sender not in CHAT_SENDERS:
            return OperationResult.failure(DataValidationError(
                f"Invalid chat sender: {sender!r}", field="sender", expected=" | ".join(CHAT_SENDERS)
            ))
        if not text and upload is None:
            return OperationResult.failure(DataValidationError("A message needs text or a file", field="text"))

        reference, error = self._upload_reference(upload)
        if error is not None:
            return OperationResult.failure(error)

        message = ChatMessage(id=mutations.new_id(), sender=sender, timestamp=_now(), text=text, file=reference)
        return self._update(
            f"Sending chat message to patient {patient_id}",
            lambda ds: mutations.send_chat_message(ds, hospital_id, department_id, patient_id, message),
            data=message.id,
        )

    def send_admin_message(
        self,
        hospital_id: str,
        sender: str,
        text: Optional[str] = None,
        upload: Optional[FileUpload] = None,
    ) -> OperationResult:
        """Append a hospital / admin message, optionally with a file."""
        if sender not in ADMIN_SENDERS:
            return OperationResult.failure(DataValidationError(
                f"Invalid message sender: {sender!r}", field="sender", expected=" | ".join(ADMIN_SENDERS)
            ))
        if not text and upload is None:
            return OperationResult.failure(DataValidationError("A message needs text or a file", field="text"))

        reference, error = self._upload_reference(upload)
        if error is not None:
            return OperationResult.failure(error)

        message = AdminMessage(id=mutations.new_id(), sender=sender, timestamp=_now(), text=text, file=reference)
        return self._update(
            f"Sending {sender} message for hospital {hospital_id}",
            lambda ds: mutations.send_admin_message(ds, hospital_id, message),
            data=message.id,
        )

    # =========================================================================
    # NEEDS ASSESSMENT
    # =========================================================================

    def update_needs_assessment_topics(
        self,
        hospital_id: str,
        month: str,
        year: int,
        topics: List[NeedsAssessmentTopic],
    ) -> OperationResult:
        topics = copy.deepcopy(list(topics))
        for topic in topics:
            if not topic.id:
                topic.id = mutations.new_id()
        return self._update(
            f"Updating needs assessment topics for {month} {year}",
            lambda ds: mutations.update_needs_assessment_topics(ds, hospital_id, month, year, topics),
        )

    def submit_needs_assessment_response(
        self,
        hospital_id: str,
        staff_id: str,
        month: str,
        year: int,
        responses: Mapping[str, str],
    ) -> OperationResult:
        responses = dict(responses)
        return self._update(
            f"Submitting needs assessment response of {staff_id}",
            lambda ds: mutations.submit_needs_assessment_response(
                ds, hospital_id, staff_id, month, year, responses
            ),
        )

    # =========================================================================
    # TEMPLATES
    # =========================================================================

    def upsert_checklist_template(self, hospital_id: str, template: ChecklistTemplate) -> OperationResult:
        template = copy.deepcopy(template)
        if not template.id:
            template.id = mutations.new_id()
        return self._update(
            f"Saving checklist template {template.name}",
            lambda ds: mutations.upsert_checklist_template(ds, hospital_id, template),
            data=template.id,
        )

    def delete_checklist_template(self, hospital_id: str, template_id: str) -> OperationResult:
        return self._update(
            f"Deleting checklist template {template_id}",
            lambda ds: mutations.delete_checklist_template(ds, hospital_id, template_id),
        )

    def upsert_exam_template(self, hospital_id: str, template: ExamTemplate) -> OperationResult:
        template = copy.deepcopy(template)
        if not template.id:
            template.id = mutations.new_id()
        return self._update(
            f"Saving exam template {template.name}",
            lambda ds: mutations.upsert_exam_template(ds, hospital_id, template),
            data=template.id,
        )

    def delete_exam_template(self, hospital_id: str, template_id: str) -> OperationResult:
        return self._update(
            f"Deleting exam template {template_id}",
            lambda ds: mutations.delete_exam_template(ds, hospital_id, template_id),
        )
