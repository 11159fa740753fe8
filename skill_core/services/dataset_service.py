# =============================================================================
# skill_core/services/dataset_service.py
# Structural mutations: hospitals, departments, staff, assessments, patients
# =============================================================================
"""
DatasetService - one method per user action on the organisational tree.

Every method is a full read-modify-write cycle. Deletes and resets are
verified by re-reading the document; everything else trusts the write.
Incoming records are copied, so callers keep their own objects unchanged.
"""

from __future__ import annotations
import copy
from typing import Any, Dict, List, Mapping, Optional

from skill_core.data import mutations
from skill_core.data.models import (
    Assessment,
    ChecklistTemplate,
    Dataset,
    Department,
    ExamSubmission,
    Hospital,
    Patient,
    SkillCategory,
    StaffMember,
    WorkLog,
)
from skill_core.errors import OperationResult
from .base_service import BaseService

DELETE_REJECTED_MESSAGE = (
    "Deleting from the database failed. Likely cause: row level security policies (RLS)."
)
RESET_REJECTED_MESSAGE = (
    "Resetting the hospital in the database failed. Likely cause: row level security policies (RLS)."
)


def _with_id(record):
    record = copy.deepcopy(record)
    if not record.id:
        record.id = mutations.new_id()
    return record


class DatasetService(BaseService):
    """
    Mutation operators for the hospital / department / staff tree.

    Usage:
        service = DatasetService(engine)
        result = service.upsert_department(Department(name="ICU"), hospital_id)
        if result.ok:
            department_id = result.data
    """

    # =========================================================================
    # HOSPITALS
    # =========================================================================

    def upsert_hospital(self, hospital: Hospital) -> OperationResult:
        hospital = _with_id(hospital)
        return self._update(
            f"Saving hospital {hospital.id}",
            lambda ds: mutations.upsert_hospital(ds, hospital),
            data=hospital.id,
        )

    def delete_hospital(self, hospital_id: str) -> OperationResult:
        """Delete a hospital and, once the delete is confirmed, every file it owned."""
        return self._delete(
            f"Deleting hospital {hospital_id}",
            lambda ds: mutations.delete_hospital(ds, hospital_id),
            still_present=lambda ds: ds.find_hospital(hospital_id) is not None,
            failure_message=DELETE_REJECTED_MESSAGE,
            entity="hospital",
            entity_id=hospital_id,
        )

    def reset_hospital_departments(self, hospital_id: str) -> OperationResult:
        """Remove every department of a hospital; templates and hospital materials stay."""
        def still_present(ds: Dataset) -> bool:
            hospital = ds.find_hospital(hospital_id)
            return hospital is not None and len(hospital.departments) > 0

        return self._delete(
            f"Resetting hospital {hospital_id}",
            lambda ds: mutations.reset_hospital_departments(ds, hospital_id),
            still_present=still_present,
            failure_message=RESET_REJECTED_MESSAGE,
            entity="hospital",
            entity_id=hospital_id,
        )

    # =========================================================================
    # DEPARTMENTS
    # =========================================================================

    def upsert_department(self, department: Department, hospital_id: str) -> OperationResult:
        department = _with_id(department)
        return self._update(
            f"Saving department {department.id}",
            lambda ds: mutations.upsert_department(ds, department, hospital_id),
            data=department.id,
        )

    def update_department(self, hospital_id: str, department_id: str, **changes: Any) -> OperationResult:
        """
        Change department fields, e.g. ``update_department(h, d, bed_count=12)``.
        The id and staff list cannot be changed this way.
        """
        return self._update(
            f"Updating department {department_id}",
            lambda ds: mutations.update_department(ds, hospital_id, department_id, changes),
        )

    def delete_department(self, department_id: str) -> OperationResult:
        return self._delete(
            f"Deleting department {department_id}",
            lambda ds: mutations.delete_department(ds, department_id),
            still_present=lambda ds: ds.find_department(department_id)[1] is not None,
            failure_message=DELETE_REJECTED_MESSAGE,
            entity="department",
            entity_id=department_id,
        )

    # =========================================================================
    # STAFF
    # =========================================================================

    def upsert_staff(self, staff: StaffMember, department_id: str) -> OperationResult:
        staff = _with_id(staff)
        return self._update(
            f"Saving staff member {staff.id}",
            lambda ds: mutations.upsert_staff(ds, staff, department_id),
            data=staff.id,
        )

    def update_staff(self, staff_id: str, **changes: Any) -> OperationResult:
        """Change staff fields; the id and assessments cannot be changed this way."""
        return self._update(
            f"Updating staff member {staff_id}",
            lambda ds: mutations.update_staff(ds, staff_id, changes),
        )

    def delete_staff(self, staff_id: str) -> OperationResult:
        return self._delete(
            f"Deleting staff member {staff_id}",
            lambda ds: mutations.delete_staff(ds, staff_id),
            still_present=lambda ds: ds.find_staff(staff_id)[2] is not None,
            failure_message=DELETE_REJECTED_MESSAGE,
            entity="staff",
            entity_id=staff_id,
        )

    # =========================================================================
    # ASSESSMENTS & WORK LOGS
    # =========================================================================

    def upsert_assessment(
        self,
        assessment: Assessment,
        staff_id: str,
        template: Optional[ChecklistTemplate] = None,
    ) -> OperationResult:
        """
        Save the staff member's assessment for its month and year.

        Scores are clamped to the template's bounds (or the assessment's own
        bounds when no template is given) before anything is written.
        """
        assessment = copy.deepcopy(assessment)
        return self._update(
            f"Saving assessment {assessment.month} {assessment.year} for {staff_id}",
            lambda ds: mutations.upsert_assessment(ds, assessment, staff_id, template),
        )

    def update_assessment_messages(
        self,
        staff_id: str,
        month: str,
        year: int,
        supervisor_message: Optional[str] = None,
        manager_message: Optional[str] = None,
    ) -> OperationResult:
        return self._update(
            f"Saving assessment messages for {staff_id}",
            lambda ds: mutations.update_assessment_messages(
                ds, staff_id, month, year, supervisor_message, manager_message
            ),
        )

    def submit_exam(
        self,
        staff_id: str,
        month: str,
        year: int,
        submission: ExamSubmission,
    ) -> OperationResult:
        submission = copy.deepcopy(submission)
        return self._update(
            f"Submitting exam {submission.exam_template_id} for {staff_id}",
            lambda ds: mutations.submit_exam(ds, staff_id, month, year, submission),
            data=submission.id,
        )

    def upsert_work_log(self, staff_id: str, work_log: WorkLog) -> OperationResult:
        work_log = copy.deepcopy(work_log)
        return self._update(
            f"Saving work log {work_log.month} {work_log.year} for {staff_id}",
            lambda ds: mutations.upsert_work_log(ds, staff_id, work_log),
        )

    def import_assessments(
        self,
        hospital_id: str,
        department_id: str,
        data: Mapping[str, Mapping[str, List[SkillCategory]]],
        year: int,
    ) -> OperationResult:
        """
        Bulk import parsed checklist data ``{staff name: {month: categories}}``.

        Returns:
            OperationResult whose data holds ``staff_created`` and
            ``assessments_written`` counts
        """
        data = copy.deepcopy(data)
        stats: Dict[str, int] = {}

        def mutate(ds: Dataset) -> None:
            stats.update(mutations.import_assessments(ds, hospital_id, department_id, data, year))

        return self._update(f"Importing assessments into department {department_id}", mutate, data=stats)

    # =========================================================================
    # PATIENTS
    # =========================================================================

    def add_patient(self, hospital_id: str, department_id: str, patient: Patient) -> OperationResult:
        patient = _with_id(patient)
        return self._update(
            f"Adding patient {patient.id}",
            lambda ds: mutations.add_patient(ds, hospital_id, department_id, patient),
            data=patient.id,
        )

    def delete_patient(self, hospital_id: str, department_id: str, patient_id: str) -> OperationResult:
        """Delete a patient; files shared in their chat are removed after the delete is confirmed."""
        return self._delete(
            f"Deleting patient {patient_id}",
            lambda ds: mutations.delete_patient(ds, hospital_id, department_id, patient_id),
            still_present=lambda ds: ds.find_patient(patient_id, hospital_id, department_id)[2] is not None,
            failure_message=DELETE_REJECTED_MESSAGE,
            entity="patient",
            entity_id=patient_id,
        )
