# =============================================================================
# skill_core/data/mutations.py
# Pure, in-place edits of a Dataset
# =============================================================================
"""
Each function performs one semantic change on an in-memory Dataset and
returns the blob paths it orphaned (possibly empty). Nothing here touches
the network or the local cache; the sync engine runs these inside its
fetch / write cycle.

Missing parents raise EntityNotFoundError, bad input raises
DataValidationError. Deleting something that is already gone is a no-op.
"""

from __future__ import annotations
import logging
import math
import time
import uuid
from dataclasses import fields
from typing import Any, Dict, Iterable, List, Mapping, Optional

from skill_core.data.models import (
    DEFAULT_MAX_SCORE,
    DEFAULT_MIN_SCORE,
    MONTHS,
    AdminMessage,
    Assessment,
    ChatMessage,
    ChecklistTemplate,
    Dataset,
    Department,
    ExamSubmission,
    ExamTemplate,
    Hospital,
    MonthlyNeedsAssessment,
    MonthlyTraining,
    NeedsAssessmentResponse,
    NeedsAssessmentTopic,
    NewsBanner,
    Patient,
    SkillCategory,
    StaffMember,
    TrainingMaterial,
    WorkLog,
)
from skill_core.errors import DataValidationError, EntityNotFoundError

logger = logging.getLogger(__name__)

# Title given to staff members created by a bulk import
IMPORTED_STAFF_TITLE = "وارد شده از اکسل"


def new_id() -> str:
    """Millisecond timestamp plus a short random suffix."""
    return f"{int(time.time() * 1000)}{uuid.uuid4().hex[:6]}"


def validate_month(month: str) -> str:
    if month not in MONTHS:
        raise DataValidationError(
            f"Unknown month: {month!r}",
            field="month",
            expected="one of the 12 calendar month names",
            actual=month,
        )
    return month


# =============================================================================
# LOOKUPS
# =============================================================================

def _hospital(dataset: Dataset, hospital_id: str) -> Hospital:
    hospital = dataset.find_hospital(hospital_id)
    if hospital is None:
        raise EntityNotFoundError("Hospital", hospital_id)
    return hospital


def _department(dataset: Dataset, department_id: str, hospital_id: Optional[str] = None) -> Department:
    _, department = dataset.find_department(department_id, hospital_id)
    if department is None:
        raise EntityNotFoundError("Department", department_id)
    return department


def _staff(dataset: Dataset, staff_id: str) -> StaffMember:
    _, _, staff = dataset.find_staff(staff_id)
    if staff is None:
        raise EntityNotFoundError("Staff member", staff_id)
    return staff


def _patient(dataset: Dataset, hospital_id: str, department_id: str, patient_id: str) -> Patient:
    _, _, patient = dataset.find_patient(patient_id, hospital_id, department_id)
    if patient is None:
        raise EntityNotFoundError("Patient", patient_id)
    return patient


def _replace_or_append(items: List[Any], item: Any, key: str = "id") -> None:
    for index, existing in enumerate(items):
        if getattr(existing, key) == getattr(item, key):
            items[index] = item
            return
    items.append(item)


def _apply_changes(record: Any, changes: Mapping[str, Any], protected: Iterable[str]) -> None:
    allowed = {f.name for f in fields(record)} - set(protected) - {"extra"}
    unknown = set(changes) - allowed
    if unknown:
        raise DataValidationError(
            f"Cannot update field(s): {', '.join(sorted(unknown))}",
            field=sorted(unknown)[0],
        )
    for name, value in changes.items():
        setattr(record, name, value)


# =============================================================================
# SCORES
# =============================================================================

def clamp_score(score: Any, min_score: Optional[float], max_score: Optional[float]) -> float:
    """
    Clamp one score into [min_score, max_score].

    Non-numeric and NaN scores count as 0 before clamping. A missing bound
    leaves that side open.
    """
    try:
        value = float(score)
    except (TypeError, ValueError):
        value = 0.0
    if math.isnan(value):
        value = 0.0

    if min_score is not None:
        value = max(float(min_score), value)
    if max_score is not None:
        value = min(float(max_score), value)
    return int(value) if value.is_integer() else value


def apply_score_bounds(
    assessment: Assessment,
    min_score: Optional[float] = None,
    max_score: Optional[float] = None,
) -> Assessment:
    """
    Clamp every item score of ``assessment`` in place.

    Bounds default to the assessment's own, then to the standard 0-4 scale.
    """
    low = assessment.min_score if min_score is None else min_score
    high = assessment.max_score if max_score is None else max_score
    if low is None:
        low = DEFAULT_MIN_SCORE
    if high is None:
        high = DEFAULT_MAX_SCORE
    if low > high:
        raise DataValidationError(
            f"Invalid score bounds: min {low} is greater than max {high}",
            field="minScore",
        )
    for category in assessment.skill_categories:
        for item in category.items:
            item.score = clamp_score(item.score, low, high)
    return assessment


# =============================================================================
# ORPHANED FILE COLLECTION
# =============================================================================

def _training_paths(monthly: Iterable[MonthlyTraining]) -> List[str]:
    return [m.storage_path for t in monthly for m in t.materials if m.storage_path]


def _patient_paths(patient: Patient) -> List[str]:
    return [c.file.storage_path for c in patient.chat_history if c.file and c.file.storage_path]


def collect_department_paths(department: Department) -> List[str]:
    """Every stored file owned by a department and its patients."""
    paths = _training_paths(department.training_materials)
    paths += [m.storage_path for m in department.patient_education_materials if m.storage_path]
    for patient in department.patients:
        paths += _patient_paths(patient)
    return paths


def collect_hospital_paths(hospital: Hospital) -> List[str]:
    """Every stored file owned by a hospital, its departments included."""
    paths = [m.storage_path for m in hospital.accreditation_materials if m.storage_path]
    paths += [b.image_storage_path for b in hospital.news_banners if b.image_storage_path]
    paths += _training_paths(hospital.training_materials)
    paths += [m.file.storage_path for m in hospital.admin_messages if m.file and m.file.storage_path]
    for department in hospital.departments:
        paths += collect_department_paths(department)
    return paths


# =============================================================================
# HOSPITALS
# =============================================================================

def upsert_hospital(dataset: Dataset, hospital: Hospital) -> None:
    _replace_or_append(dataset.hospitals, hospital)


def delete_hospital(dataset: Dataset, hospital_id: str) -> List[str]:
    hospital = dataset.find_hospital(hospital_id)
    if hospital is None:
        logger.warning(f"Attempted to delete hospital {hospital_id}, but it was not found")
        return []
    dataset.hospitals = [h for h in dataset.hospitals if h.id != hospital_id]
    return collect_hospital_paths(hospital)


def reset_hospital_departments(dataset: Dataset, hospital_id: str) -> List[str]:
    """Drop every department of a hospital (templates and materials stay)."""
    hospital = _hospital(dataset, hospital_id)
    paths: List[str] = []
    for department in hospital.departments:
        paths += collect_department_paths(department)
    hospital.departments = []
    return paths


# =============================================================================
# DEPARTMENTS
# =============================================================================

def upsert_department(dataset: Dataset, department: Department, hospital_id: str) -> None:
    _replace_or_append(_hospital(dataset, hospital_id).departments, department)


def update_department(
    dataset: Dataset,
    hospital_id: str,
    department_id: str,
    changes: Mapping[str, Any],
) -> None:
    department = _department(dataset, department_id, hospital_id)
    _apply_changes(department, changes, protected=("id", "staff"))


def delete_department(dataset: Dataset, department_id: str) -> List[str]:
    """Remove a department (from whichever hospital holds it) and its files."""
    paths: List[str] = []
    for hospital in dataset.hospitals:
        department = hospital.find_department(department_id)
        if department is None:
            continue
        paths += collect_department_paths(department)
        hospital.departments = [d for d in hospital.departments if d.id != department_id]
    return paths


# =============================================================================
# STAFF
# =============================================================================

def upsert_staff(dataset: Dataset, staff: StaffMember, department_id: str) -> None:
    _replace_or_append(_department(dataset, department_id).staff, staff)


def update_staff(dataset: Dataset, staff_id: str, changes: Mapping[str, Any]) -> None:
    _apply_changes(_staff(dataset, staff_id), changes, protected=("id", "assessments"))


def delete_staff(dataset: Dataset, staff_id: str) -> List[str]:
    for hospital in dataset.hospitals:
        for department in hospital.departments:
            department.staff = [s for s in department.staff if s.id != staff_id]
    return []


# =============================================================================
# ASSESSMENTS, EXAMS & WORK LOGS
# =============================================================================

def _store_monthly(records: List[Any], record: Any, same_id: bool = False) -> List[Any]:
    """
    Put ``record`` into the slot of its (month, year), in place of the first
    holder; any further holders of that key are dropped.
    """
    kept: List[Any] = []
    placed = False
    for existing in records:
        clash = (existing.month, existing.year) == (record.month, record.year)
        if same_id and existing.id == record.id:
            clash = True
        if clash:
            if not placed:
                kept.append(record)
                placed = True
            continue
        kept.append(existing)
    if not placed:
        kept.append(record)
    return kept


def _store_assessment(staff: StaffMember, assessment: Assessment) -> None:
    staff.assessments = _store_monthly(staff.assessments, assessment, same_id=True)


def upsert_assessment(
    dataset: Dataset,
    assessment: Assessment,
    staff_id: str,
    template: Optional[ChecklistTemplate] = None,
) -> None:
    """
    Store the assessment for its (month, year), clamping scores on the way in.

    An existing assessment for the same month keeps its id, and its messages
    and exam submissions unless the new record carries its own.
    """
    validate_month(assessment.month)
    staff = _staff(dataset, staff_id)

    existing = staff.find_assessment(assessment.month, assessment.year)
    if existing is not None:
        assessment.id = existing.id
        if assessment.supervisor_message is None:
            assessment.supervisor_message = existing.supervisor_message
        if assessment.manager_message is None:
            assessment.manager_message = existing.manager_message
        if not assessment.exam_submissions:
            assessment.exam_submissions = existing.exam_submissions
    elif not assessment.id:
        assessment.id = new_id()

    if template is not None:
        assessment.template_id = template.id
        assessment.min_score = template.min_score
        assessment.max_score = template.max_score

    apply_score_bounds(assessment)
    _store_assessment(staff, assessment)


def update_assessment_messages(
    dataset: Dataset,
    staff_id: str,
    month: str,
    year: int,
    supervisor_message: Optional[str] = None,
    manager_message: Optional[str] = None,
) -> None:
    assessment = _staff(dataset, staff_id).find_assessment(month, year)
    if assessment is None:
        raise EntityNotFoundError("Assessment", f"{month} {year}")
    if supervisor_message is not None:
        assessment.supervisor_message = supervisor_message
    if manager_message is not None:
        assessment.manager_message = manager_message


def submit_exam(
    dataset: Dataset,
    staff_id: str,
    month: str,
    year: int,
    submission: ExamSubmission,
) -> None:
    """Record a submission; a resubmission of the same exam replaces the old one."""
    validate_month(month)
    staff = _staff(dataset, staff_id)

    assessment = staff.find_assessment(month, year)
    if assessment is None:
        assessment = Assessment(id=new_id(), month=month, year=year)
        staff.assessments.append(assessment)

    _replace_or_append(assessment.exam_submissions, submission, key="exam_template_id")


def upsert_work_log(dataset: Dataset, staff_id: str, work_log: WorkLog) -> None:
    validate_month(work_log.month)
    staff = _staff(dataset, staff_id)
    staff.work_logs = _store_monthly(staff.work_logs, work_log)


def import_assessments(
    dataset: Dataset,
    hospital_id: str,
    department_id: str,
    data: Mapping[str, Mapping[str, List[SkillCategory]]],
    year: int,
) -> Dict[str, int]:
    """
    Merge parsed checklist data ``{staff name: {month: categories}}``.

    Unknown staff names become new staff members. Imported assessments use
    the default 0..4 score bounds.

    Returns:
        Counts of created staff and written assessments
    """
    department = _department(dataset, department_id, hospital_id)
    created = written = 0

    for staff_name, by_month in data.items():
        staff = next((s for s in department.staff if s.name == staff_name), None)
        if staff is None:
            staff = StaffMember(id=f"{new_id()}{staff_name}", name=staff_name, title=IMPORTED_STAFF_TITLE)
            department.staff.append(staff)
            created += 1

        for month, categories in by_month.items():
            validate_month(month)
            existing = staff.find_assessment(month, year)
            assessment = Assessment(
                id=existing.id if existing else f"{staff.id}-{month}-{year}",
                month=month,
                year=year,
                skill_categories=list(categories),
                supervisor_message="",
                manager_message="",
                min_score=DEFAULT_MIN_SCORE,
                max_score=DEFAULT_MAX_SCORE,
                template_id=existing.template_id if existing else None,
                exam_submissions=existing.exam_submissions if existing else [],
                extra=dict(existing.extra) if existing else {},
            )
            apply_score_bounds(assessment)
            _store_assessment(staff, assessment)
            written += 1

    return {"staff_created": created, "assessments_written": written}


# =============================================================================
# PATIENTS & MESSAGES
# =============================================================================

def add_patient(dataset: Dataset, hospital_id: str, department_id: str, patient: Patient) -> None:
    _department(dataset, department_id, hospital_id).patients.append(patient)


def delete_patient(dataset: Dataset, hospital_id: str, department_id: str, patient_id: str) -> List[str]:
    department = _department(dataset, department_id, hospital_id)
    removed = [p for p in department.patients if p.id == patient_id]
    department.patients = [p for p in department.patients if p.id != patient_id]
    return [path for p in removed for path in _patient_paths(p)]


def send_chat_message(
    dataset: Dataset,
    hospital_id: str,
    department_id: str,
    patient_id: str,
    message: ChatMessage,
) -> None:
    _patient(dataset, hospital_id, department_id, patient_id).chat_history.append(message)


def send_admin_message(dataset: Dataset, hospital_id: str, message: AdminMessage) -> None:
    _hospital(dataset, hospital_id).admin_messages.append(message)


# =============================================================================
# TRAINING, ACCREDITATION & PATIENT EDUCATION MATERIALS
# =============================================================================

def _monthly_bucket(monthly: List[MonthlyTraining], month: str) -> MonthlyTraining:
    bucket = next((t for t in monthly if t.month == month), None)
    if bucket is None:
        bucket = MonthlyTraining(month=month)
        monthly.append(bucket)
    return bucket


def add_training_material(
    dataset: Dataset,
    hospital_id: str,
    department_id: str,
    month: str,
    material: TrainingMaterial,
) -> None:
    validate_month(month)
    department = _department(dataset, department_id, hospital_id)
    _monthly_bucket(department.training_materials, month).materials.append(material)


def add_hospital_training_material(
    dataset: Dataset,
    hospital_id: str,
    month: str,
    material: TrainingMaterial,
) -> None:
    validate_month(month)
    _monthly_bucket(_hospital(dataset, hospital_id).training_materials, month).materials.append(material)


def _drop_from_monthly(monthly: List[MonthlyTraining], material_id: str, month: Optional[str]) -> List[str]:
    paths: List[str] = []
    for bucket in monthly:
        if month is not None and bucket.month != month:
            continue
        paths += [m.storage_path for m in bucket.materials if m.id == material_id and m.storage_path]
        bucket.materials = [m for m in bucket.materials if m.id != material_id]
    return paths


def delete_training_material(
    dataset: Dataset,
    hospital_id: str,
    material_id: str,
    month: Optional[str] = None,
    department_id: Optional[str] = None,
) -> List[str]:
    """Remove a training material from a department, or from the hospital when no department is given."""
    if department_id is not None:
        owner = _department(dataset, department_id, hospital_id)
    else:
        owner = _hospital(dataset, hospital_id)
    return _drop_from_monthly(owner.training_materials, material_id, month)


def update_material_description(
    dataset: Dataset,
    hospital_id: str,
    material_id: str,
    description: str,
    department_id: Optional[str] = None,
) -> None:
    """Set the description of any material (training, accreditation or patient education)."""
    hospital = _hospital(dataset, hospital_id)
    if department_id is not None:
        department = _department(dataset, department_id, hospital_id)
        candidates = [m for t in department.training_materials for m in t.materials]
        candidates += department.patient_education_materials
    else:
        candidates = [m for t in hospital.training_materials for m in t.materials]
        candidates += hospital.accreditation_materials

    material = next((m for m in candidates if m.id == material_id), None)
    if material is None:
        raise EntityNotFoundError("Material", material_id)
    material.description = description


def add_accreditation_material(dataset: Dataset, hospital_id: str, material: TrainingMaterial) -> None:
    _hospital(dataset, hospital_id).accreditation_materials.append(material)


def delete_accreditation_material(dataset: Dataset, hospital_id: str, material_id: str) -> List[str]:
    hospital = _hospital(dataset, hospital_id)
    paths = [m.storage_path for m in hospital.accreditation_materials if m.id == material_id and m.storage_path]
    hospital.accreditation_materials = [m for m in hospital.accreditation_materials if m.id != material_id]
    return paths


def add_patient_education_material(
    dataset: Dataset,
    hospital_id: str,
    department_id: str,
    material: TrainingMaterial,
) -> None:
    _department(dataset, department_id, hospital_id).patient_education_materials.append(material)


def delete_patient_education_material(
    dataset: Dataset,
    hospital_id: str,
    department_id: str,
    material_id: str,
) -> List[str]:
    department = _department(dataset, department_id, hospital_id)
    materials = department.patient_education_materials
    paths = [m.storage_path for m in materials if m.id == material_id and m.storage_path]
    department.patient_education_materials = [m for m in materials if m.id != material_id]
    return paths


# =============================================================================
# NEWS BANNERS
# =============================================================================

def add_news_banner(dataset: Dataset, hospital_id: str, banner: NewsBanner) -> None:
    _hospital(dataset, hospital_id).news_banners.append(banner)


def update_news_banner(
    dataset: Dataset,
    hospital_id: str,
    banner_id: str,
    title: str,
    description: Optional[str],
) -> None:
    banner = next((b for b in _hospital(dataset, hospital_id).news_banners if b.id == banner_id), None)
    if banner is None:
        raise EntityNotFoundError("News banner", banner_id)
    banner.title = title
    banner.description = description


def delete_news_banner(dataset: Dataset, hospital_id: str, banner_id: str) -> List[str]:
    hospital = _hospital(dataset, hospital_id)
    paths = [b.image_storage_path for b in hospital.news_banners if b.id == banner_id and b.image_storage_path]
    hospital.news_banners = [b for b in hospital.news_banners if b.id != banner_id]
    return paths


# =============================================================================
# NEEDS ASSESSMENT
# =============================================================================

def _needs_assessment(hospital: Hospital, month: str, year: int) -> MonthlyNeedsAssessment:
    found = next(
        (na for na in hospital.needs_assessments if na.month == month and na.year == year),
        None,
    )
    if found is None:
        found = MonthlyNeedsAssessment(month=month, year=year)
        hospital.needs_assessments.append(found)
    return found


def update_needs_assessment_topics(
    dataset: Dataset,
    hospital_id: str,
    month: str,
    year: int,
    topics: List[NeedsAssessmentTopic],
) -> None:
    validate_month(month)
    _needs_assessment(_hospital(dataset, hospital_id), month, year).topics = list(topics)


def submit_needs_assessment_response(
    dataset: Dataset,
    hospital_id: str,
    staff_id: str,
    month: str,
    year: int,
    responses: Mapping[str, str],
) -> None:
    """
    Store one staff member's answers ``{topic id: text}``.

    A later answer to the same topic replaces the earlier one. Answers to
    topics that do not exist are ignored.
    """
    validate_month(month)
    hospital = _hospital(dataset, hospital_id)
    staff = next(
        (s for d in hospital.departments for s in d.staff if s.id == staff_id),
        None,
    )
    if staff is None:
        raise EntityNotFoundError("Staff member", staff_id)

    needs = _needs_assessment(hospital, month, year)
    for topic_id, text in responses.items():
        topic = next((t for t in needs.topics if t.id == topic_id), None)
        if topic is None:
            logger.debug(f"Ignoring response to unknown topic {topic_id}")
            continue
        existing = next((r for r in topic.responses if r.staff_id == staff_id), None)
        if existing is not None:
            existing.response = text
            existing.staff_name = staff.name
        else:
            topic.responses.append(
                NeedsAssessmentResponse(staff_id=staff_id, staff_name=staff.name, response=text)
            )


# =============================================================================
# TEMPLATES
# =============================================================================

def upsert_checklist_template(dataset: Dataset, hospital_id: str, template: ChecklistTemplate) -> None:
    if (
        template.min_score is not None
        and template.max_score is not None
        and template.min_score > template.max_score
    ):
        raise DataValidationError(
            f"Invalid score bounds: min {template.min_score} is greater than max {template.max_score}",
            field="minScore",
        )
    _replace_or_append(_hospital(dataset, hospital_id).checklist_templates, template)


def delete_checklist_template(dataset: Dataset, hospital_id: str, template_id: str) -> List[str]:
    hospital = _hospital(dataset, hospital_id)
    hospital.checklist_templates = [t for t in hospital.checklist_templates if t.id != template_id]
    return []


def upsert_exam_template(dataset: Dataset, hospital_id: str, template: ExamTemplate) -> None:
    _replace_or_append(_hospital(dataset, hospital_id).exam_templates, template)


def delete_exam_template(dataset: Dataset, hospital_id: str, template_id: str) -> List[str]:
    hospital = _hospital(dataset, hospital_id)
    hospital.exam_templates = [t for t in hospital.exam_templates if t.id != template_id]
    return []
