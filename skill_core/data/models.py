# =============================================================================
# skill_core/data/models.py
# Dataset records: hospitals -> departments -> staff / patients
# =============================================================================
"""
Typed records for the single JSON document that holds every hospital.

Records keep the camelCase keys of the stored document. Keys a record does
not know about are kept in ``extra`` and written back untouched, so older or
newer clients can share the same document.
"""

from __future__ import annotations
import copy
from dataclasses import dataclass, field, fields
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from skill_core.errors import DataValidationError


# The 12 Jalali calendar months, in calendar order
MONTHS: Tuple[str, ...] = (
    "فروردین", "اردیبهشت", "خرداد",
    "تیر", "مرداد", "شهریور",
    "مهر", "آبان", "آذر",
    "دی", "بهمن", "اسفند",
)

DEFAULT_MIN_SCORE = 0
DEFAULT_MAX_SCORE = 4


class QuestionType(str, Enum):
    """Exam question kinds. Only multiple-choice questions are auto-graded."""
    MULTIPLE_CHOICE = "multiple-choice"
    DESCRIPTIVE = "descriptive"


def current_jalali_year(today: Optional[date] = None) -> int:
    """Jalali year of ``today`` (the year rolls over at Nowruz, 21 March)."""
    today = today or date.today()
    if (today.month, today.day) >= (3, 21):
        return today.year - 621
    return today.year - 622


def _attr(key: str, default: Any = None, model: Any = None, many: bool = False):
    meta = {"key": key, "model": model, "many": many}
    if many:
        return field(default_factory=list, metadata=meta)
    return field(default=default, metadata=meta)


class JsonRecord:
    """Mixin giving dataclass records a camelCase dict round trip."""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        if not isinstance(data, Mapping):
            raise DataValidationError(
                f"Expected an object for {cls.__name__}",
                expected="object",
                actual=type(data).__name__,
            )

        kwargs: Dict[str, Any] = {}
        known = set()
        for f in fields(cls):
            if f.name == "extra":
                continue
            key = f.metadata.get("key", f.name)
            known.add(key)
            if key not in data:
                continue

            value = data[key]
            model = f.metadata.get("model")
            if f.metadata.get("many"):
                items = value if isinstance(value, list) else []
                value = [model.from_dict(v) for v in items] if model else list(items)
            elif model is not None and value is not None:
                value = model.from_dict(value)
            kwargs[f.name] = value

        kwargs["extra"] = {k: v for k, v in data.items() if k not in known}
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.extra)
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is None:
                continue

            key = f.metadata.get("key", f.name)
            if f.metadata.get("model") is not None:
                if f.metadata.get("many"):
                    value = [v.to_dict() for v in value]
                else:
                    value = value.to_dict()
            elif isinstance(value, Enum):
                value = value.value
            out[key] = value
        return out


# =============================================================================
# ASSESSMENTS & EXAMS
# =============================================================================

@dataclass
class SkillItem(JsonRecord):
    description: str = _attr("description", "")
    score: float = _attr("score", 0)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class SkillCategory(JsonRecord):
    name: str = _attr("name", "")
    items: List[SkillItem] = _attr("items", model=SkillItem, many=True)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class ExamAnswer(JsonRecord):
    question_id: str = _attr("questionId", "")
    answer: str = _attr("answer", "")
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class Question(JsonRecord):
    id: str = _attr("id", "")
    text: str = _attr("text", "")
    type: str = _attr("type", QuestionType.MULTIPLE_CHOICE.value)
    options: List[str] = _attr("options", many=True)
    correct_answer: Optional[str] = _attr("correctAnswer")
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)

    @property
    def auto_gradable(self) -> bool:
        return self.type == QuestionType.MULTIPLE_CHOICE.value


@dataclass
class ExamSubmission(JsonRecord):
    id: str = _attr("id", "")
    exam_template_id: str = _attr("examTemplateId", "")
    exam_name: str = _attr("examName", "")
    answers: List[ExamAnswer] = _attr("answers", model=ExamAnswer, many=True)
    score: float = _attr("score", 0)
    total_correctable_questions: int = _attr("totalCorrectableQuestions", 0)
    submission_date: Optional[str] = _attr("submissionDate")
    # Frozen copy of the questions at submission time
    questions: List[Question] = _attr("questions", model=Question, many=True)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class Assessment(JsonRecord):
    id: str = _attr("id", "")
    month: str = _attr("month", "")
    year: int = _attr("year", 0)
    skill_categories: List[SkillCategory] = _attr("skillCategories", model=SkillCategory, many=True)
    supervisor_message: Optional[str] = _attr("supervisorMessage")
    manager_message: Optional[str] = _attr("managerMessage")
    min_score: Optional[float] = _attr("minScore")
    max_score: Optional[float] = _attr("maxScore")
    template_id: Optional[str] = _attr("templateId")
    exam_submissions: List[ExamSubmission] = _attr("examSubmissions", model=ExamSubmission, many=True)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class WorkLog(JsonRecord):
    month: str = _attr("month", "")
    year: int = _attr("year", 0)
    required_hours: float = _attr("requiredHours", 0)
    overtime_hours: float = _attr("overtimeHours", 0)
    leave_hours_taken: float = _attr("leaveHoursTaken", 0)
    remaining_leave_hours: float = _attr("remainingLeaveHours", 0)
    tenure: Optional[str] = _attr("tenure")
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


# =============================================================================
# TEMPLATES
# =============================================================================

@dataclass
class ChecklistItem(JsonRecord):
    description: str = _attr("description", "")
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class ChecklistCategory(JsonRecord):
    name: str = _attr("name", "")
    items: List[ChecklistItem] = _attr("items", model=ChecklistItem, many=True)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class ChecklistTemplate(JsonRecord):
    id: str = _attr("id", "")
    name: str = _attr("name", "")
    categories: List[ChecklistCategory] = _attr("categories", model=ChecklistCategory, many=True)
    min_score: Optional[float] = _attr("minScore", DEFAULT_MIN_SCORE)
    max_score: Optional[float] = _attr("maxScore", DEFAULT_MAX_SCORE)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class ExamTemplate(JsonRecord):
    id: str = _attr("id", "")
    name: str = _attr("name", "")
    questions: List[Question] = _attr("questions", model=Question, many=True)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


# =============================================================================
# FILES, MATERIALS & MESSAGES
# =============================================================================

@dataclass
class FileReference(JsonRecord):
    id: str = _attr("id", "")
    name: str = _attr("name", "")
    type: str = _attr("type", "")
    storage_path: str = _attr("storagePath", "")
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class TrainingMaterial(JsonRecord):
    id: str = _attr("id", "")
    name: str = _attr("name", "")
    type: str = _attr("type", "")
    storage_path: str = _attr("storagePath", "")
    description: Optional[str] = _attr("description")
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class MonthlyTraining(JsonRecord):
    month: str = _attr("month", "")
    materials: List[TrainingMaterial] = _attr("materials", model=TrainingMaterial, many=True)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class NewsBanner(JsonRecord):
    id: str = _attr("id", "")
    title: str = _attr("title", "")
    description: Optional[str] = _attr("description")
    image_storage_path: Optional[str] = _attr("imageStoragePath")
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class ChatMessage(JsonRecord):
    id: str = _attr("id", "")
    sender: str = _attr("sender", "")  # 'patient' | 'manager'
    timestamp: str = _attr("timestamp", "")
    text: Optional[str] = _attr("text")
    file: Optional[FileReference] = _attr("file", model=FileReference)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class AdminMessage(JsonRecord):
    id: str = _attr("id", "")
    sender: str = _attr("sender", "")  # 'hospital' | 'admin'
    timestamp: str = _attr("timestamp", "")
    text: Optional[str] = _attr("text")
    file: Optional[FileReference] = _attr("file", model=FileReference)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


# =============================================================================
# NEEDS ASSESSMENT
# =============================================================================

@dataclass
class NeedsAssessmentResponse(JsonRecord):
    staff_id: str = _attr("staffId", "")
    staff_name: str = _attr("staffName", "")
    response: str = _attr("response", "")
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class NeedsAssessmentTopic(JsonRecord):
    id: str = _attr("id", "")
    title: str = _attr("title", "")
    description: Optional[str] = _attr("description")
    responses: List[NeedsAssessmentResponse] = _attr("responses", model=NeedsAssessmentResponse, many=True)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class MonthlyNeedsAssessment(JsonRecord):
    month: str = _attr("month", "")
    year: int = _attr("year", 0)
    topics: List[NeedsAssessmentTopic] = _attr("topics", model=NeedsAssessmentTopic, many=True)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


# =============================================================================
# PEOPLE & ORGANISATION
# =============================================================================

@dataclass
class Patient(JsonRecord):
    id: str = _attr("id", "")
    name: str = _attr("name", "")
    national_id: str = _attr("nationalId", "")
    password: Optional[str] = _attr("password")
    chat_history: List[ChatMessage] = _attr("chatHistory", model=ChatMessage, many=True)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class StaffMember(JsonRecord):
    id: str = _attr("id", "")
    name: str = _attr("name", "")
    title: str = _attr("title", "")
    national_id: Optional[str] = _attr("nationalId")
    password: Optional[str] = _attr("password")
    assessments: List[Assessment] = _attr("assessments", model=Assessment, many=True)
    work_logs: List[WorkLog] = _attr("workLogs", model=WorkLog, many=True)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)

    def find_assessment(self, month: str, year: int) -> Optional[Assessment]:
        return next((a for a in self.assessments if a.month == month and a.year == year), None)


@dataclass
class Department(JsonRecord):
    id: str = _attr("id", "")
    name: str = _attr("name", "")
    manager_name: Optional[str] = _attr("managerName")
    manager_national_id: Optional[str] = _attr("managerNationalId")
    manager_password: Optional[str] = _attr("managerPassword")
    staff_count: int = _attr("staffCount", 0)
    bed_count: int = _attr("bedCount", 0)
    staff: List[StaffMember] = _attr("staff", model=StaffMember, many=True)
    patients: List[Patient] = _attr("patients", model=Patient, many=True)
    training_materials: List[MonthlyTraining] = _attr("trainingMaterials", model=MonthlyTraining, many=True)
    patient_education_materials: List[TrainingMaterial] = _attr(
        "patientEducationMaterials", model=TrainingMaterial, many=True
    )
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)


@dataclass
class Hospital(JsonRecord):
    id: str = _attr("id", "")
    name: str = _attr("name", "")
    province: str = _attr("province", "")
    city: str = _attr("city", "")
    supervisor_name: Optional[str] = _attr("supervisorName")
    supervisor_national_id: Optional[str] = _attr("supervisorNationalId")
    supervisor_password: Optional[str] = _attr("supervisorPassword")
    departments: List[Department] = _attr("departments", model=Department, many=True)
    accreditation_materials: List[TrainingMaterial] = _attr(
        "accreditationMaterials", model=TrainingMaterial, many=True
    )
    news_banners: List[NewsBanner] = _attr("newsBanners", model=NewsBanner, many=True)
    checklist_templates: List[ChecklistTemplate] = _attr(
        "checklistTemplates", model=ChecklistTemplate, many=True
    )
    exam_templates: List[ExamTemplate] = _attr("examTemplates", model=ExamTemplate, many=True)
    training_materials: List[MonthlyTraining] = _attr("trainingMaterials", model=MonthlyTraining, many=True)
    needs_assessments: List[MonthlyNeedsAssessment] = _attr(
        "needsAssessments", model=MonthlyNeedsAssessment, many=True
    )
    admin_messages: List[AdminMessage] = _attr("adminMessages", model=AdminMessage, many=True)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, kw_only=True)

    def find_department(self, department_id: str) -> Optional[Department]:
        return next((d for d in self.departments if d.id == department_id), None)


# =============================================================================
# DATASET
# =============================================================================

@dataclass
class Dataset:
    """
    Every hospital and everything beneath it, persisted as one document.

    Lookups are linear scans addressed by id; ids are only unique within
    their parent collection, so the first match in document order wins.
    """
    hospitals: List[Hospital] = field(default_factory=list)

    @classmethod
    def from_document(cls, document: Any) -> Dataset:
        """
        Build a Dataset from the stored JSON document (a list of hospitals).

        Raises:
            DataValidationError: if the document is not a list of objects
        """
        if document is None:
            return cls()
        if not isinstance(document, list):
            raise DataValidationError(
                "Dataset document must be a list of hospitals",
                expected="list",
                actual=type(document).__name__,
            )
        return cls(hospitals=[Hospital.from_dict(h) for h in document])

    def to_document(self) -> List[Dict[str, Any]]:
        return [h.to_dict() for h in self.hospitals]

    def copy(self) -> Dataset:
        return copy.deepcopy(self)

    def __len__(self) -> int:
        return len(self.hospitals)

    def __iter__(self) -> Iterator[Hospital]:
        return iter(self.hospitals)

    def hospital_ids(self) -> List[str]:
        return [h.id for h in self.hospitals]

    def find_hospital(self, hospital_id: str) -> Optional[Hospital]:
        return next((h for h in self.hospitals if h.id == hospital_id), None)

    def find_department(
        self,
        department_id: str,
        hospital_id: Optional[str] = None,
    ) -> Tuple[Optional[Hospital], Optional[Department]]:
        for hospital in self.hospitals:
            if hospital_id is not None and hospital.id != hospital_id:
                continue
            department = hospital.find_department(department_id)
            if department is not None:
                return hospital, department
        return None, None

    def find_staff(
        self,
        staff_id: str,
    ) -> Tuple[Optional[Hospital], Optional[Department], Optional[StaffMember]]:
        for hospital in self.hospitals:
            for department in hospital.departments:
                for staff in department.staff:
                    if staff.id == staff_id:
                        return hospital, department, staff
        return None, None, None

    def find_patient(
        self,
        patient_id: str,
        hospital_id: Optional[str] = None,
        department_id: Optional[str] = None,
    ) -> Tuple[Optional[Hospital], Optional[Department], Optional[Patient]]:
        for hospital in self.hospitals:
            if hospital_id is not None and hospital.id != hospital_id:
                continue
            for department in hospital.departments:
                if department_id is not None and department.id != department_id:
                    continue
                for patient in department.patients:
                    if patient.id == patient_id:
                        return hospital, department, patient
        return None, None, None
