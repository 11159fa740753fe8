# =============================================================================
# skill_core/data/exams.py
# Exam grading and template-based assessments
# =============================================================================

from __future__ import annotations
import copy
from datetime import datetime, timezone
from typing import Mapping, Optional, Union, Iterable

from skill_core.data.models import (
    DEFAULT_MIN_SCORE,
    Assessment,
    ChecklistTemplate,
    ExamAnswer,
    ExamSubmission,
    ExamTemplate,
    SkillCategory,
    SkillItem,
)
from skill_core.data.mutations import new_id, validate_month

Answers = Union[Mapping[str, str], Iterable[ExamAnswer]]


def _answer_map(answers: Answers) -> dict:
    if isinstance(answers, Mapping):
        return dict(answers)
    return {a.question_id: a.answer for a in answers}


def grade_exam(
    template: ExamTemplate,
    answers: Answers,
    submission_id: Optional[str] = None,
    submitted_at: Optional[datetime] = None,
) -> ExamSubmission:
    """
    Grade a staff member's answers against an exam template.

    Only multiple-choice questions are scored: one point each when the answer
    equals the correct answer exactly. Descriptive answers are stored but not
    graded. The question set is copied into the submission so later template
    edits do not change historical results.

    Args:
        template: The exam being taken
        answers: ``{question id: answer}`` or a list of ExamAnswer
        submission_id: Id for the submission (generated if None)
        submitted_at: Submission time (now, UTC, if None)

    Returns:
        ExamSubmission ready for ``submit_exam``
    """
    given = _answer_map(answers)
    correctable = [q for q in template.questions if q.auto_gradable]
    score = sum(
        1 for q in correctable
        if q.correct_answer is not None and given.get(q.id) == q.correct_answer
    )

    submitted_at = submitted_at or datetime.now(timezone.utc)
    return ExamSubmission(
        id=submission_id or new_id(),
        exam_template_id=template.id,
        exam_name=template.name,
        answers=[ExamAnswer(question_id=qid, answer=text) for qid, text in given.items()],
        score=score,
        total_correctable_questions=len(correctable),
        submission_date=submitted_at.isoformat(),
        questions=copy.deepcopy(template.questions),
    )


def exam_percentage(submission: ExamSubmission) -> float:
    """Share of correct answers; 100 when nothing was auto-gradable."""
    if submission.total_correctable_questions <= 0:
        return 100.0
    return submission.score / submission.total_correctable_questions * 100


def build_assessment_from_template(
    template: ChecklistTemplate,
    month: str,
    year: int,
    assessment_id: Optional[str] = None,
) -> Assessment:
    """A blank assessment with every template item at the template's minimum score."""
    validate_month(month)
    floor = template.min_score if template.min_score is not None else DEFAULT_MIN_SCORE
    categories = [
        SkillCategory(
            name=category.name,
            items=[SkillItem(description=item.description, score=floor) for item in category.items],
        )
        for category in template.categories
    ]
    return Assessment(
        id=assessment_id or new_id(),
        month=month,
        year=year,
        skill_categories=categories,
        min_score=template.min_score,
        max_score=template.max_score,
        template_id=template.id,
    )
