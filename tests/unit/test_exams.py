# =============================================================================
# tests/unit/test_exams.py
# Unit Tests for Exam Grading and Template-Based Assessments
# =============================================================================

from datetime import datetime, timezone

import pytest


@pytest.fixture
def exam_template():
    from skill_core.data.models import ExamTemplate, Question

    return ExamTemplate(
        id="ET1",
        name="Infection control",
        questions=[
            Question(id="q1", text="Hand rub time?", options=["10s", "30s"], correct_answer="30s"),
            Question(id="q2", text="Gloves?", options=["yes", "no"], correct_answer="yes"),
            Question(id="q3", text="Describe isolation", type="descriptive"),
        ],
    )


class TestGradeExam:
    """Test automatic grading"""

    def test_counts_exact_matches(self, exam_template):
        from skill_core.data.exams import grade_exam

        submission = grade_exam(exam_template, {"q1": "30s", "q2": "no", "q3": "text"})

        assert submission.score == 1
        assert submission.total_correctable_questions == 2
        assert submission.exam_template_id == "ET1"
        assert submission.exam_name == "Infection control"

    def test_answers_as_records(self, exam_template):
        from skill_core.data.exams import grade_exam
        from skill_core.data.models import ExamAnswer

        submission = grade_exam(exam_template, [ExamAnswer("q1", "30s"), ExamAnswer("q2", "yes")])

        assert submission.score == 2

    def test_match_is_exact(self, exam_template):
        from skill_core.data.exams import grade_exam

        assert grade_exam(exam_template, {"q1": "30S ", "q2": ""}).score == 0

    def test_questions_are_frozen(self, exam_template):
        """Editing the template later does not change the submission"""
        from skill_core.data.exams import grade_exam

        submission = grade_exam(exam_template, {})
        exam_template.questions[0].correct_answer = "10s"

        assert submission.questions[0].correct_answer == "30s"

    def test_submission_metadata(self, exam_template):
        from skill_core.data.exams import grade_exam

        when = datetime(2024, 4, 1, 8, 30, tzinfo=timezone.utc)
        submission = grade_exam(exam_template, {}, submission_id="X1", submitted_at=when)

        assert submission.id == "X1"
        assert submission.submission_date == "2024-04-01T08:30:00+00:00"

    def test_percentage(self, exam_template):
        from skill_core.data.exams import exam_percentage, grade_exam

        assert exam_percentage(grade_exam(exam_template, {"q1": "30s"})) == 50.0

    def test_percentage_without_gradable_questions(self):
        from skill_core.data.exams import exam_percentage
        from skill_core.data.models import ExamSubmission

        assert exam_percentage(ExamSubmission(total_correctable_questions=0)) == 100.0


class TestAssessmentFromTemplate:
    """Test blank assessments built from checklist templates"""

    def test_items_start_at_minimum(self, sample_dataset):
        from skill_core.data.exams import build_assessment_from_template

        template = sample_dataset.find_hospital("H1").checklist_templates[0]
        template.min_score = 1

        assessment = build_assessment_from_template(template, "مهر", 1403, assessment_id="A9")

        assert assessment.id == "A9"
        assert assessment.template_id == "CT1"
        assert [c.name for c in assessment.skill_categories] == ["Care"]
        assert [i.score for i in assessment.skill_categories[0].items] == [1, 1]
        assert (assessment.min_score, assessment.max_score) == (1, 4)

    def test_rejects_unknown_month(self, sample_dataset):
        from skill_core.data.exams import build_assessment_from_template
        from skill_core.errors import DataValidationError

        template = sample_dataset.find_hospital("H1").checklist_templates[0]

        with pytest.raises(DataValidationError):
            build_assessment_from_template(template, "Mehr", 1403)
