"""
Report Service - read-only pandas views of a staff member's records.

Used by the dashboards for progress charts, weak-skill lists and the work
log table. Nothing here writes to the dataset.
"""

from datetime import date
from typing import List, Optional

import pandas as pd

from skill_core.data.models import (
    DEFAULT_MAX_SCORE,
    MONTHS,
    Assessment,
    Dataset,
    StaffMember,
    current_jalali_year,
)

MONTH_ORDER = {month: index for index, month in enumerate(MONTHS)}

WORK_LOG_COLUMNS = [
    "month",
    "required_hours",
    "overtime_hours",
    "leave_hours_taken",
    "remaining_leave_hours",
    "tenure",
]


def _max_score(assessment: Assessment) -> float:
    return assessment.max_score if assessment.max_score is not None else DEFAULT_MAX_SCORE


def category_percentages(assessment: Assessment) -> dict:
    """Category name -> achieved share of the maximum score, in percent."""
    ceiling = _max_score(assessment)
    result = {}
    for category in assessment.skill_categories:
        possible = len(category.items) * ceiling
        total = sum(item.score or 0 for item in category.items)
        result[category.name] = round(total / possible * 100, 1) if possible > 0 else None
    return result


def progress_table(staff: StaffMember, year: int) -> pd.DataFrame:
    """
    Month x category table of score percentages for one year.

    Months come in calendar order; categories missing in a month are NaN.
    """
    assessments = sorted(
        (a for a in staff.assessments if a.year == year and a.month in MONTH_ORDER),
        key=lambda a: MONTH_ORDER[a.month],
    )
    if not assessments:
        return pd.DataFrame()

    rows = {a.month: category_percentages(a) for a in assessments}
    frame = pd.DataFrame.from_dict(rows, orient="index")
    frame.index.name = "month"
    return frame.astype(float)


def weak_skills(assessment: Assessment) -> pd.DataFrame:
    """Every item scored below the assessment's maximum, grouped by category."""
    ceiling = _max_score(assessment)
    records = [
        {
            "category": category.name,
            "description": item.description,
            "score": item.score,
            "max_score": ceiling,
        }
        for category in assessment.skill_categories
        for item in category.items
        if item.score < ceiling
    ]
    return pd.DataFrame(records, columns=["category", "description", "score", "max_score"])


def has_weak_skills(assessment: Assessment) -> bool:
    ceiling = _max_score(assessment)
    return any(item.score < ceiling for c in assessment.skill_categories for item in c.items)


def available_years(dataset: Dataset, today: Optional[date] = None) -> List[int]:
    """Current Jalali year plus every year that has data, newest first."""
    years = {current_jalali_year(today)}
    for hospital in dataset.hospitals:
        years.update(na.year for na in hospital.needs_assessments if na.year)
        for department in hospital.departments:
            for staff in department.staff:
                years.update(a.year for a in staff.assessments if a.year)
                years.update(w.year for w in staff.work_logs if w.year)
    return sorted(years, reverse=True)


def work_log_frame(staff: StaffMember, year: int) -> pd.DataFrame:
    """Work logs of one year in calendar month order."""
    logs = sorted(
        (w for w in staff.work_logs if w.year == year),
        key=lambda w: MONTH_ORDER.get(w.month, len(MONTHS)),
    )
    records = [
        {
            "month": w.month,
            "required_hours": w.required_hours,
            "overtime_hours": w.overtime_hours,
            "leave_hours_taken": w.leave_hours_taken,
            "remaining_leave_hours": w.remaining_leave_hours,
            "tenure": w.tenure,
        }
        for w in logs
    ]
    return pd.DataFrame(records, columns=WORK_LOG_COLUMNS)
