"""Report card document schemas.

The report card is a plain document handed to an external renderer; no layout
information lives here.
"""

from datetime import date, datetime
from decimal import Decimal

from exam_engine.models.exam import ExamType
from exam_engine.schemas.common import BaseSchema


class ReportCardExam(BaseSchema):
    id: int
    name: str
    exam_type: ExamType
    term_id: int | None
    start_date: date
    end_date: date


class ReportCardStudent(BaseSchema):
    id: int
    student_name: str | None
    roll_number: str | None
    class_name: str | None
    section: str | None


class ReportCardSubjectRow(BaseSchema):
    subject_id: int
    subject_name: str
    total_marks: Decimal
    passing_marks: Decimal
    marks_obtained: Decimal | None
    is_absent: bool
    percentage: Decimal
    grade: str | None
    grade_point: Decimal | None
    is_pass: bool


class ReportCardScale(BaseSchema):
    id: int
    name: str
    version: int


class ReportCard(BaseSchema):
    """Full exam breakdown for one student."""

    exam: ReportCardExam
    student: ReportCardStudent
    subjects: list[ReportCardSubjectRow]
    total_marks: Decimal
    obtained_marks: Decimal
    percentage: Decimal
    grade: str
    grade_point: Decimal
    rank: int | None
    ranked_students: int
    is_pass: bool
    grading_scale: ReportCardScale
    published_at: datetime
