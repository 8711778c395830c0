"""Published result schemas."""

from datetime import datetime
from decimal import Decimal

from exam_engine.models.exam import ExamStatus
from exam_engine.schemas.common import BaseSchema


class PublishRequest(BaseSchema):
    """Publish request."""

    grading_scale_id: int


class PublishSummary(BaseSchema):
    """Outcome of a publish."""

    exam_id: int
    status: ExamStatus
    grading_scale_id: int
    published_at: datetime
    total_students: int
    ranked_students: int
    version: int
    republished: bool


class SubjectResultResponse(BaseSchema):
    """Per-subject line of a published result."""

    exam_subject_id: int
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


class PublishedResultResponse(BaseSchema):
    """Published result for one student in one exam."""

    exam_id: int
    student_id: int
    total_marks: Decimal
    obtained_marks: Decimal
    percentage: Decimal
    grade: str
    grade_point: Decimal
    rank: int | None
    grading_scale_id: int
    published_at: datetime
    subjects: list[SubjectResultResponse]
