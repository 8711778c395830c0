"""Exam schedule schemas."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from exam_engine.models.exam import ExamStatus, ExamType
from exam_engine.schemas.common import BaseSchema


# ==========================================
# Exam Subject Schemas
# ==========================================

class ExamSubjectCreate(BaseSchema):
    """Subject slot submitted with an exam or added later."""

    subject_id: int = Field(..., description="Subject catalog ID")
    subject_name: str | None = Field(None, max_length=100)
    exam_date: date | None = None
    total_marks: Decimal
    passing_marks: Decimal


class ExamSubjectUpdate(BaseSchema):
    """Exam subject update schema."""

    subject_name: str | None = Field(None, min_length=1, max_length=100)
    exam_date: date | None = None
    total_marks: Decimal | None = None
    passing_marks: Decimal | None = None
    administrative_correction: bool = Field(
        False,
        description="Allow changing mark bounds while marks entry is open or closed",
    )


class ExamSubjectResponse(BaseSchema):
    """Exam subject response schema."""

    id: int
    exam_id: int
    subject_id: int
    subject_name: str
    exam_date: date | None
    total_marks: Decimal
    passing_marks: Decimal


# ==========================================
# Exam Schemas
# ==========================================

class ExamCreate(BaseSchema):
    """Exam creation schema, with its subjects."""

    name: str = Field(..., min_length=1, max_length=255)
    exam_type: ExamType
    term_id: int | None = None
    start_date: date
    end_date: date
    description: str | None = None
    subjects: list[ExamSubjectCreate] = []


class ExamUpdate(BaseSchema):
    """Exam update schema."""

    name: str | None = Field(None, min_length=1, max_length=255)
    exam_type: ExamType | None = None
    term_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    description: str | None = None


class ExamStatusUpdate(BaseSchema):
    """Requested status transition."""

    status: ExamStatus


class ExamResponse(BaseSchema):
    """Exam response schema."""

    id: int
    tenant_id: int
    branch_id: int | None
    term_id: int | None
    name: str
    exam_type: ExamType
    status: ExamStatus
    start_date: date
    end_date: date
    description: str | None
    version: int
    grading_scale_id: int | None
    published_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ExamScheduleResponse(ExamResponse):
    """Exam with its subject slots."""

    subjects: list[ExamSubjectResponse]


class ExamFilter(BaseSchema):
    """Exam filtering options."""

    term_id: int | None = None
    exam_type: ExamType | None = None
    status: ExamStatus | None = None
