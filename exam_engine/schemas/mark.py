"""Marks ledger schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from exam_engine.schemas.common import BaseSchema


class MarkEntry(BaseSchema):
    """One student's entry in a bulk marks upsert."""

    student_id: int
    marks_obtained: Decimal | None = None
    is_absent: bool = False
    remarks: str | None = None


class EnterMarksRequest(BaseSchema):
    """Bulk marks upsert for one exam subject."""

    entries: list[MarkEntry] = Field(..., min_length=1)


class MarkResponse(BaseSchema):
    """Stored mark."""

    id: int
    exam_subject_id: int
    student_id: int
    marks_obtained: Decimal | None
    is_absent: bool
    remarks: str | None
    updated_at: datetime


class MarksEntryResult(BaseSchema):
    """Outcome of a committed marks batch."""

    exam_id: int
    exam_subject_id: int
    total_entries: int
    created: int
    updated: int
    version: int
    message: str


class MarkSheetRow(BaseSchema):
    """Roster student merged with any stored mark."""

    student_id: int
    student_name: str
    roll_number: str | None
    class_name: str | None
    section: str | None
    marks_obtained: Decimal | None
    is_absent: bool
    remarks: str | None
    has_entry: bool


class MarkSheetResponse(BaseSchema):
    """Mark sheet for one exam subject."""

    exam_id: int
    exam_subject_id: int
    subject_name: str
    total_marks: Decimal
    passing_marks: Decimal
    version: int
    rows: list[MarkSheetRow]
