"""Roster schemas."""

from exam_engine.schemas.common import BaseSchema


class StudentRef(BaseSchema):
    """Enrolled student as seen by the exam engine."""

    id: int
    student_name: str
    roll_number: str | None = None
    class_name: str | None = None
    section: str | None = None
