"""Database models package."""

from exam_engine.models.audit import AuditAction, AuditLog
from exam_engine.models.exam import Exam, ExamStatus, ExamSubject, ExamType
from exam_engine.models.grading_scale import GradeBand, GradingScale
from exam_engine.models.mark import Mark
from exam_engine.models.result import PublishedResult, PublishedSubjectResult
from exam_engine.models.student import Student

__all__ = [
    # Roster
    "Student",
    # Exam schedule
    "Exam",
    "ExamStatus",
    "ExamSubject",
    "ExamType",
    # Marks
    "Mark",
    # Grading
    "GradingScale",
    "GradeBand",
    # Results
    "PublishedResult",
    "PublishedSubjectResult",
    # Audit
    "AuditLog",
    "AuditAction",
]
