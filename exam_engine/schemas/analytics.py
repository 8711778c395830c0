"""Analytics snapshot schemas."""

import enum
from decimal import Decimal

from exam_engine.schemas.common import BaseSchema


class AnalyticsMode(str, enum.Enum):
    """Source of an analytics snapshot."""

    LIVE = "live"            # Marks ledger, before publish
    PUBLISHED = "published"  # Published results, what students see


class SubjectAnalytics(BaseSchema):
    """Aggregate statistics for one exam subject."""

    exam_subject_id: int
    subject_id: int
    subject_name: str
    mode: AnalyticsMode
    version: int
    total_marks: Decimal
    passing_marks: Decimal
    total_students: int
    absent_count: int
    pass_count: int
    fail_count: int
    average_marks: Decimal
    highest_marks: Decimal
    lowest_marks: Decimal
    average_percentage: Decimal
    highest_percentage: Decimal
    lowest_percentage: Decimal
    pass_rate: Decimal


class GradeCount(BaseSchema):
    """Number of students holding a grade."""

    grade: str
    count: int


class ExamAnalytics(BaseSchema):
    """Aggregate statistics for a whole exam."""

    exam_id: int
    exam_name: str
    mode: AnalyticsMode
    version: int
    total_students: int
    ranked_students: int
    passing_percentage: Decimal
    average_percentage: Decimal
    highest_percentage: Decimal
    lowest_percentage: Decimal
    pass_rate: Decimal
    subjects: list[SubjectAnalytics]
    grade_distribution: list[GradeCount] = []
