"""Report card assembly from published results."""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from exam_engine.core.dependencies import TenantScope
from exam_engine.models.result import PublishedResult
from exam_engine.schemas.report_card import (
    ReportCard,
    ReportCardExam,
    ReportCardScale,
    ReportCardStudent,
    ReportCardSubjectRow,
)
from exam_engine.services.grading_scale import GradingScaleService
from exam_engine.services.results import ResultsService
from exam_engine.services.roster import RosterLookup, RosterService

logger = logging.getLogger(__name__)


class ReportCardBuilder:
    """Builds the per-student report card document for a published exam."""

    def __init__(self, db: Session, roster: RosterLookup | None = None):
        self.db = db
        self.roster = roster or RosterService(db)
        self.results = ResultsService(db)
        self.scales = GradingScaleService(db)

    def _ranked_count(self, exam_id: int) -> int:
        result = self.db.execute(
            select(func.count()).where(
                PublishedResult.exam_id == exam_id,
                PublishedResult.rank.is_not(None),
            )
        )
        return result.scalar() or 0

    def build_report_card(self, scope: TenantScope, student_id: int, exam_id: int) -> ReportCard:
        result = self.results.get_result_model(scope, exam_id, student_id)
        exam = self.results.exams.get_exam(scope, exam_id)
        scale = self.scales.get_scale_model(scope, result.grading_scale_id)

        # Students who left the roster after publish still get a card
        student = self.roster.get_student(scope, student_id)
        student_block = (
            ReportCardStudent.model_validate(student.model_dump())
            if student
            else ReportCardStudent(id=student_id, student_name=None, roll_number=None, class_name=None, section=None)
        )

        rows = [ReportCardSubjectRow.model_validate(line) for line in result.subjects]
        logger.info(f"[REPORT] Built report card for student {student_id}, exam {exam_id}")

        return ReportCard(
            exam=ReportCardExam.model_validate(exam),
            student=student_block,
            subjects=rows,
            total_marks=result.total_marks,
            obtained_marks=result.obtained_marks,
            percentage=result.percentage,
            grade=result.grade,
            grade_point=result.grade_point,
            rank=result.rank,
            ranked_students=self._ranked_count(exam.id),
            is_pass=bool(rows) and all(row.is_pass for row in rows),
            grading_scale=ReportCardScale.model_validate(scale),
            published_at=result.published_at,
        )
