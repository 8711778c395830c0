"""Student-facing result endpoints."""

from fastapi import APIRouter

from exam_engine.core.database import DbSession
from exam_engine.core.dependencies import ScopeContext
from exam_engine.schemas.report_card import ReportCard
from exam_engine.schemas.result import PublishedResultResponse
from exam_engine.services.report_card import ReportCardBuilder
from exam_engine.services.results import ResultsService

router = APIRouter()


@router.get("/{student_id}/results", response_model=list[PublishedResultResponse])
def list_student_results(
    student_id: int,
    context: ScopeContext,
    db: DbSession,
):
    """Get every published result of a student, latest exam first."""
    service = ResultsService(db)
    return service.get_student_results(context.scope, student_id)


@router.get("/{student_id}/exams/{exam_id}/result", response_model=PublishedResultResponse)
def get_student_exam_result(
    student_id: int,
    exam_id: int,
    context: ScopeContext,
    db: DbSession,
):
    """Get a student's published result for one exam."""
    service = ResultsService(db)
    return service.get_student_exam_result(context.scope, student_id, exam_id)


@router.get("/{student_id}/exams/{exam_id}/report-card", response_model=ReportCard)
def get_report_card(
    student_id: int,
    exam_id: int,
    context: ScopeContext,
    db: DbSession,
):
    """
    Get the report card document for a student in a published exam.
    Rendering (PDF, print) is left to the caller.
    """
    builder = ReportCardBuilder(db)
    return builder.build_report_card(context.scope, student_id, exam_id)
