"""Analytics endpoints."""

from fastapi import APIRouter, Query

from exam_engine.core.database import DbSession
from exam_engine.core.dependencies import ScopeContext
from exam_engine.schemas.analytics import AnalyticsMode, ExamAnalytics, SubjectAnalytics
from exam_engine.services.analytics import AnalyticsService

router = APIRouter()

MODE_DESCRIPTION = "live (marks ledger) or published; defaults to published once results are out"


@router.get("/exams/{exam_id}/analytics", response_model=ExamAnalytics)
def get_exam_analytics(
    exam_id: int,
    context: ScopeContext,
    db: DbSession,
    mode: AnalyticsMode | None = Query(None, description=MODE_DESCRIPTION),
):
    """
    Get exam statistics: averages, extremes, pass rate and per-subject breakdown.
    """
    service = AnalyticsService(db)
    return service.exam_analytics(context.scope, exam_id, mode=mode)


@router.get("/exam-subjects/{exam_subject_id}/analytics", response_model=SubjectAnalytics)
def get_subject_analytics(
    exam_subject_id: int,
    context: ScopeContext,
    db: DbSession,
    mode: AnalyticsMode | None = Query(None, description=MODE_DESCRIPTION),
):
    """Get statistics for one exam subject."""
    service = AnalyticsService(db)
    return service.subject_analytics(context.scope, exam_subject_id, mode=mode)
