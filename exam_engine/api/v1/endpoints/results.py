"""Result publishing endpoints."""

from fastapi import APIRouter, Request

from exam_engine.core.database import DbSession
from exam_engine.core.dependencies import ScopeContext
from exam_engine.models.audit import AuditAction
from exam_engine.schemas.result import PublishedResultResponse, PublishRequest, PublishSummary
from exam_engine.services.audit import AuditService
from exam_engine.services.results import ResultsService

router = APIRouter()


@router.post("/{exam_id}/publish", response_model=PublishSummary)
def publish_results(
    exam_id: int,
    request: PublishRequest,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """
    Grade, rank and publish results for a completed exam.
    Publishing again recomputes and replaces every result of the exam.
    """
    service = ResultsService(db)
    summary = service.publish(context.scope, exam_id, request.grading_scale_id)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.RESULTS_PUBLISHED,
        resource_type="exam",
        resource_id=str(exam_id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        description=(
            f"Results {'republished' if summary.republished else 'published'} "
            f"for {summary.total_students} students"
        ),
        metadata={
            "grading_scale_id": summary.grading_scale_id,
            "total_students": summary.total_students,
            "ranked_students": summary.ranked_students,
            "version": summary.version,
        },
        ip_address=http_request.client.host if http_request.client else None,
    )

    return summary


@router.get("/{exam_id}/results", response_model=list[PublishedResultResponse])
def list_exam_results(
    exam_id: int,
    context: ScopeContext,
    db: DbSession,
):
    """Get published results of an exam, ordered by rank."""
    service = ResultsService(db)
    return service.list_exam_results(context.scope, exam_id)
