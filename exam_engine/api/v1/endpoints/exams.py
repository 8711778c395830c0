"""Exam schedule endpoints."""

from fastapi import APIRouter, Query, Request

from exam_engine.core.database import DbSession
from exam_engine.core.dependencies import ScopeContext
from exam_engine.models.audit import AuditAction
from exam_engine.models.exam import ExamStatus, ExamType
from exam_engine.schemas.common import MessageResponse, PaginatedResponse
from exam_engine.schemas.exam import (
    ExamCreate,
    ExamFilter,
    ExamResponse,
    ExamScheduleResponse,
    ExamStatusUpdate,
    ExamSubjectCreate,
    ExamSubjectResponse,
    ExamUpdate,
)
from exam_engine.services.audit import AuditService
from exam_engine.services.exam import ExamService

router = APIRouter()


@router.post("", response_model=ExamScheduleResponse, status_code=201)
def create_exam(
    request: ExamCreate,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """
    Create an exam in draft, with its subject slots.
    Nothing is saved if any subject is invalid.
    """
    service = ExamService(db)
    exam = service.create_exam(context.scope, request)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_CREATED,
        resource_type="exam",
        resource_id=str(exam.id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        description=f"Exam '{exam.name}' created with {len(exam.subjects)} subjects",
        ip_address=http_request.client.host if http_request.client else None,
    )

    return exam


@router.get("", response_model=PaginatedResponse[ExamResponse])
def list_exams(
    context: ScopeContext,
    db: DbSession,
    term_id: int | None = None,
    exam_type: ExamType | None = None,
    status: ExamStatus | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
):
    """List exams with filtering and pagination."""
    service = ExamService(db)
    filters = ExamFilter(term_id=term_id, exam_type=exam_type, status=status)
    exams, total = service.list_exams(
        context.scope,
        filters=filters,
        page=page,
        page_size=page_size,
    )

    return PaginatedResponse(
        items=exams,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )


@router.get("/{exam_id}", response_model=ExamScheduleResponse)
def get_exam(
    exam_id: int,
    context: ScopeContext,
    db: DbSession,
):
    """Get an exam with its subject schedule."""
    service = ExamService(db)
    return service.get_schedule(context.scope, exam_id)


@router.patch("/{exam_id}", response_model=ExamResponse)
def update_exam(
    exam_id: int,
    request: ExamUpdate,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """
    Update exam details.
    Published exams are locked.
    """
    service = ExamService(db)
    exam = service.update_exam(context.scope, exam_id, request)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_UPDATED,
        resource_type="exam",
        resource_id=str(exam_id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        description=f"Exam {exam_id} updated",
        metadata=request.model_dump(mode="json", exclude_unset=True),
        ip_address=http_request.client.host if http_request.client else None,
    )

    return exam


@router.delete("/{exam_id}", response_model=MessageResponse)
def delete_exam(
    exam_id: int,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """
    Delete an exam.
    Not allowed once marks exist or results are published.
    """
    service = ExamService(db)
    service.delete_exam(context.scope, exam_id)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_DELETED,
        resource_type="exam",
        resource_id=str(exam_id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        ip_address=http_request.client.host if http_request.client else None,
    )

    return MessageResponse(message="Exam deleted successfully")


@router.patch("/{exam_id}/status", response_model=ExamResponse)
def update_exam_status(
    exam_id: int,
    request: ExamStatusUpdate,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """
    Advance the exam one lifecycle step.
    draft -> scheduled -> in_progress -> completed; publishing is a separate call.
    """
    service = ExamService(db)
    previous = service.get_exam(context.scope, exam_id).status
    exam = service.update_status(context.scope, exam_id, request)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_STATUS_CHANGED,
        resource_type="exam",
        resource_id=str(exam_id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        description=f"Exam {exam_id}: {previous.value} -> {exam.status.value}",
        metadata={"from": previous.value, "to": exam.status.value},
        ip_address=http_request.client.host if http_request.client else None,
    )

    return exam


@router.post("/{exam_id}/subjects", response_model=ExamSubjectResponse, status_code=201)
def add_exam_subject(
    exam_id: int,
    request: ExamSubjectCreate,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """
    Add a subject slot to an exam in draft or scheduled.
    """
    service = ExamService(db)
    subject = service.add_subject(context.scope, exam_id, request)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_SUBJECT_ADDED,
        resource_type="exam_subject",
        resource_id=str(subject.id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        description=f"Subject '{subject.subject_name}' added to exam {exam_id}",
        ip_address=http_request.client.host if http_request.client else None,
    )

    return subject
