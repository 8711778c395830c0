"""Exam subject and marks entry endpoints."""

from io import BytesIO

from fastapi import APIRouter, File, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from exam_engine.core.config import settings
from exam_engine.core.database import DbSession
from exam_engine.core.dependencies import ScopeContext
from exam_engine.core.exceptions import UploadError
from exam_engine.models.audit import AuditAction
from exam_engine.schemas.common import MessageResponse
from exam_engine.schemas.exam import ExamSubjectResponse, ExamSubjectUpdate
from exam_engine.schemas.mark import EnterMarksRequest, MarkResponse, MarkSheetResponse, MarksEntryResult
from exam_engine.services.audit import AuditService
from exam_engine.services.exam import ExamService
from exam_engine.services.marks import MarksService

router = APIRouter()


@router.patch("/{exam_subject_id}", response_model=ExamSubjectResponse)
def update_exam_subject(
    exam_subject_id: int,
    request: ExamSubjectUpdate,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """
    Update a subject slot.
    Frozen once marks entry opens, unless flagged as an administrative correction.
    """
    service = ExamService(db)
    subject = service.update_subject(context.scope, exam_subject_id, request)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_SUBJECT_UPDATED,
        resource_type="exam_subject",
        resource_id=str(exam_subject_id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        description=(
            f"Administrative correction to exam subject {exam_subject_id}"
            if request.administrative_correction
            else f"Exam subject {exam_subject_id} updated"
        ),
        metadata=request.model_dump(mode="json", exclude_unset=True),
        ip_address=http_request.client.host if http_request.client else None,
    )

    return subject


@router.delete("/{exam_subject_id}", response_model=MessageResponse)
def remove_exam_subject(
    exam_subject_id: int,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """Remove a subject slot that has no marks."""
    service = ExamService(db)
    service.remove_subject(context.scope, exam_subject_id)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_SUBJECT_REMOVED,
        resource_type="exam_subject",
        resource_id=str(exam_subject_id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        ip_address=http_request.client.host if http_request.client else None,
    )

    return MessageResponse(message="Exam subject removed successfully")


@router.put("/{exam_subject_id}/marks", response_model=MarksEntryResult)
def enter_marks(
    exam_subject_id: int,
    request: EnterMarksRequest,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """
    Create or update marks for an exam subject in one batch.
    If any entry is invalid the whole batch is rejected and nothing is saved.
    """
    service = MarksService(db)
    result = service.enter_marks(context.scope, exam_subject_id, request)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.MARKS_ENTERED,
        resource_type="exam_subject",
        resource_id=str(exam_subject_id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        description=f"Marks entered: {result.created} created, {result.updated} updated",
        metadata={
            "exam_id": result.exam_id,
            "created": result.created,
            "updated": result.updated,
            "version": result.version,
        },
        ip_address=http_request.client.host if http_request.client else None,
    )

    return result


@router.get("/{exam_subject_id}/marks", response_model=list[MarkResponse])
def get_marks(
    exam_subject_id: int,
    context: ScopeContext,
    db: DbSession,
):
    """Get the stored marks of an exam subject."""
    service = MarksService(db)
    return service.get_marks(context.scope, exam_subject_id)


@router.get("/{exam_subject_id}/marks/sheet", response_model=MarkSheetResponse)
def get_mark_sheet(
    exam_subject_id: int,
    context: ScopeContext,
    db: DbSession,
    class_name: str | None = Query(None, description="Limit the roster to one class"),
):
    """
    Get the mark sheet: every enrolled student with their stored mark, if any.
    """
    service = MarksService(db)
    return service.get_mark_sheet(context.scope, exam_subject_id, class_name=class_name)


@router.get("/{exam_subject_id}/marks/template")
def download_marks_template(
    exam_subject_id: int,
    context: ScopeContext,
    db: DbSession,
    class_name: str | None = Query(None, description="Limit the roster to one class"),
):
    """
    Download the Excel mark sheet for an exam subject.
    Fill it in and send it back through the upload endpoint.
    """
    service = MarksService(db)
    content = service.generate_template(context.scope, exam_subject_id, class_name=class_name)

    filename = f"marks_{exam_subject_id}"
    if class_name:
        filename += f"_{class_name.replace(' ', '_')}"
    filename += ".xlsx"

    return StreamingResponse(
        BytesIO(content),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/{exam_subject_id}/marks/upload", response_model=MarksEntryResult)
def upload_marks_excel(
    exam_subject_id: int,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
    file: UploadFile = File(...),
):
    """
    Upload a filled-in mark sheet.
    The sheet is entered as one batch, so one bad row rejects the whole file.
    """
    if not file.filename:
        raise UploadError("No file provided")

    if not any(file.filename.endswith(ext) for ext in settings.ALLOWED_EXTENSIONS):
        raise UploadError(f"Only {', '.join(settings.ALLOWED_EXTENSIONS)} files are allowed")

    content = file.file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise UploadError(f"File size exceeds {settings.MAX_UPLOAD_SIZE_MB}MB limit")

    service = MarksService(db)
    result = service.import_excel(context.scope, exam_subject_id, content)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.MARKS_IMPORTED,
        resource_type="exam_subject",
        resource_id=str(exam_subject_id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        description=f"Marks imported: {result.total_entries} rows",
        metadata={
            "file_name": file.filename,
            "exam_id": result.exam_id,
            "created": result.created,
            "updated": result.updated,
            "version": result.version,
        },
        ip_address=http_request.client.host if http_request.client else None,
    )

    return result
