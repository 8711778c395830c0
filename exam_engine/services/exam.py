"""Exam schedule service: exams, subject slots and the status machine."""

import logging
from collections.abc import Sequence
from datetime import date
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from exam_engine.core.dependencies import TenantScope
from exam_engine.core.exceptions import (
    ExamLockedError,
    InvalidTransitionError,
    NotFoundError,
    ScheduleLockedError,
    ValidationError,
)
from exam_engine.core.scoring import ZERO, to_decimal
from exam_engine.models.exam import Exam, ExamStatus, ExamSubject
from exam_engine.models.mark import Mark
from exam_engine.schemas.exam import (
    ExamCreate,
    ExamFilter,
    ExamResponse,
    ExamScheduleResponse,
    ExamStatusUpdate,
    ExamSubjectCreate,
    ExamSubjectResponse,
    ExamSubjectUpdate,
    ExamUpdate,
)

logger = logging.getLogger(__name__)

# Statuses in which marks may exist and subject bounds are frozen
MARKS_OPEN_STATUSES = {ExamStatus.IN_PROGRESS, ExamStatus.COMPLETED}


def check_subject_bounds(
    total_marks: Any,
    passing_marks: Any,
    exam_date: date | None,
    start_date: date,
    end_date: date,
) -> list[dict[str, Any]]:
    """Return the field errors of one subject slot."""
    errors: list[dict[str, Any]] = []
    total = to_decimal(total_marks) if total_marks is not None else None
    passing = to_decimal(passing_marks) if passing_marks is not None else None

    if total is None or total <= ZERO:
        errors.append({"field": "total_marks", "message": "total_marks must be greater than 0"})
    if passing is None or passing < ZERO:
        errors.append({"field": "passing_marks", "message": "passing_marks must be 0 or more"})
    elif total is not None and passing > total:
        errors.append({
            "field": "passing_marks",
            "message": f"passing_marks ({passing}) exceeds total_marks ({total})",
        })
    if exam_date is not None and not (start_date <= exam_date <= end_date):
        errors.append({
            "field": "exam_date",
            "message": f"exam_date {exam_date} is outside the exam window {start_date} - {end_date}",
        })
    return errors


class ExamService:
    """Exam schedule management service."""

    def __init__(self, db: Session):
        self.db = db

    # ==========================================
    # Lookups
    # ==========================================

    def get_exam(self, scope: TenantScope, exam_id: int) -> Exam:
        """Get exam by ID within the tenant scope."""
        query = select(Exam).where(
            Exam.id == exam_id,
            Exam.tenant_id == scope.tenant_id,
        )
        if scope.branch_id is not None:
            query = query.where(Exam.branch_id == scope.branch_id)
        exam = self.db.execute(query).scalar_one_or_none()
        if not exam:
            raise NotFoundError("Exam", str(exam_id))
        return exam

    def get_exam_subject(self, scope: TenantScope, exam_subject_id: int) -> ExamSubject:
        """Get exam subject by ID, validating tenant membership via its exam."""
        query = (
            select(ExamSubject)
            .join(Exam, Exam.id == ExamSubject.exam_id)
            .where(
                ExamSubject.id == exam_subject_id,
                Exam.tenant_id == scope.tenant_id,
            )
        )
        if scope.branch_id is not None:
            query = query.where(Exam.branch_id == scope.branch_id)
        subject = self.db.execute(query).scalar_one_or_none()
        if not subject:
            raise NotFoundError("Exam subject", str(exam_subject_id))
        return subject

    def count_marks(self, exam_subject_ids: Sequence[int]) -> int:
        if not exam_subject_ids:
            return 0
        result = self.db.execute(
            select(func.count()).where(Mark.exam_subject_id.in_(list(exam_subject_ids)))
        )
        return result.scalar() or 0

    def exam_has_marks(self, exam: Exam) -> bool:
        return self.count_marks([s.id for s in exam.subjects]) > 0

    def list_exams(
        self,
        scope: TenantScope,
        filters: ExamFilter | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[ExamResponse], int]:
        """List exams with filtering."""
        query = select(Exam).where(Exam.tenant_id == scope.tenant_id)
        if scope.branch_id is not None:
            query = query.where(Exam.branch_id == scope.branch_id)

        if filters:
            if filters.term_id:
                query = query.where(Exam.term_id == filters.term_id)
            if filters.exam_type:
                query = query.where(Exam.exam_type == filters.exam_type)
            if filters.status:
                query = query.where(Exam.status == filters.status)

        count_result = self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar() or 0

        query = (
            query
            .order_by(Exam.start_date.desc(), Exam.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        exams = self.db.execute(query).scalars().all()
        return [ExamResponse.model_validate(e) for e in exams], total

    def get_schedule(self, scope: TenantScope, exam_id: int) -> ExamScheduleResponse:
        """Get exam with its subject slots."""
        return ExamScheduleResponse.model_validate(self.get_exam(scope, exam_id))

    # ==========================================
    # Exam lifecycle
    # ==========================================

    def create_exam(self, scope: TenantScope, request: ExamCreate) -> ExamScheduleResponse:
        """Create an exam with its subjects, all-or-nothing."""
        errors: list[dict[str, Any]] = []
        if request.start_date > request.end_date:
            errors.append({
                "field": "end_date",
                "message": f"end_date {request.end_date} is before start_date {request.start_date}",
            })

        seen_subjects: set[int] = set()
        for index, subject in enumerate(request.subjects):
            for error in check_subject_bounds(
                subject.total_marks,
                subject.passing_marks,
                subject.exam_date,
                request.start_date,
                request.end_date,
            ):
                errors.append({"index": index, "subject_id": subject.subject_id, **error})
            if subject.subject_id in seen_subjects:
                errors.append({
                    "index": index,
                    "subject_id": subject.subject_id,
                    "field": "subject_id",
                    "message": "Subject appears more than once in this exam",
                })
            seen_subjects.add(subject.subject_id)

        if errors:
            raise ValidationError("Exam schedule is invalid. Nothing was saved.", details={"errors": errors})

        exam = Exam(
            tenant_id=scope.tenant_id,
            branch_id=scope.branch_id,
            term_id=request.term_id,
            name=request.name,
            exam_type=request.exam_type,
            status=ExamStatus.DRAFT,
            start_date=request.start_date,
            end_date=request.end_date,
            description=request.description,
            version=1,
            subjects=[self._build_subject(s) for s in request.subjects],
        )
        self.db.add(exam)
        self.db.flush()
        self.db.refresh(exam)
        logger.info(f"[SCHEDULE] Created exam {exam.id} '{exam.name}' with {len(exam.subjects)} subjects")
        return ExamScheduleResponse.model_validate(exam)

    def _build_subject(self, request: ExamSubjectCreate) -> ExamSubject:
        return ExamSubject(
            subject_id=request.subject_id,
            subject_name=request.subject_name or f"Subject {request.subject_id}",
            exam_date=request.exam_date,
            total_marks=to_decimal(request.total_marks),
            passing_marks=to_decimal(request.passing_marks),
        )

    def update_exam(self, scope: TenantScope, exam_id: int, request: ExamUpdate) -> ExamResponse:
        """Update exam details."""
        exam = self.get_exam(scope, exam_id)
        if exam.status == ExamStatus.RESULTS_PUBLISHED:
            raise ExamLockedError(exam.id)

        update_data = request.model_dump(exclude_unset=True)
        start_date = update_data.get("start_date") or exam.start_date
        end_date = update_data.get("end_date") or exam.end_date

        errors: list[dict[str, Any]] = []
        if start_date > end_date:
            errors.append({
                "field": "end_date",
                "message": f"end_date {end_date} is before start_date {start_date}",
            })
        for subject in exam.subjects:
            if subject.exam_date and not (start_date <= subject.exam_date <= end_date):
                errors.append({
                    "field": "start_date" if subject.exam_date < start_date else "end_date",
                    "subject_id": subject.subject_id,
                    "message": f"Subject {subject.subject_name} is scheduled on {subject.exam_date}, outside the new window",
                })
        if errors:
            raise ValidationError("Exam update is invalid", details={"errors": errors})

        for field, value in update_data.items():
            if value is not None or field in ("description", "term_id"):
                setattr(exam, field, value)

        self.db.flush()
        self.db.refresh(exam)
        return ExamResponse.model_validate(exam)

    def delete_exam(self, scope: TenantScope, exam_id: int) -> None:
        """Delete an exam that has no marks yet."""
        exam = self.get_exam(scope, exam_id)
        if exam.status == ExamStatus.RESULTS_PUBLISHED:
            raise ExamLockedError(exam.id)
        if self.exam_has_marks(exam):
            raise ScheduleLockedError(
                exam.id,
                exam.status.value,
                "Exam has recorded marks and cannot be deleted",
            )
        self.db.delete(exam)
        self.db.flush()
        logger.info(f"[SCHEDULE] Deleted exam {exam_id}")

    def update_status(
        self,
        scope: TenantScope,
        exam_id: int,
        request: ExamStatusUpdate,
    ) -> ExamResponse:
        """Advance the exam one step along its lifecycle.

        results_published is reserved for the results publisher.
        """
        exam = self.get_exam(scope, exam_id)
        requested = request.status
        successor = exam.status.successor

        if requested != successor or requested == ExamStatus.RESULTS_PUBLISHED:
            raise InvalidTransitionError(exam.id, exam.status.value, requested.value)

        if requested == ExamStatus.SCHEDULED and not exam.subjects:
            raise ValidationError(
                "An exam needs at least one subject before it can be scheduled",
                details={"field": "subjects", "exam_id": exam.id},
            )

        previous = exam.status
        exam.status = requested
        self.db.flush()
        self.db.refresh(exam)
        logger.info(f"[SCHEDULE] Exam {exam.id} moved {previous.value} -> {requested.value}")
        return ExamResponse.model_validate(exam)

    # ==========================================
    # Subject slots
    # ==========================================

    def _ensure_schedule_editable(self, exam: Exam, action: str) -> None:
        if exam.status == ExamStatus.RESULTS_PUBLISHED:
            raise ExamLockedError(exam.id)
        if exam.status in MARKS_OPEN_STATUSES:
            raise ScheduleLockedError(
                exam.id,
                exam.status.value,
                f"Cannot {action} subjects once marks entry has opened",
            )

    def add_subject(
        self,
        scope: TenantScope,
        exam_id: int,
        request: ExamSubjectCreate,
    ) -> ExamSubjectResponse:
        """Add a subject slot while the exam is in draft or scheduled."""
        exam = self.get_exam(scope, exam_id)
        self._ensure_schedule_editable(exam, "add")

        errors = check_subject_bounds(
            request.total_marks,
            request.passing_marks,
            request.exam_date,
            exam.start_date,
            exam.end_date,
        )
        if any(s.subject_id == request.subject_id for s in exam.subjects):
            errors.append({"field": "subject_id", "message": "Subject is already part of this exam"})
        if errors:
            raise ValidationError("Exam subject is invalid", details={"subject_id": request.subject_id, "errors": errors})

        subject = self._build_subject(request)
        exam.subjects.append(subject)
        self.db.flush()
        self.db.refresh(subject)
        return ExamSubjectResponse.model_validate(subject)

    def update_subject(
        self,
        scope: TenantScope,
        exam_subject_id: int,
        request: ExamSubjectUpdate,
    ) -> ExamSubjectResponse:
        """Update a subject slot.

        Bounds are frozen once marks entry opens, except for an administrative
        correction that keeps every stored mark within the new bounds.
        """
        subject = self.get_exam_subject(scope, exam_subject_id)
        exam = subject.exam
        if exam.status == ExamStatus.RESULTS_PUBLISHED:
            raise ExamLockedError(exam.id)

        update_data = request.model_dump(exclude_unset=True, exclude={"administrative_correction"})
        mark_count = self.count_marks([subject.id])

        if exam.status in MARKS_OPEN_STATUSES or mark_count:
            if not request.administrative_correction:
                raise ScheduleLockedError(
                    exam.id,
                    exam.status.value,
                    "Subject bounds are frozen; submit an administrative correction to change them",
                )

        total = update_data.get("total_marks", subject.total_marks)
        passing = update_data.get("passing_marks", subject.passing_marks)
        exam_date = update_data["exam_date"] if "exam_date" in update_data else subject.exam_date
        errors = check_subject_bounds(total, passing, exam_date, exam.start_date, exam.end_date)

        if mark_count and total is not None:
            highest = self.db.execute(
                select(func.max(Mark.marks_obtained)).where(
                    Mark.exam_subject_id == subject.id,
                    Mark.is_absent.is_(False),
                )
            ).scalar()
            if highest is not None and to_decimal(highest) > to_decimal(total):
                errors.append({
                    "field": "total_marks",
                    "message": f"Recorded marks go up to {highest}; total_marks cannot drop below that",
                })
        if errors:
            raise ValidationError("Exam subject update is invalid", details={"exam_subject_id": subject.id, "errors": errors})

        for field, value in update_data.items():
            if field in ("total_marks", "passing_marks") and value is not None:
                value = to_decimal(value)
            if value is not None or field == "exam_date":
                setattr(subject, field, value)

        if mark_count:
            exam.bump_version()
            logger.warning(
                f"[SCHEDULE] Administrative correction on exam subject {subject.id} "
                f"(exam {exam.id}, {mark_count} marks recorded)"
            )

        self.db.flush()
        self.db.refresh(subject)
        return ExamSubjectResponse.model_validate(subject)

    def remove_subject(self, scope: TenantScope, exam_subject_id: int) -> None:
        """Remove a subject slot that has no marks."""
        subject = self.get_exam_subject(scope, exam_subject_id)
        exam = subject.exam
        self._ensure_schedule_editable(exam, "remove")
        if self.count_marks([subject.id]):
            raise ScheduleLockedError(exam.id, exam.status.value, "Subject has recorded marks")
        exam.subjects.remove(subject)
        self.db.flush()
