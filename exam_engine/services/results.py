"""Results publisher: grades, ranks and writes published results."""

import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from exam_engine.core.dependencies import TenantScope
from exam_engine.core.exceptions import (
    ExamNotReadyError,
    NotFoundError,
    PublishInProgressError,
    ResultsNotPublishedError,
)
from exam_engine.core.locks import PublishLockRegistry, publish_locks
from exam_engine.core.scoring import ZERO, percentage_of, quantize, to_decimal
from exam_engine.models.exam import Exam, ExamStatus, ExamSubject
from exam_engine.models.grading_scale import GradingScale
from exam_engine.models.mark import Mark
from exam_engine.models.result import PublishedResult, PublishedSubjectResult
from exam_engine.schemas.result import PublishedResultResponse, PublishSummary
from exam_engine.services.exam import ExamService
from exam_engine.services.grading_scale import GradingScaleService

logger = logging.getLogger(__name__)

# PostgreSQL "lock_not_available", raised by FOR UPDATE NOWAIT
LOCK_NOT_AVAILABLE = "55P03"


def assign_competition_ranks(percentages: dict[int, Decimal]) -> dict[int, int]:
    """Standard competition ranking ("1224"), highest percentage first.

    Tied students share a rank; the next distinct percentage is ranked one
    past the number of students strictly ahead of it.
    """
    ordered = sorted(percentages.items(), key=lambda item: (-item[1], item[0]))
    ranks: dict[int, int] = {}
    previous: Decimal | None = None
    current_rank = 0
    for position, (student_id, percentage) in enumerate(ordered, start=1):
        if percentage != previous:
            current_rank = position
            previous = percentage
        ranks[student_id] = current_rank
    return ranks


@dataclass
class SubjectLine:
    subject: ExamSubject
    marks_obtained: Decimal | None
    is_absent: bool
    percentage: Decimal
    grade: str | None = None
    grade_point: Decimal | None = None

    @property
    def is_pass(self) -> bool:
        return (
            not self.is_absent
            and self.marks_obtained is not None
            and self.marks_obtained >= to_decimal(self.subject.passing_marks)
        )


@dataclass
class StudentRollup:
    student_id: int
    lines: list[SubjectLine] = field(default_factory=list)

    @property
    def all_absent(self) -> bool:
        return all(line.is_absent for line in self.lines)

    @property
    def obtained_marks(self) -> Decimal:
        return sum((line.marks_obtained or ZERO for line in self.lines), ZERO)

    @property
    def total_marks(self) -> Decimal:
        return sum((to_decimal(line.subject.total_marks) for line in self.lines), ZERO)

    @property
    def percentage(self) -> Decimal:
        if self.all_absent:
            return quantize(ZERO)
        return percentage_of(self.obtained_marks, self.total_marks)


def build_rollups(subjects: Sequence[ExamSubject], marks: Sequence[Mark]) -> list[StudentRollup]:
    """Roll marks up per student across every subject of the exam.

    Only students with at least one mark are included; a subject without an
    entry counts as absent for that student.
    """
    by_student: dict[int, dict[int, Mark]] = defaultdict(dict)
    for mark in marks:
        by_student[mark.student_id][mark.exam_subject_id] = mark

    rollups = []
    for student_id in sorted(by_student):
        rollup = StudentRollup(student_id=student_id)
        for subject in subjects:
            mark = by_student[student_id].get(subject.id)
            absent = mark is None or mark.is_absent or mark.marks_obtained is None
            obtained = None if absent else to_decimal(mark.marks_obtained)
            rollup.lines.append(SubjectLine(
                subject=subject,
                marks_obtained=obtained,
                is_absent=absent,
                percentage=percentage_of(obtained, subject.total_marks) if obtained is not None else quantize(ZERO),
            ))
        rollups.append(rollup)
    return rollups


class ResultsService:
    """Publishes and reads exam results."""

    def __init__(self, db: Session, locks: PublishLockRegistry | None = None):
        self.db = db
        self.locks = locks or publish_locks
        self.exams = ExamService(db)
        self.scales = GradingScaleService(db)

    # ==========================================
    # Publish
    # ==========================================

    def _lock_exam_row(self, exam: Exam) -> None:
        """Take the exam row lock, failing fast if another publish holds it."""
        try:
            self.db.execute(
                select(Exam.id).where(Exam.id == exam.id).with_for_update(nowait=True)
            )
        except OperationalError as e:
            if getattr(e.orig, "sqlstate", None) == LOCK_NOT_AVAILABLE:
                raise PublishInProgressError(exam.id)
            raise

    def publish(self, scope: TenantScope, exam_id: int, grading_scale_id: int) -> PublishSummary:
        """Grade, rank and publish results for a completed exam.

        Republishing an already published exam recomputes every result and
        replaces the previous set.
        """
        exam = self.exams.get_exam(scope, exam_id)
        if exam.status not in (ExamStatus.COMPLETED, ExamStatus.RESULTS_PUBLISHED):
            raise ExamNotReadyError(exam.id, exam.status.value)

        with self.locks.hold(exam.id):
            self._lock_exam_row(exam)
            self.db.refresh(exam)
            if exam.status not in (ExamStatus.COMPLETED, ExamStatus.RESULTS_PUBLISHED):
                raise ExamNotReadyError(exam.id, exam.status.value)

            scale = self.scales.get_scale_model(scope, grading_scale_id)
            republished = exam.status == ExamStatus.RESULTS_PUBLISHED
            logger.info(
                f"[PUBLISH] {'Republishing' if republished else 'Publishing'} exam {exam.id} "
                f"with scale {scale.id} ('{scale.name}' v{scale.version})"
            )

            subjects = list(exam.subjects)
            marks = self.db.execute(
                select(Mark).where(Mark.exam_subject_id.in_([s.id for s in subjects]))
            ).scalars().all() if subjects else []

            rollups = build_rollups(subjects, marks)
            results = self._grade(exam, scale, rollups)
            self._replace_results(exam, results)

            exam.status = ExamStatus.RESULTS_PUBLISHED
            exam.grading_scale_id = scale.id
            exam.published_at = results[0].published_at if results else datetime.now(timezone.utc)
            exam.bump_version()
            self.db.flush()

            ranked = sum(1 for r in results if r.rank is not None)
            logger.info(f"[PUBLISH] Exam {exam.id}: {len(results)} results, {ranked} ranked, now v{exam.version}")

            return PublishSummary(
                exam_id=exam.id,
                status=exam.status,
                grading_scale_id=scale.id,
                published_at=exam.published_at,
                total_students=len(results),
                ranked_students=ranked,
                version=exam.version,
                republished=republished,
            )

    def _grade(self, exam: Exam, scale: GradingScale, rollups: list[StudentRollup]) -> list[PublishedResult]:
        published_at = datetime.now(timezone.utc)
        ranks = assign_competition_ranks({
            r.student_id: r.percentage for r in rollups if not r.all_absent
        })

        results = []
        for rollup in rollups:
            for line in rollup.lines:
                if not line.is_absent:
                    resolution = self.scales.resolve_with(scale, line.percentage)
                    line.grade, line.grade_point = resolution.grade, resolution.grade_point

            overall = self.scales.resolve_with(scale, rollup.percentage)
            results.append(PublishedResult(
                tenant_id=exam.tenant_id,
                branch_id=exam.branch_id,
                exam_id=exam.id,
                student_id=rollup.student_id,
                total_marks=quantize(rollup.total_marks),
                obtained_marks=quantize(rollup.obtained_marks),
                percentage=rollup.percentage,
                grade=overall.grade,
                grade_point=overall.grade_point,
                rank=ranks.get(rollup.student_id),
                grading_scale_id=scale.id,
                published_at=published_at,
                subjects=[
                    PublishedSubjectResult(
                        exam_subject_id=line.subject.id,
                        subject_id=line.subject.subject_id,
                        subject_name=line.subject.subject_name,
                        total_marks=line.subject.total_marks,
                        passing_marks=line.subject.passing_marks,
                        marks_obtained=line.marks_obtained,
                        is_absent=line.is_absent,
                        percentage=line.percentage,
                        grade=line.grade,
                        grade_point=line.grade_point,
                        is_pass=line.is_pass,
                    )
                    for line in rollup.lines
                ],
            ))
        return results

    def _replace_results(self, exam: Exam, results: list[PublishedResult]) -> None:
        previous = self.list_result_models(exam.id)
        for result in previous:
            self.db.delete(result)
        self.db.flush()
        if previous:
            logger.info(f"[PUBLISH] Replaced {len(previous)} previous results for exam {exam.id}")
        self.db.add_all(results)
        self.db.flush()

    # ==========================================
    # Reads
    # ==========================================

    def _published_exam(self, scope: TenantScope, exam_id: int) -> Exam:
        exam = self.exams.get_exam(scope, exam_id)
        if exam.status != ExamStatus.RESULTS_PUBLISHED:
            raise ResultsNotPublishedError(exam.id)
        return exam

    def get_result_model(self, scope: TenantScope, exam_id: int, student_id: int) -> PublishedResult:
        exam = self._published_exam(scope, exam_id)
        result = self.db.execute(
            select(PublishedResult).where(
                PublishedResult.exam_id == exam.id,
                PublishedResult.student_id == student_id,
            )
        ).scalar_one_or_none()
        if not result:
            raise NotFoundError("Published result", f"exam={exam_id}, student={student_id}")
        return result

    def list_result_models(self, exam_id: int) -> list[PublishedResult]:
        result = self.db.execute(
            select(PublishedResult)
            .where(PublishedResult.exam_id == exam_id)
            .order_by(PublishedResult.rank.is_(None), PublishedResult.rank, PublishedResult.student_id)
        )
        return list(result.scalars().all())

    def list_exam_results(self, scope: TenantScope, exam_id: int) -> list[PublishedResultResponse]:
        """Published results of an exam, by rank with unranked students last."""
        exam = self._published_exam(scope, exam_id)
        return [PublishedResultResponse.model_validate(r) for r in self.list_result_models(exam.id)]

    def get_student_exam_result(self, scope: TenantScope, student_id: int, exam_id: int) -> PublishedResultResponse:
        return PublishedResultResponse.model_validate(self.get_result_model(scope, exam_id, student_id))

    def get_student_results(self, scope: TenantScope, student_id: int) -> list[PublishedResultResponse]:
        """Every published result of a student, latest exam first."""
        query = (
            select(PublishedResult)
            .join(Exam, Exam.id == PublishedResult.exam_id)
            .where(
                PublishedResult.student_id == student_id,
                PublishedResult.tenant_id == scope.tenant_id,
                Exam.status == ExamStatus.RESULTS_PUBLISHED,
            )
            .order_by(Exam.start_date.desc(), Exam.id.desc())
        )
        if scope.branch_id is not None:
            query = query.where(PublishedResult.branch_id == scope.branch_id)
        return [PublishedResultResponse.model_validate(r) for r in self.db.execute(query).scalars().all()]
