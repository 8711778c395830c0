"""Exam and subject analytics over live marks or published results."""

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from exam_engine.core.dependencies import TenantScope
from exam_engine.core.exceptions import ResultsNotPublishedError
from exam_engine.core.scoring import ZERO, mean, percentage_of, quantize, to_decimal
from exam_engine.models.exam import Exam, ExamStatus, ExamSubject
from exam_engine.models.mark import Mark
from exam_engine.models.result import PublishedResult, PublishedSubjectResult
from exam_engine.schemas.analytics import AnalyticsMode, ExamAnalytics, GradeCount, SubjectAnalytics
from exam_engine.services.exam import ExamService
from exam_engine.services.results import build_rollups

logger = logging.getLogger(__name__)


@dataclass
class Entry:
    """One student's outcome in one subject, whatever the source."""

    marks_obtained: Decimal | None
    is_absent: bool


def summarize_subject(
    subject: ExamSubject,
    entries: Sequence[Entry],
    mode: AnalyticsMode,
    version: int,
) -> SubjectAnalytics:
    """Aggregate one subject. Absent entries count toward total_students only."""
    total = to_decimal(subject.total_marks)
    passing = to_decimal(subject.passing_marks)
    present = [e.marks_obtained for e in entries if not e.is_absent and e.marks_obtained is not None]
    percentages = [percentage_of(m, total) for m in present]
    passed = sum(1 for m in present if m >= passing)

    return SubjectAnalytics(
        exam_subject_id=subject.id,
        subject_id=subject.subject_id,
        subject_name=subject.subject_name,
        mode=mode,
        version=version,
        total_marks=quantize(total),
        passing_marks=quantize(passing),
        total_students=len(entries),
        absent_count=len(entries) - len(present),
        pass_count=passed,
        fail_count=len(present) - passed,
        average_marks=mean(present),
        highest_marks=quantize(max(present, default=ZERO)),
        lowest_marks=quantize(min(present, default=ZERO)),
        average_percentage=mean(percentages),
        highest_percentage=max(percentages, default=quantize(ZERO)),
        lowest_percentage=min(percentages, default=quantize(ZERO)),
        pass_rate=percentage_of(Decimal(passed), Decimal(len(present))),
    )


def aggregate_passing_percentage(subjects: Sequence[ExamSubject]) -> Decimal:
    """Overall pass threshold: sum of passing marks over sum of totals."""
    total = sum((to_decimal(s.total_marks) for s in subjects), ZERO)
    passing = sum((to_decimal(s.passing_marks) for s in subjects), ZERO)
    return percentage_of(passing, total)


class AnalyticsService:
    """Read-only aggregate statistics for exams and exam subjects."""

    def __init__(self, db: Session):
        self.db = db
        self.exams = ExamService(db)

    def _resolve_mode(self, exam: Exam, mode: AnalyticsMode | None) -> AnalyticsMode:
        published = exam.status == ExamStatus.RESULTS_PUBLISHED
        if mode is None:
            return AnalyticsMode.PUBLISHED if published else AnalyticsMode.LIVE
        if mode == AnalyticsMode.PUBLISHED and not published:
            raise ResultsNotPublishedError(exam.id)
        return mode

    # ==========================================
    # Entry sources
    # ==========================================

    def _live_entries(self, subject_ids: list[int]) -> dict[int, list[Entry]]:
        entries: dict[int, list[Entry]] = {sid: [] for sid in subject_ids}
        if not subject_ids:
            return entries
        marks = self.db.execute(
            select(Mark.exam_subject_id, Mark.marks_obtained, Mark.is_absent)
            .where(Mark.exam_subject_id.in_(subject_ids))
        ).all()
        for exam_subject_id, obtained, absent in marks:
            entries[exam_subject_id].append(Entry(
                marks_obtained=None if absent or obtained is None else to_decimal(obtained),
                is_absent=absent or obtained is None,
            ))
        return entries

    def _published_entries(self, exam_id: int, subject_ids: list[int]) -> dict[int, list[Entry]]:
        entries: dict[int, list[Entry]] = {sid: [] for sid in subject_ids}
        rows = self.db.execute(
            select(
                PublishedSubjectResult.exam_subject_id,
                PublishedSubjectResult.marks_obtained,
                PublishedSubjectResult.is_absent,
            )
            .join(PublishedResult, PublishedResult.id == PublishedSubjectResult.result_id)
            .where(PublishedResult.exam_id == exam_id)
        ).all()
        for exam_subject_id, obtained, absent in rows:
            if exam_subject_id in entries:
                entries[exam_subject_id].append(Entry(
                    marks_obtained=None if obtained is None else to_decimal(obtained),
                    is_absent=absent,
                ))
        return entries

    def _entries(self, exam: Exam, mode: AnalyticsMode, subject_ids: list[int]) -> dict[int, list[Entry]]:
        if mode == AnalyticsMode.PUBLISHED:
            return self._published_entries(exam.id, subject_ids)
        return self._live_entries(subject_ids)

    # ==========================================
    # Snapshots
    # ==========================================

    def subject_analytics(
        self,
        scope: TenantScope,
        exam_subject_id: int,
        mode: AnalyticsMode | None = None,
    ) -> SubjectAnalytics:
        subject = self.exams.get_exam_subject(scope, exam_subject_id)
        exam = subject.exam
        mode = self._resolve_mode(exam, mode)
        entries = self._entries(exam, mode, [subject.id])[subject.id]
        return summarize_subject(subject, entries, mode, exam.version)

    def exam_analytics(
        self,
        scope: TenantScope,
        exam_id: int,
        mode: AnalyticsMode | None = None,
    ) -> ExamAnalytics:
        """Exam-wide statistics plus a snapshot per subject.

        Averages, extremes and the pass rate cover ranked students only, i.e.
        students not absent in every subject.
        """
        exam = self.exams.get_exam(scope, exam_id)
        mode = self._resolve_mode(exam, mode)
        subjects = list(exam.subjects)
        entries = self._entries(exam, mode, [s.id for s in subjects])
        threshold = aggregate_passing_percentage(subjects)

        grade_distribution: list[GradeCount] = []
        if mode == AnalyticsMode.PUBLISHED:
            results = self.db.execute(
                select(PublishedResult).where(PublishedResult.exam_id == exam.id)
            ).scalars().all()
            total_students = len(results)
            ranked = [to_decimal(r.percentage) for r in results if r.rank is not None]
            counts = Counter(r.grade for r in results if r.rank is not None)
            grade_distribution = [
                GradeCount(grade=grade, count=count)
                for grade, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
            ]
        else:
            marks = self.db.execute(
                select(Mark).where(Mark.exam_subject_id.in_([s.id for s in subjects]))
            ).scalars().all() if subjects else []
            rollups = build_rollups(subjects, marks)
            total_students = len(rollups)
            ranked = [r.percentage for r in rollups if not r.all_absent]

        passed = sum(1 for pct in ranked if pct >= threshold)
        logger.debug(
            f"[ANALYTICS] Exam {exam.id} ({mode.value}, v{exam.version}): "
            f"{total_students} students, {len(ranked)} ranked, {passed} passed"
        )

        return ExamAnalytics(
            exam_id=exam.id,
            exam_name=exam.name,
            mode=mode,
            version=exam.version,
            total_students=total_students,
            ranked_students=len(ranked),
            passing_percentage=threshold,
            average_percentage=mean(ranked),
            highest_percentage=quantize(max(ranked, default=ZERO)),
            lowest_percentage=quantize(min(ranked, default=ZERO)),
            pass_rate=percentage_of(Decimal(passed), Decimal(len(ranked))),
            subjects=[summarize_subject(s, entries[s.id], mode, exam.version) for s in subjects],
            grade_distribution=grade_distribution,
        )
