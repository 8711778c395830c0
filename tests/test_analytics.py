"""Analytics snapshots over live marks and published results."""

from decimal import Decimal

import pytest

from exam_engine.core.exceptions import ResultsNotPublishedError
from exam_engine.models.exam import ExamStatus
from exam_engine.schemas.analytics import AnalyticsMode
from exam_engine.schemas.exam import ExamStatusUpdate
from exam_engine.schemas.mark import EnterMarksRequest, MarkEntry
from exam_engine.services.analytics import AnalyticsService
from exam_engine.services.exam import ExamService
from exam_engine.services.marks import MarksService
from exam_engine.services.results import ResultsService


@pytest.fixture
def midterm(db, scope, make_exam, make_students):
    """Midterm 2025: A scores 80/60, B scores 90 in Math and is absent in English."""
    student_a, student_b = make_students(2)
    exam = make_exam(status=ExamStatus.IN_PROGRESS)
    math, english = exam.subjects
    marks = MarksService(db)
    marks.enter_marks(scope, math.id, EnterMarksRequest(entries=[
        MarkEntry(student_id=student_a.id, marks_obtained=Decimal("80")),
        MarkEntry(student_id=student_b.id, marks_obtained=Decimal("90")),
    ]))
    marks.enter_marks(scope, english.id, EnterMarksRequest(entries=[
        MarkEntry(student_id=student_a.id, marks_obtained=Decimal("60")),
        MarkEntry(student_id=student_b.id, is_absent=True),
    ]))
    return exam


class TestSubjectAnalytics:
    def test_absent_students_excluded_from_pass_rate(self, db, scope, midterm):
        english = midterm.subjects[1]
        stats = AnalyticsService(db).subject_analytics(scope, english.id)
        assert stats.mode == AnalyticsMode.LIVE
        assert stats.total_students == 2
        assert stats.absent_count == 1
        assert stats.pass_count == 1
        assert stats.fail_count == 0
        assert stats.pass_rate == Decimal("100.00")
        assert stats.average_marks == Decimal("60.00")

    def test_averages_and_extremes(self, db, scope, midterm):
        math = midterm.subjects[0]
        stats = AnalyticsService(db).subject_analytics(scope, math.id)
        assert stats.average_marks == Decimal("85.00")
        assert stats.highest_marks == Decimal("90.00")
        assert stats.lowest_marks == Decimal("80.00")
        assert stats.average_percentage == Decimal("85.00")

    def test_no_entries_yields_zeros(self, db, scope, make_exam):
        exam = make_exam(subjects=[("Math", 100, 40)], status=ExamStatus.IN_PROGRESS)
        stats = AnalyticsService(db).subject_analytics(scope, exam.subjects[0].id)
        assert stats.total_students == 0
        assert stats.average_marks == Decimal("0.00")
        assert stats.pass_rate == Decimal("0.00")


class TestExamAnalytics:
    def test_live_snapshot(self, db, scope, midterm):
        stats = AnalyticsService(db).exam_analytics(scope, midterm.id)
        assert stats.mode == AnalyticsMode.LIVE
        assert stats.total_students == 2
        assert stats.ranked_students == 2
        assert stats.passing_percentage == Decimal("40.00")
        assert stats.average_percentage == Decimal("57.50")
        assert stats.highest_percentage == Decimal("70.00")
        assert stats.lowest_percentage == Decimal("45.00")
        assert stats.pass_rate == Decimal("100.00")
        assert [s.subject_name for s in stats.subjects] == ["Math", "English"]
        assert stats.grade_distribution == []

    def test_published_mode_requires_publish(self, db, scope, midterm):
        with pytest.raises(ResultsNotPublishedError):
            AnalyticsService(db).exam_analytics(scope, midterm.id, mode=AnalyticsMode.PUBLISHED)

    def test_defaults_to_published_after_publish(self, db, scope, midterm, make_scale):
        scale = make_scale()
        ExamService(db).update_status(scope, midterm.id, ExamStatusUpdate(status=ExamStatus.COMPLETED))
        ResultsService(db).publish(scope, midterm.id, scale.id)

        stats = AnalyticsService(db).exam_analytics(scope, midterm.id)
        assert stats.mode == AnalyticsMode.PUBLISHED
        assert stats.average_percentage == Decimal("57.50")
        assert {g.grade: g.count for g in stats.grade_distribution} == {"B+": 1, "C": 1}

        english = next(s for s in stats.subjects if s.subject_name == "English")
        assert english.pass_rate == Decimal("100.00")
        assert english.absent_count == 1

    def test_snapshot_carries_exam_version(self, db, scope, midterm):
        version = ExamService(db).get_exam(scope, midterm.id).version
        stats = AnalyticsService(db).exam_analytics(scope, midterm.id)
        assert stats.version == version
        assert all(s.version == version for s in stats.subjects)
