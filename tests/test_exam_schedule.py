"""Exam schedule: creation, subject slots and the status machine."""

from datetime import date
from decimal import Decimal

import pytest

from exam_engine.core.dependencies import TenantScope
from exam_engine.core.exceptions import (
    ExamLockedError,
    InvalidTransitionError,
    NotFoundError,
    ScheduleLockedError,
    ValidationError,
)
from exam_engine.models.exam import ExamStatus, ExamType
from exam_engine.schemas.exam import (
    ExamCreate,
    ExamFilter,
    ExamStatusUpdate,
    ExamSubjectCreate,
    ExamSubjectUpdate,
    ExamUpdate,
)
from exam_engine.schemas.mark import EnterMarksRequest, MarkEntry
from exam_engine.services.exam import ExamService
from exam_engine.services.marks import MarksService


def exam_request(**overrides) -> ExamCreate:
    data = {
        "name": "Unit Test 1",
        "exam_type": ExamType.CLASS_TEST,
        "start_date": date(2025, 3, 1),
        "end_date": date(2025, 3, 10),
        "subjects": [
            ExamSubjectCreate(subject_id=1, subject_name="Math", total_marks=Decimal("50"), passing_marks=Decimal("20")),
        ],
    }
    data.update(overrides)
    return ExamCreate(**data)


class TestCreateExam:
    def test_new_exam_is_draft(self, db, scope):
        exam = ExamService(db).create_exam(scope, exam_request())
        assert exam.status == ExamStatus.DRAFT
        assert exam.version == 1
        assert [s.subject_name for s in exam.subjects] == ["Math"]

    def test_invalid_subject_rejects_whole_exam(self, db, scope):
        service = ExamService(db)
        request = exam_request(subjects=[
            ExamSubjectCreate(subject_id=1, subject_name="Math", total_marks=Decimal("100"), passing_marks=Decimal("40")),
            ExamSubjectCreate(subject_id=2, subject_name="Art", total_marks=Decimal("50"), passing_marks=Decimal("60")),
        ])
        with pytest.raises(ValidationError) as exc_info:
            service.create_exam(scope, request)
        assert exc_info.value.details["errors"][0]["subject_id"] == 2
        _, total = service.list_exams(scope)
        assert total == 0

    def test_subject_date_outside_window(self, db, scope):
        request = exam_request(subjects=[
            ExamSubjectCreate(
                subject_id=1,
                subject_name="Math",
                exam_date=date(2025, 4, 1),
                total_marks=Decimal("50"),
                passing_marks=Decimal("20"),
            ),
        ])
        with pytest.raises(ValidationError) as exc_info:
            ExamService(db).create_exam(scope, request)
        assert exc_info.value.details["errors"][0]["field"] == "exam_date"

    def test_end_before_start(self, db, scope):
        with pytest.raises(ValidationError):
            ExamService(db).create_exam(scope, exam_request(start_date=date(2025, 3, 10), end_date=date(2025, 3, 1)))

    def test_duplicate_subject(self, db, scope):
        subject = ExamSubjectCreate(subject_id=1, subject_name="Math", total_marks=Decimal("50"), passing_marks=Decimal("20"))
        with pytest.raises(ValidationError):
            ExamService(db).create_exam(scope, exam_request(subjects=[subject, subject]))


class TestStatusMachine:
    def test_walks_forward_one_step_at_a_time(self, db, scope):
        service = ExamService(db)
        exam = service.create_exam(scope, exam_request())
        for status in (ExamStatus.SCHEDULED, ExamStatus.IN_PROGRESS, ExamStatus.COMPLETED):
            assert service.update_status(scope, exam.id, ExamStatusUpdate(status=status)).status == status

    def test_skipping_a_step_is_rejected(self, db, scope):
        service = ExamService(db)
        exam = service.create_exam(scope, exam_request())
        with pytest.raises(InvalidTransitionError):
            service.update_status(scope, exam.id, ExamStatusUpdate(status=ExamStatus.IN_PROGRESS))

    def test_going_back_is_rejected(self, db, scope, make_exam):
        exam = make_exam(status=ExamStatus.IN_PROGRESS)
        with pytest.raises(InvalidTransitionError):
            ExamService(db).update_status(scope, exam.id, ExamStatusUpdate(status=ExamStatus.SCHEDULED))

    def test_publish_only_through_publisher(self, db, scope, make_exam):
        exam = make_exam(status=ExamStatus.COMPLETED)
        with pytest.raises(InvalidTransitionError):
            ExamService(db).update_status(scope, exam.id, ExamStatusUpdate(status=ExamStatus.RESULTS_PUBLISHED))

    def test_scheduling_needs_a_subject(self, db, scope):
        service = ExamService(db)
        exam = service.create_exam(scope, exam_request(subjects=[]))
        with pytest.raises(ValidationError):
            service.update_status(scope, exam.id, ExamStatusUpdate(status=ExamStatus.SCHEDULED))


class TestSubjectSlots:
    def test_add_subject_in_scheduled(self, db, scope, make_exam):
        exam = make_exam(status=ExamStatus.SCHEDULED)
        subject = ExamService(db).add_subject(
            scope,
            exam.id,
            ExamSubjectCreate(subject_id=9, subject_name="Science", total_marks=Decimal("80"), passing_marks=Decimal("30")),
        )
        assert subject.exam_id == exam.id
        assert len(ExamService(db).get_schedule(scope, exam.id).subjects) == 3

    def test_schedule_locked_once_marks_open(self, db, scope, make_exam):
        exam = make_exam(status=ExamStatus.IN_PROGRESS)
        service = ExamService(db)
        with pytest.raises(ScheduleLockedError):
            service.add_subject(
                scope,
                exam.id,
                ExamSubjectCreate(subject_id=9, subject_name="Science", total_marks=Decimal("80"), passing_marks=Decimal("30")),
            )
        with pytest.raises(ScheduleLockedError):
            service.update_subject(scope, exam.subjects[0].id, ExamSubjectUpdate(total_marks=Decimal("120")))

    def test_administrative_correction(self, db, scope, make_exam, make_students):
        students = make_students(1)
        exam = make_exam(subjects=[("Math", 100, 40)], status=ExamStatus.IN_PROGRESS)
        subject_id = exam.subjects[0].id
        MarksService(db).enter_marks(
            scope,
            subject_id,
            EnterMarksRequest(entries=[MarkEntry(student_id=students[0].id, marks_obtained=Decimal("85"))]),
        )
        service = ExamService(db)
        version_before = service.get_exam(scope, exam.id).version

        with pytest.raises(ValidationError):
            service.update_subject(
                scope,
                subject_id,
                ExamSubjectUpdate(total_marks=Decimal("80"), passing_marks=Decimal("30"), administrative_correction=True),
            )

        updated = service.update_subject(
            scope,
            subject_id,
            ExamSubjectUpdate(total_marks=Decimal("90"), passing_marks=Decimal("36"), administrative_correction=True),
        )
        assert updated.total_marks == Decimal("90")
        assert service.get_exam(scope, exam.id).version == version_before + 1

    def test_remove_subject_in_draft(self, db, scope, make_exam):
        exam = make_exam()
        service = ExamService(db)
        service.remove_subject(scope, exam.subjects[0].id)
        assert [s.subject_name for s in service.get_schedule(scope, exam.id).subjects] == ["English"]


class TestExamQueries:
    def test_list_filters_by_status(self, db, scope, make_exam):
        make_exam(name="Draft exam")
        make_exam(name="Running exam", status=ExamStatus.IN_PROGRESS)
        exams, total = ExamService(db).list_exams(scope, ExamFilter(status=ExamStatus.IN_PROGRESS))
        assert total == 1
        assert exams[0].name == "Running exam"

    def test_other_tenant_cannot_see_exam(self, db, make_exam):
        exam = make_exam()
        with pytest.raises(NotFoundError):
            ExamService(db).get_exam(TenantScope(tenant_id=2), exam.id)

    def test_branch_scope_narrows(self, db, make_exam):
        exam = make_exam()
        with pytest.raises(NotFoundError):
            ExamService(db).get_exam(TenantScope(tenant_id=1, branch_id=7), exam.id)

    def test_update_exam_name(self, db, scope, make_exam):
        exam = make_exam()
        updated = ExamService(db).update_exam(scope, exam.id, ExamUpdate(name="Midterm 2025 (revised)"))
        assert updated.name == "Midterm 2025 (revised)"

    def test_delete_exam_with_marks_is_blocked(self, db, scope, make_exam, make_students):
        students = make_students(1)
        exam = make_exam(subjects=[("Math", 100, 40)], status=ExamStatus.IN_PROGRESS)
        MarksService(db).enter_marks(
            scope,
            exam.subjects[0].id,
            EnterMarksRequest(entries=[MarkEntry(student_id=students[0].id, is_absent=True)]),
        )
        with pytest.raises(ScheduleLockedError):
            ExamService(db).delete_exam(scope, exam.id)

    def test_published_exam_is_locked(self, db, scope, make_exam):
        exam = make_exam(status=ExamStatus.COMPLETED)
        exam.status = ExamStatus.RESULTS_PUBLISHED
        db.flush()
        with pytest.raises(ExamLockedError):
            ExamService(db).update_exam(scope, exam.id, ExamUpdate(name="Renamed"))
        with pytest.raises(ExamLockedError):
            ExamService(db).delete_exam(scope, exam.id)
