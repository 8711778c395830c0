"""Shared fixtures: in-memory SQLite database, API client and data builders."""

import os

os.environ["DATABASE_URL"] = "sqlite://"

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import exam_engine.models  # noqa: F401
from exam_engine.core.database import Base, get_db
from exam_engine.core.dependencies import TenantScope
from exam_engine.main import app
from exam_engine.models.exam import ExamStatus, ExamType
from exam_engine.models.student import Student
from exam_engine.schemas.exam import ExamCreate, ExamStatusUpdate, ExamSubjectCreate
from exam_engine.schemas.grading_scale import GradeBandInput, GradingScaleCreate
from exam_engine.services.exam import ExamService
from exam_engine.services.grading_scale import GradingScaleService

TENANT_ID = 1
HEADERS = {"X-Tenant-Id": str(TENANT_ID), "X-Actor-Id": "42"}

# (min, max, grade, grade_point)
STANDARD_BANDS = [
    (0, 33, "F", 0),
    (33, 40, "D", 4),
    (40, 50, "C", 5),
    (50, 60, "C+", 6),
    (60, 70, "B", 7),
    (70, 80, "B+", 8),
    (80, 90, "A", 9),
    (90, 100, "A+", 10),
]


def band_inputs(bands=STANDARD_BANDS) -> list[GradeBandInput]:
    return [
        GradeBandInput(
            min_percentage=Decimal(low),
            max_percentage=Decimal(high),
            grade=grade,
            grade_point=Decimal(point),
        )
        for low, high, grade, point in bands
    ]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        test_client.headers.update(HEADERS)
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def scope() -> TenantScope:
    return TenantScope(tenant_id=TENANT_ID)


@pytest.fixture
def make_students(db):
    def _make(count: int, class_name: str = "10", tenant_id: int = TENANT_ID) -> list[Student]:
        students = [
            Student(
                tenant_id=tenant_id,
                student_name=f"Student {i}",
                roll_number=str(i),
                class_name=class_name,
                section="A",
            )
            for i in range(1, count + 1)
        ]
        db.add_all(students)
        db.commit()
        return students

    return _make


@pytest.fixture
def make_scale(db, scope):
    def _make(name: str = "Standard", bands=STANDARD_BANDS):
        service = GradingScaleService(db)
        scale = service.create_scale(scope, GradingScaleCreate(name=name, bands=band_inputs(bands)))
        db.commit()
        return scale

    return _make


@pytest.fixture
def make_exam(db, scope):
    """Create an exam and walk it forward to the requested status."""

    def _make(
        subjects: list[tuple[str, int, int]] | None = None,
        status: ExamStatus = ExamStatus.DRAFT,
        name: str = "Midterm 2025",
    ):
        subjects = subjects if subjects is not None else [("Math", 100, 40), ("English", 100, 40)]
        service = ExamService(db)
        exam = service.create_exam(scope, ExamCreate(
            name=name,
            exam_type=ExamType.MIDTERM,
            start_date=date(2025, 3, 1),
            end_date=date(2025, 3, 15),
            subjects=[
                ExamSubjectCreate(
                    subject_id=index,
                    subject_name=subject_name,
                    total_marks=Decimal(total),
                    passing_marks=Decimal(passing),
                )
                for index, (subject_name, total, passing) in enumerate(subjects, start=1)
            ],
        ))
        current = ExamStatus.DRAFT
        while current != status:
            current = current.successor
            service.update_status(scope, exam.id, ExamStatusUpdate(status=current))
        db.commit()
        return service.get_exam(scope, exam.id)

    return _make
