"""Exam and exam subject models."""

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    DECIMAL,
    BigInteger,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_engine.core.database import Base
from exam_engine.models.base import IDMixin, TenantScopedMixin, TimestampMixin


class ExamType(str, enum.Enum):
    """Exam type enumeration."""

    CLASS_TEST = "class_test"
    MIDTERM = "midterm"
    FINAL = "final"
    QUIZ = "quiz"
    PRACTICAL = "practical"
    ASSIGNMENT = "assignment"


class ExamStatus(str, enum.Enum):
    """Exam lifecycle status, in lifecycle order."""

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    RESULTS_PUBLISHED = "results_published"

    @property
    def successor(self) -> "ExamStatus | None":
        order = list(ExamStatus)
        index = order.index(self)
        return order[index + 1] if index + 1 < len(order) else None


class Exam(Base, IDMixin, TimestampMixin, TenantScopedMixin):
    """One scheduled assessment window for a term."""

    __tablename__ = "exams"

    term_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    exam_type: Mapped[ExamType] = mapped_column(Enum(ExamType), nullable=False)
    status: Mapped[ExamStatus] = mapped_column(
        Enum(ExamStatus),
        default=ExamStatus.DRAFT,
        nullable=False,
        index=True,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Bumped on every mark write and publish; callers cache by (id, version)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Set by the results publisher
    grading_scale_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("grading_scales.id", ondelete="RESTRICT"),
        nullable=True,
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    subjects: Mapped[list["ExamSubject"]] = relationship(
        "ExamSubject",
        back_populates="exam",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="ExamSubject.id",
    )

    def bump_version(self) -> None:
        self.version = (self.version or 0) + 1

    def __repr__(self) -> str:
        return f"<Exam(id={self.id}, name={self.name}, status={self.status})>"


class ExamSubject(Base, IDMixin, TimestampMixin):
    """One subject's slot and mark bounds within an exam."""

    __tablename__ = "exam_subjects"

    exam_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    subject_name: Mapped[str] = mapped_column(String(100), nullable=False)
    exam_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    passing_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)

    # Relationships
    exam: Mapped["Exam"] = relationship("Exam", back_populates="subjects")

    __table_args__ = (
        UniqueConstraint("exam_id", "subject_id", name="uq_exam_subject"),
    )

    def __repr__(self) -> str:
        return f"<ExamSubject(id={self.id}, exam_id={self.exam_id}, subject={self.subject_name})>"
