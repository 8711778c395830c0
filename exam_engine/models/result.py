"""Published result models."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DECIMAL,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_engine.core.database import Base
from exam_engine.models.base import IDMixin, TenantScopedMixin


class PublishedResult(Base, IDMixin, TenantScopedMixin):
    """Ranked, graded rollup for one student in one exam.

    Rows are replaced as a set on every publish of the exam.
    """

    __tablename__ = "published_results"

    exam_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("students.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    total_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    obtained_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    percentage: Mapped[Decimal] = mapped_column(DECIMAL(6, 2), nullable=False)
    grade: Mapped[str] = mapped_column(String(10), nullable=False)
    grade_point: Mapped[Decimal] = mapped_column(DECIMAL(6, 2), nullable=False)
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grading_scale_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("grading_scales.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    subjects: Mapped[list["PublishedSubjectResult"]] = relationship(
        "PublishedSubjectResult",
        back_populates="result",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PublishedSubjectResult.exam_subject_id",
    )

    __table_args__ = (
        UniqueConstraint("exam_id", "student_id", name="uq_published_result_exam_student"),
    )

    def __repr__(self) -> str:
        return f"<PublishedResult(exam_id={self.exam_id}, student_id={self.student_id}, rank={self.rank})>"


class PublishedSubjectResult(Base, IDMixin):
    """Per-subject line of a published result."""

    __tablename__ = "published_subject_results"

    result_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("published_results.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    exam_subject_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("exam_subjects.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    subject_name: Mapped[str] = mapped_column(String(100), nullable=False)
    total_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    passing_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    marks_obtained: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    is_absent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    percentage: Mapped[Decimal] = mapped_column(DECIMAL(6, 2), nullable=False)
    grade: Mapped[str | None] = mapped_column(String(10), nullable=True)
    grade_point: Mapped[Decimal | None] = mapped_column(DECIMAL(6, 2), nullable=True)
    is_pass: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    result: Mapped["PublishedResult"] = relationship("PublishedResult", back_populates="subjects")

    def __repr__(self) -> str:
        return f"<PublishedSubjectResult(result_id={self.result_id}, subject={self.subject_name})>"
