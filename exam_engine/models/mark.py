"""Mark model."""

from decimal import Decimal

from sqlalchemy import DECIMAL, BigInteger, Boolean, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_engine.core.database import Base
from exam_engine.models.base import IDMixin, TimestampMixin


class Mark(Base, IDMixin, TimestampMixin):
    """One student's raw score, or absence, for one exam subject."""

    __tablename__ = "marks"

    exam_subject_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("exam_subjects.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("students.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    marks_obtained: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    is_absent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    exam_subject: Mapped["ExamSubject"] = relationship("ExamSubject", lazy="joined")

    __table_args__ = (
        UniqueConstraint("exam_subject_id", "student_id", name="uq_mark_subject_student"),
    )

    def __repr__(self) -> str:
        return f"<Mark(exam_subject_id={self.exam_subject_id}, student_id={self.student_id})>"
