"""Student roster model."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from exam_engine.core.database import Base
from exam_engine.models.base import IDMixin, TenantScopedMixin, TimestampMixin


class Student(Base, IDMixin, TimestampMixin, TenantScopedMixin):
    """Enrolled student, owned by the roster and read-only to the exam engine."""

    __tablename__ = "students"

    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    roll_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    class_name: Mapped[str] = mapped_column(String(50), nullable=False)  # 'class' is reserved keyword
    section: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_enrolled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, name={self.student_name}, class={self.class_name})>"
