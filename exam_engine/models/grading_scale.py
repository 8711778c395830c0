"""Grading scale and grade band models."""

from decimal import Decimal

from sqlalchemy import DECIMAL, BigInteger, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_engine.core.database import Base
from exam_engine.models.base import IDMixin, TenantScopedMixin, TimestampMixin


class GradingScale(Base, IDMixin, TimestampMixin, TenantScopedMixin):
    """Named, versioned set of percentage bands.

    Scales are never edited in place; a correction is a new row with the same
    name and the next version number.
    """

    __tablename__ = "grading_scales"

    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    bands: Mapped[list["GradeBand"]] = relationship(
        "GradeBand",
        back_populates="scale",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="GradeBand.min_percentage",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", "version", name="uq_grading_scale_version"),
    )

    def __repr__(self) -> str:
        return f"<GradingScale(id={self.id}, name={self.name}, version={self.version})>"


class GradeBand(Base, IDMixin):
    """Percentage range mapped to a grade: [min, max), top band closed at 100."""

    __tablename__ = "grade_bands"

    grading_scale_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("grading_scales.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    min_percentage: Mapped[Decimal] = mapped_column(DECIMAL(6, 2), nullable=False)
    max_percentage: Mapped[Decimal] = mapped_column(DECIMAL(6, 2), nullable=False)
    grade: Mapped[str] = mapped_column(String(10), nullable=False)
    grade_point: Mapped[Decimal] = mapped_column(DECIMAL(6, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Relationships
    scale: Mapped["GradingScale"] = relationship("GradingScale", back_populates="bands")

    def __repr__(self) -> str:
        return f"<GradeBand(grade={self.grade}, {self.min_percentage}-{self.max_percentage})>"
