"""Audit log model."""

import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, DateTime, Enum, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from exam_engine.core.database import Base
from exam_engine.models.base import IDMixin


class AuditAction(str, enum.Enum):
    """Audit action types."""

    # Exam schedule
    EXAM_CREATED = "EXAM_CREATED"
    EXAM_UPDATED = "EXAM_UPDATED"
    EXAM_DELETED = "EXAM_DELETED"
    EXAM_STATUS_CHANGED = "EXAM_STATUS_CHANGED"
    EXAM_SUBJECT_ADDED = "EXAM_SUBJECT_ADDED"
    EXAM_SUBJECT_UPDATED = "EXAM_SUBJECT_UPDATED"
    EXAM_SUBJECT_REMOVED = "EXAM_SUBJECT_REMOVED"

    # Marks
    MARKS_ENTERED = "MARKS_ENTERED"
    MARKS_IMPORTED = "MARKS_IMPORTED"

    # Grading scales
    GRADING_SCALE_CREATED = "GRADING_SCALE_CREATED"
    GRADING_SCALE_DELETED = "GRADING_SCALE_DELETED"

    # Results
    RESULTS_PUBLISHED = "RESULTS_PUBLISHED"


class AuditLog(Base, IDMixin):
    """Append-only audit log model."""

    __tablename__ = "audit_logs"

    tenant_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)

    # Actor, as reported by the calling layer
    actor_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)

    # Action details
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction),
        nullable=False,
        index=True,
    )
    resource_type: Mapped[str] = mapped_column(String(100), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Additional context (JSON)
    extra_data: Mapped[dict | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=True,
    )

    # Request context
    ip_address: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Timestamp (append-only, no updated_at)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action})>"
