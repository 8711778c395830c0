"""Roster lookup used to validate and seed mark sheets."""

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from exam_engine.core.dependencies import TenantScope
from exam_engine.models.student import Student
from exam_engine.schemas.student import StudentRef


class RosterLookup(Protocol):
    """Read-only view of the student roster owned outside the exam engine."""

    def student_exists(self, scope: TenantScope, student_id: int) -> bool: ...

    def get_student(self, scope: TenantScope, student_id: int) -> StudentRef | None: ...

    def list_enrolled_students(
        self,
        scope: TenantScope,
        class_name: str | None = None,
    ) -> list[StudentRef]: ...


class RosterService:
    """Roster lookup backed by the shared students table."""

    def __init__(self, db: Session):
        self.db = db

    def _scoped(self, scope: TenantScope):
        query = select(Student).where(
            Student.tenant_id == scope.tenant_id,
            Student.is_enrolled.is_(True),
        )
        if scope.branch_id is not None:
            query = query.where(Student.branch_id == scope.branch_id)
        return query

    def student_exists(self, scope: TenantScope, student_id: int) -> bool:
        return self.get_student(scope, student_id) is not None

    def get_student(self, scope: TenantScope, student_id: int) -> StudentRef | None:
        result = self.db.execute(self._scoped(scope).where(Student.id == student_id))
        student = result.scalar_one_or_none()
        return StudentRef.model_validate(student) if student else None

    def list_enrolled_students(
        self,
        scope: TenantScope,
        class_name: str | None = None,
    ) -> list[StudentRef]:
        query = self._scoped(scope)
        if class_name:
            query = query.where(Student.class_name == class_name)
        result = self.db.execute(query.order_by(Student.id))
        return [StudentRef.model_validate(s) for s in result.scalars().all()]
