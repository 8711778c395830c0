"""Grading scale endpoints."""

from decimal import Decimal

from fastapi import APIRouter, Query, Request

from exam_engine.core.database import DbSession
from exam_engine.core.dependencies import ScopeContext
from exam_engine.models.audit import AuditAction
from exam_engine.schemas.common import MessageResponse
from exam_engine.schemas.grading_scale import (
    GradeResolution,
    GradingScaleCreate,
    GradingScaleResponse,
    GradingScaleVersionCreate,
)
from exam_engine.services.audit import AuditService
from exam_engine.services.grading_scale import GradingScaleService

router = APIRouter()


@router.post("", response_model=GradingScaleResponse, status_code=201)
def create_grading_scale(
    request: GradingScaleCreate,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """
    Create a grading scale.
    Bands must cover 0-100 without gaps or overlaps. Reusing a name creates
    the next version of that scale.
    """
    service = GradingScaleService(db)
    scale = service.create_scale(context.scope, request)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.GRADING_SCALE_CREATED,
        resource_type="grading_scale",
        resource_id=str(scale.id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        description=f"Grading scale '{scale.name}' v{scale.version} created",
        metadata={"bands": len(scale.bands)},
        ip_address=http_request.client.host if http_request.client else None,
    )

    return scale


@router.get("", response_model=list[GradingScaleResponse])
def list_grading_scales(
    context: ScopeContext,
    db: DbSession,
    name: str | None = None,
):
    """List grading scales, every version included."""
    service = GradingScaleService(db)
    return service.list_scales(context.scope, name=name)


@router.get("/{scale_id}", response_model=GradingScaleResponse)
def get_grading_scale(
    scale_id: int,
    context: ScopeContext,
    db: DbSession,
):
    """Get grading scale by ID."""
    service = GradingScaleService(db)
    return service.get_scale(context.scope, scale_id)


@router.post("/{scale_id}/versions", response_model=GradingScaleResponse, status_code=201)
def create_grading_scale_version(
    scale_id: int,
    request: GradingScaleVersionCreate,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """
    Create a corrected version of a scale.
    Existing versions are never edited, so published results keep their grades.
    """
    service = GradingScaleService(db)
    scale = service.create_scale_version(context.scope, scale_id, request)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.GRADING_SCALE_CREATED,
        resource_type="grading_scale",
        resource_id=str(scale.id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        description=f"Grading scale '{scale.name}' v{scale.version} created from scale {scale_id}",
        metadata={"previous_scale_id": scale_id, "bands": len(scale.bands)},
        ip_address=http_request.client.host if http_request.client else None,
    )

    return scale


@router.get("/{scale_id}/resolve", response_model=GradeResolution)
def resolve_grade(
    scale_id: int,
    context: ScopeContext,
    db: DbSession,
    percentage: Decimal = Query(..., description="Percentage to grade; clamped to 0-100"),
):
    """Resolve the grade and grade point for a percentage."""
    service = GradingScaleService(db)
    return service.resolve(context.scope, scale_id, percentage)


@router.delete("/{scale_id}", response_model=MessageResponse)
def delete_grading_scale(
    scale_id: int,
    context: ScopeContext,
    db: DbSession,
    http_request: Request,
):
    """
    Delete a grading scale.
    Fails with SCALE_IN_USE while any published result references it.
    """
    service = GradingScaleService(db)
    service.delete_scale(context.scope, scale_id)

    audit = AuditService(db)
    audit.log(
        action=AuditAction.GRADING_SCALE_DELETED,
        resource_type="grading_scale",
        resource_id=str(scale_id),
        tenant_id=context.tenant_id,
        actor_id=context.actor_id,
        ip_address=http_request.client.host if http_request.client else None,
    )

    return MessageResponse(message="Grading scale deleted successfully")
