"""Grading scale management and grade resolution."""

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from exam_engine.core.dependencies import TenantScope
from exam_engine.core.exceptions import NoMatchingBandError, NotFoundError, ScaleInUseError, ValidationError
from exam_engine.core.scoring import HUNDRED, ZERO, clamp_percentage, quantize, to_decimal
from exam_engine.models.exam import Exam
from exam_engine.models.grading_scale import GradeBand, GradingScale
from exam_engine.models.result import PublishedResult
from exam_engine.schemas.grading_scale import (
    GradeBandInput,
    GradeResolution,
    GradingScaleCreate,
    GradingScaleResponse,
    GradingScaleVersionCreate,
)

logger = logging.getLogger(__name__)


class BandLike(Protocol):
    min_percentage: Decimal
    max_percentage: Decimal
    grade: str
    grade_point: Decimal
    description: str | None


def validate_bands(bands: Sequence[GradeBandInput]) -> list[GradeBandInput]:
    """Check that bands tile [0, 100] exactly and return them sorted.

    Bands are half-open [min, max) except the top one, which is closed at 100,
    so adjacent bands must share their boundary: next.min == prev.max.
    Bounds are checked at the two-place precision they are stored with.
    """
    errors: list[dict[str, Any]] = []

    if not bands:
        raise ValidationError("Grading scale needs at least one band", details={"field": "bands"})

    bands = [
        band.model_copy(update={
            "min_percentage": quantize(band.min_percentage),
            "max_percentage": quantize(band.max_percentage),
        })
        for band in bands
    ]

    for index, band in enumerate(bands):
        low, high = to_decimal(band.min_percentage), to_decimal(band.max_percentage)
        if low < ZERO or high > HUNDRED:
            errors.append({
                "index": index,
                "grade": band.grade,
                "field": "min_percentage" if low < ZERO else "max_percentage",
                "message": "Band bounds must lie within 0-100",
            })
        if low >= high:
            errors.append({
                "index": index,
                "grade": band.grade,
                "field": "max_percentage",
                "message": f"max_percentage ({high}) must be greater than min_percentage ({low})",
            })

    if errors:
        raise ValidationError("Invalid grade bands", details={"errors": errors})

    ordered = sorted(bands, key=lambda b: to_decimal(b.min_percentage))

    if to_decimal(ordered[0].min_percentage) != ZERO:
        errors.append({
            "grade": ordered[0].grade,
            "field": "min_percentage",
            "message": f"Lowest band must start at 0, not {ordered[0].min_percentage}",
        })
    if to_decimal(ordered[-1].max_percentage) != HUNDRED:
        errors.append({
            "grade": ordered[-1].grade,
            "field": "max_percentage",
            "message": f"Highest band must end at 100, not {ordered[-1].max_percentage}",
        })

    for previous, current in zip(ordered, ordered[1:]):
        prev_max = to_decimal(previous.max_percentage)
        cur_min = to_decimal(current.min_percentage)
        if cur_min > prev_max:
            errors.append({
                "grade": current.grade,
                "field": "min_percentage",
                "message": f"Gap between {prev_max} and {cur_min} ({previous.grade} -> {current.grade})",
            })
        elif cur_min < prev_max:
            errors.append({
                "grade": current.grade,
                "field": "min_percentage",
                "message": f"Band {current.grade} overlaps {previous.grade} between {cur_min} and {prev_max}",
            })

    if errors:
        raise ValidationError("Grade bands must cover 0-100 without gaps or overlaps", details={"errors": errors})

    return ordered


def resolve_band(bands: Sequence[BandLike], percentage: Decimal | int | float) -> BandLike | None:
    """Find the band holding a percentage, after clamping it to [0, 100]."""
    value = clamp_percentage(percentage)
    for band in sorted(bands, key=lambda b: to_decimal(b.min_percentage), reverse=True):
        low, high = to_decimal(band.min_percentage), to_decimal(band.max_percentage)
        if low <= value < high or (value == high == HUNDRED):
            return band
    return None


class GradingScaleService:
    """Grading scale management service."""

    def __init__(self, db: Session):
        self.db = db

    def _to_response(self, scale: GradingScale) -> GradingScaleResponse:
        return GradingScaleResponse.model_validate(scale)

    def _build_scale(
        self,
        scope: TenantScope,
        name: str,
        version: int,
        description: str | None,
        bands: Sequence[GradeBandInput],
    ) -> GradingScale:
        ordered = validate_bands(bands)
        scale = GradingScale(
            tenant_id=scope.tenant_id,
            branch_id=scope.branch_id,
            name=name,
            version=version,
            description=description,
            bands=[
                GradeBand(
                    min_percentage=quantize(band.min_percentage),
                    max_percentage=quantize(band.max_percentage),
                    grade=band.grade,
                    grade_point=quantize(band.grade_point),
                    description=band.description,
                )
                for band in ordered
            ],
        )
        self.db.add(scale)
        self.db.flush()
        self.db.refresh(scale)
        logger.info(f"[GRADING] Created scale '{name}' v{version} (id={scale.id}) with {len(ordered)} bands")
        return scale

    def _next_version(self, scope: TenantScope, name: str) -> int:
        result = self.db.execute(
            select(func.max(GradingScale.version)).where(
                GradingScale.tenant_id == scope.tenant_id,
                GradingScale.name == name,
            )
        )
        return (result.scalar() or 0) + 1

    def create_scale(self, scope: TenantScope, request: GradingScaleCreate) -> GradingScaleResponse:
        """Create a grading scale; an existing name gets the next version."""
        scale = self._build_scale(
            scope,
            name=request.name,
            version=self._next_version(scope, request.name),
            description=request.description,
            bands=request.bands,
        )
        return self._to_response(scale)

    def create_scale_version(
        self,
        scope: TenantScope,
        scale_id: int,
        request: GradingScaleVersionCreate,
    ) -> GradingScaleResponse:
        """Create a corrected copy of a scale under the next version number."""
        current = self.get_scale_model(scope, scale_id)
        scale = self._build_scale(
            scope,
            name=current.name,
            version=self._next_version(scope, current.name),
            description=request.description if request.description is not None else current.description,
            bands=request.bands,
        )
        return self._to_response(scale)

    def get_scale_model(self, scope: TenantScope, scale_id: int) -> GradingScale:
        """Get grading scale by ID."""
        result = self.db.execute(
            select(GradingScale).where(
                GradingScale.id == scale_id,
                GradingScale.tenant_id == scope.tenant_id,
            )
        )
        scale = result.scalar_one_or_none()
        if not scale:
            raise NotFoundError("Grading scale", str(scale_id))
        return scale

    def get_scale(self, scope: TenantScope, scale_id: int) -> GradingScaleResponse:
        return self._to_response(self.get_scale_model(scope, scale_id))

    def list_scales(self, scope: TenantScope, name: str | None = None) -> list[GradingScaleResponse]:
        query = select(GradingScale).where(GradingScale.tenant_id == scope.tenant_id)
        if name:
            query = query.where(GradingScale.name == name)
        result = self.db.execute(query.order_by(GradingScale.name, GradingScale.version))
        return [self._to_response(s) for s in result.scalars().all()]

    def is_referenced(self, scale_id: int) -> bool:
        """True when a published result or a published exam points at the scale."""
        results = self.db.execute(
            select(func.count()).where(PublishedResult.grading_scale_id == scale_id)
        ).scalar()
        if results:
            return True
        exams = self.db.execute(
            select(func.count()).where(Exam.grading_scale_id == scale_id)
        ).scalar()
        return bool(exams)

    def delete_scale(self, scope: TenantScope, scale_id: int) -> None:
        """Delete a scale that no published result or exam references."""
        scale = self.get_scale_model(scope, scale_id)
        if self.is_referenced(scale_id):
            raise ScaleInUseError(scale_id)
        self.db.delete(scale)
        self.db.flush()

    def resolve(self, scope: TenantScope, scale_id: int, percentage: Decimal) -> GradeResolution:
        """Resolve the grade and grade point for a percentage."""
        scale = self.get_scale_model(scope, scale_id)
        return self.resolve_with(scale, percentage)

    def resolve_with(self, scale: GradingScale, percentage: Decimal) -> GradeResolution:
        band = resolve_band(scale.bands, percentage)
        if band is None:
            raise NoMatchingBandError(scale.id, percentage)
        return GradeResolution(
            grading_scale_id=scale.id,
            percentage=quantize(clamp_percentage(percentage)),
            grade=band.grade,
            grade_point=band.grade_point,
            description=band.description,
        )
