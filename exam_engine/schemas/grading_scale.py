"""Grading scale schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from exam_engine.schemas.common import BaseSchema


class GradeBandInput(BaseSchema):
    """One band of a grading scale, as submitted."""

    min_percentage: Decimal = Field(..., description="Inclusive lower bound")
    max_percentage: Decimal = Field(..., description="Exclusive upper bound; inclusive for the top band")
    grade: str = Field(..., min_length=1, max_length=10)
    grade_point: Decimal = Field(Decimal("0"), ge=0)
    description: str | None = Field(None, max_length=100)


class GradingScaleCreate(BaseSchema):
    """Grading scale creation schema."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    bands: list[GradeBandInput] = Field(..., min_length=1)


class GradingScaleVersionCreate(BaseSchema):
    """New version of an existing scale."""

    description: str | None = None
    bands: list[GradeBandInput] = Field(..., min_length=1)


class GradeBandResponse(BaseSchema):
    """Grade band response schema."""

    min_percentage: Decimal
    max_percentage: Decimal
    grade: str
    grade_point: Decimal
    description: str | None


class GradingScaleResponse(BaseSchema):
    """Grading scale response schema."""

    id: int
    tenant_id: int
    name: str
    version: int
    description: str | None
    bands: list[GradeBandResponse]
    created_at: datetime


class GradeResolution(BaseSchema):
    """Grade resolved for a percentage."""

    grading_scale_id: int
    percentage: Decimal
    grade: str
    grade_point: Decimal
    description: str | None = None
