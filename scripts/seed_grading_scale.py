"""Seed the default grading scale for a tenant.

Usage: python scripts/seed_grading_scale.py <tenant_id> [branch_id]
"""
import sys
from decimal import Decimal

from exam_engine.core.database import SessionLocal
from exam_engine.core.dependencies import TenantScope
from exam_engine.schemas.grading_scale import GradeBandInput, GradingScaleCreate
from exam_engine.services.grading_scale import GradingScaleService

SCALE_NAME = "Standard"

# (min, max, grade, grade_point, description)
DEFAULT_BANDS = [
    (0, 33, "F", 0, "Fail"),
    (33, 40, "D", 4, "Pass"),
    (40, 50, "C", 5, "Average"),
    (50, 60, "C+", 6, "Above average"),
    (60, 70, "B", 7, "Good"),
    (70, 80, "B+", 8, "Very good"),
    (80, 90, "A", 9, "Excellent"),
    (90, 100, "A+", 10, "Outstanding"),
]

if len(sys.argv) < 2:
    print(__doc__)
    sys.exit(1)

scope = TenantScope(
    tenant_id=int(sys.argv[1]),
    branch_id=int(sys.argv[2]) if len(sys.argv) > 2 else None,
)

request = GradingScaleCreate(
    name=SCALE_NAME,
    description="Default percentage bands",
    bands=[
        GradeBandInput(
            min_percentage=Decimal(low),
            max_percentage=Decimal(high),
            grade=grade,
            grade_point=Decimal(point),
            description=description,
        )
        for low, high, grade, point, description in DEFAULT_BANDS
    ],
)

with SessionLocal() as db:
    service = GradingScaleService(db)
    existing = service.list_scales(scope, name=SCALE_NAME)
    if existing:
        print(f"Scale '{SCALE_NAME}' already exists (latest v{existing[-1].version}) - nothing to do")
    else:
        scale = service.create_scale(scope, request)
        db.commit()
        print(f"Created scale '{scale.name}' v{scale.version} (id={scale.id}) for tenant {scope.tenant_id}")
