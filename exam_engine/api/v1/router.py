"""Main API router aggregating all module routers."""

from fastapi import APIRouter

from exam_engine.api.v1.endpoints import (
    analytics,
    exam_subjects,
    exams,
    grading_scales,
    results,
    students,
)

api_router = APIRouter()

# Grading scales (tenant-scoped, versioned)
api_router.include_router(
    grading_scales.router,
    prefix="/grading-scales",
    tags=["Grading Scales"],
)

# Exam schedule and lifecycle
api_router.include_router(
    exams.router,
    prefix="/exams",
    tags=["Exams"],
)

# Subject slots and marks entry
api_router.include_router(
    exam_subjects.router,
    prefix="/exam-subjects",
    tags=["Exam Subjects & Marks"],
)

# Publishing
api_router.include_router(
    results.router,
    prefix="/exams",
    tags=["Results"],
)

# Student results and report cards
api_router.include_router(
    students.router,
    prefix="/students",
    tags=["Student Results"],
)

# Analytics (paths span exams and exam subjects)
api_router.include_router(
    analytics.router,
    tags=["Analytics"],
)
