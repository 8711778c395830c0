"""Custom exception classes and error handling."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": code,
                    "message": message,
                    "details": details or {},
                },
            },
        )


class ValidationError(AppException):
    """Data validation failed."""

    def __init__(
        self,
        message: str = "Validation error",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="VALIDATION_ERROR",
            message=message,
            details=details,
        )


class InvalidTransitionError(AppException):
    """Exam status change requested out of order."""

    def __init__(self, exam_id: int, current_status: str, requested_status: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="INVALID_TRANSITION",
            message=f"Cannot move exam from '{current_status}' to '{requested_status}'",
            details={
                "exam_id": exam_id,
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )


class ExamLockedError(AppException):
    """Write attempted against an exam whose results are published."""

    def __init__(self, exam_id: int, message: str = "Exam results are published; the exam is locked"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="EXAM_LOCKED",
            message=message,
            details={"exam_id": exam_id},
        )


class ScheduleLockedError(AppException):
    """Subject schedule edit not allowed in the exam's current status."""

    def __init__(self, exam_id: int, current_status: str, message: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="SCHEDULE_LOCKED",
            message=message,
            details={"exam_id": exam_id, "current_status": current_status},
        )


class MarksEntryClosedError(AppException):
    """Marks entry is not open for the exam."""

    def __init__(
        self,
        exam_id: int,
        current_status: str,
        message: str = "Marks entry is not open for this exam",
        student_ids: list[int] | None = None,
    ):
        details: dict[str, Any] = {"exam_id": exam_id, "current_status": current_status}
        if student_ids:
            details["student_ids"] = student_ids
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="MARKS_ENTRY_CLOSED",
            message=message,
            details=details,
        )


class ExamNotReadyError(AppException):
    """Publish attempted before the exam is completed."""

    def __init__(self, exam_id: int, current_status: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="EXAM_NOT_READY",
            message="Results can only be published for a completed exam",
            details={"exam_id": exam_id, "current_status": current_status},
        )


class PublishInProgressError(AppException):
    """Another publish for the same exam is running."""

    def __init__(self, exam_id: int):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="PUBLISH_IN_PROGRESS",
            message="Results for this exam are already being published. Retry shortly.",
            details={"exam_id": exam_id},
        )


class ResultsNotPublishedError(AppException):
    """Published data requested before the exam was published."""

    def __init__(self, exam_id: int):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="RESULTS_NOT_PUBLISHED",
            message="Results for this exam are not published yet. Use live analytics instead.",
            details={"exam_id": exam_id},
        )


class ScaleInUseError(AppException):
    """Grading scale is referenced by published results."""

    def __init__(self, scale_id: int):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="SCALE_IN_USE",
            message="Grading scale is referenced by published results. Create a new version instead.",
            details={"grading_scale_id": scale_id},
        )


class NoMatchingBandError(AppException):
    """Stored grading scale does not cover the requested percentage."""

    def __init__(self, scale_id: int, percentage: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="NO_MATCHING_BAND",
            message=f"Grading scale {scale_id} has no band for {percentage}%",
            details={"grading_scale_id": scale_id, "percentage": str(percentage)},
        )


class UploadError(AppException):
    """File upload failed."""

    def __init__(
        self,
        message: str = "Upload failed",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="UPLOAD_FAILED",
            message=message,
            details=details,
        )


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(
        self,
        resource: str = "Resource",
        identifier: str | None = None,
    ):
        details = {}
        if identifier:
            details["identifier"] = identifier
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="NOT_FOUND",
            message=f"{resource} not found",
            details=details,
        )
