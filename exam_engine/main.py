"""FastAPI application for the exam results engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from exam_engine.api.v1.router import api_router
from exam_engine.core.config import settings
from exam_engine.core.database import engine
from exam_engine.core.exceptions import AppException
from exam_engine.middleware.logging import RequestLoggingMiddleware

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

for noisy in ("sqlalchemy", "sqlalchemy.engine", "python_multipart", "openpyxl"):
    logging.getLogger(noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details or {}},
    }


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} on {engine.dialect.name}")
    if settings.is_sqlite:
        # No row locks on SQLite; only the in-process publish guard applies.
        logger.warning("SQLite backend: concurrent publish is only guarded within this process")
    yield
    logger.info("Shutting down, disposing connection pool")
    engine.dispose()


def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
Exam lifecycle, marks entry, grading scales, published results, analytics and report cards.

Every request is scoped by `X-Tenant-Id` (required), `X-Branch-Id` (optional)
and `X-Actor-Id` (optional, recorded in the audit log).

Errors use one envelope:
`{"success": false, "error": {"code": "...", "message": "...", "details": {}}}`
        """,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        if exc.status_code >= 500:
            logger.error(f"[{exc.code}] {exc.message} (request {_request_id(request)})")
        else:
            logger.debug(f"[{exc.code}] {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_body(
                "VALIDATION_ERROR",
                "Request validation failed",
                {"errors": jsonable_encoder(exc.errors())},
            ),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError):
        # Unique keys: one mark per (subject, student), one result per (exam, student).
        logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
        return JSONResponse(
            status_code=409,
            content=_error_body("CONFLICT", "The change conflicts with existing data. Retry the request."),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception (request {_request_id(request)})")
        return JSONResponse(
            status_code=500,
            content=_error_body("INTERNAL_ERROR", "An internal server error occurred"),
        )

    @app.get("/health", tags=["Health"])
    def health_check():
        """Liveness plus a database round trip."""
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            database = "ok"
        except SQLAlchemyError as e:
            logger.error(f"Health check database failure: {e}")
            database = "unavailable"
        return {
            "status": "healthy" if database == "ok" else "degraded",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "database": database,
        }

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "exam_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
