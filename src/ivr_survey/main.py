"""
FastAPI application entry point.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ivr_survey.admin.router import router as admin_router
from ivr_survey.config import Settings, get_settings
from ivr_survey.recordings.client import RecordingClient
from ivr_survey.recordings.router import router as recordings_router
from ivr_survey.shared.database import DatabaseManager
from ivr_survey.shared.exceptions import (
    MalformedCallbackError,
    SurveyStoreError,
    UpstreamAudioFetchError,
)
from ivr_survey.shared.logging import correlation_id_var, get_logger, setup_logging
from ivr_survey.survey.questions import QuestionCatalog
from ivr_survey.survey.router import router as survey_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    setup_logging(settings)

    logger.info(
        "Application starting",
        extra={"env": settings.app_env, "question_count": len(app.state.catalog)},
    )

    if settings.database_auto_create:
        await app.state.db.create_all()

    yield

    logger.info("Shutting down application")
    await app.state.recordings.aclose()
    await app.state.db.close()
    logger.info("Application shutdown complete")


def create_app(
    settings: Settings | None = None,
    catalog: QuestionCatalog | None = None,
    recording_client: RecordingClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.
        catalog: Question catalog; loaded from ``settings.survey_questions_file``
            when omitted.
        recording_client: Voice API client; built from settings when omitted.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="IVR Survey",
        description="Call-flow webhook for an automated telephone survey",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.settings = settings
    if catalog is None:
        catalog = QuestionCatalog.from_file(settings.survey_questions_file)
    app.state.catalog = catalog
    app.state.db = DatabaseManager(settings.database_url, echo=settings.debug)
    app.state.recordings = recording_client or RecordingClient.from_settings(settings)

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        correlation_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        token = correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)
        response.headers["X-Request-ID"] = correlation_id
        return response

    # Map domain exceptions to HTTP responses
    @app.exception_handler(SurveyStoreError)
    async def _store_error(_: Request, exc: SurveyStoreError) -> JSONResponse:
        logger.error("Participant store unavailable", extra={"error": str(exc)})
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": {"code": "STORE_UNAVAILABLE", "message": str(exc)}},
        )

    @app.exception_handler(UpstreamAudioFetchError)
    async def _upstream_error(_: Request, exc: UpstreamAudioFetchError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": {"code": "UPSTREAM_AUDIO_FETCH_FAILED", "message": str(exc)}},
        )

    @app.exception_handler(MalformedCallbackError)
    async def _malformed(_: Request, exc: MalformedCallbackError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": {"code": "MALFORMED_CALLBACK", "message": str(exc)}},
        )

    # Request validation (FastAPI/Pydantic) -> consistent 422 payload
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append(
                {
                    "field": field,
                    "message": error["msg"],
                    "type": error["type"],
                }
            )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "errors": errors,
                }
            },
        )

    app.include_router(survey_router)
    app.include_router(admin_router)
    app.include_router(recordings_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app
