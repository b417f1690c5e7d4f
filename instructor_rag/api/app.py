"""FastAPI application entry point.

Configures the application with logging, exception handling, the query
pipeline, metrics and health checks.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from instructor_rag import __version__
from instructor_rag.api.routes import router
from instructor_rag.config import get_settings
from instructor_rag.exceptions import ErrorCode, InstructorRAGError, ValidationError
from instructor_rag.logging_config import get_logger, setup_logging
from instructor_rag.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)
from instructor_rag.rag.pipeline import RAGPipeline

logger = get_logger(__name__)

_STATUS_CODES = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.LLM_RATE_LIMIT: 429,
    ErrorCode.PIPELINE_NOT_CONFIGURED: 503,
    ErrorCode.LLM_TIMEOUT: 504,
    ErrorCode.REQUEST_TIMEOUT: 504,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the pipeline and its clients once per process and closes them
    on shutdown.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)
    logger.info(
        "Starting instructor RAG service",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
        },
    )

    pipeline = RAGPipeline.from_settings(settings)
    app.state.pipeline = pipeline

    yield

    logger.info("Shutting down instructor RAG service")
    app.state.pipeline = None
    await pipeline.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Instructor RAG",
        description="Answers questions about instructors from student reviews",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.pipeline = None

    app.add_middleware(MetricsMiddleware)

    # Register exception handlers
    app.add_exception_handler(InstructorRAGError, service_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Register routes
    app.include_router(router)
    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Metrics"])

    return app


async def service_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Convert InstructorRAGError exceptions to structured JSON responses."""
    if not isinstance(exc, InstructorRAGError):
        exc = InstructorRAGError(str(exc), code=ErrorCode.INTERNAL_ERROR)

    logger.error(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(
        status_code=get_status_code(exc.code),
        content=exc.to_dict(),
    )


async def request_validation_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Report unparseable request bodies as validation errors."""
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    error = ValidationError(
        "Request body is not valid JSON",
        details={"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in errors]},
    )
    return await service_exception_handler(request, error)


def get_status_code(code: ErrorCode) -> int:
    """Map an error code to an HTTP status code."""
    return _STATUS_CODES.get(code, 500)


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check(request: Request) -> dict[str, Any]:
    """Readiness probe.

    Ready once the pipeline is built and its review collection is
    searchable.
    """
    checks: dict[str, str] = {"config": "ok"}

    pipeline: RAGPipeline | None = request.app.state.pipeline
    if pipeline is None:
        checks["pipeline"] = "not_configured"
    else:
        checks["pipeline"] = "ok"
        checks.update(await pipeline.check_ready())

    all_ok = all(v in ("ok", "unchecked") for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def liveness_check() -> dict[str, str]:
    """Liveness probe.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Create the application instance
app = create_app()
