"""Prometheus metrics for the instructor RAG service.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Embedding request latency
- Vector search latency
- Retrieval results (records, top score, skipped matches)
- Generation streams (latency, chunks)
- Pipeline runs by terminal stage
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from instructor_rag.logging_config import get_logger

logger = get_logger(__name__)

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Pipeline Metrics
PIPELINE_RUN_DURATION = Histogram(
    "rag_pipeline_duration_seconds",
    "Pipeline run duration in seconds, first stage to terminal stage",
    ["outcome"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

PIPELINE_RUN_TOTAL = Counter(
    "rag_pipeline_runs_total",
    "Total pipeline runs by terminal stage",
    ["outcome", "stage"],
)

# Generation Metrics
LLM_STREAM_DURATION = Histogram(
    "llm_stream_duration_seconds",
    "Generation stream duration in seconds",
    ["model", "status"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

LLM_STREAM_TOTAL = Counter(
    "llm_streams_total",
    "Total generation streams",
    ["model", "status"],
)

LLM_CHUNKS_TOTAL = Counter(
    "llm_stream_chunks_total",
    "Total text chunks relayed from the generator",
    ["model"],
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["model", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding requests",
    ["model", "status"],
)

# Retrieval Metrics
RETRIEVAL_RECORDS_RETURNED = Histogram(
    "retrieval_records_returned",
    "Number of review records returned per retrieval",
    buckets=[0, 1, 2, 3, 4, 5, 10, 20],
)

RETRIEVAL_TOP_SCORE = Histogram(
    "retrieval_top_score",
    "Top retrieval score per query",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)

RETRIEVAL_MALFORMED_TOTAL = Counter(
    "retrieval_malformed_matches_total",
    "Matches skipped because required review metadata was missing",
)

# Vector Store Metrics
VECTORSTORE_OPERATION_DURATION = Histogram(
    "vectorstore_operation_duration_seconds",
    "Vector store operation duration",
    ["operation", "status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics.

    For streaming responses the duration covers the time to first byte.
    """

    def __init__(self, app: ASGIApp) -> None:
        """Initialize the middleware."""
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality."""
        if path.startswith("/health"):
            return "/health"
        if path.startswith("/api/"):
            parts = path.split("/")
            if len(parts) >= 3:
                return f"/api/{parts[2]}"
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_embedding_request(
    model: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track embedding request metrics.

    Args:
        model: Embedding model name.
        duration: Request duration in seconds.
        success: Whether the request produced a usable vector.
    """
    status = "success" if success else "error"

    EMBEDDING_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    EMBEDDING_REQUEST_TOTAL.labels(model=model, status=status).inc()


def track_vectorstore_operation(
    operation: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track a vector store call."""
    status = "success" if success else "error"
    VECTORSTORE_OPERATION_DURATION.labels(operation=operation, status=status).observe(
        duration
    )


def track_retrieval_request(
    records_returned: int,
    top_score: float,
    malformed: int = 0,
) -> None:
    """Track retrieval request metrics.

    Args:
        records_returned: Number of usable records returned.
        top_score: Highest similarity score.
        malformed: Number of matches skipped for missing metadata.
    """
    RETRIEVAL_RECORDS_RETURNED.observe(records_returned)
    if top_score > 0:
        RETRIEVAL_TOP_SCORE.observe(top_score)
    if malformed:
        RETRIEVAL_MALFORMED_TOTAL.inc(malformed)


def track_llm_stream(
    model: str,
    duration: float,
    chunks: int,
    status: str = "success",
) -> None:
    """Track a generation stream.

    Args:
        model: LLM model name.
        duration: Stream duration in seconds.
        chunks: Number of chunks relayed.
        status: One of ``success``, ``error`` or ``cancelled``.
    """
    LLM_STREAM_DURATION.labels(model=model, status=status).observe(duration)
    LLM_STREAM_TOTAL.labels(model=model, status=status).inc()
    if chunks:
        LLM_CHUNKS_TOTAL.labels(model=model).inc(chunks)


def track_pipeline_run(
    outcome: str,
    stage: str,
    duration: float,
) -> None:
    """Track a finished pipeline run.

    Args:
        outcome: Terminal stage name (done, failed, cancelled).
        stage: Stage the run was in when it ended.
        duration: Run duration in seconds.
    """
    PIPELINE_RUN_DURATION.labels(outcome=outcome).observe(duration)
    PIPELINE_RUN_TOTAL.labels(outcome=outcome, stage=stage).inc()
