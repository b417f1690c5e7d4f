"""Observability module for metrics and monitoring."""

from instructor_rag.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_embedding_request,
    track_llm_stream,
    track_pipeline_run,
    track_retrieval_request,
    track_vectorstore_operation,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "track_embedding_request",
    "track_llm_stream",
    "track_pipeline_run",
    "track_retrieval_request",
    "track_vectorstore_operation",
]
