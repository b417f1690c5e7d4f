"""Retrieval module."""

from instructor_rag.retrieval.models import (
    RetrievalResult,
    RetrievedRecord,
    ReviewMetadata,
)
from instructor_rag.retrieval.retriever import Retriever, VectorStoreRetriever

__all__ = [
    "RetrievalResult",
    "RetrievedRecord",
    "Retriever",
    "ReviewMetadata",
    "VectorStoreRetriever",
]
