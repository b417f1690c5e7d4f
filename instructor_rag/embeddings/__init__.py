"""Embedding service module."""

from instructor_rag.embeddings.models import EmbeddingVector
from instructor_rag.embeddings.service import EmbeddingService, HTTPEmbeddingService

__all__ = [
    "EmbeddingService",
    "EmbeddingVector",
    "HTTPEmbeddingService",
]
