"""Vector store module."""

from instructor_rag.vectorstore.models import SearchResult
from instructor_rag.vectorstore.service import QdrantVectorStore, VectorStore

__all__ = [
    "QdrantVectorStore",
    "SearchResult",
    "VectorStore",
]
