"""RAG pipeline module."""

from instructor_rag.rag.models import PipelineFailure, PipelineStage
from instructor_rag.rag.pipeline import PipelineRun, RAGPipeline, parse_conversation

__all__ = [
    "PipelineFailure",
    "PipelineRun",
    "PipelineStage",
    "RAGPipeline",
    "parse_conversation",
]
