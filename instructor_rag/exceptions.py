"""Application exception hierarchy.

All custom exceptions inherit from InstructorRAGError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "RAG-1000"
    CONFIGURATION_ERROR = "RAG-1001"
    VALIDATION_ERROR = "RAG-1002"
    PIPELINE_NOT_CONFIGURED = "RAG-1003"
    REQUEST_TIMEOUT = "RAG-1004"

    # Embedding errors (3xxx)
    EMBEDDING_SERVICE_ERROR = "RAG-3000"
    EMBEDDING_DIMENSION_MISMATCH = "RAG-3001"
    EMBEDDING_INVALID_VECTOR = "RAG-3002"

    # Vector store errors (4xxx)
    VECTOR_STORE_ERROR = "RAG-4000"

    # LLM errors (5xxx)
    LLM_SERVICE_ERROR = "RAG-5000"
    LLM_TIMEOUT = "RAG-5001"
    LLM_RATE_LIMIT = "RAG-5002"
    LLM_STREAM_INTERRUPTED = "RAG-5003"
    PROMPT_COMPOSITION_ERROR = "RAG-5004"

    # Retrieval errors (6xxx)
    RETRIEVAL_ERROR = "RAG-6000"

    # Transport errors (8xxx)
    CLIENT_DISCONNECTED = "RAG-8000"


class InstructorRAGError(Exception):
    """Base exception for all service errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(InstructorRAGError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class PipelineNotConfiguredError(InstructorRAGError):
    """The query pipeline has not been constructed for this process."""

    def __init__(
        self,
        message: str = "RAG pipeline not configured",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.PIPELINE_NOT_CONFIGURED, details)


class ValidationError(InstructorRAGError):
    """Malformed client input. Raised before any external call is made."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class EmbeddingError(InstructorRAGError):
    """Embedding service error or unusable vector."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class VectorStoreError(InstructorRAGError):
    """Vector store operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VECTOR_STORE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class RetrievalError(InstructorRAGError):
    """Retrieval operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RETRIEVAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class CompositionError(InstructorRAGError):
    """Prompt could not be assembled."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.PROMPT_COMPOSITION_ERROR, details)


class GenerationError(InstructorRAGError):
    """Generative model error, before or during streaming."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.LLM_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class TransportError(InstructorRAGError):
    """The caller went away. Triggers cancellation, never reported as a failure."""

    def __init__(
        self,
        message: str = "Client disconnected",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CLIENT_DISCONNECTED, details)
