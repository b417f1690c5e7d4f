"""Tests for application exceptions."""

from instructor_rag.exceptions import (
    CompositionError,
    EmbeddingError,
    ErrorCode,
    GenerationError,
    InstructorRAGError,
    PipelineNotConfiguredError,
    RetrievalError,
    TransportError,
    ValidationError,
    VectorStoreError,
)


class TestErrorCode:
    """Tests for error codes."""

    def test_error_code_format(self) -> None:
        """Error codes follow RAG-XXXX format."""
        for code in ErrorCode:
            assert code.value.startswith("RAG-")
            assert len(code.value) == 8

    def test_error_code_uniqueness(self) -> None:
        """All error codes are unique."""
        codes = [code.value for code in ErrorCode]
        assert len(codes) == len(set(codes))


class TestInstructorRAGError:
    """Tests for base exception."""

    def test_basic_exception(self) -> None:
        """Base exception stores message and code."""
        error = InstructorRAGError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert error.details == {}
        assert str(error) == "Something went wrong"

    def test_to_dict(self) -> None:
        """Exception converts to API response dict."""
        error = InstructorRAGError(
            "Something went wrong",
            code=ErrorCode.INTERNAL_ERROR,
            details={"trace_id": "abc123"},
        )

        assert error.to_dict() == {
            "error": {
                "code": "RAG-1000",
                "message": "Something went wrong",
                "details": {"trace_id": "abc123"},
            }
        }


class TestSubclasses:
    """Tests for the component exceptions."""

    def test_default_codes(self) -> None:
        """Each exception carries its component's default code."""
        assert ValidationError("x").code == ErrorCode.VALIDATION_ERROR
        assert EmbeddingError("x").code == ErrorCode.EMBEDDING_SERVICE_ERROR
        assert VectorStoreError("x").code == ErrorCode.VECTOR_STORE_ERROR
        assert RetrievalError("x").code == ErrorCode.RETRIEVAL_ERROR
        assert CompositionError("x").code == ErrorCode.PROMPT_COMPOSITION_ERROR
        assert GenerationError("x").code == ErrorCode.LLM_SERVICE_ERROR
        assert TransportError().code == ErrorCode.CLIENT_DISCONNECTED
        assert PipelineNotConfiguredError().code == ErrorCode.PIPELINE_NOT_CONFIGURED

    def test_custom_code(self) -> None:
        """Generation errors can carry a more specific code."""
        error = GenerationError("Stream broke", code=ErrorCode.LLM_STREAM_INTERRUPTED)
        assert error.code == ErrorCode.LLM_STREAM_INTERRUPTED

    def test_all_inherit_from_base(self) -> None:
        """Every exception is catchable as InstructorRAGError."""
        for error in (
            ValidationError("x"),
            EmbeddingError("x"),
            RetrievalError("x"),
            GenerationError("x"),
            TransportError(),
        ):
            assert isinstance(error, InstructorRAGError)
