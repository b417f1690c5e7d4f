"""RAG pipeline data models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from instructor_rag.exceptions import ErrorCode


class PipelineStage(str, Enum):
    """Stages a single request moves through, in order.

    DONE, FAILED and CANCELLED are terminal.
    """

    RECEIVED = "received"
    EMBEDDING = "embedding"
    RETRIEVING = "retrieving"
    COMPOSING = "composing"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STAGES


_TERMINAL_STAGES = frozenset(
    {PipelineStage.DONE, PipelineStage.FAILED, PipelineStage.CANCELLED}
)


class PipelineFailure(BaseModel):
    """Where and why a run failed.

    Attributes:
        stage: The stage that was active when the failure happened.
        code: Structured error code of the cause.
        message: Human-readable cause.
    """

    model_config = ConfigDict(frozen=True)

    stage: PipelineStage = Field(description="Stage that failed")
    code: ErrorCode = Field(description="Error code of the cause")
    message: str = Field(description="Failure message")
