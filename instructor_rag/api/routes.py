"""API routes for instructor questions."""

from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import StreamingResponse

from instructor_rag.config import get_settings
from instructor_rag.exceptions import (
    ErrorCode,
    InstructorRAGError,
    PipelineNotConfiguredError,
)
from instructor_rag.logging_config import get_logger
from instructor_rag.rag.pipeline import RAGPipeline

logger = get_logger(__name__)


router = APIRouter(prefix="/api", tags=["Chat"])


def get_pipeline(request: Request) -> RAGPipeline:
    """Return the pipeline built at startup.

    Raises:
        PipelineNotConfiguredError: If the application started without one.
    """
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise PipelineNotConfiguredError(
            details={
                "reason": "embedding service, vector store and LLM are not set up",
            }
        )
    return pipeline


async def relay_chunks(
    first: str | None,
    chunks: AsyncIterator[str],
    error_marker: str,
) -> AsyncIterator[str]:
    """Relay an already-primed answer stream to the client.

    A failure after the response has started cannot change the status code
    any more, so it is reported by appending ``error_marker``. Unexpected
    exceptions are reported with the internal error code.
    """
    async with aclosing(chunks):
        if first is None:
            return
        yield first
        try:
            async for chunk in chunks:
                yield chunk
        except InstructorRAGError as e:
            logger.error(
                f"Answer stream interrupted: {e.message}",
                extra={"error_code": e.code.value},
            )
            yield error_marker.format(code=e.code.value)
        except Exception as e:
            logger.exception(
                f"Answer stream failed unexpectedly: {e}",
                extra={"error_code": ErrorCode.INTERNAL_ERROR.value},
            )
            yield error_marker.format(code=ErrorCode.INTERNAL_ERROR.value)


@router.post("/chat", response_class=StreamingResponse)
async def chat_endpoint(
    request: Request,
    payload: Any = Body(default=None),
    pipeline: RAGPipeline = Depends(get_pipeline),
) -> StreamingResponse:
    """Answer the last message of a conversation as a text stream.

    The body is the conversation itself: an array of
    ``{"role": ..., "content": ...}`` objects. Validation and every stage up
    to the first answer chunk run before the response starts, so those
    failures come back as JSON errors with a proper status code.
    """
    run = pipeline.start(payload)
    chunks = pipeline.execute(run, is_disconnected=request.is_disconnected)

    try:
        first = await anext(chunks)
    except StopAsyncIteration:
        first = None

    return StreamingResponse(
        relay_chunks(first, chunks, get_settings().rag.stream_error_marker),
        media_type="text/plain; charset=utf-8",
    )
