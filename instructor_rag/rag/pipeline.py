"""RAG pipeline orchestrator.

One request is one ``PipelineRun``: the question is embedded, similar
reviews are retrieved, the prompt is composed and the answer is streamed
back chunk by chunk. Runs share nothing but the injected adapters, which
are safe for concurrent use.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import aclosing
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from instructor_rag.config import Settings, get_settings
from instructor_rag.embeddings.models import EmbeddingVector
from instructor_rag.embeddings.service import EmbeddingService, HTTPEmbeddingService
from instructor_rag.exceptions import (
    CompositionError,
    ConfigurationError,
    EmbeddingError,
    ErrorCode,
    GenerationError,
    InstructorRAGError,
    RetrievalError,
    TransportError,
    ValidationError,
)
from instructor_rag.llm.client import GenerationStreamer, OpenAICompatibleStreamer
from instructor_rag.llm.models import AugmentedPrompt, Message, Role
from instructor_rag.llm.prompts import PromptComposer
from instructor_rag.logging_config import get_logger
from instructor_rag.observability.metrics import track_pipeline_run
from instructor_rag.rag.models import PipelineFailure, PipelineStage
from instructor_rag.retrieval.models import RetrievalResult
from instructor_rag.retrieval.retriever import Retriever, VectorStoreRetriever
from instructor_rag.vectorstore.service import QdrantVectorStore, VectorStore

logger = get_logger(__name__)

DisconnectCheck = Callable[[], Awaitable[bool]]

_CONVERSATION = TypeAdapter(list[Message])

_NEXT_STAGE = {
    PipelineStage.RECEIVED: PipelineStage.EMBEDDING,
    PipelineStage.EMBEDDING: PipelineStage.RETRIEVING,
    PipelineStage.RETRIEVING: PipelineStage.COMPOSING,
    PipelineStage.COMPOSING: PipelineStage.STREAMING,
    PipelineStage.STREAMING: PipelineStage.DONE,
}


def parse_conversation(payload: Any) -> list[Message]:
    """Validate a raw conversation into canonical messages.

    Args:
        payload: Decoded request body; must be a non-empty array of
            ``{"role", "content"}`` objects ending with a user message.

    Returns:
        The messages in their original order.

    Raises:
        ValidationError: If the payload is not a usable conversation.
    """
    if isinstance(payload, (str, bytes)) or not isinstance(payload, Sequence):
        raise ValidationError(
            "Conversation must be an array of messages",
            details={"type": type(payload).__name__},
        )
    if not payload:
        raise ValidationError("Conversation must not be empty")

    try:
        messages = _CONVERSATION.validate_python(list(payload))
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid conversation message",
            details={
                "errors": [
                    {"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()
                ]
            },
        ) from e

    last = messages[-1]
    if last.role != Role.USER:
        raise ValidationError(
            "The last message must come from the user",
            details={"role": last.role.value},
        )
    if not last.content.strip():
        raise ValidationError("The last message must not be empty")

    return messages


class PipelineRun:
    """State of one request moving through the pipeline."""

    def __init__(self, messages: list[Message]) -> None:
        self.messages = messages
        self.stage = PipelineStage.RECEIVED
        self.stages: list[PipelineStage] = [PipelineStage.RECEIVED]
        self.failure: PipelineFailure | None = None
        self.error: InstructorRAGError | None = None
        self.retrieval: RetrievalResult | None = None
        self.prompt: AugmentedPrompt | None = None
        self.chunks_emitted = 0
        self._started = time.perf_counter()

    @property
    def query(self) -> str:
        """The active question: the content of the last message."""
        return self.messages[-1].content

    @property
    def history(self) -> list[Message]:
        """Every message before the active question."""
        return self.messages[:-1]

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    def advance(self) -> PipelineStage:
        """Move to the next stage of the linear progression."""
        if self.is_terminal:
            raise RuntimeError(f"Run already ended in {self.stage.value}")
        self._enter(_NEXT_STAGE[self.stage])
        if self.stage is PipelineStage.DONE:
            self._record_end()
        return self.stage

    def fail(self, error: InstructorRAGError) -> None:
        """End the run with the active stage recorded as the failed one."""
        if self.is_terminal:
            return
        self.failure = PipelineFailure(
            stage=self.stage, code=error.code, message=error.message
        )
        self.error = error
        logger.error(
            f"Pipeline failed while {self.stage.value}: {error.message}",
            extra={"stage": self.stage.value, "error_code": error.code.value},
        )
        self._enter(PipelineStage.FAILED)
        self._record_end(self.failure.stage)

    def cancel(self, error: TransportError | None = None) -> None:
        """End the run because the caller went away or stopped reading."""
        if self.is_terminal:
            return
        stage = self.stage
        self.error = error
        logger.info(
            f"Pipeline cancelled while {stage.value}",
            extra={"stage": stage.value, "chunks": self.chunks_emitted},
        )
        self._enter(PipelineStage.CANCELLED)
        self._record_end(stage)

    def _enter(self, stage: PipelineStage) -> None:
        logger.debug(
            f"Pipeline stage {self.stage.value} -> {stage.value}",
            extra={"stage": stage.value},
        )
        self.stage = stage
        self.stages.append(stage)

    def _record_end(self, stage: PipelineStage | None = None) -> None:
        track_pipeline_run(
            outcome=self.stage.value,
            stage=(stage or self.stage).value,
            duration=time.perf_counter() - self._started,
        )


class RAGPipeline:
    """Orchestrates embedding, retrieval, prompt composition and streaming.

    Failure policy:
    - embedding or composition failures abort before any generation call;
    - retrieval failures are logged and the answer is generated without
      review context;
    - generation failures end the stream after the chunks already relayed.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        retriever: Retriever,
        streamer: GenerationStreamer,
        composer: PromptComposer | None = None,
        top_k: int = 5,
        request_timeout: float | None = None,
        system_prompt: str | None = None,
    ) -> None:
        """Initialize the RAG pipeline.

        Args:
            embedding_service: Embeds the active question.
            retriever: Finds the closest reviews.
            streamer: Streams the generated answer.
            composer: Builds the augmented prompt.
            top_k: Number of reviews to retrieve.
            request_timeout: Deadline for a whole run in seconds.
            system_prompt: Replaces the composer's system instructions.
        """
        if top_k < 1:
            raise ValueError(f"top_k must be positive, got {top_k}")

        self._embedding_service = embedding_service
        self._retriever = retriever
        self._streamer = streamer
        self._composer = composer or PromptComposer()
        self._top_k = top_k
        self._request_timeout = request_timeout
        self._system_prompt = system_prompt
        self._closeables: list[Any] = []
        self._vector_store: VectorStore | None = None
        self._collection: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RAGPipeline":
        """Construct the pipeline and its HTTP/Qdrant adapters from settings.

        The adapters are owned by the returned pipeline; call ``close``
        on shutdown.

        Raises:
            ConfigurationError: If no review collection is configured.
        """
        settings = settings or get_settings()
        if not settings.qdrant.collection_name.strip():
            raise ConfigurationError(
                "QDRANT_COLLECTION_NAME must name the review collection",
                details={"collection_name": settings.qdrant.collection_name},
            )

        embedding_service = HTTPEmbeddingService(settings=settings.embedding)
        vector_store = QdrantVectorStore(settings=settings.qdrant)
        retriever = VectorStoreRetriever(
            vector_store=vector_store,
            collection=settings.qdrant.collection_name,
            score_threshold=settings.rag.score_threshold,
        )
        streamer = OpenAICompatibleStreamer(settings=settings.llm)

        pipeline = cls(
            embedding_service=embedding_service,
            retriever=retriever,
            streamer=streamer,
            top_k=settings.rag.top_k,
            request_timeout=settings.rag.request_timeout,
        )
        pipeline._closeables = [embedding_service, vector_store, streamer]
        pipeline._vector_store = vector_store
        pipeline._collection = settings.qdrant.collection_name
        return pipeline

    async def close(self) -> None:
        """Release the adapters created by ``from_settings``."""
        for resource in self._closeables:
            await resource.close()
        self._closeables = []

    async def check_ready(self) -> dict[str, str]:
        """Report whether the review collection can be searched."""
        if self._vector_store is None or self._collection is None:
            return {"vector_store": "unchecked"}
        try:
            exists = await self._vector_store.collection_exists(self._collection)
        except InstructorRAGError as e:
            logger.warning(f"Readiness check failed: {e.message}")
            return {"vector_store": "unreachable"}
        return {"vector_store": "ok" if exists else "missing_collection"}

    def start(self, payload: Any) -> PipelineRun:
        """Validate a conversation and open a run for it.

        Raises:
            ValidationError: Before any external call if the payload is
                malformed.
        """
        messages = parse_conversation(payload)
        logger.info(
            "Processing question",
            extra={"messages": len(messages), "question_length": len(messages[-1].content)},
        )
        return PipelineRun(messages)

    def stream(
        self,
        payload: Any,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncIterator[str]:
        """Validate a conversation and stream the answer.

        Validation errors are raised immediately, before iteration starts.
        """
        return self.execute(self.start(payload), is_disconnected)

    async def answer(self, payload: Any) -> str:
        """Run the pipeline and return the whole answer as one string."""
        parts: list[str] = []
        async with aclosing(self.stream(payload)) as chunks:
            async for chunk in chunks:
                parts.append(chunk)
        return "".join(parts)

    async def execute(
        self,
        run: PipelineRun,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncIterator[str]:
        """Drive a run through every stage, yielding answer chunks.

        Args:
            run: A run opened by ``start``.
            is_disconnected: Checked before each chunk is relayed; when it
                returns True the generation stream is released and the run
                is cancelled.

        Yields:
            Answer fragments in generation order.

        Raises:
            EmbeddingError: The question could not be embedded.
            CompositionError: The prompt could not be assembled.
            GenerationError: The generator failed, possibly after some
                chunks were already yielded.
        """
        deadline = None
        if self._request_timeout is not None:
            deadline = asyncio.get_running_loop().time() + self._request_timeout

        try:
            run.advance()
            vector = await self._embed(run, deadline)

            run.advance()
            run.retrieval = await self._retrieve(run, vector, deadline)

            run.advance()
            run.prompt = self._compose(run, run.retrieval)

            run.advance()
            async with aclosing(self._streamer.stream(run.prompt)) as chunks:
                try:
                    while True:
                        chunk = await self._next_chunk(run, chunks, deadline)
                        if chunk is None:
                            break
                        if is_disconnected is not None and await is_disconnected():
                            raise TransportError(
                                details={"chunks": run.chunks_emitted}
                            )
                        run.chunks_emitted += 1
                        yield chunk
                except TransportError as e:
                    run.cancel(e)
                    return

            run.advance()
            logger.info(
                "Question answered",
                extra={
                    "chunks": run.chunks_emitted,
                    "reviews": len(run.retrieval.records),
                },
            )

        except (GeneratorExit, asyncio.CancelledError):
            run.cancel()
            raise
        except InstructorRAGError as e:
            run.fail(e)
            raise
        except Exception as e:
            run.fail(InstructorRAGError(f"Unexpected pipeline error: {e}"))
            raise

    async def _embed(
        self,
        run: PipelineRun,
        deadline: float | None,
    ) -> EmbeddingVector:
        try:
            async with asyncio.timeout_at(deadline):
                return await self._embedding_service.embed(run.query)
        except TimeoutError as e:
            raise EmbeddingError(
                "Embedding exceeded the request deadline",
                code=ErrorCode.REQUEST_TIMEOUT,
                details={"timeout": self._request_timeout},
            ) from e

    async def _retrieve(
        self,
        run: PipelineRun,
        vector: EmbeddingVector,
        deadline: float | None,
    ) -> RetrievalResult:
        try:
            async with asyncio.timeout_at(deadline):
                return await self._retriever.retrieve(vector, self._top_k)
        except (RetrievalError, TimeoutError) as e:
            logger.warning(
                f"Retrieval failed, answering without review context: {e}",
                extra={"stage": run.stage.value, "top_k": self._top_k},
            )
            return RetrievalResult()

    def _compose(self, run: PipelineRun, retrieval: RetrievalResult) -> AugmentedPrompt:
        try:
            return self._composer.compose(
                self._system_prompt,
                run.history,
                run.query,
                retrieval,
            )
        except (ValueError, TypeError) as e:
            raise CompositionError(
                f"Failed to compose prompt: {e}",
                details={"error": str(e)},
            ) from e

    async def _next_chunk(
        self,
        run: PipelineRun,
        chunks: AsyncIterator[str],
        deadline: float | None,
    ) -> str | None:
        """Await the next fragment, or None once the generator is done."""
        try:
            async with asyncio.timeout_at(deadline):
                return await anext(chunks)
        except StopAsyncIteration:
            return None
        except TimeoutError as e:
            raise GenerationError(
                "Generation exceeded the request deadline",
                code=ErrorCode.REQUEST_TIMEOUT,
                details={
                    "timeout": self._request_timeout,
                    "chunks": run.chunks_emitted,
                },
            ) from e
