"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, AsyncIterator, Sequence

import pytest
from httpx import ASGITransport, AsyncClient

from instructor_rag.api.app import app
from instructor_rag.llm.client import GenerationStreamer
from instructor_rag.llm.models import AugmentedPrompt
from instructor_rag.retrieval.models import (
    RetrievalResult,
    RetrievedRecord,
    ReviewMetadata,
)


class FakeStreamer(GenerationStreamer):
    """Streams canned chunks and remembers the prompts it was given.

    If ``error`` is set it is raised after ``fail_after`` chunks.
    """

    def __init__(
        self,
        chunks: Sequence[str] = ("Top 3 ", "Professors ", "for Physics"),
        error: Exception | None = None,
        fail_after: int = 0,
    ) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.fail_after = fail_after
        self.prompts: list[AugmentedPrompt] = []
        self.closed = False
        self.consumed = 0

    @property
    def model_name(self) -> str:
        return "fake-model"

    async def stream(self, prompt: AugmentedPrompt) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        try:
            for index, chunk in enumerate(self.chunks):
                if self.error is not None and index == self.fail_after:
                    raise self.error
                self.consumed += 1
                yield chunk
            if self.error is not None and self.fail_after >= len(self.chunks):
                raise self.error
        finally:
            self.closed = True


def make_record(identifier: str, score: float, stars: float = 4.0) -> RetrievedRecord:
    """Build a review record for tests."""
    return RetrievedRecord(
        identifier=identifier,
        score=score,
        metadata=ReviewMetadata(
            review_text=f"{identifier} explains things clearly.",
            subject="Physics",
            star_rating=stars,
        ),
    )


def make_retrieval(*scores: float) -> RetrievalResult:
    """Build a ranked result with one record per score."""
    return RetrievalResult(
        records=[make_record(f"Dr. Prof{i}", score) for i, score in enumerate(scores)]
    )


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
