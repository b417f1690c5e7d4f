"""Tests for retrieval module."""

from unittest.mock import AsyncMock

import pytest

from instructor_rag.embeddings.models import EmbeddingVector
from instructor_rag.exceptions import ErrorCode, RetrievalError, VectorStoreError
from instructor_rag.retrieval.models import (
    RetrievalResult,
    RetrievedRecord,
    ReviewMetadata,
)
from instructor_rag.retrieval.retriever import VectorStoreRetriever
from instructor_rag.vectorstore.models import SearchResult
from tests.conftest import make_record, make_retrieval

QUERY = EmbeddingVector(values=[0.1, 0.2, 0.3], model="test-model")


def _match(identifier: str, score: float, **payload: object) -> SearchResult:
    fields = {"review": f"{identifier} is great", "subject": "Physics", "stars": 4}
    fields.update(payload)
    return SearchResult(id=identifier, score=score, payload=fields)


def _store(matches: list[SearchResult]) -> AsyncMock:
    store = AsyncMock()
    store.search = AsyncMock(return_value=matches)
    return store


class TestReviewMetadata:
    """Tests for ReviewMetadata model."""

    def test_from_store_payload(self) -> None:
        """Stored field names map onto the model."""
        metadata = ReviewMetadata.model_validate(
            {"review": "Clear lectures", "subject": "Physics", "stars": 5}
        )
        assert metadata.review_text == "Clear lectures"
        assert metadata.subject == "Physics"
        assert metadata.star_rating == 5.0

    def test_missing_field_rejected(self) -> None:
        """Every review field is required."""
        with pytest.raises(ValueError):
            ReviewMetadata.model_validate({"review": "Clear", "subject": "Physics"})


class TestRetrievalResult:
    """Tests for RetrievalResult model."""

    def test_empty_result(self) -> None:
        """Empty result is valid."""
        result = RetrievalResult()
        assert result.is_empty
        assert result.top_score == 0.0

    def test_ranked_result(self) -> None:
        """Descending scores are accepted, ties included."""
        result = make_retrieval(0.9, 0.7, 0.7)
        assert not result.is_empty
        assert result.top_score == 0.9

    def test_unranked_result_rejected(self) -> None:
        """Increasing scores are rejected."""
        with pytest.raises(ValueError):
            RetrievalResult(records=[make_record("a", 0.5), make_record("b", 0.8)])


class TestVectorStoreRetriever:
    """Tests for VectorStoreRetriever."""

    async def test_retrieve(self) -> None:
        """Matches become ranked records."""
        store = _store([_match("Dr. Smith", 0.92), _match("Dr. Jones", 0.81)])
        retriever = VectorStoreRetriever(store, collection="rag")

        result = await retriever.retrieve(QUERY, top_k=5)

        assert [r.identifier for r in result.records] == ["Dr. Smith", "Dr. Jones"]
        assert isinstance(result.records[0], RetrievedRecord)
        assert result.records[0].metadata.review_text == "Dr. Smith is great"
        store.search.assert_called_once_with(
            collection="rag", vector=[0.1, 0.2, 0.3], limit=5
        )

    async def test_keeps_store_ranking(self) -> None:
        """Records come back in the order the store ranked them."""
        store = _store([_match("b", 0.9), _match("c", 0.6), _match("a", 0.3)])
        retriever = VectorStoreRetriever(store, collection="rag")

        result = await retriever.retrieve(QUERY)

        assert [r.identifier for r in result.records] == ["b", "c", "a"]

    async def test_unranked_store_output_rejected(self) -> None:
        """Scores that rise down the list are a retrieval error, not re-sorted."""
        store = _store([_match("a", 0.3), _match("b", 0.9), _match("c", 0.6)])
        retriever = VectorStoreRetriever(store, collection="rag")

        with pytest.raises(RetrievalError) as exc_info:
            await retriever.retrieve(QUERY)

        assert exc_info.value.code == ErrorCode.RETRIEVAL_ERROR
        assert exc_info.value.details["scores"] == [0.3, 0.9, 0.6]

    async def test_negative_scores_kept_by_default(self) -> None:
        """Without a threshold, matches with negative scores are still used."""
        store = _store([_match("close", 0.1), _match("far", -0.4)])
        retriever = VectorStoreRetriever(store, collection="rag")

        result = await retriever.retrieve(QUERY)

        assert [r.identifier for r in result.records] == ["close", "far"]
        assert result.records[-1].score == -0.4

    async def test_ties_keep_store_order(self) -> None:
        """Equal scores keep the order the store returned."""
        store = _store([_match("first", 0.5), _match("second", 0.5)])
        retriever = VectorStoreRetriever(store, collection="rag")

        result = await retriever.retrieve(QUERY)

        assert [r.identifier for r in result.records] == ["first", "second"]

    async def test_truncates_to_top_k(self) -> None:
        """No more than top_k records are returned."""
        store = _store([_match(f"p{i}", 1.0 - i / 10) for i in range(5)])
        retriever = VectorStoreRetriever(store, collection="rag")

        result = await retriever.retrieve(QUERY, top_k=2)

        assert [r.identifier for r in result.records] == ["p0", "p1"]

    async def test_skips_malformed_matches(self) -> None:
        """Matches missing review fields are dropped, the rest survive."""
        broken = SearchResult(id="broken", score=0.99, payload={"subject": "Physics"})
        store = _store([broken, _match("Dr. Smith", 0.8)])
        retriever = VectorStoreRetriever(store, collection="rag")

        result = await retriever.retrieve(QUERY)

        assert [r.identifier for r in result.records] == ["Dr. Smith"]

    async def test_all_malformed_gives_empty_result(self) -> None:
        """Only malformed matches yields an empty result, not an error."""
        store = _store([SearchResult(id="x", score=0.9, payload={})])
        retriever = VectorStoreRetriever(store, collection="rag")

        result = await retriever.retrieve(QUERY)

        assert result.is_empty

    async def test_score_threshold(self) -> None:
        """Matches below the threshold are filtered out."""
        store = _store([_match("high", 0.9), _match("low", 0.2)])
        retriever = VectorStoreRetriever(store, collection="rag", score_threshold=0.5)

        result = await retriever.retrieve(QUERY)

        assert [r.identifier for r in result.records] == ["high"]

    async def test_empty_store(self) -> None:
        """An empty store gives an empty result."""
        retriever = VectorStoreRetriever(_store([]), collection="rag")

        result = await retriever.retrieve(QUERY)

        assert result.is_empty

    async def test_store_failure(self) -> None:
        """Vector store errors surface as RetrievalError."""
        store = AsyncMock()
        store.search = AsyncMock(side_effect=VectorStoreError("unreachable"))
        retriever = VectorStoreRetriever(store, collection="rag")

        with pytest.raises(RetrievalError) as exc_info:
            await retriever.retrieve(QUERY)

        assert exc_info.value.code == ErrorCode.RETRIEVAL_ERROR
        assert exc_info.value.details["collection"] == "rag"

    async def test_invalid_top_k(self) -> None:
        """A non-positive top_k is rejected before searching."""
        store = _store([])
        retriever = VectorStoreRetriever(store, collection="rag")

        with pytest.raises(RetrievalError):
            await retriever.retrieve(QUERY, top_k=0)

        store.search.assert_not_called()
