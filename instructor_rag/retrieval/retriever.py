"""Retriever interface and implementations."""

from abc import ABC, abstractmethod

from pydantic import ValidationError as PydanticValidationError

from instructor_rag.embeddings.models import EmbeddingVector
from instructor_rag.exceptions import ErrorCode, RetrievalError, VectorStoreError
from instructor_rag.logging_config import get_logger
from instructor_rag.observability.metrics import track_retrieval_request
from instructor_rag.retrieval.models import (
    RetrievalResult,
    RetrievedRecord,
    ReviewMetadata,
)
from instructor_rag.vectorstore.models import SearchResult
from instructor_rag.vectorstore.service import VectorStore

logger = get_logger(__name__)


class Retriever(ABC):
    """Abstract base class for retrievers."""

    @abstractmethod
    async def retrieve(
        self,
        vector: EmbeddingVector,
        top_k: int = 5,
    ) -> RetrievalResult:
        """Retrieve the reviews closest to a query vector.

        Args:
            vector: The query embedding.
            top_k: Maximum number of records to return.

        Returns:
            Records ranked by descending similarity.

        Raises:
            RetrievalError: If the store cannot be searched.
        """
        ...


class VectorStoreRetriever(Retriever):
    """Nearest-neighbour retriever over a vector store collection.

    Matches missing any of the required review fields are dropped
    individually; the remaining ones are still returned.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        collection: str,
        score_threshold: float | None = None,
    ) -> None:
        """Initialize the retriever.

        Args:
            vector_store: Vector database for similarity search.
            collection: Name of the collection (namespace) to search.
            score_threshold: Minimum score to include in results. None keeps
                every match, whatever the metric's score range.
        """
        self._vector_store = vector_store
        self._collection = collection
        self._score_threshold = score_threshold

    async def retrieve(
        self,
        vector: EmbeddingVector,
        top_k: int = 5,
    ) -> RetrievalResult:
        """Retrieve reviews using semantic similarity."""
        if top_k < 1:
            raise RetrievalError(
                f"top_k must be positive, got {top_k}",
                code=ErrorCode.RETRIEVAL_ERROR,
                details={"top_k": top_k},
            )

        try:
            matches = await self._vector_store.search(
                collection=self._collection,
                vector=vector.values,
                limit=top_k,
            )
        except VectorStoreError as e:
            raise RetrievalError(
                f"Failed to retrieve reviews: {e.message}",
                code=ErrorCode.RETRIEVAL_ERROR,
                details={"collection": self._collection, **e.details},
            ) from e

        records: list[RetrievedRecord] = []
        malformed = 0
        for match in matches:
            if (
                self._score_threshold is not None
                and match.score < self._score_threshold
            ):
                continue
            record = self._to_record(match)
            if record is None:
                malformed += 1
                continue
            records.append(record)

        # The store ranks matches; ties keep its order.
        try:
            result = RetrievalResult(records=records[:top_k])
        except PydanticValidationError as e:
            raise RetrievalError(
                "Vector store returned matches out of rank order",
                code=ErrorCode.RETRIEVAL_ERROR,
                details={
                    "collection": self._collection,
                    "scores": [r.score for r in records],
                },
            ) from e

        track_retrieval_request(len(result.records), result.top_score, malformed)
        logger.debug(
            f"Retrieved {len(result.records)} reviews",
            extra={
                "collection": self._collection,
                "top_k": top_k,
                "matches": len(matches),
                "malformed": malformed,
            },
        )
        return result

    def _to_record(self, match: SearchResult) -> RetrievedRecord | None:
        """Build a record from a match, or None if its metadata is incomplete."""
        try:
            metadata = ReviewMetadata.model_validate(match.payload)
        except PydanticValidationError as e:
            logger.warning(
                f"Skipping malformed match {match.id}",
                extra={
                    "match_id": match.id,
                    "missing": sorted(
                        str(err["loc"][0]) for err in e.errors() if err["loc"]
                    ),
                },
            )
            return None

        return RetrievedRecord(
            identifier=match.id,
            score=match.score,
            metadata=metadata,
        )
