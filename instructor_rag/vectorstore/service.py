"""Vector store interface and Qdrant implementation.

The store is read-only from this service's point of view: reviews are
loaded by a separate ingestion job.
"""

import time
from abc import ABC, abstractmethod

from qdrant_client import AsyncQdrantClient

from instructor_rag.config import QdrantSettings, get_settings
from instructor_rag.exceptions import ErrorCode, VectorStoreError
from instructor_rag.logging_config import get_logger
from instructor_rag.observability.metrics import track_vectorstore_operation
from instructor_rag.vectorstore.models import SearchResult

logger = get_logger(__name__)


class VectorStore(ABC):
    """Abstract base class for vector stores."""

    @abstractmethod
    async def collection_exists(self, name: str) -> bool:
        """Check if a collection exists.

        Args:
            name: Collection name.

        Returns:
            True if collection exists.

        Raises:
            VectorStoreError: If the store cannot be reached.
        """
        ...

    @abstractmethod
    async def search(
        self,
        collection: str,
        vector: list[float],
        limit: int = 5,
    ) -> list[SearchResult]:
        """Search for similar vectors.

        Args:
            collection: Collection (namespace) name.
            vector: Query vector.
            limit: Maximum results to return.

        Returns:
            Matches with their metadata, in the order the store ranked them.

        Raises:
            VectorStoreError: If search fails.
        """
        ...


class QdrantVectorStore(VectorStore):
    """Qdrant vector store implementation."""

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant vector store.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).
        """
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._settings.api_key:
                api_key = self._settings.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=api_key,
            )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def collection_exists(self, name: str) -> bool:
        """Check if collection exists."""
        client = await self._get_client()
        try:
            return await client.collection_exists(name)
        except Exception as e:
            raise VectorStoreError(
                f"Failed to check collection: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"collection": name, "error": str(e)},
            ) from e

    async def search(
        self,
        collection: str,
        vector: list[float],
        limit: int = 5,
    ) -> list[SearchResult]:
        """Search for similar vectors, payload included."""
        client = await self._get_client()
        start = time.perf_counter()

        try:
            results = await client.query_points(
                collection_name=collection,
                query=vector,
                limit=limit,
                with_payload=True,
            )
        except Exception as e:
            track_vectorstore_operation("search", time.perf_counter() - start, False)
            logger.error(
                f"Vector search failed: {e}",
                extra={"collection": collection},
            )
            raise VectorStoreError(
                f"Failed to search: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"collection": collection, "error": str(e)},
            ) from e

        track_vectorstore_operation("search", time.perf_counter() - start)

        return [
            SearchResult(
                id=str(point.id),
                score=point.score if point.score is not None else 0.0,
                payload=dict(point.payload) if point.payload else {},
            )
            for point in results.points
        ]
