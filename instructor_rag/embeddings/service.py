"""Embedding service interface and implementations."""

import time
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from instructor_rag.config import EmbeddingSettings, get_settings
from instructor_rag.embeddings.models import EmbeddingVector
from instructor_rag.exceptions import EmbeddingError, ErrorCode
from instructor_rag.logging_config import get_logger
from instructor_rag.observability.metrics import track_embedding_request

logger = get_logger(__name__)


class EmbeddingService(ABC):
    """Abstract base class for embedding services.

    Only the active question is ever embedded; conversation history is not.
    """

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingVector:
        """Generate the embedding for a single text.

        Args:
            text: Non-empty text to embed.

        Returns:
            A validated EmbeddingVector.

        Raises:
            EmbeddingError: If the service fails or returns an unusable vector.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name used for embeddings."""
        ...


class HTTPEmbeddingService(EmbeddingService):
    """Embedding service using an OpenAI-style ``/embeddings`` HTTP API.

    Compatible with the Gemini OpenAI endpoint, OpenAI and
    text-embeddings-inference (TEI) servers.
    """

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the HTTP embedding service.

        Args:
            settings: Embedding configuration. Uses defaults if not provided.
            client: HTTP client. Creates new one if not provided.
        """
        self._settings = settings or get_settings().embedding
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.model

    def _headers(self) -> dict[str, str]:
        api_key = self._settings.api_key.get_secret_value()
        if api_key and api_key != "not-required":
            return {"Authorization": f"Bearer {api_key}"}
        return {}

    async def embed(self, text: str) -> EmbeddingVector:
        """Generate embedding for a single text.

        Args:
            text: Text to embed.

        Returns:
            EmbeddingVector with validated values.

        Raises:
            EmbeddingError: If embedding fails or the vector is unusable.
        """
        if not text or not text.strip():
            raise EmbeddingError(
                "Cannot embed empty text",
                code=ErrorCode.EMBEDDING_INVALID_VECTOR,
            )

        start = time.perf_counter()
        try:
            vector = await self._request_vector(text)
        except EmbeddingError:
            track_embedding_request(
                self.model_name, time.perf_counter() - start, success=False
            )
            raise

        track_embedding_request(self.model_name, time.perf_counter() - start)
        logger.debug(
            "Embedded query",
            extra={"model": self.model_name, "dimensions": vector.dimensions},
        )
        return vector

    async def _request_vector(self, text: str) -> EmbeddingVector:
        """Call the embedding endpoint and validate the returned vector."""
        client = await self._get_client()
        url = f"{self._settings.base_url}/embeddings"
        payload = {
            "input": text,
            "model": self._settings.model,
        }

        try:
            response = await client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Embedding request failed: {e.response.status_code}",
                extra={"url": url, "status": e.response.status_code},
            )
            raise EmbeddingError(
                f"Embedding service returned {e.response.status_code}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            logger.error(
                f"Embedding request error: {e}",
                extra={"url": url},
            )
            raise EmbeddingError(
                f"Failed to connect to embedding service: {e}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"url": url},
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise EmbeddingError(
                f"Invalid response from embedding service: {e}",
                code=ErrorCode.EMBEDDING_INVALID_VECTOR,
                details={"error": str(e)},
            ) from e

        values = self._extract_values(data)
        try:
            vector = EmbeddingVector(values=values, model=self._settings.model)
        except PydanticValidationError as e:
            raise EmbeddingError(
                f"Embedding service returned an unusable vector: {e}",
                code=ErrorCode.EMBEDDING_INVALID_VECTOR,
                details={"error": str(e)},
            ) from e

        expected = self._settings.dimensions
        if expected is not None and vector.dimensions != expected:
            raise EmbeddingError(
                f"Expected {expected} dimensions, got {vector.dimensions}",
                code=ErrorCode.EMBEDDING_DIMENSION_MISMATCH,
                details={"expected": expected, "actual": vector.dimensions},
            )

        return vector

    @staticmethod
    def _extract_values(data: Any) -> Any:
        """Pull the first vector out of an embeddings response body."""
        try:
            values = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(
                "Embedding service returned no vector",
                code=ErrorCode.EMBEDDING_INVALID_VECTOR,
                details={"error": str(e)},
            ) from e

        if not isinstance(values, list):
            raise EmbeddingError(
                "Embedding service returned a non-vector response",
                code=ErrorCode.EMBEDDING_INVALID_VECTOR,
                details={"type": type(values).__name__},
            )
        return values
