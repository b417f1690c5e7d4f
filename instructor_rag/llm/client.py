"""Generation streamer interface and implementations."""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

import httpx

from instructor_rag.config import LLMSettings, get_settings
from instructor_rag.exceptions import ErrorCode, GenerationError
from instructor_rag.llm.models import AugmentedPrompt
from instructor_rag.logging_config import get_logger
from instructor_rag.observability.metrics import track_llm_stream

logger = get_logger(__name__)


class GenerationStreamer(ABC):
    """Abstract base class for streaming text generation.

    Each call to ``stream`` issues a new generation request; the returned
    iterator is finite and cannot be restarted.
    """

    @abstractmethod
    def stream(self, prompt: AugmentedPrompt) -> AsyncIterator[str]:
        """Stream the answer for a prompt.

        Args:
            prompt: The augmented prompt.

        Yields:
            Non-empty text fragments, in the order the model emitted them.

        Raises:
            GenerationError: If the request fails or the stream breaks.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name."""
        ...


class OpenAICompatibleStreamer(GenerationStreamer):
    """Streams chat completions from an OpenAI-compatible API.

    Works with:
    - Gemini (OpenAI compatibility endpoint)
    - Ollama (localhost:11434/v1)
    - vLLM
    - OpenAI API
    """

    def __init__(
        self,
        settings: LLMSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the streamer.

        Args:
            settings: LLM configuration.
            client: HTTP client (for testing).
        """
        self._settings = settings or get_settings().llm
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._settings.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.model

    def _build_payload(self, prompt: AugmentedPrompt) -> dict[str, Any]:
        return {
            "model": self._settings.model,
            "messages": [
                {"role": msg.role.value, "content": msg.content}
                for msg in prompt.segments
            ],
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
            "stream": True,
        }

    def _build_headers(self) -> dict[str, str]:
        headers = {"Accept": "text/event-stream"}
        api_key = self._settings.api_key.get_secret_value()
        if api_key and api_key != "not-required":
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    async def stream(self, prompt: AugmentedPrompt) -> AsyncIterator[str]:
        """Stream text deltas from the chat completions endpoint."""
        client = await self._get_client()
        url = f"{self._settings.base_url}/chat/completions"

        start = time.perf_counter()
        chunks = 0
        finished = False
        status = "error"

        try:
            async with client.stream(
                "POST",
                url,
                json=self._build_payload(prompt),
                headers=self._build_headers(),
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise self._status_error(response.status_code)

                async for line in response.aiter_lines():
                    text, finished = self._parse_event(line)
                    if finished:
                        break
                    if text:
                        chunks += 1
                        yield text

            if not finished:
                logger.error("LLM stream ended early", extra={"chunks": chunks})
                raise GenerationError(
                    "LLM stream ended without an end-of-stream event",
                    code=ErrorCode.LLM_STREAM_INTERRUPTED,
                    details={"chunks": chunks},
                )
            status = "success"

        except httpx.TimeoutException as e:
            logger.error(f"LLM stream timed out: {e}", extra={"chunks": chunks})
            raise GenerationError(
                "LLM request timed out",
                code=ErrorCode.LLM_TIMEOUT,
                details={"timeout": self._settings.timeout, "chunks": chunks},
            ) from e

        except httpx.RequestError as e:
            logger.error(f"LLM stream broke: {e}", extra={"chunks": chunks})
            code = (
                ErrorCode.LLM_STREAM_INTERRUPTED if chunks else ErrorCode.LLM_SERVICE_ERROR
            )
            raise GenerationError(
                f"LLM stream failed: {e}",
                code=code,
                details={"url": url, "chunks": chunks},
            ) from e

        except (GeneratorExit, asyncio.CancelledError):
            status = "cancelled"
            raise

        finally:
            track_llm_stream(
                self.model_name, time.perf_counter() - start, chunks, status
            )

    def _status_error(self, status: int) -> GenerationError:
        logger.error(f"LLM request failed: {status}")
        if status == 429:
            return GenerationError(
                "Rate limit exceeded",
                code=ErrorCode.LLM_RATE_LIMIT,
                details={"status_code": status},
            )
        return GenerationError(
            f"LLM service returned {status}",
            code=ErrorCode.LLM_SERVICE_ERROR,
            details={"status_code": status},
        )

    @staticmethod
    def _parse_event(line: str) -> tuple[str | None, bool]:
        """Parse one server-sent event line.

        Returns:
            Tuple of (text delta or None, end of stream reached).
        """
        if not line.startswith("data:"):
            return None, False

        data = line[len("data:") :].strip()
        if data == "[DONE]":
            return None, True

        try:
            event = json.loads(data)
        except ValueError as e:
            raise GenerationError(
                f"Malformed stream event: {e}",
                code=ErrorCode.LLM_STREAM_INTERRUPTED,
                details={"event": data[:200]},
            ) from e

        if not isinstance(event, dict):
            return None, False

        if event.get("error"):
            error = event["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise GenerationError(
                f"LLM stream reported an error: {message}",
                code=ErrorCode.LLM_STREAM_INTERRUPTED,
                details={"error": error},
            )

        # Usage-only events carry no choices.
        choices = event.get("choices") or []
        if not isinstance(choices, list):
            raise _malformed_event(data)
        if not choices:
            return None, False

        choice = choices[0]
        if not isinstance(choice, dict):
            raise _malformed_event(data)
        delta = choice.get("delta") or {}
        if not isinstance(delta, dict):
            raise _malformed_event(data)
        content = delta.get("content")
        return (content if isinstance(content, str) else None), False


def _malformed_event(data: str) -> GenerationError:
    return GenerationError(
        "Malformed stream event: unexpected choices shape",
        code=ErrorCode.LLM_STREAM_INTERRUPTED,
        details={"event": data[:200]},
    )
