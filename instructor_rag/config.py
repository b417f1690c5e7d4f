"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai"


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LLMSettings(BaseSettings):
    """Generative model configuration.

    Any OpenAI-compatible chat completions endpoint that supports
    server-sent event streaming works (Gemini, Ollama, vLLM, OpenAI).
    """

    model_config = SettingsConfigDict(env_prefix="LLM_")

    base_url: str = Field(
        default=GEMINI_OPENAI_BASE_URL,
        description="OpenAI-compatible API base URL",
    )
    model: str = Field(
        default="gemini-1.5-flash",
        description="Model name to use for generation",
    )
    api_key: SecretStr = Field(
        default=SecretStr("not-required"),
        description="API key (not required for local servers)",
    )
    timeout: float = Field(
        default=120.0,
        description="Request timeout in seconds",
    )
    max_tokens: int = Field(
        default=2048,
        description="Maximum tokens in response",
    )
    temperature: float = Field(
        default=0.1,
        description="Sampling temperature (lower = more deterministic)",
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class EmbeddingSettings(BaseSettings):
    """Embedding service configuration."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    base_url: str = Field(
        default=GEMINI_OPENAI_BASE_URL,
        description="Embedding service base URL",
    )
    model: str = Field(
        default="text-embedding-004",
        description="Embedding model name",
    )
    api_key: SecretStr = Field(
        default=SecretStr("not-required"),
        description="API key (not required for local servers)",
    )
    timeout: float = Field(
        default=30.0,
        description="Request timeout in seconds",
    )
    dimensions: int | None = Field(
        default=768,
        ge=1,
        description="Expected vector length; must match the vector collection",
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="rag",
        description="Collection holding the instructor reviews",
    )


class RAGSettings(BaseSettings):
    """Query pipeline configuration."""

    model_config = SettingsConfigDict(env_prefix="RAG_")

    top_k: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Number of reviews to retrieve",
    )
    score_threshold: float | None = Field(
        default=None,
        description="Minimum similarity score for a review to be used (unset = none)",
    )
    request_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Deadline for a whole request in seconds (unset = none)",
    )
    stream_error_marker: str = Field(
        default="\n\n[response interrupted: {code}]",
        description="Text appended to an open stream when generation fails",
    )

    @field_validator("stream_error_marker")
    @classmethod
    def _check_marker(cls, value: str) -> str:
        try:
            value.format(code="RAG-0000")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"marker may only reference {{code}}: {e}") from e
        return value


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    rag: RAGSettings = Field(default_factory=RAGSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
