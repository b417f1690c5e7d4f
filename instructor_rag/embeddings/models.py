"""Embedding data models."""

import math

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EmbeddingVector(BaseModel):
    """A query embedding.

    Attributes:
        values: The vector components. Never empty, always finite.
        model: The model that produced the vector.
    """

    model_config = ConfigDict(frozen=True)

    values: list[float] = Field(description="Embedding vector")
    model: str = Field(description="Model used for embedding")

    @field_validator("values")
    @classmethod
    def _check_values(cls, values: list[float]) -> list[float]:
        """Reject empty vectors and non-finite components."""
        if not values:
            raise ValueError("embedding vector is empty")
        for index, value in enumerate(values):
            if not math.isfinite(value):
                raise ValueError(f"embedding component {index} is not finite: {value}")
        return values

    @property
    def dimensions(self) -> int:
        """Number of dimensions in the vector."""
        return len(self.values)
