"""Vector store data models."""

from typing import Any

from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    """A single match from a vector similarity search.

    Attributes:
        id: Record identifier.
        score: Similarity score (higher is more similar).
        payload: Stored metadata.
    """

    id: str = Field(description="Record identifier")
    score: float = Field(description="Similarity score")
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Record metadata",
    )
