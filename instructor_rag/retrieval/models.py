"""Retrieval data models."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReviewMetadata(BaseModel):
    """Review fields stored alongside each vector.

    The store keeps them under ``review``, ``subject`` and ``stars``;
    all three are required.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    review_text: str = Field(alias="review", description="Review text")
    subject: str = Field(description="Subject the instructor teaches")
    star_rating: float = Field(alias="stars", description="Star rating")


class RetrievedRecord(BaseModel):
    """A review matched by similarity search.

    Attributes:
        identifier: Instructor identifier (the vector id).
        score: Similarity score (higher is more relevant).
        metadata: Validated review fields.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str = Field(description="Instructor identifier")
    score: float = Field(description="Similarity score")
    metadata: ReviewMetadata = Field(description="Review fields")


class RetrievalResult(BaseModel):
    """Ranked records for one query, highest score first."""

    model_config = ConfigDict(frozen=True)

    records: list[RetrievedRecord] = Field(
        default_factory=list,
        description="Records ranked by descending score",
    )

    @model_validator(mode="after")
    def _check_ranking(self) -> "RetrievalResult":
        scores = [record.score for record in self.records]
        if any(later > earlier for earlier, later in zip(scores, scores[1:])):
            raise ValueError(f"records are not ranked by descending score: {scores}")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.records

    @property
    def top_score(self) -> float:
        """Score of the best record, 0.0 when nothing was retrieved."""
        return self.records[0].score if self.records else 0.0
