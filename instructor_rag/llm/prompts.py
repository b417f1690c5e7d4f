"""Prompt composition for instructor questions."""

from collections.abc import Sequence

from instructor_rag.llm.models import AugmentedPrompt, Message, Role
from instructor_rag.retrieval.models import RetrievalResult, RetrievedRecord


class PromptComposer:
    """Builds the augmented prompt for a question.

    Retrieved reviews are rendered as fixed-field blocks and appended after
    the user's own text, so the question always reads first and survives
    verbatim in the final segment.
    """

    DEFAULT_SYSTEM_PROMPT = """You are an intelligent agent that helps students find the best professors for their specific needs. When a student asks about professors, understand their query, use the professor reviews supplied with the question, and present the top 3 professors who best match their criteria. Keep responses concise, informative and focused on the student's request.

Tone:
- Friendly and supportive: make students feel comfortable and valued.
- Informative and neutral: provide accurate, unbiased information without personal judgments.
- Concise and clear: focus on the most relevant details.

Instructions:
1. Identify the key elements of the question (subject, teaching style, rating preference).
2. Rank the top 3 professors using the supplied reviews, their ratings and the question's context.
3. Present each professor's name, rating and a brief summary of strengths, subject areas or teaching style.
4. If no reviews are supplied with the question, say that no matching reviews were found and answer from general knowledge only, without inventing professor names or ratings.

Response format:
Title: "Top 3 Professors for [Subject/Criteria]"
Professor 1:
- Name: [Professor Name]
- Rating: [X/5]
- Summary: [Brief description of strengths, teaching style, or relevant details.]

Separate different professors with an empty line. Present the data as it is, focusing on the student's requirements."""

    BLOCK_TEMPLATE = """Returned Results:
Professor: {identifier}
Review: {review}
Subject: {subject}
Stars: {stars}"""

    def __init__(self, system_prompt: str | None = None) -> None:
        """Initialize the composer.

        Args:
            system_prompt: Custom system instructions.
        """
        self.system_prompt = system_prompt or self.DEFAULT_SYSTEM_PROMPT

    def format_record(self, record: RetrievedRecord) -> str:
        """Render one record as a fixed-field block."""
        return self.BLOCK_TEMPLATE.format(
            identifier=record.identifier,
            review=record.metadata.review_text,
            subject=record.metadata.subject,
            stars=f"{record.metadata.star_rating:g}",
        )

    def format_context(self, retrieval: RetrievalResult) -> str:
        """Render all records in ranked order, separated by blank lines."""
        return "\n\n".join(self.format_record(r) for r in retrieval.records)

    def compose(
        self,
        system_instructions: str | None,
        prior_messages: Sequence[Message],
        current_user_text: str,
        retrieval: RetrievalResult,
    ) -> AugmentedPrompt:
        """Build the prompt segments for one request.

        Args:
            system_instructions: Replaces the composer's system prompt when set.
            prior_messages: Earlier conversation turns, passed through as-is.
            current_user_text: The active question.
            retrieval: Ranked review records; may be empty.

        Returns:
            Immutable prompt: system instructions, prior turns, then the
            question with the rendered context appended.
        """
        final_text = current_user_text
        context = self.format_context(retrieval)
        if context:
            final_text = f"{current_user_text}\n\n{context}"

        return AugmentedPrompt(
            segments=(
                Message(
                    role=Role.SYSTEM,
                    content=system_instructions or self.system_prompt,
                ),
                *prior_messages,
                Message(role=Role.USER, content=final_text),
            )
        )
