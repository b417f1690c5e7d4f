"""LLM data models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A message in a conversation.

    This is the one shape accepted from callers and sent to the generator.

    Attributes:
        role: The role of the message sender.
        content: The message content.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    role: Role = Field(description="Message role")
    content: str = Field(description="Message content")


class AugmentedPrompt(BaseModel):
    """Ordered prompt segments handed to the generator.

    The first segment is always the system instructions and the last one is
    the user's question followed by the retrieved review context.
    """

    model_config = ConfigDict(frozen=True)

    segments: tuple[Message, ...] = Field(description="Ordered prompt segments")

    @property
    def system(self) -> Message:
        return self.segments[0]

    @property
    def final(self) -> Message:
        return self.segments[-1]
