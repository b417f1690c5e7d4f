"""LLM prompt composition and streaming generation."""

from instructor_rag.llm.client import GenerationStreamer, OpenAICompatibleStreamer
from instructor_rag.llm.models import AugmentedPrompt, Message, Role
from instructor_rag.llm.prompts import PromptComposer

__all__ = [
    "AugmentedPrompt",
    "GenerationStreamer",
    "Message",
    "OpenAICompatibleStreamer",
    "PromptComposer",
    "Role",
]
