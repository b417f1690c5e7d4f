"""Retrieval-augmented answers to questions about instructors."""

__version__ = "0.1.0"
