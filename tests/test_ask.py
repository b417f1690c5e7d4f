"""Tests for the command-line client."""

import json
import logging
from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from instructor_rag.exceptions import ErrorCode, GenerationError
from scripts.ask import build_conversation, main


def _pipeline(*chunks: str, error: Exception | None = None) -> MagicMock:
    async def stream(conversation: object) -> AsyncIterator[str]:
        logging.getLogger("instructor_rag.rag.pipeline").warning("retrieval degraded")
        for chunk in chunks:
            yield chunk
        if error is not None:
            raise error

    pipeline = MagicMock()
    pipeline.stream = stream
    pipeline.close = AsyncMock()
    return pipeline


def _run(pipeline: MagicMock, *argv: str) -> int:
    with (
        patch("sys.argv", ["ask", *argv]),
        patch("scripts.ask.RAGPipeline.from_settings", return_value=pipeline),
        pytest.raises(SystemExit) as exc_info,
    ):
        main()
    return exc_info.value.code


class TestBuildConversation:
    """Tests for conversation assembly."""

    def test_question_only(self) -> None:
        """Without history the question is the only message."""
        assert build_conversation("best physics professors", None) == [
            {"role": "user", "content": "best physics professors"}
        ]

    def test_history_prepended(self, tmp_path: Path) -> None:
        """Earlier turns come before the new question."""
        history = tmp_path / "conversation.json"
        history.write_text(json.dumps([{"role": "user", "content": "Hi"}]))

        messages = build_conversation("and for chemistry?", history)

        assert [m["content"] for m in messages] == ["Hi", "and for chemistry?"]

    def test_history_must_be_array(self, tmp_path: Path) -> None:
        """A history file that is not an array is rejected."""
        history = tmp_path / "conversation.json"
        history.write_text(json.dumps({"role": "user"}))

        with pytest.raises(SystemExit):
            build_conversation("question", history)


class TestMain:
    """Tests for the CLI entry point."""

    def test_stdout_carries_only_the_answer(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Log records go to stderr, the answer alone to stdout."""
        pipeline = _pipeline("Top 3 ", "Professors")

        code = _run(pipeline, "best physics professors")

        captured = capsys.readouterr()
        assert code == 0
        assert captured.out == "Top 3 Professors\n"
        assert "retrieval degraded" in captured.err
        pipeline.close.assert_awaited_once()

    def test_failure_exit_code(self, capsys: pytest.CaptureFixture[str]) -> None:
        """A pipeline error is reported on stderr with a non-zero exit code."""
        error = GenerationError("broke", code=ErrorCode.LLM_STREAM_INTERRUPTED)
        pipeline = _pipeline("Top 3 ", error=error)

        code = _run(pipeline, "best physics professors")

        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == "Top 3 "
        assert "RAG-5003" in captured.err
        pipeline.close.assert_awaited_once()
