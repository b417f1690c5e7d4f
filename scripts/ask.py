#!/usr/bin/env python
"""Ask a question about instructors from the command line.

Usage:
    python -m scripts.ask "best physics professors"
    python -m scripts.ask --history conversation.json "and for chemistry?"

The answer is streamed to stdout as it is generated. Services are
configured through the same environment variables as the API.
"""

import argparse
import asyncio
import json
import sys
from contextlib import aclosing
from pathlib import Path
from typing import Any

from instructor_rag.exceptions import InstructorRAGError
from instructor_rag.logging_config import setup_logging
from instructor_rag.rag.pipeline import RAGPipeline


def build_conversation(question: str, history_path: Path | None) -> list[dict[str, Any]]:
    """Load prior turns (if any) and append the question as a user message."""
    messages: list[dict[str, Any]] = []
    if history_path is not None:
        messages = json.loads(history_path.read_text())
        if not isinstance(messages, list):
            raise SystemExit(f"{history_path} must contain a JSON array of messages")
    messages.append({"role": "user", "content": question})
    return messages


async def ask(conversation: list[dict[str, Any]]) -> int:
    """Stream the answer to stdout.

    Returns:
        Process exit code.
    """
    pipeline = RAGPipeline.from_settings()
    try:
        async with aclosing(pipeline.stream(conversation)) as chunks:
            async for chunk in chunks:
                sys.stdout.write(chunk)
                sys.stdout.flush()
    except InstructorRAGError as e:
        print(f"\nerror [{e.code.value}]: {e.message}", file=sys.stderr)
        return 1
    finally:
        await pipeline.close()

    sys.stdout.write("\n")
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Ask a question about instructors",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "question",
        help="Question to ask",
    )
    parser.add_argument(
        "--history",
        type=Path,
        default=None,
        help="JSON file with earlier conversation messages",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level for diagnostics written to stderr",
    )

    args = parser.parse_args()
    # stdout carries only the answer.
    setup_logging(level=args.log_level, json_output=False, stream=sys.stderr)

    conversation = build_conversation(args.question, args.history)
    sys.exit(asyncio.run(ask(conversation)))


if __name__ == "__main__":
    main()
