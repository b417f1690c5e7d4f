"""Run the API server: ``python -m instructor_rag``."""

import uvicorn

from instructor_rag.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "instructor_rag.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
