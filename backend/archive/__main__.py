"""Run the API with uvicorn: python -m archive."""
import uvicorn

from archive.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "archive.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=5,
    )


if __name__ == "__main__":
    main()
