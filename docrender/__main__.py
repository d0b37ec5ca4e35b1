"""
DocRender server entry point.

Usage:
    python -m docrender

Environment Variables:
    HOST, PORT: Bind address (default: 0.0.0.0:3000)
    WORKERS: Number of worker processes sharing the Redis lock store
"""

import uvicorn

from docrender.core.config import get_settings


def main() -> None:
    """Start uvicorn with the DocRender application."""
    settings = get_settings()
    uvicorn.run(
        "docrender.main:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        log_config=None,
    )


if __name__ == "__main__":
    main()
