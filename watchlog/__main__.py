"""Module executed when running ``python -m watchlog``."""

from __future__ import annotations

import uvicorn

from .config import settings


def main() -> None:
    """Start the reference backend using the configured settings."""

    uvicorn.run(
        "watchlog.server:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
