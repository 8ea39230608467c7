"""Start the API server: ``python -m rag_collections.serving``."""

from __future__ import annotations

import logging

import uvicorn

from rag_collections.config import settings


def main() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "rag_collections.serving.app:app",
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
