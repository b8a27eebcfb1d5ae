"""
Run the ticker-backend HTTP server.
"""

import os

import uvicorn

from ticker_backend.utils.logger import get_logger

logger = get_logger(__name__, utility="api")


def main() -> None:
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    logger.info(f"Starting ticker-backend API on {host}:{port} (docs at /docs)")
    uvicorn.run(
        "ticker_backend.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
