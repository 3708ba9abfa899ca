"""Entry point for running the HTTP server."""

import structlog
import uvicorn

from mainevents.core.config import HOST, LOG_LEVEL, PORT, is_production

logger = structlog.get_logger(__name__)


def main():
    logger.info("Starting HTTP server", host=HOST, port=PORT)
    uvicorn.run(
        "mainevents.main:app",
        host=HOST,
        port=PORT,
        reload=not is_production(),
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
