"""
Dota 2 tournament registration service.
Entry point: builds the FastAPI app and serves it with uvicorn.
"""
import logging
import sys

import uvicorn

from dotareg.config import settings
from dotareg.web import create_app

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

app = create_app()


def main() -> None:
    logger.info("Starting registration API on %s:%d (database %s)", settings.HOST, settings.PORT, settings.database_host)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
