# __main__.py
import logging

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from aihub import settings  # noqa: E402
from aihub.api import create_app  # noqa: E402

logger = logging.getLogger("aihub")


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL)
    logger.info("starting AIHub API on %s:%s (db=%s)", settings.API_HOST, settings.API_PORT, settings.DB_PATH)
    uvicorn.run(create_app(), host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    main()
