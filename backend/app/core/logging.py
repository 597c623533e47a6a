import logging
import os

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv())

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = None) -> None:
    """Configure the root logger once; LOG_LEVEL from the environment, default INFO."""
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


setup_logging()
