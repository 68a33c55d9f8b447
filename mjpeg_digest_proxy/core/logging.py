"""Logging configuration utilities for the MJPEG digest proxy."""
import logging
import os
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
LOG_FILE_NAME = "mjpeg-digest-proxy.log"


def setup_logging(log_dir: Optional[str] = None) -> None:
    """Configure root logging based on the LOG_LEVEL environment variable.

    Records go to stderr, or to a file under ``log_dir`` that rolls over at
    midnight when a directory is given.
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handler: logging.Handler = TimedRotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME), when="midnight", encoding="utf-8"
        )
    else:
        handler = logging.StreamHandler()
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[handler], force=True)
