"""
Application logging.
One rotating file plus stderr, installed on the root logger once.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler

from .config import LOG_PATH, LOG_LEVEL

FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(FORMAT)

    if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        try:
            LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(LOG_PATH, maxBytes=2_000_000, backupCount=5, encoding="utf-8")
        except OSError as e:
            logging.getLogger(__name__).warning("File logging disabled: %s", e)
        else:
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        stream = logging.StreamHandler(sys.stderr)
        stream.setLevel(level)
        stream.setFormatter(formatter)
        root.addHandler(stream)
