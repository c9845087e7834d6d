"""
Shared helpers.
"""
import logging

from app.core import config


LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

_configured = False


def get_logger(name: str) -> logging.Logger:
    """
    Return a module logger, configuring the root handler on first use.

    Usage:
        log = get_logger(__name__)
        log.info("Something happened")
    """
    global _configured
    if not _configured:
        root = logging.getLogger()
        # Avoid duplicate handlers under uvicorn --reload
        if not root.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(handler)
        root.setLevel(config.LOG_LEVEL)
        _configured = True
    return logging.getLogger(name)
