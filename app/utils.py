"""
Shared helpers used across features.
"""
import logging
import sys

from app.core import config


_configured = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger under the application's "app" logger.

    The root "app" logger gets a single stream handler the first time this
    is called; every module logger propagates to it.

    Usage:
        log = get_logger(__name__)
        log.info("Something happened")
    """
    global _configured

    if not _configured:
        root = logging.getLogger("app")
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
        root.addHandler(handler)
        root.setLevel(config.LOG_LEVEL)
        root.propagate = False
        _configured = True

    if name == "__main__" or not name.startswith("app"):
        name = f"app.{name}"
    return logging.getLogger(name)
