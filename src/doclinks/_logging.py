"""Logging setup for the doclinks package.

Modules log through `log = logging.getLogger(__name__)` and nothing is
configured at import time. Entry points (the dl CLI, `dl serve`) call
configure_logging() once per invocation.

Threshold:
    DOCLINKS_LOG_LEVEL   DEBUG, INFO (default), WARNING or ERROR
    --quiet              ERROR, whatever the environment says
"""

import logging
import os
import sys

PACKAGE_LOGGER = "doclinks"
LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def _level_from_env() -> int:
    level = logging.getLevelName(os.environ.get("DOCLINKS_LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(quiet: bool = False) -> logging.Logger:
    """Attach a single stderr handler to the package logger and set its level.

    Repeated calls keep the existing handler and only recompute the level.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        # Keep package records out of the root logger (and uvicorn's handlers)
        logger.propagate = False

    level = logging.ERROR if quiet else _level_from_env()
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
    return logger
