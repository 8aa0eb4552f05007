"""Logging setup for applications embedding Skimdex.

Library modules only create module loggers; handlers are installed by the
host application, optionally through `configure_logging()`.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from skimdex.config import load_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_handler: Optional[logging.Handler] = None


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a stdout handler to the ``skimdex`` logger.

    The level defaults to ``Settings.app.log_level``. Calling this again
    replaces the previously installed handler instead of stacking another.
    """
    global _handler
    if level is None:
        level = load_settings().app.log_level

    logger = logging.getLogger("skimdex")
    logger.setLevel(level.upper())

    if _handler is not None:
        logger.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(_handler)
    return logger
