"""
Logging for the lab workflow service.

Everything is written through the ``clinic_lab`` logger. Status transitions
and rejected guards go to its ``clinic_lab.workflow`` child so they can be
filtered or shipped separately.
"""

import logging
import sys
from typing import Optional

from clinic_lab.config import settings


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that flood INFO with connection and parser chatter
QUIET_LOGGERS = ("pymongo", "python_multipart")


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure and return the application logger."""

    level_name = (level or settings.LOG_LEVEL).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger("clinic_lab")
    logger.setLevel(numeric_level)

    # Prevent duplicate handlers on reload
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, numeric_level))

    logger.debug(f"Logging configured with level: {level_name}")

    return logger


logger = setup_logging()
workflow_logger = logger.getChild("workflow")
