"""
Root logger configuration shared by the CLI, the dashboard and the API.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None, log_file: Optional[Path] = None) -> logging.Logger:
    """Configure the root logger with a console handler and an optional file handler."""
    from config.settings import get_settings

    settings = get_settings()
    level = (level or settings.log.level).upper()
    log_file = log_file or settings.log.file

    logger = logging.getLogger()
    logger.setLevel(level)

    # drop handlers from a previous call
    if logger.handlers:
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8", mode="a")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger
