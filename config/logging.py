"""
Logging configuration for the catalog matcher.

Every engine stage logs through a child of the root ``catalog_matcher``
logger (``catalog_matcher.retrieval``, ``catalog_matcher.matcher``, ...) so
degraded-mode warnings can be routed or filtered per stage.
"""

import logging
import sys
from pathlib import Path

from config.settings import settings

ROOT_LOGGER_NAME = "catalog_matcher"

LOG_DIR = Path(settings.LOG_DIR) if settings.LOG_DIR else settings.project_root / "logs"


def setup_logging(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Set up logging configuration.

    Console output always; a file handler under LOG_DIR when LOG_TO_FILE is set.

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_TO_FILE:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_DIR / f"{name}.log", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # SQL echo is controlled by DEBUG on the engine, keep driver chatter out
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Return the stage logger for an engine component."""
    return logger.getChild(component)


# Default logger
logger = setup_logging()
