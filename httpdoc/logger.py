"""
Logging for httpdoc.

Every module logs through a child of the "httpdoc" logger
(get_module_logger("decoder") → "httpdoc.decoder").  As a library httpdoc
only attaches a NullHandler; applications that want output call
setup_logger(), whose level comes from the argument, else the
HTTPDOC_LOG_LEVEL environment variable, else INFO.
"""

import logging
import os
import sys
from typing import Optional, Union

from .exceptions import ConfigError

LOGGER_NAME = "httpdoc"
LOG_LEVEL_ENV = "HTTPDOC_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LevelLike = Union[int, str, None]

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def parse_level(level: LevelLike, default: int = logging.INFO) -> int:
    """
    Turn a level number or name ("debug", "WARNING") into a level number.

    Raises:
        ConfigError: the name is not a logging level
    """
    if level is None or level == "":
        return default
    if isinstance(level, int):
        return level
    number = logging.getLevelName(level.strip().upper())
    if not isinstance(number, int):
        raise ConfigError(f"Unknown log level {level!r}", details={"variable": LOG_LEVEL_ENV})
    return number


def level_from_env(default: int = logging.INFO) -> int:
    return parse_level(os.environ.get(LOG_LEVEL_ENV), default)


def _is_own_handler(handler: logging.Handler) -> bool:
    return getattr(handler, "_httpdoc_handler", False)


def setup_logger(level: LevelLike = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Send httpdoc's log records to stderr (and optionally a file).

    Args:
        level: level number or name; None reads HTTPDOC_LOG_LEVEL
        log_file: optional file path for a second handler

    Returns:
        The "httpdoc" logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    number = parse_level(level) if level is not None else level_from_env()
    logger.setLevel(number)

    handlers = [h for h in logger.handlers if _is_own_handler(h)]
    # Calling again only adjusts the level
    if handlers:
        for handler in handlers:
            handler.setLevel(number)
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler._httpdoc_handler = True
        handler.setLevel(number)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_module_logger(module_name: str) -> logging.Logger:
    """Child logger ("httpdoc.<module_name>") that propagates to the library logger."""
    return logging.getLogger(f"{LOGGER_NAME}.{module_name}")
