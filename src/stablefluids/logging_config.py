"""Logging for the simulation and the viewer.

Library modules only create ``logging.getLogger(__name__)`` loggers; handlers
are attached here, once, by the application.
"""
import logging
import sys
from typing import Optional, Union

from stablefluids.errors import ConfigError

PACKAGE_LOGGER = "stablefluids"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ConfigError(f"Unknown logging level '{level}'")
    return value


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Sends the package log to stdout and optionally to ``log_file``.

    ``level`` is a logging constant or its name ("debug", "INFO", ...).
    Calling it again replaces the previous handlers.
    """
    level = _level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug(f"Logging at {logging.getLevelName(level)}" + (f", file {log_file}" if log_file else ""))
    return logger


def logging_from_config(cfg: dict, debug: bool = False) -> logging.Logger:
    """Applies the ``logging`` section (``level``, ``file``) of a loaded YAML config.

    ``debug`` forces DEBUG, as the viewer's ``--debug`` flag does.
    """
    section = cfg.get("logging") or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'logging' must be a mapping, got {type(section).__name__}")
    level = logging.DEBUG if debug else section.get("level", logging.INFO)
    return setup_logging(level, section.get("file"))
