"""Logging helpers for the positioning pipeline."""

from __future__ import annotations

import logging

ROOT_LOGGER_NAME = "pseudolite_nav"
LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str = ROOT_LOGGER_NAME, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def set_log_level(level: int) -> None:
    """Apply ``level`` to every pipeline logger created so far."""

    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.split(".")[0] == ROOT_LOGGER_NAME:
            logger.setLevel(level)
