import sys
from typing import Optional

from loguru import logger
from medstock.config import get_config

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


class AppLogger:
    """Single stderr sink for the ward service.

    The sink is (re)installed only when the configured level changes, so
    modules can call get_logger at import time and tests can lower or raise
    the level through set_config_for_test.
    """
    _level: Optional[str] = None

    def __init__(self) -> None:
        level = get_config().log_level.upper()
        if AppLogger._level != level:
            logger.remove()
            logger.add(sink=sys.stderr, level=level, format=LOG_FORMAT)
            logger.configure(extra={"name": "medstock"})
            AppLogger._level = level
        self.logger = logger

    def get_logger(self, name: Optional[str] = None):
        """Return the shared logger, bound to `name` when one is given."""
        if name:
            return self.logger.bind(name=name)
        return self.logger


def get_logger(name: Optional[str] = None):
    """Get a bound application logger using the latest config."""
    return AppLogger().get_logger(name)
