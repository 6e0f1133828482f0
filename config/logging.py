"""
Loguru setup.

Django and its third-party apps log through the standard library; the
``InterceptHandler`` registered in ``settings.LOGGING`` forwards those
records into loguru so every line ends up in one sink.
"""

import logging
import sys

from loguru import logger


class InterceptHandler(logging.Handler):
    """Bridge standard logging records into loguru."""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # No format args are passed, so loguru emits the text verbatim
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())


LOG_FORMAT = (
    '<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | '
    '<level>{level: <8}</level> | '
    '<cyan>{name}</cyan>:<cyan>{function}</cyan> - '
    '<level>{message}</level> {extra}'
)


def configure_logging(level='INFO'):
    """Replace loguru's default sink with one honouring LOG_LEVEL."""
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT, backtrace=False, diagnose=False)
