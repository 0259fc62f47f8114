"""Loguru sink configuration."""

import sys

from loguru import logger

from content_resolver.config import settings


def configure_logging(level: str | None = None) -> None:
    """Replace loguru's default sink with a formatted stderr sink.

    Args:
        level: Minimum level to emit. Defaults to settings.log_level.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.log_level).upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {module}:{function} | {message}",
        backtrace=True,
        diagnose=False,
    )
