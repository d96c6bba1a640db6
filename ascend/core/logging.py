"""Loguru sink setup, called once when the app starts."""
from __future__ import annotations

import sys

from loguru import logger

from ascend.core.config import settings


def configure_logging(level: str | None = None) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.LOG_LEVEL).upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "{name}:{function} - {message} | {extra}"
        ),
        backtrace=False,
        diagnose=settings.APP_ENV != "production",
    )
