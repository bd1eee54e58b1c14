"""
Loguru setup for the API server and the migration CLI.

Options come from `Settings` (`BACKEND__LOG_LEVEL`, `BACKEND__LOG_JSON`,
`BACKEND__APP_ENV`). JSON records go to stdout for the log collector; the
pretty format goes to stderr for local runs. Stdlib loggers (uvicorn,
pymongo, urllib3 under requests) are routed into loguru.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from loguru import logger

from favely.config import Settings, get_settings

PRETTY_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[service]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Third-party loggers kept at WARNING
QUIET_LOGGERS = ("uvicorn.access", "pymongo", "urllib3")


class InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _sink(settings: Settings) -> dict:
    level = settings.log_level.strip().upper()
    if settings.log_json:
        return {"sink": sys.stdout, "serialize": True, "level": level}
    return {
        "sink": sys.stderr,
        "level": level,
        "colorize": True,
        "format": PRETTY_FORMAT,
        "diagnose": settings.app_env != "prod",
    }


def configure_logging(app_name: str, *, service: str = "api", settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    context = {"app": app_name, "env": settings.app_env, "service": service}

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logging.getLogger().setLevel(logging.INFO)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.configure(handlers=[_sink(settings)], extra=context)
    logger.info(f"Logging configured (level={settings.log_level}, json={settings.log_json})")
