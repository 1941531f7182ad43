"""Configures loguru as the single logging sink for the API server."""

import inspect
import logging
import sys

from loguru import logger

from outreach.apiserver import flags

FRIENDLY_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <8}</level> "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Routes records emitted through the standard logging module (uvicorn, SQLAlchemy) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller from where the logged message originated.
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup(log_format: flags.LogFormat | None = None):
    log_format = log_format or flags.LOG_FORMAT
    logger.remove()
    match log_format:
        case flags.LogFormat.FRIENDLY:
            logger.add(sys.stderr, format=FRIENDLY_FORMAT, colorize=True, level="DEBUG")
        case flags.LogFormat.STRUCTURED_RAILWAY:
            logger.add(sys.stdout, serialize=True, level="INFO")
        case _:
            logger.add(sys.stderr, level="INFO")
    logging.basicConfig(handlers=[InterceptHandler()], level=logging.INFO, force=True)
