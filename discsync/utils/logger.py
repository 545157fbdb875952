"""
Logging setup

All modules log through loguru. Each module binds a component name with
get_logger(name); messages carry a bracketed tag such as [RateLimiter].
"""
import os
import sys
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[name]}:{function}:{line} | {message}"


def setup_logger(
    log_level: str = 'INFO',
    log_file: Optional[str] = None,
    rotation: str = '10 MB',
    retention: str = '7 days'
) -> None:
    """Replace loguru's default sink with the discsync console and file sinks.

    LOG_LEVEL from the environment takes precedence over ``log_level`` so a
    CLI run can be made verbose without touching the config class.
    """
    level = os.environ.get('LOG_LEVEL', log_level).upper()

    logger.remove()
    logger.configure(extra={'name': 'discsync'})
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True, diagnose=False)

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level=level,
            rotation=rotation,
            retention=retention,
            compression='zip',
            encoding='utf-8',
            enqueue=True,
        )

    logger.debug(f"Logging configured: level={level}, file={log_file or '-'}")


def get_logger(name: str = None):
    """Logger bound to a component name (shown in every line)."""
    if name:
        return logger.bind(name=name)
    return logger
