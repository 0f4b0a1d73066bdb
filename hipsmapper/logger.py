import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def set_log_level(level: str = "INFO") -> None:
    """(Re)install the stderr sink at the given level."""
    logger.remove()  # Remove default (or previous) handler
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=level.upper(),
        colorize=True,
    )


# Configure loguru
set_log_level("INFO")


# Export logger as module-level logger
__all__ = ["logger", "set_log_level"]
