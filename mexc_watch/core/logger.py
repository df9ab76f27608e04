"""
Loguru sink setup for the scanner process.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} - {message}"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rotation: str = "10 MB",
    retention: str = "7 days"
) -> None:
    """
    Replace loguru's default sink with console and optional rotating file sinks.

    Args:
        level: Minimum level for the console sink
        log_file: Path of the file sink; None disables file logging.
            The file sink always records DEBUG and above.
        rotation: Loguru rotation policy for the file sink
        retention: Loguru retention policy for rotated files
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=CONSOLE_FORMAT)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format=FILE_FORMAT,
            rotation=rotation,
            retention=retention,
            encoding="utf-8",
        )

    logger.debug(f"Logging configured (console={level.upper()}, file={log_file})")
