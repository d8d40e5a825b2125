"""
Loguru sink configuration shared by the CLI, the init script and the import worker.
"""

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from .settings import LOG_DIR, LOG_LEVEL

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(level: str = LOG_LEVEL, log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Configure loguru sinks.

    Args:
        level: Minimum level for both sinks
        log_file: Optional file name (relative names land in LOG_DIR)
    """
    logger.remove()  # Remove default handler
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    if log_file:
        log_path = Path(log_file)
        if not log_path.is_absolute():
            log_path = LOG_DIR / log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_path),
            rotation="10 MB",
            retention="14 days",
            level=level,
            encoding="utf-8"
        )
