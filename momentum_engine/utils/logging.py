"""Logging configuration using loguru.

Every decision the engine makes is logged with the symbol it concerns so a
session log can be filtered per instrument.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[symbol]: <6}</magenta> <cyan>{extra[tag]}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[symbol]} {extra[tag]} | "
    "{name}:{function}:{line} - {message}"
)


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_dir: Path = Path("logs"),
    session_id: Optional[str] = None,
    serialize: bool = False,
) -> None:
    """Configure loguru with console and optional file output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_to_file: Whether to write logs to file.
        log_dir: Directory for log files.
        session_id: Optional session identifier for log filename.
        serialize: Whether to use JSON serialization for file logs.
    """
    logger.remove()
    logger.configure(extra={"symbol": "-", "tag": ""})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=log_level,
        colorize=True,
    )

    if log_to_file:
        log_dir.mkdir(parents=True, exist_ok=True)

        filename = "momentum_engine"
        if session_id:
            filename = f"{filename}_{session_id}"

        logger.add(
            log_dir / f"{filename}.log",
            format=FILE_FORMAT,
            level=log_level,
            rotation="10 MB",
            retention="30 days",
            compression="zip",
            serialize=serialize,
        )


def log_for(symbol: str, tag: str = ""):
    """Logger bound to a symbol and an optional tag (tradebook id, algo name).

    Examples:
        >>> log = log_for("TSLA", "openDriveLong")
        >>> log.info("entry allowed")  # doctest: +SKIP
    """
    return logger.bind(symbol=symbol, tag=tag)
