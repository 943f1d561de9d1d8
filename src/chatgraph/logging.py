"""Logging configuration for chatgraph.

Every module logs through a child of the ``chatgraph`` logger, so configuring
that one logger once (from the CLI or an embedding application) routes all
pipeline output to the same handlers.
"""

import logging
import sys
from pathlib import Path

# Default log directory
DEFAULT_LOG_DIR = Path.home() / "chatgraph" / "logs"

ROOT_LOGGER_NAME = "chatgraph"


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Configure logging for a chatgraph entry point.

    Attaches a file handler (and optionally a stderr handler) to the package
    logger. Log files are written to ~/chatgraph/logs/<name>.log.

    Args:
        name: Entry point name (used for log filename)
        log_dir: Directory for log files (defaults to ~/chatgraph/logs/)
        level: Logging level (defaults to INFO)
        console: Whether to also log to stderr (defaults to True)

    Returns:
        The configured package logger
    """
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR

    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Avoid adding duplicate handlers if already configured
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a chatgraph component.

    Args:
        name: Component name (will be prefixed with 'chatgraph.')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
