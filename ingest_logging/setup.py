"""
Logging Setup
Configures console and rotating file logging for the shc2es commands.
"""
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from typing import Optional

LEVEL_ALIASES = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}

ROOT_LOGGER_NAME = "shc2es"


def resolve_level(log_level: str) -> int:
    return LEVEL_ALIASES.get(log_level.lower(), logging.INFO)


def setup_logging(
    command: str,
    log_dir: Optional[str] = None,
    log_level: str = "info",
    console_output: bool = True,
    logger_name: str = ROOT_LOGGER_NAME,
) -> logging.Logger:
    """
    Setup logging for a command.

    Creates a daily, size-rotated log file and an optional console handler on
    the package logger, so every ``shc2es.*`` module logger inherits them.

    Args:
        command: Command name, used for the log file name (ingest, export-dashboard, ...)
        log_dir: Directory for log files (defaults to ~/.shc2es/logs/)
        log_level: Console level (trace, debug, info, warn, error, fatal)
        console_output: Whether to also log to stdout
        logger_name: Logger to configure

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logging("ingest")
        >>> logger.info("Batch import started")
    """
    if log_dir is None:
        log_dir = os.path.join(os.path.expanduser("~"), ".shc2es", "logs")
    else:
        log_dir = os.path.expanduser(str(log_dir))

    os.makedirs(log_dir, exist_ok=True)

    level = resolve_level(log_level)
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)

    # Clear existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    detailed_formatter = logging.Formatter(
        fmt="%(asctime)s | %(name)s | %(levelname)s | %(filename)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    simple_formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    log_file = os.path.join(log_dir, f"{command}-{datetime.now().strftime('%Y-%m-%d')}.log")

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(detailed_formatter)
    logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(simple_formatter)
        logger.addHandler(console_handler)

    logger.propagate = False

    logger.debug(f"Log file: {log_file}")

    return logger
