"""
Logging Setup
Configures logging for the graph memory entrypoints.

Responses are written to stdout, so console logging goes to stderr.
"""
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

DETAILED_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(filename)s:%(lineno)d | %(message)s"
SIMPLE_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def setup_logging(
    name: str = "graph_memory",
    log_dir: Optional[Union[str, Path]] = None,
    log_level: str = "INFO",
    console_output: bool = True,
) -> logging.Logger:
    """
    Setup logging for a graph memory logger hierarchy.

    Creates an optional rotating file handler and an optional console handler.

    Args:
        name: Logger name; library modules log under "graph_memory.*"
        log_dir: Directory for log files (no file logging when None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        console_output: Whether to also log to stderr

    Returns:
        Configured logger instance
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    detailed_formatter = logging.Formatter(fmt=DETAILED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    simple_formatter = logging.Formatter(fmt=SIMPLE_FORMAT, datefmt="%H:%M:%S")

    log_file = None
    if log_dir is not None:
        log_dir = os.path.expanduser(str(log_dir))
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(
            log_dir, f"{name.lower()}_{datetime.now().strftime('%Y%m%d')}.log"
        )

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
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(simple_formatter)
        logger.addHandler(console_handler)

    # Prevent propagation to root logger
    logger.propagate = False

    if log_file:
        logger.debug(f"Log file: {log_file}")

    return logger
