"""
Logging configuration.
"""

import logging
import sys


def setup_logging(level: str = "INFO", verbose: bool = False) -> logging.Logger:
    """
    Configure the speechfixer logger.

    Args:
        level: Log level name
        verbose: Include timestamps and logger names

    Returns:
        The configured package logger
    """
    # Suppress noisy third-party library logs
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logger = logging.getLogger("speechfixer")
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    if verbose:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = logging.Formatter("%(levelname)s: %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def get_logger(name: str = "speechfixer") -> logging.Logger:
    """Get logger instance."""
    return logging.getLogger(name)
