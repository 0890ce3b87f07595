"""
Centralised logging: formatted log records on stdout.
"""

import logging
import sys

from settings import LOG_LEVEL


def get_logger(name: str) -> logging.Logger:
    """
    Returns a logger with the project's standard formatting.

    Args:
        name (str): Name of the calling module (usually __name__).

    Returns:
        logging.Logger: Configured logger instance.
    """
    logger = logging.getLogger(name)

    # Avoid stacking handlers when the same module is imported twice
    if not logger.handlers:
        logger.setLevel(LOG_LEVEL)

        formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
        )

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)

        logger.addHandler(handler)
        logger.propagate = False

    return logger
