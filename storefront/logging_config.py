"""
Logging configuration for the storefront service.

Usage:
    from storefront.logging_config import setup_logging
    setup_logging()  # Call once at application startup

Environment variables:
    LOG_LEVEL: Set to DEBUG, INFO, WARNING, ERROR, or CRITICAL (default: INFO)

The order status fallback warnings ("Unrecognized order status ...") stay
visible at WARNING even when LOG_LEVEL is ERROR or CRITICAL, so status
strings from kitchen, POS and courier integrations that drift from the known
set are always logged.
"""
import logging
import os
import sys

# Loggers that keep emitting WARNING whatever LOG_LEVEL says
ALWAYS_WARN_LOGGERS = ("storefront.order_status",)


def setup_logging(level: str = None) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If not provided, reads from LOG_LEVEL env var, defaults to INFO.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    level = level.upper()

    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if level not in valid_levels:
        level = "INFO"

    numeric_level = getattr(logging, level)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )

    logging.getLogger("storefront").setLevel(numeric_level)
    for name in ALWAYS_WARN_LOGGERS:
        logging.getLogger(name).setLevel(min(numeric_level, logging.WARNING))

    # Reduce noise from third-party libraries in non-debug mode
    if level != "DEBUG":
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug("Logging configured at %s level", level)
