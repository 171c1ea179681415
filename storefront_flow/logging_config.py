"""
Logging configuration for the storefront flow engine.

Usage:
    from storefront_flow.logging_config import setup_logging
    setup_logging()  # Call once at application startup

Environment variables:
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL for the storefront_flow
        loggers (default: INFO)
    LOG_LEVEL_FLOW: Level for the engine alone (storefront_flow.flow). Set it
        to DEBUG to trace step transitions and upsell prompts while the HTTP
        and database layers stay at LOG_LEVEL.
    LOG_SQL: "true" to log the SQL issued by the catalog gateway
"""
import logging
import os
import sys

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Quieted to WARNING unless running at DEBUG
NOISY_LOGGERS = ("httpx", "uvicorn.access")


def _parse_level(value: str | None, default: str = "INFO") -> str:
    if not value:
        return default
    value = value.strip().upper()
    return value if value in VALID_LEVELS else default


def setup_logging(level: str = None) -> int:
    """
    Configure logging for the application.

    Args:
        level: Log level name for the storefront_flow loggers. If not
               provided, reads LOG_LEVEL; invalid names fall back to INFO.

    Returns:
        The numeric level applied to the storefront_flow logger
    """
    level_name = _parse_level(level if level is not None else os.getenv("LOG_LEVEL"))
    numeric_level = getattr(logging, level_name)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
    )
    logging.getLogger("storefront_flow").setLevel(numeric_level)

    flow_level = os.getenv("LOG_LEVEL_FLOW")
    if flow_level:
        logging.getLogger("storefront_flow.flow").setLevel(
            getattr(logging, _parse_level(flow_level, default=level_name))
        )

    if level_name != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    log_sql = os.getenv("LOG_SQL", "false").lower() == "true"
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if log_sql else logging.WARNING)

    logging.getLogger(__name__).debug("Logging configured at %s level", level_name)
    return numeric_level
