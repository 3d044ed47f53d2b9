"""Logging configuration."""
import logging
import sys
from pathlib import Path
from typing import Optional
import structlog

from coinsim.core.config import LoggingConfig, logging_config


def setup_logging(config: Optional[LoggingConfig] = None, log_to_file: bool = True):
    """Configure structlog JSON output on top of stdlib logging.

    Args:
        config: Logging settings, defaults to the global LoggingConfig
        log_to_file: Also append to ``config.log_file``
    """
    config = config or logging_config
    level = getattr(logging, config.log_level.upper())

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level
    )

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # aiohttp access lines only at DEBUG
    access_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    logging.getLogger("aiohttp.access").setLevel(access_level)

    if not log_to_file:
        return

    # Create logs directory
    log_path = Path(config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Add file handler
    file_handler = logging.FileHandler(config.log_file)
    file_handler.setLevel(level)

    root_logger = logging.getLogger()
    if not any(
        isinstance(h, logging.FileHandler) and h.baseFilename == file_handler.baseFilename
        for h in root_logger.handlers
    ):
        root_logger.addHandler(file_handler)
    else:
        file_handler.close()
