#!/usr/bin/env python3
"""
Service logger setup

Usage:
    from core.logger import setup_service_logger

    logger = setup_service_logger("calendar_service")
"""
import logging
import sys
from typing import Optional

from .config import LoggingConfig

_configured = set()


def setup_service_logger(
    service_name: str, config: Optional[LoggingConfig] = None
) -> logging.Logger:
    """Configure and return the named service logger"""
    config = config or LoggingConfig.from_env()
    logger = logging.getLogger(service_name)

    if service_name in _configured:
        return logger

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logger.setLevel(level)
    formatter = logging.Formatter(config.log_format)

    if config.enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        logger.addHandler(console)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Service modules log through logging.getLogger(__name__)
    logging.getLogger("microservices").setLevel(level)

    logger.propagate = False
    _configured.add(service_name)
    return logger


__all__ = ["setup_service_logger"]
