"""Centralized logging configuration for the translator tools."""

import logging
import sys
from pathlib import Path
from typing import Optional

from common.config import settings
from common.utils import DateTimeUtils


def setup_logging(
    service_name: str, log_file: Optional[str] = None, log_level: Optional[str] = None
) -> logging.Logger:
    """
    Configure logging for a component with consistent formatting.

    Args:
        service_name: Name of the logger (e.g., 'translator', 'manager')
        log_file: Optional log file path. If None, logs only to console
        log_level: Optional log level override. If None, uses settings.log_level

    Returns:
        Configured logger instance
    """
    level = log_level or settings.log_level
    log_level_value = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(service_name)
    logger.setLevel(log_level_value)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    simple_formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Console goes to stderr so translated subtitles can be piped from stdout
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level_value)
    console_handler.setFormatter(simple_formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(log_level_value)
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def get_log_file_path(service_name: str) -> str:
    """
    Generate a log file path for a component.

    Args:
        service_name: Name of the component

    Returns:
        Path to log file
    """
    date_string = DateTimeUtils.get_date_string_for_log_file()
    return f"./logs/{service_name}_{date_string}.log"


class ServiceLogger:
    """Convenience wrapper around a configured component logger."""

    def __init__(self, service_name: str, enable_file_logging: bool = False):
        """
        Initialize service logger.

        Args:
            service_name: Name of the component
            enable_file_logging: Whether to enable file logging
        """
        self.service_name = service_name
        log_file = get_log_file_path(service_name) if enable_file_logging else None
        self.logger = setup_logging(service_name, log_file)

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(message, **kwargs)

    def exception(self, message: str, **kwargs) -> None:
        """Log exception with traceback."""
        self.logger.exception(message, **kwargs)


def configure_third_party_loggers(level: str = "WARNING") -> None:
    """
    Configure logging levels for third-party libraries to reduce noise.

    Args:
        level: Log level for third-party libraries
    """
    third_party_loggers = [
        "httpx",
        "httpcore",
        "asyncio",
    ]

    log_level = getattr(logging, level.upper(), logging.WARNING)

    for logger_name in third_party_loggers:
        logging.getLogger(logger_name).setLevel(log_level)


def setup_service_logging(
    service_name: str, enable_file_logging: bool = False
) -> ServiceLogger:
    """
    Set up logging for an entry point and the packages it drives.

    The package loggers (``common``, ``translator``, ``manager``) share the
    entry point's handlers so module-level ``logging.getLogger(__name__)``
    calls end up in the same output.

    Args:
        service_name: Name of the entry point
        enable_file_logging: Whether to enable file logging

    Returns:
        ServiceLogger instance
    """
    configure_third_party_loggers()

    service_logger = ServiceLogger(service_name, enable_file_logging)
    for package in ("common", "translator", "manager"):
        package_logger = logging.getLogger(package)
        if package_logger is service_logger.logger:
            continue
        package_logger.handlers = list(service_logger.logger.handlers)
        package_logger.setLevel(service_logger.logger.level)
        package_logger.propagate = False

    return service_logger
