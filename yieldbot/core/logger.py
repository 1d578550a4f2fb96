"""Loguru logging configuration.

This module provides a centralized logging setup following the project's
logging standards (Rules #15). All logging in the application should use
the configured loguru logger.

Features:
    - Dual sinks: Console (human-readable) + File (JSON serialized or rotated text)
    - Structured logging with context binding (strategy_id / task_id)

Rules Applied:
    - #15 Logging Standards: Loguru, dual sinks
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from yieldbot.logging.config import LoggingConfig, LogLevel, get_logging_config

# =============================================================================
# Console Format Templates
# =============================================================================

CONSOLE_FORMAT_DEFAULT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

# strategy_id / task_id 등 bound context 포함
CONSOLE_FORMAT_CONTEXT = CONSOLE_FORMAT_DEFAULT + " | <magenta>{extra}</magenta>"


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logger_from_config(config: LoggingConfig | None = None) -> None:
    """Initialize logger from Pydantic config model.

    Args:
        config: LoggingConfig instance (loads from env if None)

    Example:
        >>> from yieldbot.core.logger import setup_logger_from_config
        >>> setup_logger_from_config()  # Loads from YIELDBOT_LOG_* env vars
    """
    if config is None:
        config = get_logging_config()

    _setup_logger_internal(config)


def setup_logger(
    log_dir: Path | str = Path("logs"),
    console_level: LogLevel = "INFO",
    file_level: LogLevel = "DEBUG",
    *,
    enable_file: bool = True,
) -> None:
    """Initialize the logger with minimal configuration.

    Args:
        log_dir: Directory for log files (default: "logs")
        console_level: Console output level (default: "INFO")
        file_level: File output level (default: "DEBUG")
        enable_file: Write file sink (default: True)

    Example:
        >>> from yieldbot.core.logger import setup_logger, logger
        >>> setup_logger(log_dir="logs", console_level="DEBUG")
        >>> logger.info("Scheduler started")
    """
    config = LoggingConfig(
        log_dir=Path(log_dir),
        console_level=console_level,
        file_level=file_level,
        enable_file=enable_file,
    )
    _setup_logger_internal(config)


def _setup_logger_internal(config: LoggingConfig) -> None:
    """Internal logger setup using config object."""
    logger.remove()

    # 1. Console Handler (Human-readable)
    console_format = CONSOLE_FORMAT_CONTEXT if config.show_context else CONSOLE_FORMAT_DEFAULT
    logger.add(
        sys.stderr,
        format=console_format,
        level=config.console_level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    # 2. File Handler (JSON or text, same rotation policy)
    if config.enable_file:
        log_path = Path(config.log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path / f"{config.file_name}_{{time:YYYY-MM-DD}}.{config.file_suffix}",
            format=CONSOLE_FORMAT_CONTEXT,
            level=config.file_level,
            serialize=config.json_logs,
            rotation=config.rotation,
            retention=config.retention,
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )

    logger.info(
        "Logger initialized",
        log_dir=str(config.log_dir),
        console_level=config.console_level,
        file_level=config.file_level,
        file_enabled=config.enable_file,
    )


__all__ = [
    "logger",
    "setup_logger",
    "setup_logger_from_config",
]
