"""Logging service module.

Rules Applied:
    - #15 Logging Standards: Loguru, dual sinks
"""

from yieldbot.logging.config import LoggingConfig, get_logging_config
from yieldbot.logging.context import get_strategy_logger, get_task_logger

__all__ = [
    "LoggingConfig",
    "get_logging_config",
    "get_strategy_logger",
    "get_task_logger",
]
