"""Automation scheduler: tasks, triggers, handlers, metrics."""

from yieldbot.automation.context import SchedulerContext
from yieldbot.automation.handlers import HandlerContext, TaskHandler, build_default_handlers
from yieldbot.automation.metrics import SchedulerMetricsExporter
from yieldbot.automation.models import (
    AutomationStatus,
    AutomationTask,
    PerformanceMetrics,
    ScheduledExecution,
    TaskConfig,
    TaskExecution,
    TaskState,
    TaskType,
    TickReport,
    TriggerKind,
)
from yieldbot.automation.scheduler import TaskScheduler
from yieldbot.automation.triggers import MarketProbes, TriggerInputs, is_triggered

__all__ = [
    "AutomationStatus",
    "AutomationTask",
    "HandlerContext",
    "MarketProbes",
    "PerformanceMetrics",
    "ScheduledExecution",
    "SchedulerContext",
    "SchedulerMetricsExporter",
    "TaskConfig",
    "TaskExecution",
    "TaskHandler",
    "TaskScheduler",
    "TaskState",
    "TaskType",
    "TickReport",
    "TriggerInputs",
    "TriggerKind",
    "build_default_handlers",
    "is_triggered",
]
