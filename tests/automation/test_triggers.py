"""Tests for trigger evaluation (pure functions)."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from yieldbot.automation.models import (
    AutomationTask,
    PerformanceMetrics,
    TaskConfig,
    TaskState,
    TaskType,
    TriggerKind,
)
from yieldbot.automation.triggers import (
    MarketProbes,
    TriggerInputs,
    is_triggered,
    next_execution_at,
)

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def _make_task(task_type: TaskType = TaskType.REBALANCE, **config: object) -> AutomationTask:
    return AutomationTask(task_id=1, config=TaskConfig(task_type=task_type, **config))


def _inputs(**overrides: object) -> TriggerInputs:
    fields: dict[str, object] = {"now": T0, "emergency_mode": False}
    fields.update(overrides)
    return TriggerInputs(**fields)  # type: ignore[arg-type]


class TestTimeTrigger:
    def test_never_executed_is_due(self) -> None:
        assert is_triggered(_make_task(interval=timedelta(hours=1)), _inputs())

    def test_interval_boundary(self) -> None:
        task = _make_task(interval=timedelta(hours=1))
        task.last_execution = T0
        assert not is_triggered(task, _inputs(now=T0 + timedelta(minutes=59)))
        assert is_triggered(task, _inputs(now=T0 + timedelta(hours=1)))


class TestThresholdTrigger:
    @pytest.mark.parametrize(
        ("task_type", "probes"),
        [
            (TaskType.REBALANCE, MarketProbes(max_deviation=0.1)),
            (TaskType.RISK_ASSESSMENT, MarketProbes(max_risk_score=0.1)),
            (TaskType.EMERGENCY_RESPONSE, MarketProbes(max_risk_score=0.1)),
            (TaskType.COMPOUND, MarketProbes(max_yield_spread=0.1)),
            (TaskType.REVENUE_DISTRIBUTION, MarketProbes(total_trading_volume=0.1)),
        ],
    )
    def test_probe_per_task_type(self, task_type: TaskType, probes: MarketProbes) -> None:
        task = _make_task(task_type, trigger=TriggerKind.THRESHOLD, threshold=0.1)
        assert is_triggered(task, _inputs(probes=probes))
        assert not is_triggered(task, _inputs())


class TestEventAndCondition:
    def test_event_pending(self) -> None:
        task = _make_task(trigger=TriggerKind.EVENT, event_name="deposit")
        assert not is_triggered(task, _inputs())
        assert is_triggered(task, _inputs(pending_events=frozenset({"deposit"})))

    def test_condition_predicate(self) -> None:
        task = _make_task(trigger=TriggerKind.CONDITION, condition_name="wide")
        conditions = {"wide": lambda p: p.max_yield_spread > 0.02}
        assert is_triggered(
            task, _inputs(probes=MarketProbes(max_yield_spread=0.03), conditions=conditions)
        )
        assert not is_triggered(task, _inputs(conditions=conditions))

    def test_condition_missing_or_raising(self) -> None:
        task = _make_task(trigger=TriggerKind.CONDITION, condition_name="bad")

        def _raise(probes: MarketProbes) -> bool:
            raise ZeroDivisionError

        assert not is_triggered(task, _inputs())
        assert not is_triggered(task, _inputs(conditions={"bad": _raise}))


class TestEmergencyTrigger:
    def test_follows_emergency_mode(self) -> None:
        task = _make_task(TaskType.EMERGENCY_RESPONSE, trigger=TriggerKind.EMERGENCY)
        assert not is_triggered(task, _inputs())
        assert is_triggered(task, _inputs(emergency_mode=True))

    def test_deactivated_never_triggers(self) -> None:
        task = _make_task(TaskType.EMERGENCY_RESPONSE, trigger=TriggerKind.EMERGENCY)
        task.state = TaskState.DEACTIVATED
        assert not is_triggered(task, _inputs(emergency_mode=True))


class TestNextExecution:
    def test_time_task(self) -> None:
        task = _make_task(interval=timedelta(hours=2))
        assert next_execution_at(task, T0) == T0
        task.last_execution = T0
        assert next_execution_at(task, T0) == T0 + timedelta(hours=2)

    def test_non_time_task(self) -> None:
        task = _make_task(trigger=TriggerKind.EMERGENCY)
        assert next_execution_at(task, T0) is None


class TestPerformanceMetrics:
    def test_running_average_and_rates(self) -> None:
        metrics = PerformanceMetrics()
        assert metrics.uptime_ratio == 0.0
        assert metrics.success_rate == 0.0

        metrics.record_execution(success=True, cost=1.0)
        metrics.record_execution(success=False, cost=3.0)
        metrics.record_tick(active=True)
        metrics.record_tick(active=False)
        metrics.record_tick(active=True)

        assert metrics.average_cost == pytest.approx(2.0)
        assert metrics.success_rate == pytest.approx(0.5)
        assert metrics.uptime_ratio == pytest.approx(2 / 3)
