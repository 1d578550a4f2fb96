"""Trigger evaluation — 태스크별 실행 조건 판정.

trigger 종류별 predicate를 dispatch table로 선택합니다.
THRESHOLD trigger는 태스크 유형별 market probe 값을 임계값과 비교합니다.

Threshold probes:
    REBALANCE             → 활성 전략 최대 이탈도
    RISK_ASSESSMENT       → 최대 리스크 점수
    EMERGENCY_RESPONSE    → 최대 리스크 점수
    COMPOUND              → 최대 yield spread
    REVENUE_DISTRIBUTION  → 총 거래량
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias

from loguru import logger

from yieldbot.automation.models import TaskType, TriggerKind

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime

    from yieldbot.automation.models import AutomationTask

ConditionPredicate: TypeAlias = "Callable[[MarketProbes], bool]"


@dataclass(frozen=True)
class MarketProbes:
    """tick 시작 시 계산되는 시장 probe 값."""

    max_deviation: float = 0.0
    max_risk_score: float = 0.0
    max_yield_spread: float = 0.0
    total_trading_volume: float = 0.0

    def value_for(self, task_type: TaskType) -> float:
        """태스크 유형별 THRESHOLD probe 값."""
        return getattr(self, _PROBE_FIELDS[task_type])


_PROBE_FIELDS: dict[TaskType, str] = {
    TaskType.REBALANCE: "max_deviation",
    TaskType.RISK_ASSESSMENT: "max_risk_score",
    TaskType.EMERGENCY_RESPONSE: "max_risk_score",
    TaskType.COMPOUND: "max_yield_spread",
    TaskType.REVENUE_DISTRIBUTION: "total_trading_volume",
}


@dataclass(frozen=True)
class TriggerInputs:
    """trigger 판정 입력."""

    now: datetime
    emergency_mode: bool
    probes: MarketProbes = field(default_factory=MarketProbes)
    pending_events: frozenset[str] = frozenset()
    conditions: Mapping[str, ConditionPredicate] = field(default_factory=dict)


def _time_trigger(task: AutomationTask, inputs: TriggerInputs) -> bool:
    interval = task.config.interval
    if task.last_execution is None:
        return True
    return interval is not None and inputs.now - task.last_execution >= interval


def _threshold_trigger(task: AutomationTask, inputs: TriggerInputs) -> bool:
    threshold = task.config.threshold
    if threshold is None:
        return False
    return inputs.probes.value_for(task.task_type) >= threshold


def _event_trigger(task: AutomationTask, inputs: TriggerInputs) -> bool:
    return task.config.event_name in inputs.pending_events


def _condition_trigger(task: AutomationTask, inputs: TriggerInputs) -> bool:
    name = task.config.condition_name
    predicate = inputs.conditions.get(name) if name else None
    if predicate is None:
        logger.debug("Task #{}: condition '{}' not registered", task.task_id, name)
        return False
    try:
        return bool(predicate(inputs.probes))
    except Exception:
        logger.exception("Task #{}: condition '{}' raised, treating as false", task.task_id, name)
        return False


def _emergency_trigger(task: AutomationTask, inputs: TriggerInputs) -> bool:
    return inputs.emergency_mode


_TRIGGERS: dict[TriggerKind, Callable[[AutomationTask, TriggerInputs], bool]] = {
    TriggerKind.TIME: _time_trigger,
    TriggerKind.THRESHOLD: _threshold_trigger,
    TriggerKind.EVENT: _event_trigger,
    TriggerKind.CONDITION: _condition_trigger,
    TriggerKind.EMERGENCY: _emergency_trigger,
}


def is_triggered(task: AutomationTask, inputs: TriggerInputs) -> bool:
    """태스크 trigger 조건 충족 여부 (비활성 태스크는 항상 False)."""
    if not task.is_active:
        return False
    return _TRIGGERS[task.config.trigger](task, inputs)


def next_execution_at(task: AutomationTask, now: datetime) -> datetime | None:
    """TIME 태스크의 다음 예정 시각.

    실행 이력이 없으면 now(즉시), 비-TIME 또는 비활성 태스크는 None.
    """
    if not task.is_active or task.config.trigger != TriggerKind.TIME:
        return None
    if task.last_execution is None or task.config.interval is None:
        return now
    return task.last_execution + task.config.interval
