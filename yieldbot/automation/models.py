"""Automation Domain Models.

자동화 태스크 설정/런타임 레코드, 실행 기록, 성과 지표, tick 보고서를 정의합니다.

State Machine (task):
    IDLE → DUE → EXECUTING → IDLE
    ANY  → DEACTIVATED  (operator action, reactivate 전까지 terminal)

Rules Applied:
    - #11 Pydantic Modeling: frozen=True, model_validator
    - #10 Python Standards: StrEnum, dataclass
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta  # noqa: TC003
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from datetime import datetime


class TaskType(StrEnum):
    """자동화 태스크 유형."""

    REBALANCE = "rebalance"
    COMPOUND = "compound"
    REVENUE_DISTRIBUTION = "revenue_distribution"
    RISK_ASSESSMENT = "risk_assessment"
    EMERGENCY_RESPONSE = "emergency_response"


class TriggerKind(StrEnum):
    """태스크 trigger 종류.

    Attributes:
        TIME: 마지막 실행 후 interval 경과
        THRESHOLD: 태스크 유형별 probe 값 >= threshold
        EVENT: 이름 붙은 이벤트가 마지막 실행 이후 signal됨
        CONDITION: 등록된 이름의 predicate가 True
        EMERGENCY: 전역 긴급 모드
    """

    TIME = "time"
    THRESHOLD = "threshold"
    EVENT = "event"
    CONDITION = "condition"
    EMERGENCY = "emergency"


class TaskState(StrEnum):
    """태스크 상태."""

    IDLE = "idle"
    DUE = "due"
    EXECUTING = "executing"
    DEACTIVATED = "deactivated"


class TaskConfig(BaseModel):
    """자동화 태스크 설정.

    Attributes:
        task_type: 태스크 유형
        trigger: trigger 종류
        interval: TIME trigger 간격
        threshold: THRESHOLD trigger 임계값
        event_name: EVENT trigger 이벤트 이름
        condition_name: CONDITION trigger predicate 이름
        priority: 운영 표시용 우선순위 (1~10, 실행 순서에 영향 없음)
        resource_budget: 실행 비용 예산 (초과 시 경고)
        payload: 태스크별 opaque 데이터
    """

    model_config = ConfigDict(frozen=True)

    task_type: TaskType
    trigger: TriggerKind = TriggerKind.TIME
    interval: timedelta | None = None
    threshold: float | None = None
    event_name: str | None = None
    condition_name: str | None = None
    priority: int = Field(default=5, ge=1, le=10)
    resource_budget: float = Field(default=0.0, ge=0.0)
    payload: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_trigger_parameters(self) -> Self:
        """trigger 종류별 필수 파라미터 검증.

        Raises:
            ValueError: 필수 파라미터 누락 또는 비양수 interval
        """
        if self.trigger == TriggerKind.TIME:
            if self.interval is None or self.interval <= timedelta(0):
                msg = f"TIME trigger requires a positive interval, got {self.interval}"
                raise ValueError(msg)
        elif self.trigger == TriggerKind.THRESHOLD:
            if self.threshold is None:
                msg = "THRESHOLD trigger requires a threshold"
                raise ValueError(msg)
        elif self.trigger == TriggerKind.EVENT:
            if not self.event_name:
                msg = "EVENT trigger requires an event_name"
                raise ValueError(msg)
        elif self.trigger == TriggerKind.CONDITION and not self.condition_name:
            msg = "CONDITION trigger requires a condition_name"
            raise ValueError(msg)
        return self


@dataclass
class AutomationTask:
    """태스크 런타임 레코드 (TaskScheduler 독점 소유, 삭제 없음)."""

    task_id: int
    config: TaskConfig
    last_execution: datetime | None = None
    execution_count: int = 0
    state: TaskState = TaskState.IDLE
    last_error: str | None = None

    @property
    def task_type(self) -> TaskType:
        """태스크 유형."""
        return self.config.task_type

    @property
    def is_active(self) -> bool:
        """비활성화되지 않았는지 여부."""
        return self.state != TaskState.DEACTIVATED


@dataclass(frozen=True)
class TaskExecution:
    """태스크 실행 1회 기록.

    Attributes:
        task_id: 태스크 ID
        task_type: 태스크 유형
        timestamp: 실행 시각
        success: 성공 여부
        cost: handler가 보고한 실행 비용
        error: 실패 메시지
        forced: operator force-execute 여부
    """

    task_id: int
    task_type: TaskType
    timestamp: datetime
    success: bool
    cost: float = 0.0
    error: str | None = None
    forced: bool = False


@dataclass
class PerformanceMetrics:
    """스케줄러 수명 동안 단조 누적되는 성과 지표 (reset 없음).

    uptime_ratio는 전체 tick 중 자동화가 활성 상태로 완료된 tick의 비율입니다.
    """

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_cost: float = 0.0
    ticks_total: int = 0
    ticks_active: int = 0
    slippage_guard_trips: int = 0

    def record_execution(self, *, success: bool, cost: float) -> None:
        """실행 1건 반영 (누적 평균 비용 갱신)."""
        self.total_executions += 1
        if success:
            self.successful_executions += 1
        else:
            self.failed_executions += 1
        self.average_cost += (cost - self.average_cost) / self.total_executions

    def record_tick(self, *, active: bool) -> None:
        """tick 1회 반영."""
        self.ticks_total += 1
        if active:
            self.ticks_active += 1

    @property
    def uptime_ratio(self) -> float:
        """활성 tick 비율 (tick이 없으면 0.0)."""
        if self.ticks_total == 0:
            return 0.0
        return self.ticks_active / self.ticks_total

    @property
    def success_rate(self) -> float:
        """실행 성공률 (실행이 없으면 0.0)."""
        if self.total_executions == 0:
            return 0.0
        return self.successful_executions / self.total_executions


@dataclass(frozen=True)
class TickReport:
    """run_tick() 결과 요약.

    Attributes:
        tick: tick 번호 (skip된 tick은 0)
        timestamp: tick 시각
        executions: 이번 tick 실행 기록 (실행 순서)
        still_due: cap 초과로 다음 tick으로 넘어간 태스크 ID
        emergency_mode: tick 종료 시 전역 긴급 모드
        refreshed_assets: 시장 상태를 갱신한 asset
        skipped: tick이 실행되지 않았는지 여부
        skip_reason: skip 사유
    """

    tick: int
    timestamp: datetime
    executions: tuple[TaskExecution, ...] = ()
    still_due: tuple[int, ...] = ()
    emergency_mode: bool = False
    refreshed_assets: tuple[str, ...] = ()
    skipped: bool = False
    skip_reason: str | None = None

    @property
    def executed_ids(self) -> list[int]:
        """실행된 태스크 ID (실행 순서)."""
        return [e.task_id for e in self.executions]


@dataclass(frozen=True)
class AutomationStatus:
    """자동화 상태 요약 (운영 대시보드용)."""

    is_healthy: bool
    automation_enabled: bool
    emergency_mode: bool
    active_tasks: int
    total_tasks: int
    last_execution: datetime | None
    tick_count: int
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)


@dataclass(frozen=True)
class ScheduledExecution:
    """TIME 태스크의 다음 예정 실행."""

    task_id: int
    task_type: TaskType
    due_at: datetime
    priority: int
