"""SchedulerContext — 스케줄러 전역 가변 상태.

긴급 모드, 자동화 on/off, 성과 지표, ID 카운터, 대기 이벤트, 실행 이력을
ambient global 대신 명시적 context로 묶어 매 tick에 전달합니다.

Lifecycle:
    construct → run_tick() 반복 → reset_runtime() (metrics는 절대 초기화하지 않음)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from yieldbot.automation.models import PerformanceMetrics, TaskExecution
from yieldbot.core.ring_buffer import RingBuffer

if TYPE_CHECKING:
    from datetime import datetime

_DEFAULT_HISTORY_SIZE = 500


@dataclass
class SchedulerContext:
    """스케줄러 context.

    Attributes:
        emergency_mode: 전역 긴급 모드 (sticky, operator만 해제)
        emergency_reason: 긴급 모드 진입 사유
        automation_enabled: 자동화 on/off
        metrics: 단조 누적 성과 지표
        next_task_id: 다음 태스크 ID (1부터 오름차순)
        tick_count: 완료된 tick 수
        last_tick_at: 마지막 tick 시각
        pending_events: signal 후 아직 소비되지 않은 이벤트 이름
        executions: 최근 태스크 실행 기록 (bounded)
    """

    history_size: int = _DEFAULT_HISTORY_SIZE
    emergency_mode: bool = False
    emergency_reason: str | None = None
    automation_enabled: bool = True
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    next_task_id: int = 1
    tick_count: int = 0
    last_tick_at: datetime | None = None
    pending_events: set[str] = field(default_factory=set)
    executions: RingBuffer[TaskExecution] = field(init=False)
    tick_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        self.executions = RingBuffer[TaskExecution](self.history_size)

    def allocate_task_id(self) -> int:
        """다음 태스크 ID 발급."""
        task_id = self.next_task_id
        self.next_task_id += 1
        return task_id

    def record(self, execution: TaskExecution) -> None:
        """실행 기록 추가 + 지표 반영."""
        self.executions.append(execution)
        self.metrics.record_execution(success=execution.success, cost=execution.cost)

    def reset_runtime(self) -> None:
        """런타임 상태 초기화 (대기 이벤트, tick guard).

        metrics, task ID 카운터, 긴급 모드는 유지합니다.
        """
        self.pending_events.clear()
        self.tick_lock = threading.Lock()
