"""Domain events and synchronous EventBus.

Snapshot 갱신, 리밸런스 실행, 긴급 모드 전환, 태스크 실행을 알리는 이벤트와
in-process 동기 EventBus를 정의합니다. 감사 로그 전송(transport)은 외부
인프라의 책임이며, 여기서는 구독자에게 전달만 합니다.

Rules Applied:
    - #11 Pydantic Modeling: frozen event models
    - #23 Exception Handling: handler 에러 격리
"""

from __future__ import annotations

from collections import defaultdict
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, TypeAlias
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from collections.abc import Callable


class EventType(StrEnum):
    """이벤트 유형."""

    SNAPSHOT_UPDATED = "snapshot_updated"
    REBALANCE_EXECUTED = "rebalance_executed"
    EMERGENCY_CHANGED = "emergency_changed"
    TASK_EXECUTED = "task_executed"
    STRATEGY_CHANGED = "strategy_changed"


class Event(BaseModel):
    """이벤트 기본 클래스."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source: str = "system"


class MarketSnapshotUpdated(Event):
    """MarketConditionMonitor가 asset snapshot을 덮어썼을 때."""

    event_type: EventType = EventType.SNAPSHOT_UPDATED
    asset: str
    risk_score: float
    volatility_bps: float


class RebalanceExecuted(Event):
    """RebalanceExecutor가 ExecutionRecord를 남겼을 때."""

    event_type: EventType = EventType.REBALANCE_EXECUTED
    strategy_id: str
    asset: str
    success: bool
    transfer_count: int
    net_benefit: float
    emergency: bool = False


class EmergencyModeChanged(Event):
    """전역 긴급 모드 전환."""

    event_type: EventType = EventType.EMERGENCY_CHANGED
    active: bool
    reason: str


class TaskExecuted(Event):
    """자동화 태스크 1회 실행 완료 (성공/실패 무관)."""

    event_type: EventType = EventType.TASK_EXECUTED
    task_id: int
    task_type: str
    success: bool
    error: str | None = None


class StrategyChanged(Event):
    """전략 생성/수정/활성 상태 변경."""

    event_type: EventType = EventType.STRATEGY_CHANGED
    strategy_id: str
    action: str


EventHandler: TypeAlias = "Callable[[Event], None]"


class EventBus:
    """In-process synchronous EventBus.

    스케줄러 tick이 동기적으로 실행되므로 publish 시점에 즉시 dispatch합니다.
    핸들러 예외는 로그만 남기고 발행자에게 전파하지 않습니다.

    사용법:
        bus = EventBus()
        bus.subscribe(EventType.REBALANCE_EXECUTED, on_rebalance)
        bus.publish(event)
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[EventHandler]] = defaultdict(list)
        self.events_published: int = 0
        self.handler_errors: int = 0

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """이벤트 타입에 핸들러를 등록합니다."""
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """등록된 핸들러 제거 (없으면 무시)."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: Event) -> None:
        """이벤트를 구독자에게 즉시 전달합니다."""
        self.events_published += 1
        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                handler(event)
            except Exception:
                self.handler_errors += 1
                logger.exception("Event handler error for {}", event.event_type.value)
