"""EventBus / 도메인 이벤트 테스트.

subscribe/publish, 핸들러 에러 격리, frozen 이벤트 모델을 검증합니다.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from yieldbot.core.events import (
    EmergencyModeChanged,
    Event,
    EventBus,
    EventType,
    RebalanceExecuted,
    TaskExecuted,
)


def _make_rebalance(success: bool = True) -> RebalanceExecuted:
    return RebalanceExecuted(
        strategy_id="usdc-core",
        asset="USDC",
        success=success,
        transfer_count=1,
        net_benefit=12.5,
    )


class TestEventModels:
    def test_event_type_defaults(self) -> None:
        assert _make_rebalance().event_type == EventType.REBALANCE_EXECUTED
        assert EmergencyModeChanged(active=True, reason="x").event_type == (
            EventType.EMERGENCY_CHANGED
        )

    def test_frozen(self) -> None:
        event = _make_rebalance()
        with pytest.raises(ValidationError):
            event.success = False  # type: ignore[misc]

    def test_unique_ids(self) -> None:
        assert _make_rebalance().event_id != _make_rebalance().event_id


class TestEventBus:
    def test_dispatch_to_subscribers(self) -> None:
        bus = EventBus()
        received: list[Event] = []
        bus.subscribe(EventType.REBALANCE_EXECUTED, received.append)

        bus.publish(_make_rebalance())
        bus.publish(TaskExecuted(task_id=1, task_type="rebalance", success=True))

        assert len(received) == 1
        assert bus.events_published == 2

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        received: list[Event] = []
        bus.subscribe(EventType.REBALANCE_EXECUTED, received.append)
        bus.unsubscribe(EventType.REBALANCE_EXECUTED, received.append)
        bus.publish(_make_rebalance())
        assert received == []

    def test_handler_error_isolated(self) -> None:
        """한 핸들러의 예외가 다른 핸들러 전달을 막지 않음."""
        bus = EventBus()
        received: list[Event] = []

        def broken(event: Event) -> None:
            raise RuntimeError("boom")

        bus.subscribe(EventType.REBALANCE_EXECUTED, broken)
        bus.subscribe(EventType.REBALANCE_EXECUTED, received.append)
        bus.publish(_make_rebalance())

        assert len(received) == 1
        assert bus.handler_errors == 1
