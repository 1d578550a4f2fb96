"""OperatorAPI — 운영/모니터링 노출 surface.

모든 변경 연산은 상태 변경 전에 authorizer.require()로 권한을 검사합니다.
읽기 연산은 권한 검사 없이 현재 상태를 반환합니다.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from yieldbot.api.auth import Permission

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from yieldbot.api.auth import Authorizer
    from yieldbot.automation.models import (
        AutomationStatus,
        AutomationTask,
        PerformanceMetrics,
        ScheduledExecution,
        TaskConfig,
        TaskExecution,
    )
    from yieldbot.automation.scheduler import TaskScheduler
    from yieldbot.market.models import MarketSnapshot
    from yieldbot.market.monitor import MarketConditionMonitor
    from yieldbot.strategy.ledger import ExecutionLedger
    from yieldbot.strategy.models import ExecutionRecord, Strategy, StrategyDefinition
    from yieldbot.strategy.registry import StrategyRegistry


class OperatorAPI:
    """전략/자동화 운영 facade.

    Args:
        registry: 전략 저장소
        scheduler: 자동화 스케줄러
        ledger: 실행 이력 저장소
        monitor: 시장 상태 모니터
        authorizer: 권한 검사기
    """

    def __init__(
        self,
        registry: StrategyRegistry,
        scheduler: TaskScheduler,
        ledger: ExecutionLedger,
        monitor: MarketConditionMonitor,
        authorizer: Authorizer,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler
        self._ledger = ledger
        self._monitor = monitor
        self._authorizer = authorizer

    # ── Strategy Mutations ────────────────────────────────────────

    def create_strategy(
        self, principal: str, definition: StrategyDefinition | Mapping[str, Any]
    ) -> Strategy:
        """전략 생성."""
        self._require(principal, Permission.MANAGE_STRATEGIES)
        return self._registry.create(definition)

    def edit_strategy(self, principal: str, strategy_id: str, /, **changes: Any) -> Strategy:
        """전략 수정."""
        self._require(principal, Permission.MANAGE_STRATEGIES)
        return self._registry.edit(strategy_id, **changes)

    def deactivate_strategy(self, principal: str, strategy_id: str) -> Strategy:
        """전략 비활성화."""
        self._require(principal, Permission.MANAGE_STRATEGIES)
        return self._registry.deactivate(strategy_id)

    def reactivate_strategy(self, principal: str, strategy_id: str) -> Strategy:
        """전략 재활성화."""
        self._require(principal, Permission.MANAGE_STRATEGIES)
        return self._registry.reactivate(strategy_id)

    # ── Task Mutations ────────────────────────────────────────────

    def create_task(self, principal: str, config: TaskConfig | Mapping[str, Any]) -> int:
        """자동화 태스크 생성."""
        self._require(principal, Permission.MANAGE_TASKS)
        return self._scheduler.add_task(config)

    def edit_task(self, principal: str, task_id: int, /, **changes: Any) -> AutomationTask:
        """자동화 태스크 수정."""
        self._require(principal, Permission.MANAGE_TASKS)
        return self._scheduler.edit_task(task_id, **changes)

    def deactivate_task(self, principal: str, task_id: int) -> AutomationTask:
        """자동화 태스크 비활성화."""
        self._require(principal, Permission.MANAGE_TASKS)
        return self._scheduler.deactivate_task(task_id)

    def reactivate_task(self, principal: str, task_id: int) -> AutomationTask:
        """자동화 태스크 재활성화."""
        self._require(principal, Permission.MANAGE_TASKS)
        return self._scheduler.reactivate_task(task_id)

    def force_execute(self, principal: str, task_id: int) -> TaskExecution:
        """태스크 강제 실행 (수동 리밸런스 포함)."""
        self._require(principal, Permission.EXECUTE_TASKS)
        logger.info("Force execute task #{} by {}", task_id, principal)
        return self._scheduler.force_execute(task_id)

    # ── Automation Controls ───────────────────────────────────────

    def set_automation_enabled(self, principal: str, enabled: bool) -> None:
        """자동화 on/off (pause/resume)."""
        self._require(principal, Permission.CONTROL_AUTOMATION)
        self._scheduler.set_automation_enabled(enabled)

    def clear_emergency(self, principal: str) -> None:
        """전역 긴급 모드 해제."""
        self._require(principal, Permission.CLEAR_EMERGENCY)
        self._scheduler.clear_emergency()

    # ── Reads ─────────────────────────────────────────────────────

    def strategy(self, strategy_id: str) -> Strategy:
        """전략 조회."""
        return self._registry.get(strategy_id)

    def strategies(self) -> list[Strategy]:
        """전체 전략 (ID 순)."""
        return self._registry.strategies()

    def snapshot(self, asset: str) -> MarketSnapshot | None:
        """asset 최신 시장 snapshot."""
        return self._monitor.snapshot(asset)

    def history(self, strategy_id: str, limit: int | None = None) -> list[ExecutionRecord]:
        """전략 실행 이력."""
        self._registry.get(strategy_id)
        return self._ledger.history(strategy_id, limit)

    def metrics(self) -> PerformanceMetrics:
        """스케줄러 성과 지표."""
        return self._scheduler.context.metrics

    def scheduled_next_executions(self, now: datetime | None = None) -> list[ScheduledExecution]:
        """다음 실행 예정 목록."""
        return self._scheduler.scheduled_next_executions(now)

    def automation_status(self) -> AutomationStatus:
        """자동화 상태 요약."""
        return self._scheduler.status()

    def _require(self, principal: str, permission: Permission) -> None:
        self._authorizer.require(principal, permission)
