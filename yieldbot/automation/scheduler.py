"""TaskScheduler — 자동화 루프.

외부 cadence(블록/tick)마다 run_tick()이 호출되며, 한 tick은 다음 순서로 진행됩니다.

Tick:
    1. re-entrancy guard (진행 중이면 skip report 반환)
    2. 자동화 off면 skip (tick은 비활성으로 집계)
    3. 활성 전략 asset 시장 상태 refresh
    4. 전역 긴급 predicate 평가 (sticky, operator만 해제)
    5. ascending-id scan (긴급 모드면 emergency-response 태스크 우선),
       max_tasks_per_tick까지 실행, 나머지 trigger 태스크는 DUE 유지
    6. 태스크별 예외 격리 (실행 기록에 error 남기고 계속)
    7. 성과 지표 갱신 (항상)

priority는 운영 표시용 메타데이터이며 실행 순서를 바꾸지 않습니다.
어떤 예외도 run_tick() 밖으로 전파되지 않습니다.

Rules Applied:
    - #23 Exception Handling: 태스크 단위 격리
    - #15 Logging Standards: task context binding
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pydantic
from loguru import logger

from yieldbot.automation.context import SchedulerContext
from yieldbot.automation.handlers import HandlerContext, build_default_handlers
from yieldbot.automation.models import (
    AutomationStatus,
    AutomationTask,
    ScheduledExecution,
    TaskConfig,
    TaskExecution,
    TaskState,
    TaskType,
    TickReport,
    TriggerKind,
)
from yieldbot.automation.triggers import (
    MarketProbes,
    TriggerInputs,
    is_triggered,
    next_execution_at,
)
from yieldbot.core.events import EmergencyModeChanged, TaskExecuted
from yieldbot.core.exceptions import TaskHandlerError, TaskNotFoundError, TaskValidationError
from yieldbot.logging.context import get_task_logger
from yieldbot.strategy.gate import deviation

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from yieldbot.automation.handlers import TaskHandler
    from yieldbot.automation.triggers import ConditionPredicate
    from yieldbot.config.settings import EngineSettings
    from yieldbot.core.events import EventBus
    from yieldbot.core.ports import AllocationSource, MarketFeed, YieldActions
    from yieldbot.market.models import MarketSnapshot
    from yieldbot.market.monitor import MarketConditionMonitor
    from yieldbot.strategy.executor import RebalanceExecutor
    from yieldbot.strategy.gate import RebalanceGate
    from yieldbot.strategy.registry import StrategyRegistry


class TaskScheduler:
    """자동화 태스크 스케줄러.

    Args:
        settings: EngineSettings
        registry: 전략 저장소
        monitor: 시장 상태 모니터
        gate: 리밸런스 게이트
        executor: 리밸런스 실행기
        allocations: 전략별 현재 배분/유동성 조회
        feed: asset별 가격 샘플 피드 (None이면 오라클 가격 사용)
        actions: 수익 분배/복리화 side action
        bus: 이벤트 버스
        handlers: 태스크 유형 → handler (None이면 기본 handler)
        context: 외부에서 주입할 SchedulerContext
        clock: 현재 시각 제공 함수
    """

    def __init__(
        self,
        settings: EngineSettings,
        registry: StrategyRegistry,
        monitor: MarketConditionMonitor,
        gate: RebalanceGate,
        executor: RebalanceExecutor,
        allocations: AllocationSource,
        *,
        feed: MarketFeed | None = None,
        actions: YieldActions | None = None,
        bus: EventBus | None = None,
        handlers: Mapping[TaskType, TaskHandler] | None = None,
        context: SchedulerContext | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._monitor = monitor
        self._gate = gate
        self._executor = executor
        self._allocations = allocations
        self._feed = feed
        self._actions = actions
        self._bus = bus
        self._handlers: dict[TaskType, TaskHandler] = dict(
            handlers if handlers is not None else build_default_handlers()
        )
        self._ctx = context or SchedulerContext(history_size=settings.execution_history_size)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._tasks: dict[int, AutomationTask] = {}
        self._conditions: dict[str, ConditionPredicate] = {}

    @property
    def context(self) -> SchedulerContext:
        """스케줄러 context."""
        return self._ctx

    # ── Task Management ───────────────────────────────────────────

    def add_task(self, config: TaskConfig | Mapping[str, Any]) -> int:
        """태스크 등록.

        Returns:
            발급된 task_id (1부터 오름차순)

        Raises:
            TaskValidationError: 설정 오류 또는 handler 미등록 유형
        """
        validated = self._validate(config)
        task_id = self._ctx.allocate_task_id()
        self._tasks[task_id] = AutomationTask(task_id=task_id, config=validated)
        logger.info(
            "Task #{} added: {} ({} trigger, priority={})",
            task_id,
            validated.task_type,
            validated.trigger,
            validated.priority,
        )
        return task_id

    def edit_task(self, task_id: int, /, **changes: Any) -> AutomationTask:
        """태스크 설정 수정 (재검증, 실행 이력 유지)."""
        task = self.get_task(task_id)
        if "task_id" in changes:
            msg = "Cannot edit immutable field: task_id"
            raise TaskValidationError(msg, context={"task_id": task_id})
        merged = {**task.config.model_dump(), **changes}
        task.config = self._validate(merged)
        logger.info("Task #{} edited: fields={}", task_id, sorted(changes))
        return task

    def deactivate_task(self, task_id: int) -> AutomationTask:
        """태스크 비활성화 (reactivate 전까지 DEACTIVATED)."""
        task = self.get_task(task_id)
        task.state = TaskState.DEACTIVATED
        logger.info("Task #{} deactivated", task_id)
        return task

    def reactivate_task(self, task_id: int) -> AutomationTask:
        """비활성 태스크를 IDLE로 복귀."""
        task = self.get_task(task_id)
        if task.state == TaskState.DEACTIVATED:
            task.state = TaskState.IDLE
            logger.info("Task #{} reactivated", task_id)
        return task

    def get_task(self, task_id: int) -> AutomationTask:
        """태스크 조회.

        Raises:
            TaskNotFoundError: 등록되지 않은 ID
        """
        task = self._tasks.get(task_id)
        if task is None:
            msg = f"Task #{task_id} not found"
            raise TaskNotFoundError(msg, context={"task_id": task_id})
        return task

    def tasks(self) -> list[AutomationTask]:
        """모든 태스크 (ID 순)."""
        return [self._tasks[tid] for tid in sorted(self._tasks)]

    def register_handler(self, task_type: TaskType, handler: TaskHandler) -> None:
        """태스크 유형 handler 등록/교체."""
        self._handlers[task_type] = handler

    def register_condition(self, name: str, predicate: ConditionPredicate) -> None:
        """CONDITION trigger용 이름 붙은 predicate 등록."""
        self._conditions[name] = predicate

    # ── Operator Controls ─────────────────────────────────────────

    def force_execute(self, task_id: int, now: datetime | None = None) -> TaskExecution:
        """trigger와 자동화 on/off를 무시하고 태스크를 즉시 실행.

        진행 중인 tick이 있으면 완료될 때까지 대기합니다.

        Raises:
            TaskNotFoundError: 등록되지 않은 ID
            TaskValidationError: 비활성 태스크
        """
        task = self.get_task(task_id)
        if not task.is_active:
            msg = f"Task #{task_id} is deactivated"
            raise TaskValidationError(msg, context={"task_id": task_id})
        lock = self._ctx.tick_lock
        with lock:
            return self._execute(task, now or self._clock(), forced=True)

    def set_automation_enabled(self, enabled: bool) -> None:
        """자동화 on/off."""
        if self._ctx.automation_enabled != enabled:
            self._ctx.automation_enabled = enabled
            logger.info("Automation {}", "enabled" if enabled else "paused")

    def clear_emergency(self) -> None:
        """전역 긴급 모드 해제 (operator 전용)."""
        if not self._ctx.emergency_mode:
            return
        self._ctx.emergency_mode = False
        self._ctx.emergency_reason = None
        logger.info("Emergency mode cleared by operator")
        self._publish(EmergencyModeChanged(active=False, reason="operator", source="TaskScheduler"))

    def signal_event(self, name: str) -> None:
        """EVENT trigger용 이벤트 signal (실행 시 소비)."""
        self._ctx.pending_events.add(name)

    # ── Tick ──────────────────────────────────────────────────────

    def run_tick(self, now: datetime | None = None) -> TickReport:
        """자동화 tick 1회 실행.

        Args:
            now: tick 시각 (None이면 clock)

        Returns:
            TickReport (동시 호출이면 skipped=True)
        """
        now = now or self._clock()
        lock = self._ctx.tick_lock
        if not lock.acquire(blocking=False):
            logger.warning("Tick rejected: previous tick still in progress")
            return TickReport(
                tick=0,
                timestamp=now,
                emergency_mode=self._ctx.emergency_mode,
                skipped=True,
                skip_reason="tick in progress",
            )
        try:
            return self._run_tick_locked(now)
        finally:
            lock.release()

    def scheduled_next_executions(self, now: datetime | None = None) -> list[ScheduledExecution]:
        """TIME 태스크 다음 실행 예정 (시각, ID 순)."""
        now = now or self._clock()
        scheduled = [
            ScheduledExecution(task.task_id, task.task_type, due_at, task.config.priority)
            for task in self.tasks()
            if (due_at := next_execution_at(task, now)) is not None
        ]
        return sorted(scheduled, key=lambda s: (s.due_at, s.task_id))

    def status(self) -> AutomationStatus:
        """자동화 상태 요약."""
        tasks = self.tasks()
        executed = [t.last_execution for t in tasks if t.last_execution is not None]
        return AutomationStatus(
            is_healthy=self._ctx.automation_enabled and not self._ctx.emergency_mode,
            automation_enabled=self._ctx.automation_enabled,
            emergency_mode=self._ctx.emergency_mode,
            active_tasks=sum(1 for t in tasks if t.is_active),
            total_tasks=len(tasks),
            last_execution=max(executed) if executed else None,
            tick_count=self._ctx.tick_count,
            metrics=self._ctx.metrics,
        )

    # ── Private: Tick Phases ──────────────────────────────────────

    def _run_tick_locked(self, now: datetime) -> TickReport:
        ctx = self._ctx
        ctx.tick_count += 1
        tick = ctx.tick_count

        if not ctx.automation_enabled:
            self._finish_tick(now, active=False)
            return TickReport(
                tick=tick,
                timestamp=now,
                emergency_mode=ctx.emergency_mode,
                skipped=True,
                skip_reason="automation paused",
            )

        refreshed = self._refresh_markets()
        self._check_emergency()
        inputs = TriggerInputs(
            now=now,
            emergency_mode=ctx.emergency_mode,
            probes=self._collect_probes(now),
            pending_events=frozenset(ctx.pending_events),
            conditions=self._conditions,
        )

        cap = self._settings.max_tasks_per_tick
        executions: list[TaskExecution] = []
        still_due: list[int] = []
        for task in self._scan_order():
            if not task.is_active:
                continue
            if not is_triggered(task, inputs):
                if task.state == TaskState.DUE:
                    task.state = TaskState.IDLE
                continue
            task.state = TaskState.DUE
            if len(executions) >= cap:
                still_due.append(task.task_id)
                continue
            executions.append(self._execute(task, now, forced=False))

        if still_due:
            logger.info("Tick {}: cap {} reached, still due: {}", tick, cap, still_due)

        self._finish_tick(now, active=True)
        return TickReport(
            tick=tick,
            timestamp=now,
            executions=tuple(executions),
            still_due=tuple(still_due),
            emergency_mode=ctx.emergency_mode,
            refreshed_assets=refreshed,
        )

    def _finish_tick(self, now: datetime, *, active: bool) -> None:
        self._ctx.metrics.slippage_guard_trips = self._executor.slippage_guard_trips
        self._ctx.metrics.record_tick(active=active)
        self._ctx.last_tick_at = now

    def _refresh_markets(self) -> tuple[str, ...]:
        active = self._registry.active()
        requests = {}
        try:
            for asset in self._registry.active_assets():
                samples = tuple(self._feed.latest_samples(asset)) if self._feed else ()
                venues = sorted({v for s in active if s.asset == asset for v in s.venues})
                requests[asset] = (samples, venues)
            snapshots = self._monitor.refresh_many(requests)
        except Exception:
            logger.exception("Market refresh failed, keeping previous snapshots")
            return ()
        return tuple(snapshots)

    def _active_snapshots(self) -> list[MarketSnapshot]:
        return [
            snap
            for asset in self._registry.active_assets()
            if (snap := self._monitor.snapshot(asset)) is not None
        ]

    def _check_emergency(self) -> None:
        if self._ctx.emergency_mode:
            return
        reason = self._emergency_reason(self._active_snapshots())
        if reason is None:
            return
        self._ctx.emergency_mode = True
        self._ctx.emergency_reason = reason
        logger.critical("EMERGENCY MODE ON: {}", reason)
        self._publish(EmergencyModeChanged(active=True, reason=reason, source="TaskScheduler"))

    def _emergency_reason(self, snapshots: list[MarketSnapshot]) -> str | None:
        s = self._settings
        for snap in snapshots:
            if snap.risk_score >= s.emergency_risk_threshold:
                return f"{snap.asset} risk {snap.risk_score:.1f} >= {s.emergency_risk_threshold}"
            if snap.volatility_bps >= s.emergency_volatility_bps:
                return (
                    f"{snap.asset} volatility {snap.volatility_bps:.0f}bps "
                    f">= {s.emergency_volatility_bps}"
                )
            if s.emergency_min_liquidity > 0 and snap.liquidity_depth < s.emergency_min_liquidity:
                return (
                    f"{snap.asset} liquidity {snap.liquidity_depth:.2f} "
                    f"< {s.emergency_min_liquidity}"
                )
        return None

    def _collect_probes(self, now: datetime) -> MarketProbes:
        snapshots = self._active_snapshots()
        if not snapshots:
            return MarketProbes()

        max_deviation = 0.0
        try:
            for strategy in self._registry.active():
                snap = self._monitor.snapshot(strategy.asset)
                if snap is None:
                    continue
                current = self._allocations.current_allocation(strategy)
                target = self._gate.optimizer.compute_target(strategy, snap)
                max_deviation = max(max_deviation, deviation(current, target))
        except Exception:
            logger.exception("Deviation probe failed at {}", now.isoformat())

        return MarketProbes(
            max_deviation=max_deviation,
            max_risk_score=max(s.risk_score for s in snapshots),
            max_yield_spread=max(s.yield_spread for s in snapshots),
            total_trading_volume=sum(s.trading_volume for s in snapshots),
        )

    def _scan_order(self) -> list[AutomationTask]:
        tasks = self.tasks()
        if not self._ctx.emergency_mode:
            return tasks
        first = [t for t in tasks if t.task_type == TaskType.EMERGENCY_RESPONSE]
        rest = [t for t in tasks if t.task_type != TaskType.EMERGENCY_RESPONSE]
        return first + rest

    # ── Private: Execution ────────────────────────────────────────

    def _execute(self, task: AutomationTask, now: datetime, *, forced: bool) -> TaskExecution:
        log = get_task_logger(task.task_id, task.task_type)
        task.state = TaskState.EXECUTING
        cost = 0.0
        error: str | None = None
        try:
            handler = self._handlers.get(task.task_type)
            if handler is None:
                msg = f"No handler registered for {task.task_type}"
                raise TaskHandlerError(msg, context={"task_id": task.task_id})
            cost = float(handler(task, self._handler_context(now)))
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            log.exception("Task #{} ({}) failed", task.task_id, task.task_type)

        task.last_execution = now
        task.execution_count += 1
        task.last_error = error
        if task.state == TaskState.EXECUTING:
            task.state = TaskState.IDLE
        if task.config.trigger == TriggerKind.EVENT and task.config.event_name:
            self._ctx.pending_events.discard(task.config.event_name)

        budget = task.config.resource_budget
        if budget > 0 and cost > budget:
            log.warning("Task #{} cost {:.4f} exceeded budget {:.4f}", task.task_id, cost, budget)

        execution = TaskExecution(
            task_id=task.task_id,
            task_type=task.task_type,
            timestamp=now,
            success=error is None,
            cost=cost,
            error=error,
            forced=forced,
        )
        self._ctx.record(execution)
        log.debug("Task #{} done: success={} cost={:.4f}", task.task_id, execution.success, cost)
        self._publish(
            TaskExecuted(
                task_id=task.task_id,
                task_type=task.task_type.value,
                success=execution.success,
                error=error,
                source="TaskScheduler",
            )
        )
        return execution

    def _handler_context(self, now: datetime) -> HandlerContext:
        return HandlerContext(
            now=now,
            emergency_mode=self._ctx.emergency_mode,
            settings=self._settings,
            registry=self._registry,
            monitor=self._monitor,
            gate=self._gate,
            executor=self._executor,
            allocations=self._allocations,
            actions=self._actions,
        )

    def _validate(self, config: TaskConfig | Mapping[str, Any]) -> TaskConfig:
        if isinstance(config, TaskConfig):
            validated = config
        else:
            try:
                validated = TaskConfig.model_validate(dict(config))
            except pydantic.ValidationError as exc:
                msg = f"Invalid task config: {exc.errors()[0]['msg']}"
                raise TaskValidationError(msg) from exc
        if validated.task_type not in self._handlers:
            msg = f"No handler registered for task type {validated.task_type}"
            raise TaskValidationError(msg, context={"task_type": validated.task_type.value})
        return validated

    def _publish(self, event: EmergencyModeChanged | TaskExecuted) -> None:
        if self._bus is not None:
            self._bus.publish(event)
