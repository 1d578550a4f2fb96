"""Default task handlers.

TaskScheduler가 태스크 유형별로 호출하는 handler입니다. handler는 실행 비용을 반환하며,
예기치 않은 예외는 scheduler가 태스크 단위로 격리합니다.

Handlers:
    - rebalance: 활성 전략마다 gate → executor (payload ``strategy_ids``로 범위 제한)
    - compound: YieldActions.compound_yield()
    - revenue_distribution: 활성 asset마다 YieldActions.distribute_revenue()
    - risk_assessment: 전략별 긴급 노출 평가/로그
    - emergency_response: 긴급 전략(또는 전역 긴급 시 전체)을 safe allocation으로 이동

Rules Applied:
    - #15 Logging Standards: strategy/task context binding
    - #23 Exception Handling: TaskHandlerError
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

from yieldbot.automation.models import TaskType
from yieldbot.core.exceptions import TaskHandlerError
from yieldbot.logging.context import get_strategy_logger, get_task_logger

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from yieldbot.automation.models import AutomationTask
    from yieldbot.config.settings import EngineSettings
    from yieldbot.core.ports import AllocationSource, YieldActions
    from yieldbot.market.monitor import MarketConditionMonitor
    from yieldbot.strategy.executor import RebalanceExecutor
    from yieldbot.strategy.gate import RebalanceGate
    from yieldbot.strategy.models import Strategy
    from yieldbot.strategy.registry import StrategyRegistry

TaskHandler: TypeAlias = "Callable[[AutomationTask, HandlerContext], float]"


@dataclass(frozen=True)
class HandlerContext:
    """handler 실행 입력 (tick 단위)."""

    now: datetime
    emergency_mode: bool
    settings: EngineSettings
    registry: StrategyRegistry
    monitor: MarketConditionMonitor
    gate: RebalanceGate
    executor: RebalanceExecutor
    allocations: AllocationSource
    actions: YieldActions | None = None

    def require_actions(self) -> YieldActions:
        """YieldActions (미설정 시 TaskHandlerError)."""
        if self.actions is None:
            msg = "No YieldActions collaborator configured"
            raise TaskHandlerError(msg)
        return self.actions


def rebalance_strategy(
    strategy: Strategy,
    hctx: HandlerContext,
    *,
    force_emergency: bool = False,
) -> float:
    """단일 전략 gate 판정 후 필요 시 실행. 실행 비용을 반환합니다."""
    log = get_strategy_logger(strategy.strategy_id, asset=strategy.asset)
    snapshot = hctx.monitor.snapshot(strategy.asset)
    if snapshot is None:
        log.debug("No market snapshot yet, skipping")
        return 0.0

    current = hctx.allocations.current_allocation(strategy)
    decision = hctx.gate.evaluate(
        strategy, current, snapshot, hctx.now, force_emergency=force_emergency
    )
    if not decision.should_execute:
        log.debug("Gate rejected: {} (deviation={:.4f})", decision.reason, decision.deviation)
        return 0.0

    liquidity = hctx.allocations.total_liquidity(strategy)
    gain = hctx.gate.optimizer.expected_gain(
        strategy, current, decision.target, snapshot, liquidity
    )
    record = hctx.executor.execute(
        strategy,
        current,
        decision.target,
        total_liquidity=liquidity,
        predicted_gain=gain,
        now=hctx.now,
        emergency=decision.emergency,
    )
    return record.total_cost


def handle_rebalance(task: AutomationTask, hctx: HandlerContext) -> float:
    """활성 전략 리밸런스.

    전역 긴급 모드에서는 정상 gate 대신 safe allocation 경로를 사용합니다.
    """
    scope = task.config.payload.get("strategy_ids")
    cost = 0.0
    for strategy in hctx.registry.active():
        if scope is not None and strategy.strategy_id not in scope:
            continue
        cost += rebalance_strategy(strategy, hctx, force_emergency=hctx.emergency_mode)
    return cost


def handle_compound(task: AutomationTask, hctx: HandlerContext) -> float:
    """보유 수익 복리화."""
    hctx.require_actions().compound_yield()
    get_task_logger(task.task_id, task.task_type).info("Yield compounded")
    return hctx.settings.transfer_fixed_cost


def handle_revenue_distribution(task: AutomationTask, hctx: HandlerContext) -> float:
    """활성 asset별 수익 분배."""
    actions = hctx.require_actions()
    assets = hctx.registry.active_assets()
    for asset in assets:
        actions.distribute_revenue(asset)
    get_task_logger(task.task_id, task.task_type).info("Revenue distributed: {}", assets)
    return hctx.settings.transfer_fixed_cost * len(assets)


def handle_risk_assessment(task: AutomationTask, hctx: HandlerContext) -> float:
    """전략별 긴급 노출 평가."""
    log = get_task_logger(task.task_id, task.task_type)
    exposed: list[str] = []
    for strategy in hctx.registry.active():
        snapshot = hctx.monitor.snapshot(strategy.asset)
        if snapshot is None:
            continue
        if hctx.gate.is_emergency(strategy, snapshot.risk_score):
            exposed.append(strategy.strategy_id)
            log.warning(
                "Strategy {} exposed: risk={:.1f} >= {:.1f}",
                strategy.strategy_id,
                snapshot.risk_score,
                hctx.gate.emergency_threshold(strategy),
            )
    log.info("Risk assessment complete: {} exposed strategies", len(exposed))
    return 0.0


def handle_emergency_response(task: AutomationTask, hctx: HandlerContext) -> float:
    """긴급 전략을 safe allocation으로 이동.

    전역 긴급 모드이면 모든 활성 전략, 아니면 긴급 임계값을 넘은 전략만 대상입니다.
    """
    cost = 0.0
    for strategy in hctx.registry.active():
        snapshot = hctx.monitor.snapshot(strategy.asset)
        if snapshot is None:
            continue
        if hctx.emergency_mode or hctx.gate.is_emergency(strategy, snapshot.risk_score):
            cost += rebalance_strategy(strategy, hctx, force_emergency=True)
    return cost


def build_default_handlers() -> dict[TaskType, TaskHandler]:
    """태스크 유형 → 기본 handler 매핑."""
    return {
        TaskType.REBALANCE: handle_rebalance,
        TaskType.COMPOUND: handle_compound,
        TaskType.REVENUE_DISTRIBUTION: handle_revenue_distribution,
        TaskType.RISK_ASSESSMENT: handle_risk_assessment,
        TaskType.EMERGENCY_RESPONSE: handle_emergency_response,
    }
