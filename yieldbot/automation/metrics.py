"""SchedulerMetrics — 스케줄러/전략 Prometheus 메트릭.

TaskScheduler의 PerformanceMetrics, 긴급 모드, 시장 리스크, 전략 실행 결과를
Prometheus 메트릭으로 노출합니다.

메트릭 레이어:
    - Scheduler 레벨: executions, success, average cost, uptime, emergency
    - Asset 레벨: risk score, volatility
    - Strategy 레벨: last net benefit, active flag

Rules Applied:
    - Prometheus naming: yieldbot_ prefix
    - #10 Python Standards: Modern typing, type hints
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from prometheus_client import Gauge

if TYPE_CHECKING:
    from yieldbot.automation.scheduler import TaskScheduler
    from yieldbot.market.monitor import MarketConditionMonitor
    from yieldbot.strategy.ledger import ExecutionLedger
    from yieldbot.strategy.registry import StrategyRegistry

# ── Scheduler-level Gauges ────────────────────────────────────────

task_executions_gauge = Gauge(
    "yieldbot_task_executions_total",
    "Total automation task executions",
)
task_failures_gauge = Gauge(
    "yieldbot_task_failures_total",
    "Failed automation task executions",
)
task_average_cost_gauge = Gauge(
    "yieldbot_task_average_cost",
    "Running average task resource cost",
)
uptime_ratio_gauge = Gauge(
    "yieldbot_uptime_ratio",
    "Fraction of ticks completed with automation enabled",
)
emergency_mode_gauge = Gauge(
    "yieldbot_emergency_mode",
    "Global emergency mode (1=on)",
)
slippage_guard_trips_gauge = Gauge(
    "yieldbot_slippage_guard_trips_total",
    "Rebalances halted by the slippage guard",
)
active_tasks_gauge = Gauge(
    "yieldbot_active_tasks",
    "Number of active automation tasks",
)

# ── Asset-level Gauges ────────────────────────────────────────────

asset_risk_gauge = Gauge(
    "yieldbot_asset_risk_score",
    "Composite asset risk score (0-100)",
    ["asset"],
)
asset_volatility_gauge = Gauge(
    "yieldbot_asset_volatility_bps",
    "Buffered price volatility (bps)",
    ["asset"],
)

# ── Strategy-level Gauges ─────────────────────────────────────────

strategy_net_benefit_gauge = Gauge(
    "yieldbot_strategy_last_net_benefit",
    "Net benefit of the latest rebalance",
    ["strategy_id"],
)
strategy_active_gauge = Gauge(
    "yieldbot_strategy_active",
    "Strategy active flag (1=active)",
    ["strategy_id"],
)


class SchedulerMetricsExporter:
    """스케줄러 상태를 Prometheus 메트릭으로 동기화.

    tick 이후 update()를 호출합니다. 실패는 로그만 남기고 전파하지 않습니다.

    Args:
        scheduler: TaskScheduler
        registry: 전략 저장소
        monitor: 시장 상태 모니터
        ledger: 실행 이력 저장소
    """

    def __init__(
        self,
        scheduler: TaskScheduler,
        registry: StrategyRegistry,
        monitor: MarketConditionMonitor,
        ledger: ExecutionLedger,
    ) -> None:
        self._scheduler = scheduler
        self._registry = registry
        self._monitor = monitor
        self._ledger = ledger

    def update(self) -> None:
        """모든 메트릭 갱신."""
        try:
            self._update_scheduler_metrics()
            self._update_asset_metrics()
            self._update_strategy_metrics()
        except Exception:
            logger.exception("SchedulerMetricsExporter update failed")

    def _update_scheduler_metrics(self) -> None:
        status = self._scheduler.status()
        metrics = status.metrics
        task_executions_gauge.set(metrics.total_executions)
        task_failures_gauge.set(metrics.failed_executions)
        task_average_cost_gauge.set(metrics.average_cost)
        uptime_ratio_gauge.set(metrics.uptime_ratio)
        slippage_guard_trips_gauge.set(metrics.slippage_guard_trips)
        emergency_mode_gauge.set(1.0 if status.emergency_mode else 0.0)
        active_tasks_gauge.set(status.active_tasks)

    def _update_asset_metrics(self) -> None:
        for asset, snapshot in self._monitor.snapshots().items():
            asset_risk_gauge.labels(asset=asset).set(snapshot.risk_score)
            asset_volatility_gauge.labels(asset=asset).set(snapshot.volatility_bps)

    def _update_strategy_metrics(self) -> None:
        for strategy in self._registry.strategies():
            sid = strategy.strategy_id
            strategy_active_gauge.labels(strategy_id=sid).set(1.0 if strategy.is_active else 0.0)
            latest = self._ledger.latest(sid)
            if latest is not None:
                strategy_net_benefit_gauge.labels(strategy_id=sid).set(latest.net_benefit)
