"""Paper engine assembly.

SimulatedMarket을 모든 외부 협력자로 주입해 엔진 전체(registry → monitor →
optimizer/gate → executor/ledger → scheduler → operator API)를 조립합니다.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from yieldbot.api.auth import AllowAllAuthorizer
from yieldbot.api.operator import OperatorAPI
from yieldbot.automation.metrics import SchedulerMetricsExporter
from yieldbot.automation.models import TaskConfig, TaskType, TriggerKind
from yieldbot.automation.scheduler import TaskScheduler
from yieldbot.core.events import EventBus
from yieldbot.market.models import VenueClass
from yieldbot.market.monitor import MarketConditionMonitor
from yieldbot.sim.market import SimulatedMarket, SimVenue
from yieldbot.strategy.executor import RebalanceExecutor
from yieldbot.strategy.gate import RebalanceGate
from yieldbot.strategy.ledger import ExecutionLedger
from yieldbot.strategy.models import ScoringAlgorithm, StrategyDefinition
from yieldbot.strategy.optimizer import AllocationOptimizer
from yieldbot.strategy.registry import StrategyRegistry

if TYPE_CHECKING:
    from yieldbot.api.auth import Authorizer
    from yieldbot.config.settings import EngineSettings

DEMO_ASSET = "USDC"


@dataclass
class PaperEngine:
    """조립된 paper 엔진 컴포넌트 묶음."""

    settings: EngineSettings
    market: SimulatedMarket
    bus: EventBus
    registry: StrategyRegistry
    monitor: MarketConditionMonitor
    optimizer: AllocationOptimizer
    gate: RebalanceGate
    ledger: ExecutionLedger
    executor: RebalanceExecutor
    scheduler: TaskScheduler
    api: OperatorAPI
    exporter: SchedulerMetricsExporter

    def step(self) -> None:
        """시장 1 step 진행 후 tick 실행, 메트릭 갱신."""
        now = self.market.step()
        self.scheduler.run_tick(now)
        self.exporter.update()


def build_paper_engine(
    settings: EngineSettings,
    market: SimulatedMarket | None = None,
    authorizer: Authorizer | None = None,
) -> PaperEngine:
    """SimulatedMarket 기반 엔진 조립.

    Args:
        settings: EngineSettings
        market: 시뮬레이터 (None이면 기본 seed)
        authorizer: operator 권한 검사기 (None이면 AllowAll)

    Returns:
        PaperEngine
    """
    market = market or SimulatedMarket()
    clock = lambda: market.now  # noqa: E731
    bus = EventBus()
    registry = StrategyRegistry(settings, bus=bus)
    monitor = MarketConditionMonitor(
        settings, market, market, venue_source=market, bus=bus, clock=clock
    )
    optimizer = AllocationOptimizer(settings)
    gate = RebalanceGate(settings, optimizer)
    ledger = ExecutionLedger(settings.history_retention)
    executor = RebalanceExecutor(settings, market, ledger, bus=bus, clock=clock)
    scheduler = TaskScheduler(
        settings,
        registry,
        monitor,
        gate,
        executor,
        market,
        feed=market,
        actions=market,
        bus=bus,
        clock=clock,
    )
    api = OperatorAPI(registry, scheduler, ledger, monitor, authorizer or AllowAllAuthorizer())
    exporter = SchedulerMetricsExporter(scheduler, registry, monitor, ledger)
    return PaperEngine(
        settings=settings,
        market=market,
        bus=bus,
        registry=registry,
        monitor=monitor,
        optimizer=optimizer,
        gate=gate,
        ledger=ledger,
        executor=executor,
        scheduler=scheduler,
        api=api,
        exporter=exporter,
    )


def seed_demo(engine: PaperEngine, algorithm: ScoringAlgorithm, capital: float) -> None:
    """데모 asset/venue, 전략 1개, 기본 태스크 세트 등록."""
    engine.market.add_asset(
        DEMO_ASSET,
        price=1.0,
        venues=[
            SimVenue("lending", VenueClass.STABLE, capital * 0.5, 0.04, 0.045, 0.01, 8.0),
            SimVenue("amm-lp", VenueClass.GROWTH, capital * 0.3, 0.09, 0.08, 0.05, 30.0),
            SimVenue("leverage-vault", VenueClass.HIGH_RISK, capital * 0.2, 0.18, 0.15, 0.2, 65.0),
        ],
    )
    engine.api.create_strategy(
        "operator",
        StrategyDefinition(
            strategy_id="usdc-core",
            asset=DEMO_ASSET,
            algorithm=algorithm,
            venues=("lending", "amm-lp", "leverage-vault"),
            target=(0.5, 0.3, 0.2),
            min_allocation=(0.2, 0.1, 0.0),
            max_allocation=(0.8, 0.6, 0.3),
            deviation_threshold=0.05,
            max_slippage=0.01,
            cooldown=timedelta(hours=4),
        ),
    )
    for config in (
        TaskConfig(task_type=TaskType.REBALANCE, interval=timedelta(hours=1), priority=8),
        TaskConfig(
            task_type=TaskType.EMERGENCY_RESPONSE, trigger=TriggerKind.EMERGENCY, priority=10
        ),
        TaskConfig(task_type=TaskType.RISK_ASSESSMENT, interval=timedelta(hours=6), priority=6),
        TaskConfig(task_type=TaskType.COMPOUND, interval=timedelta(hours=24), priority=4),
        TaskConfig(
            task_type=TaskType.REVENUE_DISTRIBUTION, interval=timedelta(hours=24), priority=3
        ),
    ):
        engine.api.create_task("operator", config)
