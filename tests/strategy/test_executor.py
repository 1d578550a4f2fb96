"""Tests for RebalanceExecutor — transfer planning과 fail-fast 실행."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from yieldbot.config.settings import EngineSettings
from yieldbot.core.events import Event, EventBus, EventType
from yieldbot.core.exceptions import TransferError
from yieldbot.strategy.executor import RebalanceExecutor, plan_transfers
from yieldbot.strategy.ledger import ExecutionLedger
from yieldbot.strategy.models import Strategy, StrategyDefinition, TransferInstruction

T0 = datetime(2024, 1, 1, tzinfo=UTC)

# ── Helpers ─────────────────────────────────────────────────────


class _Transfers:
    """VenueTransfer fake: 호출 기록, n번째 호출 실패, 고정 슬리피지."""

    def __init__(
        self,
        slippage: float = 0.001,
        fail_on: int | None = None,
        fault: Exception | None = None,
    ) -> None:
        self.slippage = slippage
        self.fail_on = fail_on
        self.fault = fault
        self.calls: list[tuple[str, float, str, str]] = []

    def transfer_between_venues(
        self, asset: str, amount: float, from_venue: str, to_venue: str
    ) -> float:
        self.calls.append((asset, amount, from_venue, to_venue))
        if self.fail_on is not None and len(self.calls) == self.fail_on:
            if self.fault is not None:
                raise self.fault
            raise TransferError("venue rejected withdrawal", context={"from": from_venue})
        return self.slippage


def _make_strategy(
    venues: tuple[str, ...] = ("venue1", "venue2"),
    target: tuple[float, ...] = (0.6, 0.4),
    max_slippage: float = 0.01,
) -> Strategy:
    n = len(venues)
    return Strategy(
        definition=StrategyDefinition(
            strategy_id="s1",
            asset="USDC",
            venues=venues,
            target=target,
            min_allocation=(0.0,) * n,
            max_allocation=(1.0,) * n,
            max_slippage=max_slippage,
            cooldown=timedelta(hours=1),
        )
    )


def _make_executor(
    settings: EngineSettings,
    transfers: _Transfers,
    bus: EventBus | None = None,
) -> RebalanceExecutor:
    return RebalanceExecutor(settings, transfers, ExecutionLedger(retention=10), bus=bus)


# ── Planning ────────────────────────────────────────────────────


class TestPlanTransfers:
    def test_single_pair(self) -> None:
        plan = plan_transfers(("venue1", "venue2"), (0.5, 0.5), (0.6, 0.4), 1_000.0, 10.0)
        assert len(plan) == 1
        assert plan[0].source == "venue2"
        assert plan[0].destination == "venue1"
        assert plan[0].amount == pytest.approx(100.0)

    def test_first_fit_order(self) -> None:
        plan = plan_transfers(
            ("a", "b", "c", "d"), (0.4, 0.4, 0.1, 0.1), (0.2, 0.2, 0.3, 0.3), 1_000.0, 0.0
        )
        assert [(p.source, p.destination) for p in plan] == [("a", "c"), ("b", "d")]
        assert [p.amount for p in plan] == pytest.approx([200.0, 200.0])

    def test_split_deficit(self) -> None:
        plan = plan_transfers(("a", "b", "c"), (0.3, 0.3, 0.4), (0.2, 0.2, 0.6), 1_000.0, 0.0)
        assert [(p.source, p.destination) for p in plan] == [("a", "c"), ("b", "c")]
        assert sum(p.amount for p in plan) == pytest.approx(200.0)

    def test_below_floor_skipped(self) -> None:
        plan = plan_transfers(("a", "b"), (0.5, 0.5), (0.501, 0.499), 1_000.0, 10.0)
        assert plan == []

    def test_no_change(self) -> None:
        assert plan_transfers(("a", "b"), (0.5, 0.5), (0.5, 0.5), 1_000.0, 0.0) == []


# ── Execution ───────────────────────────────────────────────────


class TestExecute:
    def test_successful_rebalance(self, settings: EngineSettings) -> None:
        transfers = _Transfers()
        executor = _make_executor(settings, transfers)
        strategy = _make_strategy()

        record = executor.execute(
            strategy, (0.5, 0.5), (0.6, 0.4), total_liquidity=1_000.0, predicted_gain=5.0, now=T0
        )

        assert transfers.calls == [("USDC", pytest.approx(100.0), "venue2", "venue1")]
        assert record.success is True
        assert record.error is None
        assert len(record.transfers) == 1
        # default cost model: 1.0 fixed + 100 * 2bps
        assert record.total_cost == pytest.approx(1.02)
        assert record.net_benefit == pytest.approx(5.0 - 1.02)
        assert strategy.last_execution == T0
        assert executor.ledger.latest("s1") is record

    def test_explicit_execution_cost(self, settings: EngineSettings) -> None:
        executor = _make_executor(settings, _Transfers())
        record = executor.execute(
            _make_strategy(),
            (0.5, 0.5),
            (0.6, 0.4),
            total_liquidity=1_000.0,
            predicted_gain=2.0,
            execution_cost=3.0,
            now=T0,
        )
        assert record.total_cost == 3.0
        assert record.net_benefit == pytest.approx(-1.0)

    def test_transfer_failure_halts(self, settings: EngineSettings) -> None:
        transfers = _Transfers(fail_on=1)
        executor = _make_executor(settings, transfers)
        strategy = _make_strategy(("a", "b", "c", "d"), (0.2, 0.2, 0.3, 0.3))

        record = executor.execute(
            strategy,
            (0.4, 0.4, 0.1, 0.1),
            (0.2, 0.2, 0.3, 0.3),
            total_liquidity=1_000.0,
            predicted_gain=1.0,
            now=T0,
        )

        assert len(transfers.calls) == 1
        assert record.success is False
        assert "venue rejected withdrawal" in (record.error or "")
        assert [leg.success for leg in record.transfers] == [False]
        assert record.total_cost == 0.0
        # 실패해도 cooldown은 소모
        assert strategy.last_execution == T0

    def test_partial_progress_not_rolled_back(self, settings: EngineSettings) -> None:
        transfers = _Transfers(fail_on=2)
        executor = _make_executor(settings, transfers)
        record = executor.execute(
            _make_strategy(("a", "b", "c", "d"), (0.2, 0.2, 0.3, 0.3)),
            (0.4, 0.4, 0.1, 0.1),
            (0.2, 0.2, 0.3, 0.3),
            total_liquidity=1_000.0,
            predicted_gain=1.0,
            now=T0,
        )
        assert [leg.success for leg in record.transfers] == [True, False]
        assert record.moved_amount == pytest.approx(200.0)

    def test_integration_fault_recorded(self, settings: EngineSettings) -> None:
        transfers = _Transfers(fail_on=2, fault=ConnectionError("rpc down"))
        executor = _make_executor(settings, transfers)
        strategy = _make_strategy(("a", "b", "c", "d"), (0.2, 0.2, 0.3, 0.3))

        record = executor.execute(
            strategy,
            (0.4, 0.4, 0.1, 0.1),
            (0.2, 0.2, 0.3, 0.3),
            total_liquidity=1_000.0,
            predicted_gain=1.0,
            now=T0,
        )

        assert len(transfers.calls) == 2
        assert record.success is False
        assert record.error == "ConnectionError: rpc down"
        assert [leg.success for leg in record.transfers] == [True, False]
        assert executor.ledger.history("s1") == [record]
        assert strategy.last_execution == T0

    def test_slippage_guard(self, settings: EngineSettings) -> None:
        transfers = _Transfers(slippage=0.02)
        executor = _make_executor(settings, transfers)
        record = executor.execute(
            _make_strategy(("a", "b", "c", "d"), (0.2, 0.2, 0.3, 0.3), max_slippage=0.01),
            (0.4, 0.4, 0.1, 0.1),
            (0.2, 0.2, 0.3, 0.3),
            total_liquidity=1_000.0,
            predicted_gain=1.0,
            now=T0,
        )
        assert len(transfers.calls) == 1
        assert record.success is False
        assert "exceeds limit" in (record.error or "")
        assert executor.slippage_guard_trips == 1

    def test_empty_plan_still_recorded(self, settings: EngineSettings) -> None:
        executor = _make_executor(settings, _Transfers())
        strategy = _make_strategy()
        record = executor.execute(
            strategy, (0.6, 0.4), (0.6, 0.4), total_liquidity=1_000.0, predicted_gain=0.0, now=T0
        )
        assert record.transfers == ()
        assert record.success is True
        assert executor.ledger.total_recorded("s1") == 1

    def test_emergency_flag(self, settings: EngineSettings) -> None:
        executor = _make_executor(settings, _Transfers())
        strategy = _make_strategy()
        record = executor.execute(
            strategy,
            (0.5, 0.5),
            (0.8, 0.2),
            total_liquidity=1_000.0,
            predicted_gain=0.0,
            now=T0,
            emergency=True,
        )
        assert record.emergency is True
        assert strategy.emergency is True

    def test_publishes_event(self, settings: EngineSettings) -> None:
        bus = EventBus()
        received: list[Event] = []
        bus.subscribe(EventType.REBALANCE_EXECUTED, received.append)
        executor = _make_executor(settings, _Transfers(), bus=bus)

        executor.execute(
            _make_strategy(),
            (0.5, 0.5),
            (0.6, 0.4),
            total_liquidity=1_000.0,
            predicted_gain=5.0,
            now=T0,
        )

        assert len(received) == 1
        event = received[0]
        assert event.strategy_id == "s1"  # type: ignore[attr-defined]
        assert event.transfer_count == 1  # type: ignore[attr-defined]

    def test_plan_uses_min_transfer_size(self, settings: EngineSettings) -> None:
        executor = _make_executor(settings, _Transfers())
        plan = executor.plan(_make_strategy(), (0.5, 0.5), (0.505, 0.495), 1_000.0)
        assert plan == []
        plan = executor.plan(_make_strategy(), (0.5, 0.5), (0.6, 0.4), 1_000.0)
        assert plan == [TransferInstruction("venue2", "venue1", pytest.approx(100.0))]
