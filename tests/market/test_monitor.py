"""Tests for MarketConditionMonitor — 변동성, 리스크, 심리 플래그, 병렬 refresh."""

from __future__ import annotations

from datetime import UTC, datetime

import numpy as np
import pytest

from yieldbot.config.settings import EngineSettings
from yieldbot.core.events import Event, EventBus, EventType
from yieldbot.market.models import MarketSample, VenueClass, VenueMetrics
from yieldbot.market.monitor import (
    MarketConditionMonitor,
    composite_risk_score,
    compute_trend_bps,
    compute_volatility_bps,
)

T0 = datetime(2024, 1, 1, tzinfo=UTC)

# ── Helpers ─────────────────────────────────────────────────────


class _Oracle:
    def __init__(self, price: float = 1.0, risk: float = 20.0) -> None:
        self.price = price
        self.risk = risk
        self.price_calls = 0

    def get_price(self, asset: str) -> float:
        self.price_calls += 1
        return self.price

    def get_risk_score(self, asset: str) -> float:
        return self.risk


class _Venues:
    def get_venue_metrics(self, asset: str, venue: str) -> VenueMetrics:
        yields = {"a": 0.03, "b": 0.08}
        return VenueMetrics(
            venue=venue,
            venue_class=VenueClass.STABLE,
            current_yield=yields[venue],
            liquidity_depth=400_000.0,
            trading_volume=1_000.0,
        )


def _samples(prices: list[float], depth: float | None = None) -> list[MarketSample]:
    return [MarketSample(price=p, volume=10.0, liquidity_depth=depth, timestamp=T0) for p in prices]


def _make_monitor(
    settings: EngineSettings,
    oracle: _Oracle | None = None,
    bus: EventBus | None = None,
) -> MarketConditionMonitor:
    oracle = oracle or _Oracle()
    return MarketConditionMonitor(
        settings, oracle, oracle, venue_source=_Venues(), bus=bus, clock=lambda: T0
    )


# ── Pure helpers ────────────────────────────────────────────────


class TestVolatility:
    def test_fewer_than_two_samples_is_zero(self) -> None:
        assert compute_volatility_bps([]) == 0.0
        assert compute_volatility_bps([100.0]) == 0.0

    def test_population_std_over_mean(self) -> None:
        prices = [100.0, 102.0, 98.0, 100.0]
        expected = float(np.std(prices)) / 100.0 * 10_000
        assert compute_volatility_bps(prices) == pytest.approx(expected)

    def test_constant_prices(self) -> None:
        assert compute_volatility_bps([5.0, 5.0, 5.0]) == 0.0


class TestTrend:
    def test_trend_bps(self) -> None:
        assert compute_trend_bps([100.0, 101.0, 103.0]) == pytest.approx(300.0)

    def test_single_price(self) -> None:
        assert compute_trend_bps([100.0]) == 0.0


class TestCompositeRisk:
    def test_weighted_blend(self) -> None:
        score = composite_risk_score(
            40.0, 1000.0, 500_000.0, volatility_ceiling_bps=2000.0, reference_liquidity=1e6
        )
        # 0.5*40 + 0.3*50 + 0.2*50
        assert score == pytest.approx(45.0)

    def test_unknown_liquidity_contributes_zero(self) -> None:
        score = composite_risk_score(
            40.0, 2000.0, None, volatility_ceiling_bps=2000.0, reference_liquidity=1e6
        )
        # 0.5*40 + 0.3*100 + 0
        assert score == pytest.approx(50.0)

    def test_external_risk_is_floor(self) -> None:
        score = composite_risk_score(
            85.0, 0.0, 2e6, volatility_ceiling_bps=2000.0, reference_liquidity=1e6
        )
        assert score == pytest.approx(85.0)

    def test_clipped_to_100(self) -> None:
        score = composite_risk_score(
            100.0, 1e9, 0.0, volatility_ceiling_bps=2000.0, reference_liquidity=1e6
        )
        assert score == pytest.approx(100.0)


# ── MarketConditionMonitor ──────────────────────────────────────


class TestRefresh:
    def test_no_samples_reads_oracle(self, settings: EngineSettings) -> None:
        oracle = _Oracle(price=1.5)
        monitor = _make_monitor(settings, oracle)
        snap = monitor.refresh("USDC")
        assert oracle.price_calls == 1
        assert snap.price == pytest.approx(1.5)
        assert snap.volatility_bps == 0.0
        assert snap.sample_count == 1

    def test_buffer_bounded(self, settings: EngineSettings) -> None:
        monitor = _make_monitor(settings)
        monitor.refresh("USDC", _samples([1.0 + i * 0.001 for i in range(40)]))
        assert len(monitor.buffered_prices("USDC")) == settings.price_buffer_size

    def test_sentiment_flags(self, settings: EngineSettings) -> None:
        monitor = _make_monitor(settings)
        up = monitor.refresh("UP", _samples([100.0, 101.0, 103.0]))
        down = monitor.refresh("DOWN", _samples([100.0, 99.0, 97.0]))
        assert up.is_bullish and not up.is_bearish
        assert down.is_bearish and not down.is_bullish

    def test_high_volatility_flag(self, settings: EngineSettings) -> None:
        monitor = _make_monitor(settings)
        snap = monitor.refresh("X", _samples([100.0, 120.0, 80.0, 110.0]))
        assert snap.is_high_volatility

    def test_venue_metrics_and_spread(self, settings: EngineSettings) -> None:
        monitor = _make_monitor(settings)
        snap = monitor.refresh("USDC", _samples([1.0]), venues=["a", "b"])
        assert set(snap.venues) == {"a", "b"}
        assert snap.yield_spread == pytest.approx(0.05)
        # depth falls back to venue sum when samples carry none
        assert snap.liquidity_depth == pytest.approx(800_000.0)

    def test_sample_depth_preferred(self, settings: EngineSettings) -> None:
        monitor = _make_monitor(settings)
        snap = monitor.refresh("USDC", _samples([1.0], depth=123.0), venues=["a"])
        assert snap.liquidity_depth == pytest.approx(123.0)

    def test_overwrites_snapshot_and_publishes(self, settings: EngineSettings) -> None:
        bus = EventBus()
        received: list[Event] = []
        bus.subscribe(EventType.SNAPSHOT_UPDATED, received.append)
        monitor = _make_monitor(settings, bus=bus)

        first = monitor.refresh("USDC", _samples([1.0]))
        second = monitor.refresh("USDC", _samples([1.1]))

        assert monitor.snapshot("USDC") is second
        assert monitor.snapshot("USDC") is not first
        assert len(received) == 2


class TestRefreshMany:
    @pytest.mark.parametrize("workers", [1, 4])
    def test_deterministic_order(self, settings: EngineSettings, workers: int) -> None:
        monitor = _make_monitor(settings)
        requests = {
            asset: (_samples([1.0, 1.01]), ["a"]) for asset in ("WETH", "DAI", "USDC", "WBTC")
        }
        result = monitor.refresh_many(requests, max_workers=workers)
        assert list(result) == ["DAI", "USDC", "WBTC", "WETH"]
        assert set(monitor.snapshots()) == set(requests)

    def test_unknown_asset_snapshot_none(self, settings: EngineSettings) -> None:
        assert _make_monitor(settings).snapshot("NOPE") is None
