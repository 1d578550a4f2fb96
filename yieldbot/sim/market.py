"""SimulatedMarket — in-memory paper 협력자.

가격/리스크 오라클, venue 지표, 가격 피드, venue transfer, 현재 배분 조회,
수익 side action을 하나의 결정적(seed 고정) 시뮬레이터로 제공합니다.
CLI simulate 명령과 테스트에서 실 연동 대신 사용합니다.

Price process:
    p_{t+1} = p_t * exp(N(0, price_volatility))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from yieldbot.core.exceptions import TransferError
from yieldbot.market.models import MarketSample, VenueClass, VenueMetrics

if TYPE_CHECKING:
    from collections.abc import Mapping

    from yieldbot.strategy.models import Strategy

# ── Constants ─────────────────────────────────────────────────────

_BPS = 10_000.0
_PERIODS_PER_YEAR = 365.0 * 24.0
_MAX_RISK = 100.0


@dataclass
class SimVenue:
    """시뮬레이션 venue 상태 (asset 단위)."""

    name: str
    venue_class: VenueClass
    balance: float
    current_yield: float
    projected_yield: float = 0.0
    yield_volatility: float = 0.0
    risk_score: float = 10.0
    liquidity_depth: float = 1_000_000.0
    utilization: float = 0.5
    price_deviation: float = 0.0
    trading_volume: float = 0.0

    def to_metrics(self) -> VenueMetrics:
        """현재 상태의 VenueMetrics."""
        return VenueMetrics(
            venue=self.name,
            venue_class=self.venue_class,
            current_yield=self.current_yield,
            projected_yield=self.projected_yield,
            yield_volatility=self.yield_volatility,
            risk_score=self.risk_score,
            liquidity_depth=self.liquidity_depth,
            utilization=self.utilization,
            price_deviation=self.price_deviation,
            trading_volume=self.trading_volume,
        )


@dataclass
class SimAsset:
    """시뮬레이션 asset 상태."""

    price: float
    risk_score: float
    venues: dict[str, SimVenue] = field(default_factory=dict)
    pending: list[MarketSample] = field(default_factory=list)
    distributed_revenue: float = 0.0


class SimulatedMarket:
    """결정적 paper market.

    Args:
        seed: numpy RNG seed
        price_volatility: step당 로그 가격 변동 표준편차
        slippage_bps: transfer 평균 슬리피지 (bps)
        failure_rate: transfer 실패 확률
        start: 시뮬레이션 시작 시각
        step_interval: step 간격
    """

    def __init__(
        self,
        seed: int = 42,
        price_volatility: float = 0.01,
        slippage_bps: float = 5.0,
        failure_rate: float = 0.0,
        start: datetime | None = None,
        step_interval: timedelta = timedelta(hours=1),
    ) -> None:
        self._rng = np.random.default_rng(seed)
        self._price_volatility = price_volatility
        self._slippage_bps = slippage_bps
        self._failure_rate = failure_rate
        self._now = start or datetime(2024, 1, 1, tzinfo=UTC)
        self._step_interval = step_interval
        self._assets: dict[str, SimAsset] = {}
        self.transfer_count = 0
        self.compound_count = 0

    @property
    def now(self) -> datetime:
        """시뮬레이션 현재 시각."""
        return self._now

    # ── Setup ─────────────────────────────────────────────────────

    def add_asset(
        self,
        asset: str,
        price: float,
        venues: Mapping[str, SimVenue] | list[SimVenue],
        risk_score: float = 20.0,
    ) -> None:
        """asset과 venue 상태 등록."""
        items = venues.values() if isinstance(venues, dict) else venues
        self._assets[asset] = SimAsset(
            price=price,
            risk_score=risk_score,
            venues={v.name: v for v in items},
        )

    def venue(self, asset: str, name: str) -> SimVenue:
        """venue 상태 조회 (테스트/시나리오 조작용)."""
        return self._asset(asset).venues[name]

    def set_risk(self, asset: str, risk_score: float) -> None:
        """외부 리스크 점수 설정 (shock 시나리오)."""
        self._asset(asset).risk_score = float(np.clip(risk_score, 0.0, _MAX_RISK))

    def set_failure_rate(self, failure_rate: float) -> None:
        """transfer 실패 확률 변경."""
        self._failure_rate = failure_rate

    def revenue_of(self, asset: str) -> float:
        """asset의 누적 분배 수익."""
        return self._asset(asset).distributed_revenue

    # ── Simulation ────────────────────────────────────────────────

    def step(self) -> datetime:
        """가격/지표를 1 step 진행하고 샘플을 피드 큐에 적재."""
        self._now += self._step_interval
        for state in self._assets.values():
            shock = float(self._rng.normal(0.0, self._price_volatility))
            state.price *= float(np.exp(shock))
            volume = 0.0
            for venue in state.venues.values():
                drift = float(self._rng.normal(0.0, max(venue.yield_volatility, 1e-4)))
                venue.current_yield = max(0.0, venue.current_yield + drift * 0.1)
                turnover = float(self._rng.normal(venue.liquidity_depth * 0.01, 1.0))
                venue.trading_volume = abs(turnover)
                venue.price_deviation = abs(float(self._rng.normal(0.0, 0.002)))
                volume += venue.trading_volume
            depth = sum(v.liquidity_depth for v in state.venues.values())
            state.pending.append(
                MarketSample(
                    price=state.price, volume=volume, liquidity_depth=depth, timestamp=self._now
                )
            )
        return self._now

    # ── PriceOracle / RiskOracle / VenueDataSource / MarketFeed ───

    def get_price(self, asset: str) -> float:
        return self._asset(asset).price

    def get_risk_score(self, asset: str) -> float:
        return self._asset(asset).risk_score

    def get_venue_metrics(self, asset: str, venue: str) -> VenueMetrics:
        return self._asset(asset).venues[venue].to_metrics()

    def latest_samples(self, asset: str) -> list[MarketSample]:
        state = self._asset(asset)
        samples, state.pending = state.pending, []
        return samples

    # ── VenueTransfer ─────────────────────────────────────────────

    def transfer_between_venues(
        self, asset: str, amount: float, from_venue: str, to_venue: str
    ) -> float:
        """balance 이동 후 실현 슬리피지 반환.

        Raises:
            TransferError: 잔고 부족, 미등록 venue, 확률적 실패
        """
        state = self._asset(asset)
        ctx: dict[str, object] = {"asset": asset, "from": from_venue, "to": to_venue}
        if from_venue not in state.venues or to_venue not in state.venues:
            msg = "Unknown venue"
            raise TransferError(msg, context=ctx)
        src = state.venues[from_venue]
        if src.balance + 1e-9 < amount:
            msg = f"Insufficient balance {src.balance:.2f} < {amount:.2f}"
            raise TransferError(msg, context=ctx)
        if self._failure_rate > 0 and float(self._rng.random()) < self._failure_rate:
            msg = "Venue rejected transfer"
            raise TransferError(msg, context=ctx)

        slippage = abs(float(self._rng.normal(self._slippage_bps, self._slippage_bps / 4))) / _BPS
        src.balance -= amount
        state.venues[to_venue].balance += amount * (1.0 - slippage)
        self.transfer_count += 1
        return slippage

    # ── AllocationSource ──────────────────────────────────────────

    def current_allocation(self, strategy: Strategy) -> tuple[float, ...]:
        balances = self._balances(strategy)
        total = sum(balances)
        if total <= 0.0:
            return strategy.target
        return tuple(b / total for b in balances)

    def total_liquidity(self, strategy: Strategy) -> float:
        return sum(self._balances(strategy))

    # ── YieldActions ──────────────────────────────────────────────

    def distribute_revenue(self, asset: str) -> None:
        state = self._asset(asset)
        revenue = sum(
            v.balance * v.current_yield / _PERIODS_PER_YEAR for v in state.venues.values()
        )
        state.distributed_revenue += revenue
        logger.debug("Sim revenue distributed [{}]: {:.4f}", asset, revenue)

    def compound_yield(self) -> None:
        for state in self._assets.values():
            for venue in state.venues.values():
                venue.balance *= 1.0 + venue.current_yield / _PERIODS_PER_YEAR
        self.compound_count += 1

    # ── Private ──────────────────────────────────────────────────

    def _asset(self, asset: str) -> SimAsset:
        state = self._assets.get(asset)
        if state is None:
            msg = f"Unknown asset '{asset}'"
            raise KeyError(msg)
        return state

    def _balances(self, strategy: Strategy) -> list[float]:
        venues = self._asset(strategy.asset).venues
        return [venues[name].balance if name in venues else 0.0 for name in strategy.venues]
