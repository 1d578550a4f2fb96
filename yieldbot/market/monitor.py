"""MarketConditionMonitor — asset별 시장 상태 평가.

가격/거래량 샘플을 고정 길이 ring buffer에 누적하고, 변동성·추세·유동성과
외부 리스크 점수를 결합해 복합 리스크 점수와 시장 심리 플래그를 산출합니다.

Volatility:
    vol_bps = pstdev(buffer) / mean(buffer) * 10_000   (샘플 < 2 → 0)

Composite risk (0~100):
    risk = 0.5 * external + 0.3 * vol_component + 0.2 * liquidity_component

Rules Applied:
    - #10 Python Standards: Modern typing, named constants
    - #12 Data Engineering: numpy 통계, UTC datetime
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from yieldbot.core.events import MarketSnapshotUpdated
from yieldbot.core.ring_buffer import RingBuffer
from yieldbot.market.models import MarketSnapshot, VenueMetrics

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from yieldbot.config.settings import EngineSettings
    from yieldbot.core.events import EventBus
    from yieldbot.core.ports import PriceOracle, RiskOracle, VenueDataSource
    from yieldbot.market.models import MarketSample

# ── Constants ─────────────────────────────────────────────────────

_BPS = 10_000.0
_MIN_VOL_SAMPLES = 2
_RISK_MAX = 100.0
_EXTERNAL_RISK_WEIGHT = 0.5
_VOLATILITY_RISK_WEIGHT = 0.3
_LIQUIDITY_RISK_WEIGHT = 0.2


# ── Pure helpers ──────────────────────────────────────────────────


def compute_volatility_bps(prices: Sequence[float]) -> float:
    """모표준편차 / 평균 (bps). 샘플 < 2 또는 평균 0이면 0.0."""
    if len(prices) < _MIN_VOL_SAMPLES:
        return 0.0
    arr = np.asarray(prices, dtype=np.float64)
    mean = float(arr.mean())
    if mean <= 0.0:
        return 0.0
    return float(arr.std(ddof=0)) / mean * _BPS


def compute_trend_bps(prices: Sequence[float]) -> float:
    """버퍼 첫 가격 대비 최신 가격 변화 (bps)."""
    if len(prices) < _MIN_VOL_SAMPLES or prices[0] <= 0.0:
        return 0.0
    return (prices[-1] - prices[0]) / prices[0] * _BPS


def composite_risk_score(
    external_risk: float,
    volatility_bps: float,
    liquidity_depth: float | None,
    *,
    volatility_ceiling_bps: float,
    reference_liquidity: float,
) -> float:
    """외부 리스크 + 변동성 + 유동성 결합 점수 (0~100).

    가중 평균이 외부 리스크보다 낮으면 외부 리스크를 그대로 사용합니다 (하한).
    liquidity_depth가 None(미관측)이면 유동성 요소는 0으로 봅니다.
    """
    vol_component = min(volatility_bps / volatility_ceiling_bps * _RISK_MAX, _RISK_MAX)
    if liquidity_depth is None:
        liq_component = 0.0
    else:
        liq_component = max(0.0, 1.0 - liquidity_depth / reference_liquidity) * _RISK_MAX
    score = (
        _EXTERNAL_RISK_WEIGHT * external_risk
        + _VOLATILITY_RISK_WEIGHT * vol_component
        + _LIQUIDITY_RISK_WEIGHT * liq_component
    )
    return float(np.clip(max(score, external_risk), 0.0, _RISK_MAX))


# ── MarketConditionMonitor ────────────────────────────────────────


class MarketConditionMonitor:
    """asset별 시장 상태 모니터.

    마지막 snapshot과 가격 ring buffer 외에는 상태를 보관하지 않습니다.

    Args:
        settings: EngineSettings
        price_oracle: 샘플이 없을 때 가격을 읽을 오라클
        risk_oracle: 외부 리스크 점수 오라클
        venue_source: venue 지표 제공자 (None이면 venue 지표 없음)
        bus: snapshot 갱신 알림을 받을 EventBus
        clock: 현재 시각 제공 함수 (테스트 주입용)
    """

    def __init__(
        self,
        settings: EngineSettings,
        price_oracle: PriceOracle,
        risk_oracle: RiskOracle,
        venue_source: VenueDataSource | None = None,
        bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._price_oracle = price_oracle
        self._risk_oracle = risk_oracle
        self._venue_source = venue_source
        self._bus = bus
        self._clock = clock or (lambda: datetime.now(UTC))
        self._buffers: dict[str, RingBuffer[float]] = {}
        self._snapshots: dict[str, MarketSnapshot] = {}

    # ── Public API ────────────────────────────────────────────────

    def refresh(
        self,
        asset: str,
        samples: Sequence[MarketSample] = (),
        venues: Sequence[str] = (),
    ) -> MarketSnapshot:
        """최신 관측치를 반영해 asset snapshot을 재계산합니다.

        Args:
            asset: 대상 asset
            samples: 새 가격/거래량 샘플 (비어 있으면 오라클 가격 1건 사용)
            venues: venue 지표를 수집할 venue 목록

        Returns:
            새 MarketSnapshot (항상 생성됨)
        """
        buffer = self._buffer_for(asset)
        snapshot = self._compute(asset, buffer, samples, venues)
        self._store(snapshot)
        return snapshot

    def refresh_many(
        self,
        requests: Mapping[str, tuple[Sequence[MarketSample], Sequence[str]]],
        max_workers: int | None = None,
    ) -> dict[str, MarketSnapshot]:
        """여러 asset을 갱신합니다.

        asset 간 데이터 의존이 없으므로 worker > 1이면 thread pool로 병렬 계산하되,
        저장/알림은 asset 이름 순으로 수행해 완료 순서와 무관하게 결정적입니다.

        Args:
            requests: asset → (samples, venues)
            max_workers: worker 수 (None이면 settings.refresh_workers)

        Returns:
            asset 이름 순으로 정렬된 asset → MarketSnapshot
        """
        assets = sorted(requests)
        buffers = {asset: self._buffer_for(asset) for asset in assets}
        workers = max_workers if max_workers is not None else self._settings.refresh_workers

        if workers > 1 and len(assets) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {
                    asset: pool.submit(self._compute, asset, buffers[asset], *requests[asset])
                    for asset in assets
                }
                computed = {asset: futures[asset].result() for asset in assets}
        else:
            computed = {
                asset: self._compute(asset, buffers[asset], *requests[asset]) for asset in assets
            }

        for asset in assets:
            self._store(computed[asset])
        return computed

    def snapshot(self, asset: str) -> MarketSnapshot | None:
        """asset의 마지막 snapshot (없으면 None)."""
        return self._snapshots.get(asset)

    def snapshots(self) -> dict[str, MarketSnapshot]:
        """모든 asset의 마지막 snapshot (읽기 전용 복사본)."""
        return dict(self._snapshots)

    def buffered_prices(self, asset: str) -> list[float]:
        """asset 가격 버퍼 (오래된 순)."""
        buffer = self._buffers.get(asset)
        return buffer.to_list() if buffer is not None else []

    # ── Private ──────────────────────────────────────────────────

    def _buffer_for(self, asset: str) -> RingBuffer[float]:
        buffer = self._buffers.get(asset)
        if buffer is None:
            buffer = RingBuffer[float](self._settings.price_buffer_size)
            self._buffers[asset] = buffer
        return buffer

    def _compute(
        self,
        asset: str,
        buffer: RingBuffer[float],
        samples: Sequence[MarketSample],
        venues: Sequence[str],
    ) -> MarketSnapshot:
        """버퍼 갱신 + snapshot 계산 (asset 단위, 다른 asset 상태 미접근)."""
        if samples:
            buffer.extend([s.price for s in samples])
            volume = sum(s.volume for s in samples)
            sample_depths = [s.liquidity_depth for s in samples if s.liquidity_depth is not None]
        else:
            buffer.append(self._price_oracle.get_price(asset))
            volume = 0.0
            sample_depths = []

        venue_metrics = self._collect_venue_metrics(asset, venues)

        prices = buffer.to_list()
        volatility = compute_volatility_bps(prices)
        trend = compute_trend_bps(prices)

        depth: float | None
        if sample_depths:
            depth = sample_depths[-1]
        elif venue_metrics:
            depth = sum(m.liquidity_depth for m in venue_metrics.values())
        else:
            depth = None

        if volume == 0.0 and venue_metrics:
            volume = sum(m.trading_volume for m in venue_metrics.values())

        yields = [m.current_yield for m in venue_metrics.values()]
        yield_spread = max(yields) - min(yields) if yields else 0.0

        external = float(self._risk_oracle.get_risk_score(asset))
        risk = composite_risk_score(
            external,
            volatility,
            depth,
            volatility_ceiling_bps=self._settings.emergency_volatility_bps,
            reference_liquidity=self._settings.reference_liquidity,
        )

        trend_threshold = self._settings.trend_threshold_bps
        return MarketSnapshot(
            asset=asset,
            price=prices[-1],
            volatility_bps=volatility,
            trend_bps=trend,
            liquidity_depth=depth or 0.0,
            trading_volume=volume,
            yield_spread=yield_spread,
            risk_score=risk,
            external_risk_score=external,
            is_bullish=trend >= trend_threshold,
            is_bearish=trend <= -trend_threshold,
            is_high_volatility=volatility >= self._settings.high_volatility_bps,
            venues=venue_metrics,
            sample_count=len(prices),
            timestamp=self._clock(),
        )

    def _collect_venue_metrics(self, asset: str, venues: Sequence[str]) -> dict[str, VenueMetrics]:
        if self._venue_source is None:
            return {}
        metrics: dict[str, VenueMetrics] = {}
        for venue in venues:
            if venue in metrics:
                continue
            metrics[venue] = self._venue_source.get_venue_metrics(asset, venue)
        return metrics

    def _store(self, snapshot: MarketSnapshot) -> None:
        self._snapshots[snapshot.asset] = snapshot
        logger.debug(
            "Snapshot [{}]: risk={:.1f} vol={:.0f}bps trend={:.0f}bps",
            snapshot.asset,
            snapshot.risk_score,
            snapshot.volatility_bps,
            snapshot.trend_bps,
        )
        if self._bus is not None:
            self._bus.publish(
                MarketSnapshotUpdated(
                    asset=snapshot.asset,
                    risk_score=snapshot.risk_score,
                    volatility_bps=snapshot.volatility_bps,
                    source="MarketConditionMonitor",
                )
            )
