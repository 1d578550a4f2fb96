"""AllocationOptimizer — 전략별 목표 배분 계산.

5가지 점수 알고리즘(Yield, Risk, Liquidity, Arbitrage, Dynamic Hedging)을
module-level dispatch table로 선택하고, 공통 후처리(clamp → renormalize)로
합계 1.0 배분 벡터를 만듭니다. 모든 함수는 side effect 없는 pure function입니다.

Postcondition:
    sum(result) == 1.0 (residual은 최대 비중 venue에 흡수)
    모든 점수가 0이면 정적 target을 그대로 반환

Rules Applied:
    - #10 Python Standards: Modern typing, named constants
    - #12 Data Engineering: numpy vectorization
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeAlias

import numpy as np
import numpy.typing as npt
from loguru import logger

from yieldbot.market.models import VenueClass
from yieldbot.strategy.models import ScoringAlgorithm

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from yieldbot.config.settings import EngineSettings
    from yieldbot.market.models import MarketSnapshot, VenueMetrics
    from yieldbot.strategy.models import Strategy, StrategyDefinition

AllocationVector: TypeAlias = tuple[float, ...]
Scorer: TypeAlias = (
    "Callable[[StrategyDefinition, MarketSnapshot, EngineSettings], npt.NDArray[np.float64]]"
)

# ── Constants ─────────────────────────────────────────────────────

_RISK_FLOOR = 1.0
_SUM_TOLERANCE = 1e-12
_MAX_NORMALIZE_PASSES = 8
_BULLISH_GROWTH_MULTIPLIER = 1.2
_BEARISH_STABLE_MULTIPLIER = 1.1
_HIGH_VOL_RISK_MULTIPLIER = 0.7


# ── Scorers (Module-level pure functions) ─────────────────────────


def _venue_metrics(
    definition: StrategyDefinition, snapshot: MarketSnapshot
) -> list[VenueMetrics | None]:
    return [snapshot.venue(name) for name in definition.venues]


def score_yield(
    definition: StrategyDefinition,
    snapshot: MarketSnapshot,
    settings: EngineSettings,
) -> npt.NDArray[np.float64]:
    """(current + projected) / (1 + yield volatility)."""
    return np.array(
        [
            (m.current_yield + m.projected_yield) / (1.0 + m.yield_volatility) if m else 0.0
            for m in _venue_metrics(definition, snapshot)
        ],
        dtype=np.float64,
    )


def score_risk(
    definition: StrategyDefinition,
    snapshot: MarketSnapshot,
    settings: EngineSettings,
) -> npt.NDArray[np.float64]:
    """venue 리스크 역수 (risk → 0일 때 floor로 bound) + 집중도 상한."""
    scores = np.array(
        [
            1.0 / max(m.risk_score, _RISK_FLOOR) if m else 0.0
            for m in _venue_metrics(definition, snapshot)
        ],
        dtype=np.float64,
    )
    total = float(scores.sum())
    if total <= 0.0:
        return scores
    return cap_concentration(scores / total, settings.max_concentration)


def score_liquidity(
    definition: StrategyDefinition,
    snapshot: MarketSnapshot,
    settings: EngineSettings,
) -> npt.NDArray[np.float64]:
    """liquidity depth × (1 − utilization)."""
    return np.array(
        [
            m.liquidity_depth * (1.0 - m.utilization) if m else 0.0
            for m in _venue_metrics(definition, snapshot)
        ],
        dtype=np.float64,
    )


def score_arbitrage(
    definition: StrategyDefinition,
    snapshot: MarketSnapshot,
    settings: EngineSettings,
) -> npt.NDArray[np.float64]:
    """price deviation × trading volume."""
    return np.array(
        [
            m.price_deviation * m.trading_volume if m else 0.0
            for m in _venue_metrics(definition, snapshot)
        ],
        dtype=np.float64,
    )


def score_dynamic_hedging(
    definition: StrategyDefinition,
    snapshot: MarketSnapshot,
    settings: EngineSettings,
) -> npt.NDArray[np.float64]:
    """정적 target을 시장 심리 플래그로 조정.

    bullish → GROWTH ×1.2, bearish → STABLE ×1.1, high volatility → HIGH_RISK ×0.7.
    snapshot에 없는 venue는 multiplier 1.0.
    """
    scores = np.asarray(definition.target, dtype=np.float64).copy()
    for i, m in enumerate(_venue_metrics(definition, snapshot)):
        if m is None:
            continue
        if snapshot.is_bullish and m.venue_class == VenueClass.GROWTH:
            scores[i] *= _BULLISH_GROWTH_MULTIPLIER
        if snapshot.is_bearish and m.venue_class == VenueClass.STABLE:
            scores[i] *= _BEARISH_STABLE_MULTIPLIER
        if snapshot.is_high_volatility and m.venue_class == VenueClass.HIGH_RISK:
            scores[i] *= _HIGH_VOL_RISK_MULTIPLIER
    return scores


SCORERS: dict[ScoringAlgorithm, Scorer] = {
    ScoringAlgorithm.YIELD_OPTIMIZATION: score_yield,
    ScoringAlgorithm.RISK_MINIMIZATION: score_risk,
    ScoringAlgorithm.LIQUIDITY_MAXIMIZATION: score_liquidity,
    ScoringAlgorithm.ARBITRAGE_CAPTURE: score_arbitrage,
    ScoringAlgorithm.DYNAMIC_HEDGING: score_dynamic_hedging,
}


# ── Normalization ─────────────────────────────────────────────────


def cap_concentration(
    weights: npt.NDArray[np.float64], cap: float
) -> npt.NDArray[np.float64]:
    """단일 비중을 cap 이하로 제한하고 초과분을 미제한 venue에 비례 재분배.

    n * cap < 1이면 완전 충족이 불가능하므로 cap만 적용한 결과를 반환합니다.
    """
    w = weights.copy()
    for _ in range(_MAX_NORMALIZE_PASSES):
        over = w > cap + _SUM_TOLERANCE
        if not over.any():
            break
        excess = float((w[over] - cap).sum())
        w[over] = cap
        free = ~over & (w < cap)
        free_total = float(w[free].sum())
        if free_total <= 0.0:
            break
        w[free] += excess * w[free] / free_total
    return w


def clamp_and_normalize(
    weights: npt.NDArray[np.float64],
    lower: Sequence[float],
    upper: Sequence[float],
) -> AllocationVector:
    """[min, max] clamp 후 합계 1.0으로 재정규화.

    잔차는 bound 여유(room)에 비례해 분배하고, 마지막 부동소수 잔차는
    최대 비중 venue에 흡수합니다.

    Args:
        weights: 합계 1.0으로 정규화된 가중치
        lower: venue별 최소 비중
        upper: venue별 최대 비중

    Returns:
        합계 1.0 배분 벡터
    """
    lo = np.asarray(lower, dtype=np.float64)
    hi = np.asarray(upper, dtype=np.float64)
    w = np.clip(weights, lo, hi)

    for _ in range(_MAX_NORMALIZE_PASSES):
        residual = 1.0 - float(w.sum())
        if abs(residual) <= _SUM_TOLERANCE:
            break
        room = hi - w if residual > 0 else w - lo
        room_total = float(room.sum())
        if room_total <= _SUM_TOLERANCE:
            break
        w = np.clip(w + residual * room / room_total, lo, hi)

    largest = int(np.argmax(w))
    w[largest] += 1.0 - float(w.sum())
    return tuple(float(x) for x in w)


# ── AllocationOptimizer ───────────────────────────────────────────


class AllocationOptimizer:
    """전략 알고리즘별 목표 배분 계산기.

    Args:
        settings: EngineSettings (max_concentration 등)
    """

    def __init__(self, settings: EngineSettings) -> None:
        self._settings = settings

    def compute_target(self, strategy: Strategy, snapshot: MarketSnapshot) -> AllocationVector:
        """전략의 목표 배분 계산.

        Args:
            strategy: 대상 전략
            snapshot: 전략 asset의 최신 시장 snapshot

        Returns:
            strategy.venues 순서의 배분 벡터 (합계 1.0)
        """
        definition = strategy.definition
        scorer = SCORERS[definition.algorithm]
        scores = scorer(definition, snapshot, self._settings)
        scores = np.where(np.isfinite(scores) & (scores > 0.0), scores, 0.0)

        total = float(scores.sum())
        if total <= 0.0:
            logger.debug(
                "[{}] all {} scores zero, keeping static target",
                definition.strategy_id,
                definition.algorithm,
            )
            return definition.target

        return clamp_and_normalize(
            scores / total, definition.min_allocation, definition.max_allocation
        )

    @staticmethod
    def expected_gain(
        strategy: Strategy,
        current: Sequence[float],
        target: Sequence[float],
        snapshot: MarketSnapshot,
        total_liquidity: float,
    ) -> float:
        """목표 배분으로 이동 시 예상 이득.

        Σ (target_i − current_i) · current_yield_i · total_liquidity
        """
        gain = 0.0
        for i, name in enumerate(strategy.venues):
            metrics = snapshot.venue(name)
            if metrics is None:
                continue
            gain += (target[i] - current[i]) * metrics.current_yield * total_liquidity
        return gain
