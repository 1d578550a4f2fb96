"""RebalanceGate — 리밸런스 실행 여부 판정.

정상 경로는 cooldown 경과 AND 총 이탈도 >= 임계값일 때만 실행합니다.
긴급 경로(risk >= 긴급 임계값)는 cooldown/임계값을 모두 우회하고
optimizer 결과 대신 고정 safe allocation으로 향합니다.

GateRejection은 예외가 아니라 GateDecision(should_execute=False) 값입니다.

Rules Applied:
    - #10 Python Standards: Modern typing, named constants
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from yieldbot.market.models import VenueClass

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from yieldbot.config.settings import EngineSettings
    from yieldbot.market.models import MarketSnapshot
    from yieldbot.strategy.models import Strategy
    from yieldbot.strategy.optimizer import AllocationOptimizer, AllocationVector

# ── Constants ─────────────────────────────────────────────────────

_NOOP_DEVIATION = 1e-9


@dataclass(frozen=True)
class GateDecision:
    """게이트 판정 결과.

    Attributes:
        should_execute: 실행 여부
        target: 실행 시 목표 배분 (정상 경로 = optimizer, 긴급 = safe allocation)
        deviation: current 대비 target 총 이탈도
        emergency: 긴급 경로 여부
        reason: 판정 사유 (로그/운영 표시용)
    """

    should_execute: bool
    target: AllocationVector
    deviation: float
    emergency: bool
    reason: str


def deviation(current: Sequence[float], target: Sequence[float]) -> float:
    """Σ |current_i − target_i|."""
    return sum(abs(c - t) for c, t in zip(current, target, strict=True))


class RebalanceGate:
    """리밸런스 게이트.

    Args:
        settings: EngineSettings (emergency_risk_threshold, safe_stable_weight)
        optimizer: 정상 경로 목표 배분 계산기
    """

    def __init__(self, settings: EngineSettings, optimizer: AllocationOptimizer) -> None:
        self._settings = settings
        self._optimizer = optimizer

    @property
    def optimizer(self) -> AllocationOptimizer:
        """정상 경로 optimizer."""
        return self._optimizer

    # ── Predicates ────────────────────────────────────────────────

    @staticmethod
    def cooldown_elapsed(strategy: Strategy, now: datetime) -> bool:
        """now >= last_execution + cooldown (실행 이력 없으면 True)."""
        eligible_at = strategy.next_eligible_at()
        return eligible_at is None or now >= eligible_at

    def should_rebalance(
        self,
        strategy: Strategy,
        current: Sequence[float],
        target: Sequence[float],
        now: datetime,
    ) -> bool:
        """cooldown 경과 AND 이탈도 >= deviation_threshold.

        cooldown은 절대 조건입니다 (이탈도 크기와 무관).
        """
        if not self.cooldown_elapsed(strategy, now):
            return False
        return deviation(current, target) >= strategy.definition.deviation_threshold

    def emergency_threshold(self, strategy: Strategy) -> float:
        """전략별 override 또는 전역 긴급 리스크 임계값."""
        override = strategy.definition.emergency_threshold
        return override if override is not None else self._settings.emergency_risk_threshold

    def is_emergency(self, strategy: Strategy, risk_score: float) -> bool:
        """risk_score >= 긴급 임계값."""
        return risk_score >= self.emergency_threshold(strategy)

    # ── Safe Allocation ───────────────────────────────────────────

    def safe_allocation(self, strategy: Strategy, snapshot: MarketSnapshot) -> AllocationVector:
        """긴급 시 고정 safe allocation.

        safe_stable_weight를 STABLE venue들에 균등 배분하고 (STABLE이 없으면
        리스크 최저 venue), 나머지를 다른 venue들에 균등 배분합니다.
        전략의 min/max bound는 적용하지 않습니다.
        """
        venues = strategy.venues
        metrics = [snapshot.venue(name) for name in venues]

        safe = [
            i
            for i, m in enumerate(metrics)
            if m is not None and m.venue_class == VenueClass.STABLE
        ]
        if not safe:
            known = [(m.risk_score, i) for i, m in enumerate(metrics) if m is not None]
            safe = [min(known)[1]] if known else [0]

        others = [i for i in range(len(venues)) if i not in safe]
        safe_weight = self._settings.safe_stable_weight if others else 1.0

        weights = [0.0] * len(venues)
        for i in safe:
            weights[i] = safe_weight / len(safe)
        for i in others:
            weights[i] = (1.0 - safe_weight) / len(others)

        largest = max(range(len(weights)), key=weights.__getitem__)
        weights[largest] += 1.0 - sum(weights)
        return tuple(weights)

    # ── Decision ──────────────────────────────────────────────────

    def evaluate(
        self,
        strategy: Strategy,
        current: Sequence[float],
        snapshot: MarketSnapshot,
        now: datetime,
        *,
        force_emergency: bool = False,
    ) -> GateDecision:
        """정상/긴급 경로를 결합한 최종 판정.

        Args:
            strategy: 대상 전략
            current: 현재 배분
            snapshot: 전략 asset snapshot
            now: 판정 시각
            force_emergency: 전역 긴급 모드 등으로 긴급 경로 강제

        Returns:
            GateDecision
        """
        if not strategy.is_active:
            return GateDecision(False, strategy.target, 0.0, False, "inactive")

        if force_emergency or self.is_emergency(strategy, snapshot.risk_score):
            target = self.safe_allocation(strategy, snapshot)
            dev = deviation(current, target)
            if dev <= _NOOP_DEVIATION:
                return GateDecision(False, target, dev, True, "already at safe allocation")
            return GateDecision(True, target, dev, True, "emergency")

        target = self._optimizer.compute_target(strategy, snapshot)
        dev = deviation(current, target)
        if not self.cooldown_elapsed(strategy, now):
            return GateDecision(False, target, dev, False, "cooldown")
        if dev < strategy.definition.deviation_threshold:
            return GateDecision(False, target, dev, False, "below threshold")
        return GateDecision(True, target, dev, False, "deviation")
