"""Strategy Domain Models.

전략 정의(검증된 immutable 설정)와 런타임 레코드, 실행 결과 컨테이너를 정의합니다.

Invariants:
    len(venues) == len(target) == len(min_allocation) == len(max_allocation)
    sum(target) == 1.0  (fixed-point exact, 1e18 scale)
    min[i] <= target[i] <= max[i]

Rules Applied:
    - #11 Pydantic Modeling: frozen=True, model_validator
    - #10 Python Standards: StrEnum, dataclass
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ── Constants ─────────────────────────────────────────────────────

FIXED_POINT_SCALE = 10**18
_MAX_TOTAL_DEVIATION = 2.0


def to_fixed_point(fraction: float) -> int:
    """float 비율 → 1e18 스케일 정수 (십진 표현 기준, 이진 오차 제거)."""
    return int((Decimal(str(fraction)) * FIXED_POINT_SCALE).to_integral_value())


def sums_to_one(fractions: tuple[float, ...] | list[float]) -> bool:
    """fixed-point 기준 정확히 1.0인지 여부."""
    return sum(to_fixed_point(f) for f in fractions) == FIXED_POINT_SCALE


class ScoringAlgorithm(StrEnum):
    """목표 배분 점수 알고리즘.

    Attributes:
        YIELD_OPTIMIZATION: (현재+예상 수익률) / (1 + 수익률 변동성)
        RISK_MINIMIZATION: venue 리스크 역수 + 집중도 상한
        LIQUIDITY_MAXIMIZATION: 유동성 depth × (1 − 이용률)
        ARBITRAGE_CAPTURE: 가격 괴리 × 거래량
        DYNAMIC_HEDGING: 정적 목표를 시장 심리로 조정
    """

    YIELD_OPTIMIZATION = "yield_optimization"
    RISK_MINIMIZATION = "risk_minimization"
    LIQUIDITY_MAXIMIZATION = "liquidity_maximization"
    ARBITRAGE_CAPTURE = "arbitrage_capture"
    DYNAMIC_HEDGING = "dynamic_hedging"


class StrategyDefinition(BaseModel):
    """전략 정의.

    operator가 생성/수정하는 검증된 설정입니다. 수정은 새 정의로 교체합니다.

    Attributes:
        strategy_id: 전략 식별자
        asset: 관리 대상 asset
        algorithm: 점수 알고리즘
        venues: 대상 venue 목록 (순서가 배분 벡터 순서)
        target: 정적 목표 배분 (합 = 1.0)
        min_allocation: venue별 최소 비중
        max_allocation: venue별 최대 비중
        deviation_threshold: 리밸런스 이탈 임계값 (Σ|current − target|)
        max_slippage: transfer당 허용 실현 슬리피지
        cooldown: 리밸런스 간 최소 간격
        emergency_threshold: 긴급 판정 리스크 점수 (None = 전역 설정)
    """

    model_config = ConfigDict(frozen=True)

    strategy_id: str = Field(min_length=1)
    asset: str = Field(min_length=1)
    algorithm: ScoringAlgorithm = ScoringAlgorithm.YIELD_OPTIMIZATION
    venues: tuple[str, ...] = Field(min_length=1)
    target: tuple[float, ...]
    min_allocation: tuple[float, ...]
    max_allocation: tuple[float, ...]
    deviation_threshold: float = Field(default=0.05, gt=0.0, le=_MAX_TOTAL_DEVIATION)
    max_slippage: float = Field(default=0.01, ge=0.0, le=1.0)
    cooldown: timedelta = Field(default=timedelta(hours=1))
    emergency_threshold: float | None = Field(default=None, ge=0.0, le=100.0)

    @model_validator(mode="after")
    def validate_allocation_arrays(self) -> Self:
        """배분 배열 일관성 검증.

        Raises:
            ValueError: 길이 불일치, 중복 venue, 범위 위반, 합계 != 1.0
        """
        n = len(self.venues)
        lengths = (len(self.target), len(self.min_allocation), len(self.max_allocation))
        if any(length != n for length in lengths):
            msg = (
                f"Allocation arrays must match venue count {n}: "
                f"target={lengths[0]}, min={lengths[1]}, max={lengths[2]}"
            )
            raise ValueError(msg)

        if len(set(self.venues)) != n:
            duplicates = sorted({v for v in self.venues if self.venues.count(v) > 1})
            msg = f"Duplicate venues: {duplicates}"
            raise ValueError(msg)

        if self.cooldown < timedelta(0):
            msg = f"cooldown must be non-negative, got {self.cooldown}"
            raise ValueError(msg)

        for i, venue in enumerate(self.venues):
            lo, tgt, hi = self.min_allocation[i], self.target[i], self.max_allocation[i]
            if not 0.0 <= lo <= tgt <= hi <= 1.0:
                msg = (
                    f"Venue '{venue}' violates 0 <= min <= target <= max <= 1: "
                    f"min={lo}, target={tgt}, max={hi}"
                )
                raise ValueError(msg)

        if not sums_to_one(self.target):
            msg = f"Target allocation must sum to exactly 1.0, got {sum(self.target)!r}"
            raise ValueError(msg)

        return self

    @property
    def n_venues(self) -> int:
        """venue 수."""
        return len(self.venues)


@dataclass
class Strategy:
    """전략 런타임 레코드.

    StrategyRegistry가 독점 소유합니다. 삭제되지 않고 비활성화만 됩니다.
    last_execution / emergency는 RebalanceExecutor만 갱신합니다.

    Attributes:
        definition: 검증된 전략 정의
        last_execution: 마지막 리밸런스 시도 시각 (성공/실패 무관)
        is_active: 활성 여부
        emergency: 마지막 실행이 긴급 경로였는지 여부
        created_at: 생성 시각 (UTC)
    """

    definition: StrategyDefinition
    last_execution: datetime | None = None
    is_active: bool = True
    emergency: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def strategy_id(self) -> str:
        """전략 식별자."""
        return self.definition.strategy_id

    @property
    def asset(self) -> str:
        """관리 대상 asset."""
        return self.definition.asset

    @property
    def algorithm(self) -> ScoringAlgorithm:
        """점수 알고리즘."""
        return self.definition.algorithm

    @property
    def venues(self) -> tuple[str, ...]:
        """대상 venue 목록."""
        return self.definition.venues

    @property
    def target(self) -> tuple[float, ...]:
        """정적 목표 배분."""
        return self.definition.target

    def next_eligible_at(self) -> datetime | None:
        """cooldown 만료 시각 (실행 이력이 없으면 None = 즉시 가능)."""
        if self.last_execution is None:
            return None
        return self.last_execution + self.definition.cooldown


# ── Execution Results ─────────────────────────────────────────────


@dataclass(frozen=True)
class TransferInstruction:
    """계획된 venue 간 이동 1건."""

    source: str
    destination: str
    amount: float


@dataclass(frozen=True)
class TransferLeg:
    """실행된 transfer 1건의 결과.

    Attributes:
        source: 출금 venue
        destination: 입금 venue
        amount: 이동 금액
        slippage: 실현 슬리피지 (실패 시 0.0)
        success: 성공 여부
        error: 실패 메시지
    """

    source: str
    destination: str
    amount: float
    slippage: float = 0.0
    success: bool = True
    error: str | None = None


@dataclass(frozen=True)
class ExecutionRecord:
    """리밸런스 1회 시도의 immutable 기록.

    Attributes:
        strategy_id: 전략 식별자
        asset: asset
        transfers: 시도된 transfer 목록 (순서 보존, 실패 지점까지)
        total_cost: 실행 비용
        predicted_gain: optimizer 예상 이득
        net_benefit: predicted_gain − total_cost
        timestamp: 실행 시각
        success: 모든 transfer 성공 여부
        emergency: 긴급 경로 실행 여부
        error: 실패 사유
    """

    strategy_id: str
    asset: str
    transfers: tuple[TransferLeg, ...]
    total_cost: float
    predicted_gain: float
    net_benefit: float
    timestamp: datetime
    success: bool
    emergency: bool = False
    error: str | None = None

    @property
    def moved_amount(self) -> float:
        """성공한 transfer 금액 합계."""
        return sum(leg.amount for leg in self.transfers if leg.success)

    def to_dict(self) -> dict[str, object]:
        """직렬화용 dict (transfers는 dict 리스트)."""
        return {
            "strategy_id": self.strategy_id,
            "asset": self.asset,
            "transfers": [
                {
                    "source": leg.source,
                    "destination": leg.destination,
                    "amount": leg.amount,
                    "slippage": leg.slippage,
                    "success": leg.success,
                    "error": leg.error,
                }
                for leg in self.transfers
            ],
            "total_cost": self.total_cost,
            "predicted_gain": self.predicted_gain,
            "net_benefit": self.net_benefit,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "emergency": self.emergency,
            "error": self.error,
        }
