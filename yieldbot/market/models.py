"""Market Domain Models.

MarketConditionMonitor의 입력 샘플, venue 지표, asset snapshot을 정의합니다.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True, Field constraints
    - #12 Data Engineering: UTC datetime
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class VenueClass(StrEnum):
    """Venue 성향 분류 (DynamicHedging / safe allocation 기준).

    Attributes:
        STABLE: 안정형 (lending market, stable vault)
        GROWTH: 성장형 (AMM LP, liquid staking)
        HIGH_RISK: 고위험 (leveraged vault, 신규 프로토콜)
    """

    STABLE = "stable"
    GROWTH = "growth"
    HIGH_RISK = "high_risk"


class VenueMetrics(BaseModel):
    """Venue별 시장 지표.

    Attributes:
        venue: venue 식별자
        venue_class: 성향 분류
        current_yield: 현재 수익률 (연율, 0.05 = 5%)
        projected_yield: 예상 수익률 (연율)
        yield_volatility: 수익률 변동성
        risk_score: venue 리스크 점수 (0~100)
        liquidity_depth: 인출 가능 유동성 depth
        utilization: 이용률 (0~1)
        price_deviation: 기준가 대비 가격 괴리 (비율)
        trading_volume: 거래량
    """

    model_config = ConfigDict(frozen=True)

    venue: str
    venue_class: VenueClass = VenueClass.STABLE
    current_yield: float = Field(default=0.0, ge=0.0)
    projected_yield: float = Field(default=0.0, ge=0.0)
    yield_volatility: float = Field(default=0.0, ge=0.0)
    risk_score: float = Field(default=0.0, ge=0.0, le=100.0)
    liquidity_depth: float = Field(default=0.0, ge=0.0)
    utilization: float = Field(default=0.0, ge=0.0, le=1.0)
    price_deviation: float = Field(default=0.0, ge=0.0)
    trading_volume: float = Field(default=0.0, ge=0.0)


class MarketSample(BaseModel):
    """가격/거래량 단일 관측치."""

    model_config = ConfigDict(frozen=True)

    price: float = Field(gt=0.0)
    volume: float = Field(default=0.0, ge=0.0)
    liquidity_depth: float | None = Field(default=None, ge=0.0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class MarketSnapshot(BaseModel):
    """asset 단위 시장 상태 snapshot.

    refresh마다 통째로 교체되며, 이력은 보관하지 않습니다.

    Attributes:
        asset: asset 식별자
        price: 최신 가격
        volatility_bps: 버퍼 가격의 모표준편차 / 평균 (bps)
        trend_bps: 버퍼 첫 가격 대비 최신 가격 변화 (bps)
        liquidity_depth: 유동성 depth
        trading_volume: 최신 refresh에서 관측된 거래량 합
        yield_spread: venue 간 최고-최저 current_yield 차이
        risk_score: 복합 리스크 점수 (0~100)
        external_risk_score: 외부 리스크 오라클 점수
        is_bullish / is_bearish / is_high_volatility: 시장 심리 플래그
        venues: venue → VenueMetrics
        sample_count: 버퍼에 보관된 가격 수
        timestamp: 생성 시각 (UTC)
    """

    model_config = ConfigDict(frozen=True)

    asset: str
    price: float = 0.0
    volatility_bps: float = 0.0
    trend_bps: float = 0.0
    liquidity_depth: float = 0.0
    trading_volume: float = 0.0
    yield_spread: float = 0.0
    risk_score: float = Field(default=0.0, ge=0.0, le=100.0)
    external_risk_score: float = 0.0
    is_bullish: bool = False
    is_bearish: bool = False
    is_high_volatility: bool = False
    venues: dict[str, VenueMetrics] = Field(default_factory=dict)
    sample_count: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def venue(self, name: str) -> VenueMetrics | None:
        """venue 지표 조회 (없으면 None)."""
        return self.venues.get(name)
