"""External collaborator Port Protocols.

엔진이 소비하는 외부 협력자의 최소 인터페이스를 정의합니다.
structural subtyping으로 구현체(실 연동, yieldbot.sim 시뮬레이터)가 자동으로 만족합니다.

Ports:
    - PriceOracle / RiskOracle: point-in-time scalar 조회
    - VenueDataSource: venue별 수익률/리스크/유동성 지표
    - MarketFeed: asset별 최신 가격/거래량 샘플
    - VenueTransfer: venue 간 자금 이동 primitive (atomic, blocking)
    - AllocationSource: 전략별 현재 배분과 운용 유동성
    - YieldActions: 수익 분배 / 복리화 side action
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from yieldbot.market.models import MarketSample, VenueMetrics
    from yieldbot.strategy.models import Strategy


@runtime_checkable
class PriceOracle(Protocol):
    """가격 오라클."""

    def get_price(self, asset: str) -> float:
        """asset의 현재 가격."""
        ...


@runtime_checkable
class RiskOracle(Protocol):
    """외부 리스크 평가기 (0~100 스케일)."""

    def get_risk_score(self, asset: str) -> float:
        """asset의 외부 리스크 점수."""
        ...


@runtime_checkable
class VenueDataSource(Protocol):
    """venue별 시장 지표 제공자."""

    def get_venue_metrics(self, asset: str, venue: str) -> VenueMetrics:
        """asset을 보유하는 venue의 최신 지표."""
        ...


@runtime_checkable
class MarketFeed(Protocol):
    """가격/거래량 샘플 피드."""

    def latest_samples(self, asset: str) -> Sequence[MarketSample]:
        """마지막 조회 이후 관측된 샘플 (없으면 빈 시퀀스)."""
        ...


@runtime_checkable
class VenueTransfer(Protocol):
    """Venue 간 자금 이동 primitive.

    호출은 blocking이며 완료(성공/실패) 후 반환됩니다.
    실패 시 TransferError를 발생시킵니다.
    """

    def transfer_between_venues(
        self,
        asset: str,
        amount: float,
        from_venue: str,
        to_venue: str,
    ) -> float:
        """자금 이동 후 실현 슬리피지(비율)를 반환합니다.

        Raises:
            TransferError: 이동 실패
        """
        ...


@runtime_checkable
class AllocationSource(Protocol):
    """전략이 관리하는 현재 배분 조회."""

    def current_allocation(self, strategy: Strategy) -> tuple[float, ...]:
        """strategy.venues 순서에 맞춘 현재 배분 비율."""
        ...

    def total_liquidity(self, strategy: Strategy) -> float:
        """전략이 관리하는 총 유동성 (asset 단위)."""
        ...


@runtime_checkable
class YieldActions(Protocol):
    """스케줄러가 호출하는 opaque side action."""

    def distribute_revenue(self, asset: str) -> None:
        """asset의 누적 수익 분배."""
        ...

    def compound_yield(self) -> None:
        """보유 수익 복리화."""
        ...
