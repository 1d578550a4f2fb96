"""Pydantic Settings for engine configuration.

전략 검증 한도, 게이트/긴급 임계값, 실행 비용, 스케줄러 cap 등
엔진 전체의 튜닝 값을 pydantic-settings로 관리합니다.
환경 변수(YIELDBOT_ prefix) 또는 .env 파일에서 로드합니다.

Rules Applied:
    - #11 Pydantic Modeling: BaseSettings, Field validators
"""

from functools import lru_cache
from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """리밸런싱 엔진 설정.

    Environment Variables:
        - YIELDBOT_MAX_VENUES: 전략당 최대 venue 수
        - YIELDBOT_SLIPPAGE_CEILING: 전략 max_slippage 상한
        - YIELDBOT_MAX_TASKS_PER_TICK: tick당 최대 태스크 실행 수
        - ...

    Example:
        >>> settings = get_settings()
        >>> settings.max_tasks_per_tick
        3
    """

    model_config = SettingsConfigDict(
        env_prefix="YIELDBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Strategy Registry Limits
    # ==========================================================================
    max_venues: int = Field(
        default=10,
        ge=1,
        le=64,
        description="전략당 최대 venue 수",
    )
    slippage_ceiling: float = Field(
        default=0.05,
        gt=0.0,
        le=1.0,
        description="전략 max_slippage 상한 (0.05 = 5%)",
    )

    # ==========================================================================
    # Market Condition Monitor
    # ==========================================================================
    price_buffer_size: int = Field(
        default=24,
        ge=2,
        le=10_000,
        description="asset별 가격 ring buffer 슬롯 수",
    )
    high_volatility_bps: float = Field(
        default=500.0,
        gt=0.0,
        description="high-volatility 플래그 임계값 (bps)",
    )
    trend_threshold_bps: float = Field(
        default=200.0,
        gt=0.0,
        description="bullish/bearish 판정 추세 임계값 (bps)",
    )
    reference_liquidity: float = Field(
        default=1_000_000.0,
        gt=0.0,
        description="유동성 리스크 0점 기준 depth",
    )

    # ==========================================================================
    # Optimizer
    # ==========================================================================
    max_concentration: float = Field(
        default=0.6,
        gt=0.0,
        le=1.0,
        description="RiskMinimization 단일 venue 최대 비중",
    )

    # ==========================================================================
    # Gate / Emergency
    # ==========================================================================
    emergency_risk_threshold: float = Field(
        default=80.0,
        ge=0.0,
        le=100.0,
        description="긴급 판정 리스크 점수 임계값",
    )
    emergency_volatility_bps: float = Field(
        default=2_000.0,
        gt=0.0,
        description="전역 긴급 판정 변동성 임계값 (bps)",
    )
    emergency_min_liquidity: float = Field(
        default=0.0,
        ge=0.0,
        description="전역 긴급 판정 최소 유동성 (0 = 비활성)",
    )
    safe_stable_weight: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="safe allocation에서 stable venue에 배정할 비중",
    )

    # ==========================================================================
    # Executor / Ledger
    # ==========================================================================
    min_transfer_size: float = Field(
        default=10.0,
        ge=0.0,
        description="최소 transfer 금액 (이하 스킵)",
    )
    history_retention: int = Field(
        default=100,
        ge=1,
        description="전략별 ExecutionRecord 보관 개수",
    )
    transfer_fixed_cost: float = Field(
        default=1.0,
        ge=0.0,
        description="transfer 1건당 고정 실행 비용",
    )
    transfer_cost_bps: float = Field(
        default=2.0,
        ge=0.0,
        description="transfer 금액 대비 실행 비용 (bps)",
    )

    # ==========================================================================
    # Scheduler
    # ==========================================================================
    max_tasks_per_tick: int = Field(
        default=3,
        ge=1,
        le=100,
        description="tick당 최대 태스크 실행 수",
    )
    execution_history_size: int = Field(
        default=500,
        ge=1,
        description="스케줄러 태스크 실행 이력 보관 개수",
    )
    refresh_workers: int = Field(
        default=1,
        ge=1,
        le=32,
        description="market refresh 병렬 worker 수 (1 = 순차)",
    )

    @model_validator(mode="after")
    def validate_thresholds(self) -> Self:
        """변동성 임계값 일관성 검증.

        Raises:
            ValueError: high_volatility_bps > emergency_volatility_bps
        """
        if self.high_volatility_bps > self.emergency_volatility_bps:
            msg = (
                f"high_volatility_bps ({self.high_volatility_bps}) cannot exceed "
                f"emergency_volatility_bps ({self.emergency_volatility_bps})"
            )
            raise ValueError(msg)
        return self


@lru_cache
def get_settings() -> EngineSettings:
    """설정 싱글톤 인스턴스 반환.

    Returns:
        EngineSettings 인스턴스
    """
    return EngineSettings()


def clear_settings_cache() -> None:
    """설정 캐시 초기화 (테스트용)."""
    get_settings.cache_clear()
