"""Transfer Cost Model.

리밸런스 실행 비용(건당 고정 비용 + 금액 대비 bps)을 모델링합니다.
호출자가 자체 resource accounting으로 execution_cost를 주지 않을 때 사용됩니다.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True, validation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from collections.abc import Iterable

    from yieldbot.config.settings import EngineSettings
    from yieldbot.strategy.models import TransferInstruction

_BPS = 10_000.0


class TransferCostModel(BaseModel):
    """venue 간 transfer 비용 모델.

    Attributes:
        fixed_cost: transfer 1건당 고정 비용 (gas 등)
        cost_bps: transfer 금액 대비 비용 (bps)

    Example:
        >>> model = TransferCostModel(fixed_cost=1.0, cost_bps=2.0)
        >>> model.transfer_cost(10_000.0)
        3.0
    """

    model_config = ConfigDict(frozen=True)

    fixed_cost: float = Field(default=1.0, ge=0.0, description="건당 고정 비용")
    cost_bps: float = Field(default=2.0, ge=0.0, le=1_000.0, description="금액 대비 비용 (bps)")

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> Self:
        """EngineSettings에서 비용 모델 생성."""
        return cls(fixed_cost=settings.transfer_fixed_cost, cost_bps=settings.transfer_cost_bps)

    def transfer_cost(self, amount: float) -> float:
        """단일 transfer 비용."""
        return self.fixed_cost + abs(amount) * self.cost_bps / _BPS

    def estimate(self, instructions: Iterable[TransferInstruction]) -> float:
        """계획된 transfer 목록의 총 비용 (없으면 0.0)."""
        return sum(self.transfer_cost(ins.amount) for ins in instructions)
