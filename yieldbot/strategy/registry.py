"""StrategyRegistry — 전략 레코드 CRUD와 lifecycle.

Strategy 레코드를 독점 소유합니다. 레코드는 삭제되지 않고 비활성화만 됩니다.
구조적 불변식은 StrategyDefinition validator가, 운영 한도(venue 수, 슬리피지 상한)는
registry가 EngineSettings 기준으로 검증합니다. 거부 시 상태 변경은 없습니다.

Rules Applied:
    - #23 Exception Handling: pydantic 검증 오류 → StrategyValidationError
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pydantic
from loguru import logger

from yieldbot.core.events import StrategyChanged
from yieldbot.core.exceptions import StrategyNotFoundError, StrategyValidationError
from yieldbot.strategy.models import Strategy, StrategyDefinition

if TYPE_CHECKING:
    from collections.abc import Mapping

    from yieldbot.config.settings import EngineSettings
    from yieldbot.core.events import EventBus

# edit()에서 변경할 수 없는 필드
_IMMUTABLE_FIELDS = frozenset({"strategy_id"})


class StrategyRegistry:
    """전략 저장소.

    Args:
        settings: EngineSettings (max_venues, slippage_ceiling)
        bus: StrategyChanged 이벤트를 받을 EventBus
    """

    def __init__(self, settings: EngineSettings, bus: EventBus | None = None) -> None:
        self._settings = settings
        self._bus = bus
        self._strategies: dict[str, Strategy] = {}

    # ── Mutations ─────────────────────────────────────────────────

    def create(self, definition: StrategyDefinition | Mapping[str, Any]) -> Strategy:
        """전략 생성.

        Args:
            definition: 검증된 정의 또는 원시 필드 mapping

        Returns:
            활성 상태의 새 Strategy

        Raises:
            StrategyValidationError: 정의 오류, 운영 한도 초과, 중복 ID
        """
        validated = self._validate(definition)
        if validated.strategy_id in self._strategies:
            msg = f"Strategy '{validated.strategy_id}' already exists"
            raise StrategyValidationError(msg, context={"strategy_id": validated.strategy_id})

        strategy = Strategy(definition=validated)
        self._strategies[validated.strategy_id] = strategy
        logger.info(
            "Strategy created: {} ({}, {} venues, {})",
            validated.strategy_id,
            validated.asset,
            validated.n_venues,
            validated.algorithm,
        )
        self._notify(validated.strategy_id, "created")
        return strategy

    def edit(self, strategy_id: str, /, **changes: Any) -> Strategy:
        """전략 정의 수정 (재검증, 런타임 상태 유지).

        Raises:
            StrategyNotFoundError: 등록되지 않은 ID
            StrategyValidationError: 변경 후 정의 오류 또는 strategy_id 변경 시도
        """
        strategy = self.get(strategy_id)
        forbidden = _IMMUTABLE_FIELDS & changes.keys()
        if forbidden:
            msg = f"Cannot edit immutable fields: {sorted(forbidden)}"
            raise StrategyValidationError(msg, context={"strategy_id": strategy_id})

        merged = {**strategy.definition.model_dump(), **changes}
        strategy.definition = self._validate(merged)
        logger.info("Strategy edited: {} fields={}", strategy_id, sorted(changes))
        self._notify(strategy_id, "edited")
        return strategy

    def deactivate(self, strategy_id: str) -> Strategy:
        """전략 비활성화 (scheduler/optimizer가 건너뜀)."""
        strategy = self.get(strategy_id)
        if strategy.is_active:
            strategy.is_active = False
            logger.info("Strategy deactivated: {}", strategy_id)
            self._notify(strategy_id, "deactivated")
        return strategy

    def reactivate(self, strategy_id: str) -> Strategy:
        """전략 재활성화."""
        strategy = self.get(strategy_id)
        if not strategy.is_active:
            strategy.is_active = True
            logger.info("Strategy reactivated: {}", strategy_id)
            self._notify(strategy_id, "reactivated")
        return strategy

    # ── Queries ───────────────────────────────────────────────────

    def get(self, strategy_id: str) -> Strategy:
        """전략 조회.

        Raises:
            StrategyNotFoundError: 등록되지 않은 ID
        """
        strategy = self._strategies.get(strategy_id)
        if strategy is None:
            msg = f"Strategy '{strategy_id}' not found"
            raise StrategyNotFoundError(msg, context={"strategy_id": strategy_id})
        return strategy

    def strategies(self) -> list[Strategy]:
        """모든 전략 (ID 순)."""
        return [self._strategies[sid] for sid in sorted(self._strategies)]

    def active(self) -> list[Strategy]:
        """활성 전략 (ID 순)."""
        return [s for s in self.strategies() if s.is_active]

    def active_assets(self) -> list[str]:
        """활성 전략이 있는 asset (정렬, 중복 제거)."""
        return sorted({s.asset for s in self.active()})

    def __len__(self) -> int:
        return len(self._strategies)

    def __contains__(self, strategy_id: object) -> bool:
        return strategy_id in self._strategies

    # ── Private ──────────────────────────────────────────────────

    def _validate(self, definition: StrategyDefinition | Mapping[str, Any]) -> StrategyDefinition:
        if isinstance(definition, StrategyDefinition):
            validated = definition
        else:
            try:
                validated = StrategyDefinition.model_validate(dict(definition))
            except pydantic.ValidationError as exc:
                msg = f"Invalid strategy definition: {exc.errors()[0]['msg']}"
                raise StrategyValidationError(
                    msg, context={"strategy_id": definition.get("strategy_id")}
                ) from exc

        ctx: dict[str, object] = {"strategy_id": validated.strategy_id}
        if validated.n_venues > self._settings.max_venues:
            msg = f"Venue count {validated.n_venues} exceeds cap {self._settings.max_venues}"
            raise StrategyValidationError(msg, context=ctx)
        if validated.max_slippage > self._settings.slippage_ceiling:
            msg = (
                f"max_slippage {validated.max_slippage} exceeds ceiling "
                f"{self._settings.slippage_ceiling}"
            )
            raise StrategyValidationError(msg, context=ctx)
        return validated

    def _notify(self, strategy_id: str, action: str) -> None:
        if self._bus is not None:
            self._bus.publish(
                StrategyChanged(strategy_id=strategy_id, action=action, source="StrategyRegistry")
            )
