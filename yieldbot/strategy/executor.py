"""RebalanceExecutor — 목표 배분을 venue 간 transfer로 실행.

Planning (first-fit greedy, 결정적):
    1. delta_i = (target_i − current_i) × total_liquidity
    2. 음수 delta = surplus, 양수 delta = deficit (전략 venue 순서 유지)
    3. deficit venue마다 surplus venue를 순서대로 소진하며 min(surplus, deficit) 이동
    4. min_transfer_size 미만 pairing은 금액만 소진하고 발행하지 않음

Execution:
    transfer는 순차 blocking 호출. TransferError 또는 slippage guard 발동 시
    남은 transfer를 중단합니다 (fail-fast). 완료된 transfer는 되돌리지 않으며,
    성공/실패와 무관하게 last_execution을 갱신해 cooldown을 소모합니다.

Rules Applied:
    - #23 Exception Handling: 도메인 예외 → 실패 레코드
    - #15 Logging Standards: strategy context binding
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from yieldbot.core.events import RebalanceExecuted
from yieldbot.core.exceptions import SlippageExceededError, TransferError
from yieldbot.logging.context import get_strategy_logger
from yieldbot.strategy.cost_model import TransferCostModel
from yieldbot.strategy.models import ExecutionRecord, TransferInstruction, TransferLeg

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from yieldbot.config.settings import EngineSettings
    from yieldbot.core.events import EventBus
    from yieldbot.core.ports import VenueTransfer
    from yieldbot.strategy.ledger import ExecutionLedger
    from yieldbot.strategy.models import Strategy

# ── Constants ─────────────────────────────────────────────────────

_AMOUNT_EPSILON = 1e-9


def plan_transfers(
    venues: Sequence[str],
    current: Sequence[float],
    target: Sequence[float],
    total_liquidity: float,
    min_transfer_size: float,
) -> list[TransferInstruction]:
    """signed delta → first-fit surplus/deficit pairing.

    Args:
        venues: 전략 venue 순서
        current: 현재 배분
        target: 목표 배분
        total_liquidity: 전략 운용 유동성
        min_transfer_size: 최소 transfer 금액

    Returns:
        발행할 TransferInstruction 목록 (venue 순서 기반 결정적)
    """
    deltas = [(t - c) * total_liquidity for c, t in zip(current, target, strict=True)]
    surplus = [[i, -d] for i, d in enumerate(deltas) if d < -_AMOUNT_EPSILON]
    deficit = [[i, d] for i, d in enumerate(deltas) if d > _AMOUNT_EPSILON]

    instructions: list[TransferInstruction] = []
    for dst in deficit:
        for src in surplus:
            if dst[1] <= _AMOUNT_EPSILON:
                break
            if src[1] <= _AMOUNT_EPSILON:
                continue
            amount = min(src[1], dst[1])
            src[1] -= amount
            dst[1] -= amount
            if amount < min_transfer_size:
                continue
            instructions.append(TransferInstruction(venues[src[0]], venues[dst[0]], amount))
    return instructions


class RebalanceExecutor:
    """리밸런스 실행기.

    Args:
        settings: EngineSettings (min_transfer_size)
        transfer: venue 간 자금 이동 primitive
        ledger: 실행 이력 저장소
        cost_model: execution_cost 미지정 시 사용할 비용 모델
        bus: RebalanceExecuted 이벤트를 받을 EventBus
        clock: 현재 시각 제공 함수
    """

    def __init__(
        self,
        settings: EngineSettings,
        transfer: VenueTransfer,
        ledger: ExecutionLedger,
        cost_model: TransferCostModel | None = None,
        bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._transfer = transfer
        self._ledger = ledger
        self._cost_model = cost_model or TransferCostModel.from_settings(settings)
        self._bus = bus
        self._clock = clock or (lambda: datetime.now(UTC))
        self._slippage_guard_trips = 0

    @property
    def ledger(self) -> ExecutionLedger:
        """실행 이력 저장소."""
        return self._ledger

    @property
    def slippage_guard_trips(self) -> int:
        """slippage guard 누적 발동 횟수."""
        return self._slippage_guard_trips

    def plan(
        self,
        strategy: Strategy,
        current: Sequence[float],
        target: Sequence[float],
        total_liquidity: float,
    ) -> list[TransferInstruction]:
        """전략 기준 transfer 계획."""
        return plan_transfers(
            strategy.venues,
            current,
            target,
            total_liquidity,
            self._settings.min_transfer_size,
        )

    def execute(
        self,
        strategy: Strategy,
        current: Sequence[float],
        target: Sequence[float],
        *,
        total_liquidity: float,
        predicted_gain: float,
        execution_cost: float | None = None,
        now: datetime | None = None,
        emergency: bool = False,
    ) -> ExecutionRecord:
        """계획된 transfer를 순차 실행하고 ExecutionRecord를 남깁니다.

        Args:
            strategy: 대상 전략 (last_execution/emergency 갱신)
            current: 현재 배분
            target: 목표 배분
            total_liquidity: 전략 운용 유동성
            predicted_gain: optimizer 예상 이득
            execution_cost: 호출자 resource accounting 비용 (None이면 cost model)
            now: 실행 시각 (None이면 clock)
            emergency: 긴급 경로 실행 여부

        Returns:
            ledger에 추가된 ExecutionRecord
        """
        timestamp = now or self._clock()
        log = get_strategy_logger(strategy.strategy_id, asset=strategy.asset)
        instructions = self.plan(strategy, current, target, total_liquidity)

        legs: list[TransferLeg] = []
        error: str | None = None
        for ins in instructions:
            try:
                slippage = self._transfer.transfer_between_venues(
                    strategy.asset, ins.amount, ins.source, ins.destination
                )
            except TransferError as exc:
                error = str(exc)
                log.warning("Transfer {} -> {} failed: {}", ins.source, ins.destination, exc)
            except Exception as exc:
                # integration fault: 완료된 leg와 cooldown은 유지
                error = f"{type(exc).__name__}: {exc}"
                log.exception("Transfer {} -> {} raised", ins.source, ins.destination)
            if error is not None:
                legs.append(
                    TransferLeg(ins.source, ins.destination, ins.amount, success=False, error=error)
                )
                break

            legs.append(TransferLeg(ins.source, ins.destination, ins.amount, slippage=slippage))
            try:
                self._guard_slippage(strategy, ins, slippage)
            except SlippageExceededError as exc:
                self._slippage_guard_trips += 1
                error = str(exc)
                log.warning("Slippage guard tripped, halting remaining transfers: {}", exc)
                break

        if execution_cost is None:
            completed = [
                TransferInstruction(leg.source, leg.destination, leg.amount)
                for leg in legs
                if leg.success
            ]
            execution_cost = self._cost_model.estimate(completed)

        record = ExecutionRecord(
            strategy_id=strategy.strategy_id,
            asset=strategy.asset,
            transfers=tuple(legs),
            total_cost=execution_cost,
            predicted_gain=predicted_gain,
            net_benefit=predicted_gain - execution_cost,
            timestamp=timestamp,
            success=error is None,
            emergency=emergency,
            error=error,
        )
        self._ledger.append(record)
        strategy.last_execution = timestamp
        strategy.emergency = emergency

        log.info(
            "Rebalance {} | transfers={}/{} net_benefit={:.4f}{}",
            "OK" if record.success else "FAILED",
            sum(1 for leg in legs if leg.success),
            len(instructions),
            record.net_benefit,
            " [EMERGENCY]" if emergency else "",
        )
        if self._bus is not None:
            self._bus.publish(
                RebalanceExecuted(
                    strategy_id=record.strategy_id,
                    asset=record.asset,
                    success=record.success,
                    transfer_count=len(legs),
                    net_benefit=record.net_benefit,
                    emergency=emergency,
                    source="RebalanceExecutor",
                )
            )
        return record

    @staticmethod
    def _guard_slippage(strategy: Strategy, ins: TransferInstruction, slippage: float) -> None:
        limit = strategy.definition.max_slippage
        if slippage > limit:
            msg = f"Realized slippage {slippage:.4%} exceeds limit {limit:.4%}"
            raise SlippageExceededError(
                msg,
                slippage=slippage,
                limit=limit,
                context={"from": ins.source, "to": ins.destination, "amount": ins.amount},
            )
