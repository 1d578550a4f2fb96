"""ExecutionLedger — 전략별 bounded 실행 이력.

ExecutionRecord는 생성한 전략이 소유하며(1:N, append-only),
전략별 ring buffer가 최근 N건만 보관합니다 (overwrite-oldest).

Rules Applied:
    - #12 Data Engineering: pandas export
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pandas as pd

from yieldbot.core.ring_buffer import RingBuffer

if TYPE_CHECKING:
    from yieldbot.strategy.models import ExecutionRecord

_FRAME_COLUMNS = [
    "strategy_id",
    "asset",
    "timestamp",
    "success",
    "emergency",
    "transfer_count",
    "moved_amount",
    "total_cost",
    "predicted_gain",
    "net_benefit",
    "error",
]


class ExecutionLedger:
    """전략별 ExecutionRecord 저장소.

    Args:
        retention: 전략별 보관 개수
    """

    def __init__(self, retention: int = 100) -> None:
        if retention < 1:
            msg = f"retention must be >= 1, got {retention}"
            raise ValueError(msg)
        self._retention = retention
        self._records: dict[str, RingBuffer[ExecutionRecord]] = {}

    @property
    def retention(self) -> int:
        """전략별 보관 개수."""
        return self._retention

    def append(self, record: ExecutionRecord) -> None:
        """레코드 추가 (가득 차면 가장 오래된 레코드 덮어쓰기)."""
        buffer = self._records.get(record.strategy_id)
        if buffer is None:
            buffer = RingBuffer(self._retention)
            self._records[record.strategy_id] = buffer
        buffer.append(record)

    def history(self, strategy_id: str, limit: int | None = None) -> list[ExecutionRecord]:
        """전략 이력 (오래된 순, limit이면 최근 limit건)."""
        buffer = self._records.get(strategy_id)
        if buffer is None:
            return []
        records = buffer.to_list()
        if limit is not None:
            return records[-limit:] if limit > 0 else []
        return records

    def latest(self, strategy_id: str) -> ExecutionRecord | None:
        """전략의 가장 최근 레코드."""
        buffer = self._records.get(strategy_id)
        return buffer.latest() if buffer is not None else None

    def total_recorded(self, strategy_id: str | None = None) -> int:
        """누적 기록 수 (보관 한도로 밀려난 레코드 포함)."""
        if strategy_id is not None:
            buffer = self._records.get(strategy_id)
            return buffer.total_appended if buffer is not None else 0
        return sum(b.total_appended for b in self._records.values())

    def strategy_ids(self) -> list[str]:
        """이력이 있는 전략 ID (정렬)."""
        return sorted(self._records)

    def to_frame(self, strategy_id: str | None = None) -> pd.DataFrame:
        """보관 중인 레코드를 DataFrame으로 변환 (timestamp 순).

        Args:
            strategy_id: 특정 전략만 (None이면 전체)

        Returns:
            레코드당 1행 DataFrame (비어 있으면 컬럼만 있는 DataFrame)
        """
        ids = [strategy_id] if strategy_id is not None else self.strategy_ids()
        rows = [
            {
                "strategy_id": r.strategy_id,
                "asset": r.asset,
                "timestamp": r.timestamp,
                "success": r.success,
                "emergency": r.emergency,
                "transfer_count": len(r.transfers),
                "moved_amount": r.moved_amount,
                "total_cost": r.total_cost,
                "predicted_gain": r.predicted_gain,
                "net_benefit": r.net_benefit,
                "error": r.error,
            }
            for sid in ids
            for r in self.history(sid)
        ]
        if not rows:
            return pd.DataFrame(columns=_FRAME_COLUMNS)
        return pd.DataFrame(rows, columns=_FRAME_COLUMNS).sort_values(
            "timestamp", kind="stable", ignore_index=True
        )
